"""Context Assembler 单元测试

测试内容：
1. 修改类任务的选区前后文切片与 None 标记
2. 祖先链（跳过系统根、根在前、项目置首、环路安全）
3. 实体匹配
4. 规划 / 续写 / 总结上下文
"""

from novelstudio.core.context_builder import (
    build_ancestor_chain,
    build_continue_context,
    build_modify_context,
    build_plan_context,
    build_summarize_context,
    entities_to_context_items,
    match_entities,
    node_to_context_item,
)
from novelstudio.core.models import EntityType, NodeInfo, NodeType

EDITOR = "她走进了房间。林夜抬头看向窗外。"


def _by_id(nodes: list[NodeInfo], node_id: str) -> NodeInfo:
    return next(n for n in nodes if n.node_id == node_id)


class TestModifyContext:
    def test_slices_around_selection(self, nodes):
        ctx = build_modify_context(
            editor_content=EDITOR,
            selection_start=7,
            selection_end=11,
            current_node=_by_id(nodes, "s1"),
            parent_node=_by_id(nodes, "ch1"),
        )
        assert ctx is not None
        assert ctx.text_before == "她走进了房间。"
        assert ctx.text_after == "看向窗外。"
        assert ctx.scene_summary == "林夜抵达营地"
        assert ctx.chapter_summary == "林夜在雪夜中抵达营地"

    def test_slice_bounded_by_max_length(self):
        ctx = build_modify_context(EDITOR, 7, 11, max_context_length=3)
        assert ctx is not None
        assert ctx.text_before == "房间。"
        assert ctx.text_after == "看向窗"

    def test_empty_side_omitted(self):
        """选区在开头时前文为空，省略"""
        ctx = build_modify_context(EDITOR, 0, 7)
        assert ctx is not None
        assert ctx.text_before is None
        assert ctx.text_after == "林夜抬头看向窗外。"

    def test_nothing_to_add_returns_none(self):
        assert build_modify_context() is None
        assert build_modify_context("只有选区", 0, 4) is None

    def test_disabled_returns_none(self, nodes):
        ctx = build_modify_context(EDITOR, 7, 11, current_node=_by_id(nodes, "s1"), enabled=False)
        assert ctx is None

    def test_system_root_parent_skipped(self, nodes):
        ctx = build_modify_context(
            current_node=_by_id(nodes, "vol1"),
            parent_node=_by_id(nodes, "root"),
        )
        assert ctx is None

    def test_mentioned_entities_kept(self):
        ctx = build_modify_context(mentioned_entity_ids=["e1"])
        assert ctx is not None
        assert ctx.related_entity_ids == ["e1"]
        assert ctx.related_entities == []

    def test_mentioned_entities_resolved_to_briefs(self, entities):
        """提及的实体按 ID 顺序解析为摘要，未知 ID 忽略"""
        ctx = build_modify_context(mentioned_entity_ids=["e3", "missing", "e1"], entities=entities)
        assert ctx is not None
        assert ctx.related_entity_ids == ["e3", "missing", "e1"]
        assert [(b.name, b.type, b.description) for b in ctx.related_entities] == [
            ("Lantern", EntityType.ITEM, "一盏旧灯"),
            ("林夜", EntityType.CHARACTER, "年轻的守夜人"),
        ]


class TestAncestorChain:
    def test_root_first_skip_system_root(self, nodes):
        chain = build_ancestor_chain("s1", nodes)
        assert [a.name for a in chain] == ["第一卷", "第一章 雪夜"]
        # 没有摘要时使用大纲
        assert chain[0].summary == "林夜初入守夜人营地"

    def test_project_prepended(self, nodes, project):
        chain = build_ancestor_chain("s1", nodes, project)
        assert chain[0].name == "长夜将明"
        assert chain[0].summary == "一部关于守夜人的奇幻小说"
        assert len(chain) == 3

    def test_unknown_node(self, nodes):
        assert build_ancestor_chain("missing", nodes) == []

    def test_cycle_terminates(self):
        cyclic = [
            NodeInfo(node_id="a", title="A", node_type=NodeType.FOLDER, parent_id="b"),
            NodeInfo(node_id="b", title="B", node_type=NodeType.FOLDER, parent_id="a"),
        ]
        chain = build_ancestor_chain("a", cyclic)
        assert [a.name for a in chain] == ["A", "B"]


class TestEntities:
    def test_match_name_alias_case_insensitive(self, entities):
        matched = match_entities("小夜提着LANTERN走了出去", entities)
        assert [e.entity_id for e in matched] == ["e1", "e3"]

    def test_match_empty_text(self, entities):
        assert match_entities("", entities) == []

    def test_context_items_follow_id_order(self, entities):
        items = entities_to_context_items(entities, ["e2", "missing", "e1"])
        assert [i.entity_id for i in items] == ["e2", "e1"]
        assert items[1].aliases == ["小夜"]
        assert items[1].attributes == {"年龄": "十七"}


class TestNodeContextItem:
    def test_file_carries_content(self, nodes):
        item = node_to_context_item(_by_id(nodes, "s1"), nodes)
        assert item.content == EDITOR
        assert item.timestamp == "第一天夜"

    def test_file_content_truncated(self):
        node = NodeInfo(node_id="x", title="长场景", node_type=NodeType.FILE, content="字" * 10000)
        item = node_to_context_item(node, max_content_chars=6000)
        assert len(item.content) <= 6000

    def test_folder_lists_children(self, nodes):
        item = node_to_context_item(_by_id(nodes, "ch1"), nodes)
        assert item.children_names == ["抵达", "初遇"]
        assert item.summary == "雪夜抵达，结识老陈"


class TestPlanContext:
    def test_plan_context(self, nodes, entities, project):
        ctx = build_plan_context(_by_id(nodes, "ch1"), nodes, entities, project)
        assert ctx.node_outline == "雪夜抵达，结识老陈"
        assert [c.title for c in ctx.existing_children] == ["抵达", "初遇"]
        assert ctx.parent_node is not None
        assert ctx.parent_node.name == "第一卷"
        assert [a.name for a in ctx.ancestor_chain] == ["长夜将明", "第一卷"]
        assert ctx.related_entities == []

    def test_parent_system_root_omitted(self, nodes):
        ctx = build_plan_context(_by_id(nodes, "vol1"), nodes)
        assert ctx.parent_node is None
        assert ctx.ancestor_chain == []

    def test_related_entities_from_outline(self, nodes, entities):
        ctx = build_plan_context(_by_id(nodes, "vol1"), nodes, entities)
        assert [e.name for e in ctx.related_entities] == ["林夜"]


class TestContinueContext:
    def test_cursor_split(self, nodes, entities):
        ctx = build_continue_context(_by_id(nodes, "s1"), nodes, EDITOR, cursor=7, entities=entities)
        assert ctx.content_before == "她走进了房间。"
        assert ctx.content_after == "林夜抬头看向窗外。"
        assert ctx.node_summary == "林夜抵达营地"
        assert [e.name for e in ctx.related_entities] == ["林夜"]

    def test_cursor_defaults_to_end(self, nodes):
        ctx = build_continue_context(_by_id(nodes, "s1"), nodes, EDITOR)
        assert ctx.content_before == EDITOR
        assert ctx.content_after is None

    def test_content_after_bounded(self, nodes):
        ctx = build_continue_context(
            _by_id(nodes, "s1"), nodes, "前" + "后" * 500, cursor=1, max_context_length=200
        )
        assert ctx.content_after == "后" * 200


class TestSummarizeContext:
    def test_file_uses_content(self, nodes):
        ctx = build_summarize_context(_by_id(nodes, "s1"), nodes)
        assert ctx.content == EDITOR
        assert ctx.current_summary == "林夜抵达营地"

    def test_folder_lists_child_summaries(self, nodes):
        ctx = build_summarize_context(_by_id(nodes, "ch1"), nodes)
        assert ctx.content == "1. 抵达：林夜抵达营地\n2. 初遇：（暂无摘要）"
        assert ctx.node_type == NodeType.FOLDER

    def test_missing_summary_is_none(self, nodes):
        ctx = build_summarize_context(_by_id(nodes, "s2"), nodes)
        assert ctx.current_summary is None
