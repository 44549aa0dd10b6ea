"""Context Assembler -- 按任务类型组装有界的上下文

- 修改类任务：选区前后各截取 max_context_length 个字符，去掉首尾空白，空的一侧省略
- 层级类任务（规划 / 续写）：自当前节点向上收集祖先链（跳过系统根节点），
  根在前；存在项目信息时置于链首
- 实体匹配：名称与别名的大小写不敏感子串扫描
- 整节点正文按 NODE_CONTENT_MAX_CHARS 截断

组装结果全部为空时返回 None（"无增强"标记），格式化阶段据此整段省略。
"""

from collections.abc import Iterable, Sequence

import structlog

from .config import CONTEXT_MAX_LENGTH, NODE_CONTENT_MAX_CHARS
from .models.context import (
    AncestorInfo,
    ChildBrief,
    ContinueContext,
    EntityBrief,
    EntityContextItem,
    EntityRecord,
    ModifyEnhancedContext,
    NodeContextItem,
    NodeInfo,
    ParentBrief,
    PlanContext,
    ProjectInfo,
    SelectionContextItem,
    SummarizeContext,
)
from .models.enums import NodeType
from .truncation import truncate_text

log = structlog.get_logger()


def _index(nodes: Iterable[NodeInfo]) -> dict[str, NodeInfo]:
    return {n.node_id: n for n in nodes}


def _children_of(node_id: str, nodes: Iterable[NodeInfo]) -> list[NodeInfo]:
    return [n for n in nodes if n.parent_id == node_id]


def build_modify_context(
    editor_content: str | None = None,
    selection_start: int | None = None,
    selection_end: int | None = None,
    current_node: NodeInfo | None = None,
    parent_node: NodeInfo | None = None,
    mentioned_entity_ids: Sequence[str] | None = None,
    max_context_length: int = CONTEXT_MAX_LENGTH,
    enabled: bool = True,
    entities: Iterable[EntityRecord] | None = None,
) -> ModifyEnhancedContext | None:
    """构建修改类任务（润色 / 扩写 / 缩写）的增强上下文

    传入 entities 时，mentioned_entity_ids 按顺序解析为实体摘要，未知 ID 忽略。

    Returns:
        ModifyEnhancedContext；没有任何增强信息或增强被关闭时返回 None
    """
    if not enabled:
        return None

    context = ModifyEnhancedContext()

    if editor_content and selection_start is not None and selection_end is not None:
        start = max(0, min(selection_start, len(editor_content)))
        end = max(start, min(selection_end, len(editor_content)))

        before = editor_content[max(0, start - max_context_length) : start].strip()
        if before:
            context.text_before = before

        after = editor_content[end : end + max_context_length].strip()
        if after:
            context.text_after = after

    if current_node is not None and current_node.summary:
        context.scene_summary = current_node.summary

    if parent_node is not None and not parent_node.system_root and parent_node.summary:
        context.chapter_summary = parent_node.summary

    if mentioned_entity_ids:
        context.related_entity_ids = list(mentioned_entity_ids)
        if entities is not None:
            by_id = {e.entity_id: e for e in entities}
            context.related_entities = to_entity_briefs(
                by_id[entity_id] for entity_id in mentioned_entity_ids if entity_id in by_id
            )

    if context == ModifyEnhancedContext():
        return None
    return context


def build_ancestor_chain(
    node_id: str,
    nodes: Iterable[NodeInfo],
    project: ProjectInfo | None = None,
) -> list[AncestorInfo]:
    """自当前节点的父节点向上收集祖先，返回根在前、直接父节点在后的列表

    系统根节点被跳过；项目信息存在时放在最前。
    """
    by_id = _index(nodes)
    current = by_id.get(node_id)
    chain: list[AncestorInfo] = []
    seen: set[str] = set()

    parent_id = current.parent_id if current is not None else None
    while parent_id and parent_id not in seen:
        seen.add(parent_id)
        parent = by_id.get(parent_id)
        if parent is None:
            break
        if not parent.system_root:
            chain.append(AncestorInfo(name=parent.title, summary=parent.summary or parent.outline))
        parent_id = parent.parent_id

    chain.reverse()
    if project is not None:
        chain.insert(0, AncestorInfo(name=project.title, summary=project.description or ""))
    return chain


def match_entities(text: str, entities: Iterable[EntityRecord]) -> list[EntityRecord]:
    """名称或任一别名（大小写不敏感）出现在文本中的实体，保持输入顺序"""
    haystack = text.lower()
    if not haystack:
        return []
    matched: list[EntityRecord] = []
    for entity in entities:
        names = [entity.name, *entity.aliases]
        if any(name and name.lower() in haystack for name in names):
            matched.append(entity)
    return matched


def to_entity_briefs(entities: Iterable[EntityRecord]) -> list[EntityBrief]:
    return [EntityBrief(name=e.name, type=e.entity_type, description=e.description) for e in entities]


def entities_to_context_items(
    entities: Iterable[EntityRecord],
    entity_ids: Sequence[str],
) -> list[EntityContextItem]:
    """按 entity_ids 的顺序把实体转换为参考上下文，未知 ID 忽略"""
    by_id = {e.entity_id: e for e in entities}
    items: list[EntityContextItem] = []
    for entity_id in entity_ids:
        entity = by_id.get(entity_id)
        if entity is None:
            continue
        items.append(
            EntityContextItem(
                entity_id=entity.entity_id,
                entity_type=entity.entity_type,
                name=entity.name,
                aliases=list(entity.aliases),
                description=entity.description,
                attributes=dict(entity.attributes),
            )
        )
    return items


def selection_to_context_item(text: str) -> SelectionContextItem:
    return SelectionContextItem(text=text)


def node_to_context_item(
    node: NodeInfo,
    nodes: Iterable[NodeInfo] = (),
    max_content_chars: int = NODE_CONTENT_MAX_CHARS,
) -> NodeContextItem:
    """节点参考：FILE 携带截断后的正文，FOLDER 携带子节点名称"""
    if node.node_type == NodeType.FILE:
        return NodeContextItem(
            node_id=node.node_id,
            title=node.title,
            node_type=node.node_type,
            content=truncate_text(node.content, max_content_chars),
            summary=node.summary,
            timestamp=node.timestamp,
        )
    return NodeContextItem(
        node_id=node.node_id,
        title=node.title,
        node_type=node.node_type,
        summary=node.outline or node.summary,
        children_names=[c.title for c in _children_of(node.node_id, nodes)],
    )


def build_plan_context(
    node: NodeInfo,
    nodes: Sequence[NodeInfo],
    entities: Iterable[EntityRecord] = (),
    project: ProjectInfo | None = None,
) -> PlanContext:
    """结构规划上下文：当前节点大纲、已有子节点、上级节点、祖先链、相关实体"""
    by_id = _index(nodes)
    children = [
        ChildBrief(title=c.title, summary=c.summary, type=c.node_type)
        for c in _children_of(node.node_id, nodes)
    ]

    parent_brief = None
    parent = by_id.get(node.parent_id) if node.parent_id else None
    if parent is not None and not parent.system_root:
        parent_brief = ParentBrief(name=parent.title, outline=parent.outline or parent.summary)

    outline = node.outline or node.summary
    related = match_entities(f"{node.title}\n{outline}", entities)

    log.debug(
        "plan_context_built",
        node_id=node.node_id,
        existing_children=len(children),
        related_entities=len(related),
    )
    return PlanContext(
        node_id=node.node_id,
        node_name=node.title,
        node_outline=outline,
        existing_children=children,
        parent_node=parent_brief,
        ancestor_chain=build_ancestor_chain(node.node_id, nodes, project),
        related_entities=to_entity_briefs(related),
    )


def build_continue_context(
    node: NodeInfo,
    nodes: Sequence[NodeInfo],
    editor_content: str,
    cursor: int | None = None,
    entities: Iterable[EntityRecord] = (),
    project: ProjectInfo | None = None,
    max_context_length: int = CONTEXT_MAX_LENGTH,
    max_content_chars: int = NODE_CONTENT_MAX_CHARS,
) -> ContinueContext:
    """续写上下文

    cursor 为 None 时视为光标在末尾。光标后的内容最多取 max_context_length 个字符。
    """
    position = len(editor_content) if cursor is None else max(0, min(cursor, len(editor_content)))
    content_before = truncate_text(editor_content[:position], max_content_chars)
    content_after = editor_content[position : position + max_context_length].strip() or None

    related = match_entities(f"{node.summary}\n{content_before}", entities)

    return ContinueContext(
        node_id=node.node_id,
        node_name=node.title,
        node_summary=node.summary or None,
        content_before=content_before,
        content_after=content_after,
        ancestor_chain=build_ancestor_chain(node.node_id, nodes, project),
        related_entities=to_entity_briefs(related),
    )


def build_summarize_context(
    node: NodeInfo,
    nodes: Sequence[NodeInfo] = (),
    max_content_chars: int = NODE_CONTENT_MAX_CHARS,
) -> SummarizeContext:
    """总结上下文：FILE 取场景正文，FOLDER 取子内容列表（标题 + 摘要）"""
    if node.node_type == NodeType.FILE:
        content = node.content
    else:
        lines = []
        for index, child in enumerate(_children_of(node.node_id, nodes), start=1):
            summary = child.summary or "（暂无摘要）"
            lines.append(f"{index}. {child.title}：{summary}")
        content = "\n".join(lines)

    return SummarizeContext(
        node_id=node.node_id,
        node_name=node.title,
        node_type=node.node_type,
        current_summary=node.summary or None,
        content=truncate_text(content, max_content_chars),
    )
