"""编辑器端到端集成测试

文档树 -> 上下文构建 -> POST /api/ai/tasks -> 模型流式回复 -> 解析 -> apply 事件
"""

from httpx import AsyncClient
from novelstudio.core.context_builder import (
    build_continue_context,
    build_modify_context,
    build_plan_context,
    build_summarize_context,
    entities_to_context_items,
    match_entities,
    node_to_context_item,
)
from novelstudio.core.models import (
    ContinueTask,
    ModifyTask,
    ModifyType,
    PlanTask,
    SummarizeTask,
)


def _by_id(tree, node_id):
    return next(n for n in tree if n.node_id == node_id)


async def _run_task(client: AsyncClient, app, task) -> dict:
    resp = await client.post("/api/ai/tasks", json={"task": task.model_dump(mode="json")})
    assert resp.status_code == 202
    await app.state.ai_service.wait_idle()
    snapshot = (await client.get("/api/ai/tasks/active")).json()
    assert snapshot["error"] is None
    assert snapshot["task"]["status"] == "completed"
    return snapshot


class TestModifyFlow:
    async def test_expand_selection(self, client: AsyncClient, integration_app, llm, tree, entities, project):
        """扩写选区：前后文 + 场景 / 章节摘要 + 提及的实体都进入用户消息"""
        scene = _by_id(tree, "s1")
        chapter = _by_id(tree, "ch1")
        start = scene.content.index("林夜")
        end = scene.content.index("，屋里")
        selected = scene.content[start:end]

        mentioned = [e.entity_id for e in match_entities(selected, entities)]
        context = build_modify_context(
            editor_content=scene.content,
            selection_start=start,
            selection_end=end,
            current_node=scene,
            parent_node=chapter,
            mentioned_entity_ids=mentioned,
            entities=entities,
        )
        task = ModifyTask(
            modify_type=ModifyType.EXPAND,
            selected_text=selected,
            enhanced_context=context,
            user_contexts=entities_to_context_items(entities, mentioned),
            project=project,
        )

        llm.queue('{"result": "林夜用冻僵的手', '推开营地沉重的木门", "explanation": "补充动作细节"}')
        await _run_task(client, integration_app, task)

        message = llm.last_user_message()
        assert "【当前项目】\n**项目名称**：长夜将明" in message
        assert "### 👤 林夜 (CHARACTER)" in message
        assert "【前文】\n雪下了一整夜。" in message
        assert f"【需要处理的文本】\n{selected}" in message
        assert "【当前场景摘要】\n林夜在雪夜抵达" in message
        assert "【当前章节摘要】\n林夜抵达营地" in message
        assert "【相关角色/设定】\n- **林夜** (CHARACTER): 年轻的守夜人" in message

        applied = (await client.post("/api/ai/tasks/active/apply")).json()
        assert applied["function"] == "expand"
        assert applied["result_text"] == "林夜用冻僵的手推开营地沉重的木门"
        assert applied["source_text"] == selected


class TestPlanFlow:
    async def test_plan_skips_existing_children(
        self, client: AsyncClient, integration_app, llm, tree, entities, project
    ):
        chapter = _by_id(tree, "ch1")
        context = build_plan_context(chapter, tree, entities, project)
        task = PlanTask(target_node_id="ch1", target_node_title=chapter.title, context=context)

        llm.queue(
            "好的，规划如下：\n```json\n",
            '{"children": [{"title": " 抵达 ", "summary": "重复", "type": "FILE"},',
            '{"title": "结识老陈", "summary": "林夜遇见老陈", "type": "FILE"}],',
            ' "explanation": "补全本章"}\n```',
        )
        snapshot = await _run_task(client, integration_app, task)
        assert len(snapshot["task"]["result_children"]) == 2

        message = llm.last_user_message()
        assert "【当前项目】" not in message
        assert "📁 长夜将明" in message
        assert "【已有子节点】\n1. **抵达** (场景)\n   摘要：林夜在雪夜抵达" in message
        assert "**老陈** (CHARACTER): 营地老兵" in message

        applied = (await client.post("/api/ai/tasks/active/apply")).json()
        assert [c["title"] for c in applied["result_children"]] == ["结识老陈"]
        assert applied["skipped_titles"] == ["抵达"]
        assert applied["result_explanation"] == "补全本章"


class TestContinueFlow:
    async def test_continue_at_end(self, client: AsyncClient, integration_app, llm, tree, entities, project):
        scene = _by_id(tree, "s1")
        context = build_continue_context(scene, tree, scene.content, entities=entities, project=project)
        task = ContinueTask(context=context, user_input="保持冷峻的语气")

        llm.queue('{"result": "灯芯噼啪作响。"}')
        await _run_task(client, integration_app, task)

        message = llm.last_user_message()
        assert f"【光标前的内容】\n{scene.content}" in message
        assert "【光标后的内容" not in message
        assert "【额外要求】\n保持冷峻的语气" in message
        assert "请从【光标前的内容】末尾开始续写。" in message

        applied = (await client.post("/api/ai/tasks/active/apply")).json()
        assert applied["result_text"] == "灯芯噼啪作响。"

    async def test_plain_text_reply_used_as_result(self, client: AsyncClient, integration_app, llm, tree):
        """模型未返回 JSON 时整段文本即结果"""
        scene = _by_id(tree, "s1")
        context = build_continue_context(scene, tree, scene.content, cursor=3)
        llm.queue("  风从门缝里钻进来。  ")
        snapshot = await _run_task(client, integration_app, ContinueTask(context=context))

        assert snapshot["task"]["result_text"] == "风从门缝里钻进来。"
        message = llm.last_user_message()
        assert "【光标后的内容（续写需要衔接到此处）】" in message


class TestSummarizeFlow:
    async def test_summarize_chapter(self, client: AsyncClient, integration_app, llm, tree):
        chapter = _by_id(tree, "ch1")
        task = SummarizeTask(context=build_summarize_context(chapter, tree))

        llm.queue('{"result": "林夜雪夜抵达营地。"}')
        await _run_task(client, integration_app, task)

        message = llm.last_user_message()
        assert "【章节名称】\n第一章" in message
        assert "【当前摘要】\n林夜抵达营地" in message
        assert "【子内容列表】\n1. 抵达：林夜在雪夜抵达" in message

        applied = (await client.post("/api/ai/tasks/active/apply")).json()
        assert applied["result_text"] == "林夜雪夜抵达营地。"
        assert applied["source_text"] == "林夜抵达营地"


class TestChatFlow:
    async def test_chat_with_node_reference(self, client: AsyncClient, integration_app, llm, tree):
        """直连聊天：节点参考并入用户消息，流以 [DONE] 结束"""
        item = node_to_context_item(_by_id(tree, "s1"), tree)
        llm.queue("这一幕", "很有氛围。")
        resp = await client.post(
            "/api/ai/chat",
            json={
                "function": "chat",
                "provider": {"id": "siliconflow", "api_key": "sk-user"},
                "messages": [{"role": "user", "content": "这一段写得怎么样？"}],
                "context": [item.model_dump(mode="json")],
            },
        )
        assert resp.status_code == 200
        assert resp.text.rstrip().endswith("data: [DONE]")

        message = llm.last_user_message()
        assert message.startswith("【参考上下文】\n### 📄 抵达")
        assert message.endswith("【我的问题】\n这一段写得怎么样？")
