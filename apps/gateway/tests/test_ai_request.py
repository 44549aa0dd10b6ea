"""AIRequestService 测试 -- 使用模拟的 OpenAI 兼容端点

测试内容：
1. 润色端到端：流式片段 -> 结构化结果 -> apply
2. 自动选择 provider 与显式 provider
3. 配置错误不发起网络请求
4. 传输错误 / 空响应体设置 error
5. 流式过程中取消
"""

import asyncio

import pytest
from novelstudio.core.exceptions import TaskConflictError
from novelstudio.core.models import (
    ChatTask,
    ModifyEnhancedContext,
    ModifyTask,
    ModifyType,
    TaskEventType,
    TaskStatus,
)
from novelstudio.core.prompts import UNIFIED_SYSTEM_PROMPT
from novelstudio.gateway.services.ai_request import AIRequestService
from novelstudio.gateway.services.event_hub import TaskEventHub
from novelstudio.gateway.services.task_store import ActiveTaskStore
from novelstudio.provider import AISettings, ProviderConfig
from pydantic import SecretStr


@pytest.fixture
def hub() -> TaskEventHub:
    return TaskEventHub()


@pytest.fixture
def store(hub) -> ActiveTaskStore:
    return ActiveTaskStore(hub=hub, debug_mode=True)


@pytest.fixture
def service(store, registry, settings) -> AIRequestService:
    return AIRequestService(store, registry, settings)


def _polish() -> ModifyTask:
    return ModifyTask(
        modify_type=ModifyType.POLISH,
        selected_text="她走进了房间。",
        enhanced_context=ModifyEnhancedContext(text_after="窗外下着雪。"),
    )


class TestPolishEndToEnd:
    async def test_polish_scenario(self, service, store, fake_llm):
        """模型分多个片段返回 JSON，解析后 apply 携带新旧文本"""
        fake_llm.reply(
            '{"result": "她缓缓推开门，',
            "走进了昏暗的房间。",
            '", "explanation": "增加细节"}',
            chunk_size=9,
        )
        task = await service.send_request(_polish())

        assert task.status == TaskStatus.COMPLETED
        assert task.result_text == "她缓缓推开门，走进了昏暗的房间。"
        assert task.result_explanation == "增加细节"
        assert store.error is None

        payload = await store.apply()
        assert payload.result_text == "她缓缓推开门，走进了昏暗的房间。"
        assert payload.source_text == "她走进了房间。"
        assert payload.function == "polish"

    async def test_request_shape(self, service, fake_llm):
        """自动选择 SiliconFlow，system 在前、组装好的用户消息在后"""
        fake_llm.reply('{"result": "x"}')
        await service.send_request(_polish())

        request = fake_llm.requests[0]
        assert request["url"] == "https://api.siliconflow.cn/v1/chat/completions"
        assert request["headers"]["authorization"] == "Bearer sk-test"
        body = request["body"]
        assert body["model"] == "Pro/deepseek-ai/DeepSeek-V3"
        assert body["stream"] is True
        assert body["temperature"] == 0.7
        assert body["messages"][0] == {"role": "system", "content": UNIFIED_SYSTEM_PROMPT}
        user = body["messages"][1]["content"]
        assert "【需要处理的文本】\n她走进了房间。" in user
        assert "【后文】\n窗外下着雪。" in user

    async def test_debug_info_recorded(self, service, store, fake_llm):
        fake_llm.reply("好")
        await service.send_request(ChatTask(message="你好"))
        assert store.debug_info["provider"] == "siliconflow"
        assert store.debug_info["function"] == "chat"
        assert store.debug_info["messages"][-1]["content"] == "你好"

    async def test_explicit_provider(self, service, fake_llm):
        fake_llm.reply("好")
        config = ProviderConfig(
            provider_id="gemini",
            api_key=SecretStr("g-key"),
            base_url="https://gemini.test/v1",
            model="gemini-3-flash-preview",
        )
        task = await service.send_request(ChatTask(message="你好"), config)
        assert task.result_text == "好"
        assert fake_llm.requests[0]["url"] == "https://gemini.test/v1/chat/completions"


class TestFailures:
    async def test_no_provider_configured(self, store, registry, fake_llm):
        service = AIRequestService(store, registry, AISettings())
        task = await service.send_request(_polish())

        assert fake_llm.requests == []
        assert task.status == TaskStatus.CANCELLED
        assert store.error == "未找到可用的 AI 服务商，请先配置 API Key"

    async def test_unknown_explicit_provider(self, service, store, fake_llm):
        config = ProviderConfig(provider_id="openai", api_key=SecretStr("k"))
        await service.send_request(_polish(), config)
        assert fake_llm.requests == []
        assert "openai" in store.error

    async def test_http_error(self, service, store, fake_llm):
        fake_llm.fail(401, '{"error": "invalid key"}')
        task = await service.send_request(_polish())

        assert task.status == TaskStatus.CANCELLED
        assert store.error.startswith("Chat request failed: 401")
        assert task.streaming_content == ""

    async def test_done_only_stream(self, service, fake_llm):
        """只有 [DONE] 的流正常完成，结果为空"""
        fake_llm.reply()
        task = await service.send_request(ChatTask(message="你好"))
        assert task.status == TaskStatus.COMPLETED
        assert task.result_text == ""

    async def test_empty_body(self, service, store, fake_llm):
        fake_llm.empty_body = True
        task = await service.send_request(ChatTask(message="你好"))
        assert task.status == TaskStatus.CANCELLED
        assert store.error == "No response body"

    async def test_conflict(self, service, fake_llm):
        fake_llm.gate = asyncio.Event()
        await service.submit(_polish())
        with pytest.raises(TaskConflictError):
            await service.submit(_polish())
        fake_llm.gate.set()
        await service.wait_idle()


class TestCancellation:
    async def test_cancel_mid_stream(self, service, store, fake_llm, wait_until):
        """首个片段之后挂起，取消后丢弃部分内容且不设置 error"""
        fake_llm.gate = asyncio.Event()
        fake_llm.reply("第一段", "第二段")
        task = await service.submit(ChatTask(message="讲个故事"))

        await wait_until(lambda: store.is_streaming)
        assert task.streaming_content.startswith("第一段")

        assert await service.stop_request() is True
        await service.wait_idle()

        assert task.status == TaskStatus.CANCELLED
        assert task.streaming_content == ""
        assert task.result_text is None
        assert store.error is None

    async def test_cancel_before_run(self, service, store, fake_llm):
        task = await service.submit(ChatTask(message="你好"))
        assert await service.stop_request() is True
        await service.wait_idle()
        assert task.status == TaskStatus.CANCELLED
        assert fake_llm.requests == []

    async def test_stop_without_request(self, service):
        assert await service.stop_request() is False

    async def test_submit_right_after_stop(self, service, store, hub, fake_llm, wait_until):
        """取消后立即提交新任务：旧请求的收尾不会取消或污染新任务"""
        fake_llm.gate = asyncio.Event()
        fake_llm.reply("第一段", "第二段")
        first = await service.submit(ChatTask(message="讲个故事"))
        await wait_until(lambda: store.is_streaming)

        queue = await hub.subscribe()
        assert await service.stop_request() is True
        second = await service.submit(ChatTask(message="再讲一个"))
        fake_llm.gate.set()
        await service.wait_idle()

        assert first.status == TaskStatus.CANCELLED
        assert second.status == TaskStatus.COMPLETED
        assert second.result_text == "第一段第二段"
        assert store.active is second
        assert store.error is None

        events = []
        while not queue.empty():
            events.append(queue.get_nowait())
        assert all(e.type != TaskEventType.TASK_FAILED for e in events)
        cancelled = [
            e.task_id for e in events
            if e.type == TaskEventType.STATE_TRANSITION and e.payload["to_status"] == "cancelled"
        ]
        assert cancelled == [first.task_id]
