"""集成测试共享 fixture -- 按请求顺序回放的模型端点 + 完整 gateway app + 示例文档树"""

import json
from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from novelstudio.core.models import EntityRecord, EntityType, NodeInfo, NodeType, ProjectInfo
from novelstudio.provider import AISettings, ProviderCredentials, create_default_registry
from pydantic import SecretStr


class ScriptedLLM:
    """依次回放预设回复的 chat/completions 端点，并记录收到的消息"""

    def __init__(self) -> None:
        self.replies: list[list[str]] = []
        self.calls: list[list[dict]] = []

    def queue(self, *fragments: str) -> None:
        self.replies.append(list(fragments))

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.calls.append(body["messages"])
        fragments = self.replies.pop(0) if self.replies else ["好的"]
        frames = "".join(
            "data: " + json.dumps({"choices": [{"delta": {"content": f}}]}, ensure_ascii=False) + "\n\n"
            for f in fragments
        )
        # 不带 [DONE]，最后一帧也不带空行结尾
        return httpx.Response(
            200,
            headers={"Content-Type": "text/event-stream"},
            content=frames.rstrip("\n").encode("utf-8"),
        )

    def last_user_message(self) -> str:
        return self.calls[-1][-1]["content"]


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest_asyncio.fixture
async def integration_app(llm: ScriptedLLM):
    """集成测试用 FastAPI app"""
    from novelstudio.gateway.main import create_app, init_services

    app = create_app()
    init_services(
        app,
        registry=create_default_registry(transport=httpx.MockTransport(llm.handler)),
        settings=AISettings(
            credentials={"siliconflow": ProviderCredentials(api_key=SecretStr("sk-int"))},
        ),
    )
    yield app
    await app.state.ai_service.stop_request()
    await app.state.ai_service.wait_idle()


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def project() -> ProjectInfo:
    return ProjectInfo(title="长夜将明", description="守夜人的故事")


@pytest.fixture
def tree() -> list[NodeInfo]:
    """系统根 -> 第一卷 -> 第一章 -> 场景"""
    return [
        NodeInfo(node_id="root", title="根目录", node_type=NodeType.FOLDER, system_root=True),
        NodeInfo(node_id="vol1", title="第一卷", node_type=NodeType.FOLDER, parent_id="root", outline="初入营地"),
        NodeInfo(
            node_id="ch1",
            title="第一章",
            node_type=NodeType.FOLDER,
            parent_id="vol1",
            summary="林夜抵达营地",
            outline="雪夜抵达，结识老陈",
        ),
        NodeInfo(
            node_id="s1",
            title="抵达",
            node_type=NodeType.FILE,
            parent_id="ch1",
            content="雪下了一整夜。林夜推开营地的木门，屋里只有一盏灯。",
            summary="林夜在雪夜抵达",
        ),
    ]


@pytest.fixture
def entities() -> list[EntityRecord]:
    return [
        EntityRecord(entity_id="e1", entity_type=EntityType.CHARACTER, name="林夜", description="年轻的守夜人"),
        EntityRecord(entity_id="e2", entity_type=EntityType.CHARACTER, name="老陈", description="营地老兵"),
    ]
