"""apps/gateway 测试配置 -- 模拟 LLM 端点 + 服务实例 + httpx AsyncClient"""

import asyncio
import json
from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from novelstudio.provider import AISettings, ProviderCredentials, create_default_registry
from pydantic import SecretStr


class ChunkedStream(httpx.AsyncByteStream):
    """逐块返回的响应体；gate 不为 None 时在首块之后挂起"""

    def __init__(self, chunks: list[bytes], gate: asyncio.Event | None = None) -> None:
        self._chunks = chunks
        self._gate = gate

    async def __aiter__(self):
        for index, chunk in enumerate(self._chunks):
            if index > 0 and self._gate is not None:
                await self._gate.wait()
            yield chunk


class FakeLLM:
    """模拟 OpenAI 兼容的 chat/completions 端点

    默认每个事件一块；指定 chunk_size 时按字节切分整个响应体。
    """

    def __init__(self) -> None:
        self.fragments: list[str] = ["你好"]
        self.chunk_size: int | None = None
        self.status_code = 200
        self.error_body = ""
        self.empty_body = False
        self.raw_body: str | None = None
        self.gate: asyncio.Event | None = None
        self.requests: list[dict] = []

    def reply(self, *fragments: str, chunk_size: int | None = None) -> None:
        self.fragments = list(fragments)
        self.chunk_size = chunk_size

    def fail(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.error_body = body

    def _frames(self) -> list[bytes]:
        frames = [
            "data: " + json.dumps({"choices": [{"delta": {"content": f}}]}, ensure_ascii=False) + "\n\n"
            for f in self.fragments
        ]
        frames.append("data: [DONE]\n\n")
        return [frame.encode("utf-8") for frame in frames]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        self.requests.append({"url": str(request.url), "headers": dict(request.headers), "body": body})

        if self.status_code >= 400:
            return httpx.Response(self.status_code, text=self.error_body)

        if self.raw_body is not None:
            return httpx.Response(200, text=self.raw_body)

        if not body.get("stream"):
            return httpx.Response(
                200,
                json={
                    "choices": [{"message": {"content": "".join(self.fragments)}, "finish_reason": "stop"}],
                    "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
                },
            )

        if self.empty_body:
            chunks: list[bytes] = []
        elif self.chunk_size:
            data = b"".join(self._frames())
            chunks = [data[i : i + self.chunk_size] for i in range(0, len(data), self.chunk_size)]
        else:
            chunks = self._frames()
        return httpx.Response(
            200,
            headers={"Content-Type": "text/event-stream"},
            stream=ChunkedStream(chunks, self.gate),
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def registry(fake_llm: FakeLLM):
    return create_default_registry(transport=fake_llm.transport)


@pytest.fixture
def settings() -> AISettings:
    """只配置 SiliconFlow，开启调试信息"""
    return AISettings(
        credentials={"siliconflow": ProviderCredentials(api_key=SecretStr("sk-test"))},
        debug_mode=True,
    )


@pytest_asyncio.fixture
async def app(registry, settings):
    """创建测试用 FastAPI app 实例（绕过 lifespan 手动初始化服务）"""
    from novelstudio.gateway.main import create_app, init_services

    application = create_app()
    init_services(application, registry=registry, settings=settings)
    yield application
    await application.state.ai_service.stop_request()
    await application.state.ai_service.wait_idle()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def wait_until():
    """轮询直到条件成立"""

    async def _wait(predicate, timeout: float = 2.0) -> None:
        async with asyncio.timeout(timeout):
            while not predicate():
                await asyncio.sleep(0.01)

    return _wait
