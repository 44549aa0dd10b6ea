"""Provider 包测试 fixtures"""

import json

import pytest
from novelstudio.provider.models import ChatMessage, ChatParams, ProviderConfig
from pydantic import SecretStr


@pytest.fixture
def provider_config() -> ProviderConfig:
    """SiliconFlow 测试配置"""
    return ProviderConfig(
        provider_id="siliconflow",
        api_key=SecretStr("sk-test"),
        base_url="https://llm.test/v1",
        model="Qwen/Qwen2.5-7B-Instruct",
    )


@pytest.fixture
def chat_params() -> ChatParams:
    """标准 system + user 消息"""
    return ChatParams(
        messages=[
            ChatMessage(role="system", content="你是一位小说写作助手。"),
            ChatMessage(role="user", content="你好"),
        ]
    )


@pytest.fixture
def sse_frame():
    """构造单个流式事件行：data: {"choices":[{"delta":{"content": ...}}]}"""

    def _frame(content: str) -> str:
        payload = {"choices": [{"delta": {"content": content}}]}
        return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"

    return _frame
