"""AI 直连路由

POST /api/ai/chat: 统一的聊天接口，支持流式（SSE）与非流式响应。
GET /api/ai/chat: 返回支持的 provider（含推荐模型）与功能列表。
POST /api/ai/validate: 验证 provider 的 API Key。

流式帧顺序：debug -> content* -> (error) -> [DONE]
"""

import json
import time
from typing import Any

import httpx
import structlog
from fastapi import APIRouter, Depends
from novelstudio.core.models import ContextItem
from novelstudio.core.prompts import UNIFIED_SYSTEM_PROMPT, build_chat_user_message
from novelstudio.provider import (
    FUNCTION_LABELS,
    AIFunction,
    CancellationToken,
    ChatMessage,
    ChatParams,
    ProviderConfig,
    ProviderError,
    ProviderRegistry,
    StreamChunk,
)
from pydantic import BaseModel, Field, SecretStr
from sse_starlette.sse import EventSourceResponse
from starlette.responses import JSONResponse

from ..deps import get_registry
from .errors import error_response

log = structlog.get_logger()

router = APIRouter()

FUNCTION_DESCRIPTIONS: dict[AIFunction, str] = {
    AIFunction.POLISH: "提升文学性和可读性",
    AIFunction.EXPAND: "丰富细节和描写",
    AIFunction.COMPRESS: "精简内容，保留核心",
    AIFunction.CONTINUE: "接续当前内容继续创作",
    AIFunction.PLAN: "根据大纲生成场景摘要",
    AIFunction.SUMMARIZE: "根据内容生成摘要",
    AIFunction.CHAT: "自由对话",
}


class ProviderBlock(BaseModel):
    """请求中携带的 provider 配置"""

    id: str = Field(description="provider 标识")
    api_key: str = Field(min_length=1, description="API Key")
    base_url: str | None = Field(default=None, description="自定义 Base URL")
    model: str = Field(default="", description="模型 ID")

    def to_config(self) -> ProviderConfig:
        return ProviderConfig(
            provider_id=self.id,
            api_key=SecretStr(self.api_key),
            base_url=self.base_url,
            model=self.model,
        )


class ChatRequest(BaseModel):
    """聊天请求体"""

    function: AIFunction
    provider: ProviderBlock
    messages: list[ChatMessage] = Field(min_length=1, description="消息不能为空")
    stream: bool = True
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    context: list[ContextItem] = Field(default_factory=list, description="用户附加的参考上下文")


class ValidateRequest(BaseModel):
    """API Key 验证请求体"""

    provider_id: str
    api_key: str = Field(min_length=1)
    base_url: str | None = None


def _prepare_messages(body: ChatRequest) -> list[ChatMessage]:
    """chat 功能注入统一 System Prompt，并把参考上下文并入最后一条用户消息"""
    messages = list(body.messages)
    if body.function != AIFunction.CHAT:
        return messages

    if body.context:
        for index in range(len(messages) - 1, -1, -1):
            if messages[index].role == "user":
                messages[index] = ChatMessage(
                    role="user",
                    content=build_chat_user_message(messages[index].content, body.context),
                )
                break

    if not any(m.role == "system" for m in messages):
        messages.insert(0, ChatMessage(role="system", content=UNIFIED_SYSTEM_PROMPT))
    return messages


def _sse(data: dict[str, Any] | StreamChunk) -> dict[str, str]:
    if isinstance(data, StreamChunk):
        data = data.model_dump(exclude_defaults=True)
    return {"data": json.dumps(data, ensure_ascii=False)}


@router.post("/api/ai/chat")
async def chat(body: ChatRequest, registry: ProviderRegistry = Depends(get_registry)):
    """统一的 AI 聊天接口"""
    provider = registry.get(body.provider.id)
    if provider is None:
        return error_response(400, "UNSUPPORTED_PROVIDER", f"不支持的 Provider: {body.provider.id}")

    config = body.provider.to_config()
    messages = _prepare_messages(body)
    params_kwargs: dict[str, Any] = {"messages": messages, "model": config.model or None}
    if body.temperature is not None:
        params_kwargs["temperature"] = body.temperature
    if body.max_tokens is not None:
        params_kwargs["max_tokens"] = body.max_tokens
    params = ChatParams(**params_kwargs)

    if not body.stream:
        try:
            result = await provider.chat_once(config, params)
        except (ProviderError, httpx.HTTPError) as e:
            log.error(
                "ai_chat_failed",
                provider=provider.provider_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return error_response(502, "PROVIDER_ERROR", str(e) or "AI 请求失败")
        return JSONResponse(
            content={
                "success": True,
                "data": result.model_dump(mode="json"),
            }
        )

    async def event_generator():
        token = CancellationToken()
        # 首帧：实际发送给模型的完整消息
        yield _sse(
            StreamChunk(
                debug={
                    "timestamp": int(time.time() * 1000),
                    "function": body.function.value,
                    "messages": [m.model_dump() for m in messages],
                    "context": [c.model_dump(mode="json") for c in body.context],
                    "provider": provider.provider_id,
                    "model": config.model,
                }
            )
        )
        try:
            async for fragment in provider.chat_stream(config, params, token):
                yield _sse(StreamChunk(content=fragment))
        except (ProviderError, httpx.HTTPError) as e:
            log.error(
                "ai_chat_stream_failed",
                provider=provider.provider_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            yield _sse({"error": str(e) or "未知错误"})
        finally:
            # 客户端断开时中止上游读取
            token.cancel("客户端断开")
        yield {"data": "[DONE]"}

    return EventSourceResponse(event_generator())


@router.get("/api/ai/chat")
async def list_capabilities(registry: ProviderRegistry = Depends(get_registry)):
    """返回支持的 provider 与功能"""
    providers = [
        {
            **provider.info().model_dump(),
            "models": [m.model_dump() for m in provider.recommended_models()],
        }
        for provider in registry.list_all()
    ]
    functions = [
        {"id": function.value, "name": FUNCTION_LABELS[function], "description": FUNCTION_DESCRIPTIONS[function]}
        for function in AIFunction
    ]
    return {"success": True, "data": {"providers": providers, "functions": functions}}


@router.post("/api/ai/validate")
async def validate_key(body: ValidateRequest, registry: ProviderRegistry = Depends(get_registry)):
    """验证 API Key"""
    provider = registry.get(body.provider_id)
    if provider is None:
        return error_response(400, "UNSUPPORTED_PROVIDER", f"不支持的 Provider: {body.provider_id}")

    valid = await provider.validate_key(body.api_key, body.base_url)
    log.info("api_key_validated", provider=body.provider_id, valid=valid)
    return {"success": True, "data": {"valid": valid}}
