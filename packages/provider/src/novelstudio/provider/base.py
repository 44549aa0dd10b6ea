"""OpenAICompatibleProvider -- OpenAI Chat Completion 协议的公共实现

SiliconFlow 与 Gemini 都兼容 OpenAI 协议。差异通过钩子隔离：
- build_headers(): 鉴权方式
- build_request_body(): 模型默认值、不支持参数的剔除
- load_credentials() / has_credentials() / resolve_api_key(): 凭证的读取与按模型选择
"""

import time
from collections.abc import AsyncIterator, Mapping
from typing import Any

import httpx
import structlog
from pydantic import SecretStr

from .cancellation import CancellationToken
from .exceptions import (
    InvalidResponseError,
    NoResponseBodyError,
    ProviderConfigError,
    ProviderError,
    ProviderHTTPError,
    RequestAbortedError,
)
from .models import (
    AIModel,
    ChatMessage,
    ChatParams,
    ChatResult,
    ProviderConfig,
    ProviderCredentials,
    ProviderInfo,
    TokenUsage,
)
from .sse import SSEDecoder

log = structlog.get_logger()

DEFAULT_TIMEOUT_S = 60.0


async def _next_chunk(iterator: AsyncIterator[bytes]) -> bytes | None:
    """读取下一块响应体，结束时返回 None"""
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


class OpenAICompatibleProvider:
    """OpenAI 兼容 provider 基类

    子类声明 provider_id / name / default_base_url / default_model，
    按需覆盖钩子方法。auto_model 为自动选择时使用的模型，缺省同 default_model。
    """

    provider_id: str = ""
    name: str = ""
    default_base_url: str = ""
    default_model: str = ""
    auto_model: str = ""

    def __init__(
        self,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            timeout_s: 单次 HTTP 读写超时（秒）
            transport: 可注入的 httpx transport（测试使用 MockTransport）
        """
        self._timeout_s = timeout_s
        self._transport = transport

    def info(self) -> ProviderInfo:
        return ProviderInfo(
            id=self.provider_id,
            name=self.name,
            default_base_url=self.default_base_url,
            default_model=self.default_model,
        )

    def recommended_models(self) -> list[AIModel]:
        """不访问网络的内置模型目录"""
        return []

    # ---------- 钩子 ----------

    def get_base_url(self, base_url: str | None = None) -> str:
        return (base_url or self.default_base_url).rstrip("/")

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def format_messages(self, messages: list[ChatMessage]) -> list[dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in messages]

    def build_request_body(
        self, config: ProviderConfig, params: ChatParams, stream: bool
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": params.model or config.model,
            "messages": self.format_messages(params.messages),
            "temperature": params.temperature,
            "stream": stream,
        }
        if params.max_tokens is not None:
            body["max_tokens"] = params.max_tokens
        return body

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport)

    def _json_object(self, resp: httpx.Response) -> dict[str, Any]:
        """解析 2xx 响应正文；非 JSON 或非对象时抛出 InvalidResponseError"""
        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            log.error(
                "provider_invalid_response",
                provider=self.provider_id,
                status_code=resp.status_code,
                content_type=resp.headers.get("content-type", ""),
            )
            raise InvalidResponseError(resp.text)
        return data

    # ---------- 凭证钩子 ----------

    @property
    def env_prefix(self) -> str:
        return "NOVELSTUDIO_" + self.provider_id.upper().replace("-", "_")

    def load_credentials(self, environ: Mapping[str, str]) -> ProviderCredentials | None:
        """读取 {env_prefix}_API_KEY / {env_prefix}_BASE_URL，都未设置时返回 None"""
        api_key = environ.get(f"{self.env_prefix}_API_KEY", "")
        base_url = environ.get(f"{self.env_prefix}_BASE_URL") or None
        if not api_key and not base_url:
            return None
        return ProviderCredentials(api_key=SecretStr(api_key), base_url=base_url)

    def has_credentials(self, credentials: ProviderCredentials) -> bool:
        return bool(credentials.api_key.get_secret_value())

    def resolve_api_key(self, credentials: ProviderCredentials, model: str) -> str:
        """为指定模型选出请求使用的 Key

        Raises:
            ProviderConfigError: 该模型没有可用 Key
        """
        api_key = credentials.api_key.get_secret_value()
        if not api_key:
            raise ProviderConfigError()
        return api_key

    # ---------- 公共接口 ----------

    async def list_models(self, api_key: str, base_url: str | None = None) -> list[AIModel]:
        """GET {base_url}/models，按 OpenAI 格式解析

        Raises:
            ProviderHTTPError: 非 2xx 响应
            InvalidResponseError: 响应正文不是 JSON 对象
        """
        url = f"{self.get_base_url(base_url)}/models"
        async with self._client() as client:
            resp = await client.get(url, headers=self.build_headers(api_key))

        if resp.is_error:
            raise ProviderHTTPError(resp.status_code, resp.text)

        data = self._json_object(resp)
        items = data.get("data")
        if not isinstance(items, list):
            return []

        models: list[AIModel] = []
        for item in items:
            if not isinstance(item, dict) or not item.get("id"):
                continue
            owned_by = item.get("owned_by")
            models.append(
                AIModel(
                    id=item["id"],
                    name=item["id"],
                    description=f"by {owned_by}" if owned_by else None,
                )
            )
        return models

    async def validate_key(self, api_key: str, base_url: str | None = None) -> bool:
        """能列出至少一个模型即视为 Key 有效。此方法不抛出异常"""
        try:
            models = await self.list_models(api_key, base_url)
        except (ProviderError, httpx.HTTPError, ValueError) as e:
            log.warning(
                "provider_key_validation_failed",
                provider=self.provider_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return len(models) > 0

    async def chat_stream(
        self,
        config: ProviderConfig,
        params: ChatParams,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[str]:
        """流式 chat completion，逐个产出文本片段

        两个挂起点（等待响应头、等待每块响应体）都受 cancel_token 保护。

        Raises:
            ProviderHTTPError: 非 2xx 响应
            NoResponseBodyError: 响应体为空
            RequestAbortedError: 令牌被取消
        """
        token = cancel_token or CancellationToken()
        url = f"{self.get_base_url(config.base_url)}/chat/completions"
        body = self.build_request_body(config, params, stream=True)
        start_time = time.monotonic()
        fragment_count = 0

        log.info(
            "provider_stream_started",
            provider=self.provider_id,
            model=body.get("model"),
            message_count=len(params.messages),
        )

        try:
            async with self._client() as client:
                request = client.build_request(
                    "POST",
                    url,
                    headers=self.build_headers(config.api_key.get_secret_value()),
                    json=body,
                )
                response = await token.guard(client.send(request, stream=True))
                try:
                    if response.is_error:
                        error_body = await token.guard(response.aread())
                        raise ProviderHTTPError(
                            response.status_code,
                            error_body.decode("utf-8", errors="replace"),
                        )

                    decoder = SSEDecoder()
                    received_bytes = 0
                    chunks = response.aiter_bytes()
                    while True:
                        data = await token.guard(_next_chunk(chunks))
                        if data is None:
                            break
                        received_bytes += len(data)
                        for fragment in decoder.feed(data):
                            token.raise_if_cancelled()
                            fragment_count += 1
                            yield fragment

                    if received_bytes == 0:
                        raise NoResponseBodyError()

                    for fragment in decoder.flush():
                        token.raise_if_cancelled()
                        fragment_count += 1
                        yield fragment
                finally:
                    await response.aclose()
        except RequestAbortedError:
            log.info(
                "provider_stream_aborted",
                provider=self.provider_id,
                fragment_count=fragment_count,
            )
            raise
        except ProviderError as e:
            log.error(
                "provider_stream_failed",
                provider=self.provider_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        log.info(
            "provider_stream_completed",
            provider=self.provider_id,
            fragment_count=fragment_count,
            duration_ms=int((time.monotonic() - start_time) * 1000),
        )

    async def chat_once(
        self,
        config: ProviderConfig,
        params: ChatParams,
        cancel_token: CancellationToken | None = None,
    ) -> ChatResult:
        """非流式 chat completion

        Raises:
            ProviderHTTPError: 非 2xx 响应
            InvalidResponseError: 响应正文不是 JSON 对象
            RequestAbortedError: 令牌被取消
        """
        token = cancel_token or CancellationToken()
        url = f"{self.get_base_url(config.base_url)}/chat/completions"
        body = self.build_request_body(config, params, stream=False)

        async with self._client() as client:
            resp = await token.guard(
                client.post(
                    url,
                    headers=self.build_headers(config.api_key.get_secret_value()),
                    json=body,
                )
            )

        if resp.is_error:
            log.error(
                "provider_call_failed",
                provider=self.provider_id,
                status_code=resp.status_code,
            )
            raise ProviderHTTPError(resp.status_code, resp.text)

        data = self._json_object(resp)
        choices = data.get("choices")
        first = choices[0] if isinstance(choices, list) and choices else {}
        if not isinstance(first, dict):
            first = {}
        message = first.get("message")
        if not isinstance(message, dict):
            message = {}
        raw_usage = data.get("usage")

        result = ChatResult(
            content=message.get("content") or "",
            finish_reason=first.get("finish_reason"),
            usage=TokenUsage(
                prompt_tokens=raw_usage.get("prompt_tokens") or 0,
                completion_tokens=raw_usage.get("completion_tokens") or 0,
                total_tokens=raw_usage.get("total_tokens") or 0,
            )
            if isinstance(raw_usage, dict)
            else None,
        )
        log.info(
            "provider_call_completed",
            provider=self.provider_id,
            model=body.get("model"),
            finish_reason=result.finish_reason,
        )
        return result
