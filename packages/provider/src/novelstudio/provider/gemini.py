"""GeminiProvider -- Google Gemini 的 OpenAI 兼容端点

额外职责：免费 / 付费两档凭证的选择。部分模型只对付费 Key 开放，
请求构建前按模型名路由到对应凭证。
"""

from collections.abc import Mapping
from typing import Any

import httpx
import structlog
from pydantic import SecretStr

from .base import OpenAICompatibleProvider
from .exceptions import ProviderConfigError, ProviderError
from .models import AIModel, ChatMessage, ChatParams, ProviderConfig, ProviderCredentials

log = structlog.get_logger()

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai"
GEMINI_DEFAULT_MODEL = "gemini-3-flash-preview"

GEMINI_MODELS: list[AIModel] = [
    AIModel(
        id="gemini-2.5-pro",
        name="Gemini 2.5 Pro",
        description="强大的多模态模型，支持免费和付费 API",
        context_length=1048576,
    ),
    AIModel(
        id="gemini-3-pro-preview",
        name="Gemini 3 Pro Preview",
        description="全球领先的多模态理解模型，仅支持付费 API",
        context_length=1048576,
    ),
    AIModel(
        id="gemini-3-flash-preview",
        name="Gemini 3 Flash Preview",
        description="最智能的模型，专为速度而打造",
        context_length=1048576,
    ),
]

# 仅付费 Key 可用的模型，其余模型优先使用免费 Key
PAID_ONLY_MODELS: frozenset[str] = frozenset({"gemini-3-pro-preview"})

# Key 无效时 /models 返回的状态码
_AUTH_FAILURE_STATUSES = (401, 403)


def is_paid_only_model(model: str) -> bool:
    return model in PAID_ONLY_MODELS


def select_gemini_api_key(
    model: str,
    free_api_key: str | None = None,
    paid_api_key: str | None = None,
) -> str | None:
    """按模型选择凭证档位

    - 仅付费模型：必须使用付费 Key
    - 其他模型：免费 Key 优先，没有时退回付费 Key

    Returns:
        选中的 Key；该模型没有可用 Key 时返回 None
    """
    if is_paid_only_model(model):
        return paid_api_key or None
    return free_api_key or paid_api_key or None


class GeminiProvider(OpenAICompatibleProvider):
    """Google Gemini provider"""

    provider_id = "gemini"
    name = "Google Gemini"
    default_base_url = GEMINI_BASE_URL
    default_model = GEMINI_DEFAULT_MODEL

    def load_credentials(self, environ: Mapping[str, str]) -> ProviderCredentials | None:
        """免费档 {env_prefix}_FREE_API_KEY，付费档 {env_prefix}_PAID_API_KEY"""
        free_key = environ.get(f"{self.env_prefix}_FREE_API_KEY", "")
        paid_key = environ.get(f"{self.env_prefix}_PAID_API_KEY", "")
        base_url = environ.get(f"{self.env_prefix}_BASE_URL") or None
        if not (free_key or paid_key or base_url):
            return None
        return ProviderCredentials(
            api_key=SecretStr(free_key),
            paid_api_key=SecretStr(paid_key),
            base_url=base_url,
        )

    def has_credentials(self, credentials: ProviderCredentials) -> bool:
        return bool(
            credentials.api_key.get_secret_value() or credentials.paid_api_key.get_secret_value()
        )

    def resolve_api_key(self, credentials: ProviderCredentials, model: str) -> str:
        api_key = select_gemini_api_key(
            model,
            free_api_key=credentials.api_key.get_secret_value(),
            paid_api_key=credentials.paid_api_key.get_secret_value(),
        )
        if api_key:
            return api_key
        if is_paid_only_model(model):
            raise ProviderConfigError(f"模型 {model} 仅支持付费 API Key，请先配置付费 Key")
        raise ProviderConfigError()

    def recommended_models(self) -> list[AIModel]:
        return list(GEMINI_MODELS)

    async def list_models(self, api_key: str, base_url: str | None = None) -> list[AIModel]:
        # 兼容端点不保证提供 /models，直接返回已知目录
        return self.recommended_models()

    def build_request_body(
        self, config: ProviderConfig, params: ChatParams, stream: bool
    ) -> dict[str, Any]:
        body = super().build_request_body(config, params, stream)
        body["model"] = params.model or config.model or GEMINI_DEFAULT_MODEL
        return body

    async def validate_key(self, api_key: str, base_url: str | None = None) -> bool:
        """/models 返回 401/403 以外的任何状态都视为有效；网络失败时退回极小的对话探测"""
        url = f"{self.get_base_url(base_url)}/models"
        try:
            async with self._client() as client:
                resp = await client.get(url, headers=self.build_headers(api_key))
        except httpx.HTTPError as e:
            log.warning("gemini_validate_chat_fallback", error=str(e), error_type=type(e).__name__)
            return await self._validate_by_chat(api_key, base_url)
        return resp.status_code not in _AUTH_FAILURE_STATUSES

    async def _validate_by_chat(self, api_key: str, base_url: str | None) -> bool:
        config = ProviderConfig(
            provider_id=self.provider_id,
            api_key=SecretStr(api_key),
            base_url=base_url,
            model=GEMINI_DEFAULT_MODEL,
        )
        params = ChatParams(messages=[ChatMessage(role="user", content="Hi")], max_tokens=5)
        try:
            await self.chat_once(config, params)
        except (ProviderError, httpx.HTTPError, ValueError) as e:
            log.warning(
                "provider_key_validation_failed",
                provider=self.provider_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return True
