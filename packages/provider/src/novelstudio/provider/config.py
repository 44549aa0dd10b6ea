"""AISettings -- provider 凭证与功能模型配置

从环境变量加载，不硬编码 provider / 模型名：每个已注册 provider 自己声明读取哪些环境变量，
凭证按 provider_id 保存。
resolve_provider_config() 把设置解析为单次请求用的 ProviderConfig；
没有可用凭证时在发起任何网络请求前抛出 ProviderConfigError。
"""

import os

import structlog
from pydantic import BaseModel, Field, SecretStr

from .exceptions import ProviderConfigError
from .models import AIFunction, ProviderConfig, ProviderCredentials
from .registry import ProviderRegistry, create_default_registry

log = structlog.get_logger()

_DEFAULT_TIMEOUT_S = 60


class FunctionModelChoice(BaseModel):
    """某个功能显式指定的 provider + 模型（未指定即为自动选择）"""

    provider_id: str = Field(description="provider 标识")
    model: str = Field(description="模型 ID")


class AISettings(BaseModel):
    """AI 设置 -- 从环境变量加载

    环境变量:
        各 provider 的凭证变量（见 OpenAICompatibleProvider.load_credentials），如
        NOVELSTUDIO_SILICONFLOW_API_KEY、NOVELSTUDIO_GEMINI_FREE_API_KEY
        NOVELSTUDIO_AI_TIMEOUT_S: 调用超时（秒，默认 60）
        NOVELSTUDIO_AI_DEBUG: 是否记录请求调试信息
        NOVELSTUDIO_MODEL_<FUNCTION>: 形如 "siliconflow:Qwen/Qwen2.5-72B-Instruct"
    """

    credentials: dict[str, ProviderCredentials] = Field(
        default_factory=dict,
        description="provider_id -> 已配置的凭证",
    )
    timeout_s: int = Field(default=_DEFAULT_TIMEOUT_S, ge=1, description="调用超时（秒）")
    debug_mode: bool = Field(default=False, description="记录最近一次请求的调试信息")
    function_models: dict[AIFunction, FunctionModelChoice] = Field(
        default_factory=dict,
        description="按功能显式指定的模型，缺省为自动选择",
    )

    def credentials_for(self, provider_id: str) -> ProviderCredentials:
        return self.credentials.get(provider_id) or ProviderCredentials()

    def configured_providers(self, registry: ProviderRegistry) -> list[str]:
        """按注册顺序列出凭证可用的 provider_id"""
        return [
            provider.provider_id
            for provider in registry.list_all()
            if provider.has_credentials(self.credentials_for(provider.provider_id))
        ]


def _parse_model_choice(env_var: str, value: str) -> FunctionModelChoice | None:
    provider_id, sep, model = value.partition(":")
    if not sep or not provider_id.strip() or not model.strip():
        log.warning("invalid_model_config", env_var=env_var, value=value)
        return None
    return FunctionModelChoice(provider_id=provider_id.strip(), model=model.strip())


def load_ai_settings(registry: ProviderRegistry | None = None) -> AISettings:
    """从环境变量加载 AI 设置，非法值记录 warning 后使用默认值

    Args:
        registry: 决定读取哪些 provider 的凭证，缺省为默认注册表
    """
    registry = registry or create_default_registry()
    kwargs: dict = {}

    credentials: dict[str, ProviderCredentials] = {}
    for provider in registry.list_all():
        if loaded := provider.load_credentials(os.environ):
            credentials[provider.provider_id] = loaded
    kwargs["credentials"] = credentials

    if val := os.environ.get("NOVELSTUDIO_AI_TIMEOUT_S"):
        try:
            timeout_s = int(val)
            if timeout_s < 1:
                raise ValueError(val)
            kwargs["timeout_s"] = timeout_s
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="NOVELSTUDIO_AI_TIMEOUT_S",
                value=val,
                fallback=_DEFAULT_TIMEOUT_S,
            )

    if val := os.environ.get("NOVELSTUDIO_AI_DEBUG"):
        kwargs["debug_mode"] = val.lower() in ("1", "true", "yes")

    function_models: dict[AIFunction, FunctionModelChoice] = {}
    for function in AIFunction:
        env_var = f"NOVELSTUDIO_MODEL_{function.value.upper()}"
        val = os.environ.get(env_var)
        if not val or val.lower() == "auto":
            continue
        if choice := _parse_model_choice(env_var, val):
            function_models[function] = choice
    kwargs["function_models"] = function_models

    return AISettings(**kwargs)


def resolve_provider_config(
    settings: AISettings,
    function: AIFunction,
    registry: ProviderRegistry | None = None,
) -> ProviderConfig:
    """为功能解析出单次请求的 ProviderConfig

    显式指定优先；否则按注册表优先级自动选择。

    Raises:
        ProviderConfigError: 没有可用的 provider 或凭证
    """
    registry = registry or create_default_registry()
    choice = settings.function_models.get(function)

    if choice is not None:
        provider_id, model = choice.provider_id, choice.model
    else:
        selected = registry.auto_select(function, settings.configured_providers(registry))
        if selected is None:
            raise ProviderConfigError()
        provider_id, model = selected

    provider = registry.require(provider_id)
    credentials = settings.credentials_for(provider_id)
    api_key = provider.resolve_api_key(credentials, model)

    return ProviderConfig(
        provider_id=provider_id,
        api_key=SecretStr(api_key),
        base_url=credentials.base_url,
        model=model,
    )
