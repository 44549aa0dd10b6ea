"""NovelStudio Provider -- OpenAI 兼容模型调用层

packages/provider 的公开接口导出。
"""

# 核心组件
from .base import OpenAICompatibleProvider
from .cancellation import CancellationToken

# 配置
from .config import AISettings, FunctionModelChoice, load_ai_settings, resolve_provider_config

# 异常
from .exceptions import (
    InvalidResponseError,
    NoResponseBodyError,
    ProviderConfigError,
    ProviderError,
    ProviderHTTPError,
    RequestAbortedError,
    UnknownProviderError,
)
from .gemini import GeminiProvider, select_gemini_api_key

# 数据模型
from .models import (
    FUNCTION_LABELS,
    AIFunction,
    AIModel,
    ChatMessage,
    ChatParams,
    ChatResult,
    ProviderConfig,
    ProviderCredentials,
    ProviderInfo,
    StreamChunk,
    TokenUsage,
)
from .registry import ProviderRegistry, create_default_registry
from .siliconflow import SiliconFlowProvider
from .sse import SSEDecoder

__all__ = [
    "AIFunction",
    "FUNCTION_LABELS",
    "AIModel",
    "ChatMessage",
    "ChatParams",
    "ChatResult",
    "ProviderConfig",
    "ProviderCredentials",
    "ProviderInfo",
    "StreamChunk",
    "TokenUsage",
    "OpenAICompatibleProvider",
    "SiliconFlowProvider",
    "GeminiProvider",
    "select_gemini_api_key",
    "ProviderRegistry",
    "create_default_registry",
    "CancellationToken",
    "SSEDecoder",
    "AISettings",
    "FunctionModelChoice",
    "load_ai_settings",
    "resolve_provider_config",
    "ProviderError",
    "ProviderConfigError",
    "UnknownProviderError",
    "ProviderHTTPError",
    "NoResponseBodyError",
    "InvalidResponseError",
    "RequestAbortedError",
]
