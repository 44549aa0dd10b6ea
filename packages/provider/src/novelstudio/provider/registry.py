"""ProviderRegistry -- provider 标识到实现的注册表

新增 provider 只需 register()，其他代码不按标识字符串分支。
注册顺序即自动选择的优先级。
"""

from collections.abc import Collection

import httpx
import structlog

from .base import OpenAICompatibleProvider
from .exceptions import UnknownProviderError
from .gemini import GeminiProvider
from .models import AIFunction, ProviderInfo
from .siliconflow import SiliconFlowProvider

log = structlog.get_logger()


class ProviderRegistry:
    """Provider 注册表 -- 启动时装配，运行期间只读"""

    def __init__(self, providers: list[OpenAICompatibleProvider] | None = None) -> None:
        self._providers: dict[str, OpenAICompatibleProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: OpenAICompatibleProvider) -> None:
        if provider.provider_id in self._providers:
            log.warning("provider_replaced", provider=provider.provider_id)
        self._providers[provider.provider_id] = provider

    def get(self, provider_id: str) -> OpenAICompatibleProvider | None:
        return self._providers.get(provider_id)

    def require(self, provider_id: str) -> OpenAICompatibleProvider:
        """按标识获取 provider，不存在时抛出 UnknownProviderError"""
        provider = self._providers.get(provider_id)
        if provider is None:
            raise UnknownProviderError(provider_id)
        return provider

    def has(self, provider_id: str) -> bool:
        return provider_id in self._providers

    def list_all(self) -> list[OpenAICompatibleProvider]:
        """按注册顺序列出所有 provider"""
        return list(self._providers.values())

    def list_info(self) -> list[ProviderInfo]:
        return [p.info() for p in self._providers.values()]

    def auto_select(
        self,
        function: AIFunction,
        configured: Collection[str],
    ) -> tuple[str, str] | None:
        """按注册顺序为功能挑选第一个已配置凭证的 (provider_id, model)

        Args:
            function: 功能类型（目前所有功能共用同一优先级）
            configured: 已配置凭证的 provider_id

        Returns:
            (provider_id, model)；没有可用 provider 时返回 None
        """
        for provider in self._providers.values():
            if provider.provider_id not in configured:
                continue
            model = provider.auto_model or provider.default_model
            log.debug(
                "provider_auto_selected",
                function=function.value,
                provider=provider.provider_id,
                model=model,
            )
            return provider.provider_id, model
        return None


def create_default_registry(
    timeout_s: float = 60.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProviderRegistry:
    """注册 SiliconFlow 与 Gemini 的默认注册表（SiliconFlow 优先）"""
    return ProviderRegistry(
        [
            SiliconFlowProvider(timeout_s=timeout_s, transport=transport),
            GeminiProvider(timeout_s=timeout_s, transport=transport),
        ]
    )
