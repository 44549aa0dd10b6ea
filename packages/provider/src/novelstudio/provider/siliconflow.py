"""SiliconFlowProvider -- 开源模型托管平台（OpenAI 兼容）"""

import httpx
import structlog

from .base import OpenAICompatibleProvider
from .exceptions import ProviderError
from .models import AIModel

log = structlog.get_logger()

SILICONFLOW_BASE_URL = "https://api.siliconflow.cn/v1"
SILICONFLOW_DEFAULT_MODEL = "Qwen/Qwen2.5-7B-Instruct"

# 推荐模型：列表中排在 API 返回的其他模型之前
RECOMMENDED_MODELS: list[AIModel] = [
    AIModel(
        id="Qwen/Qwen2.5-7B-Instruct",
        name="Qwen2.5 7B",
        description="通义千问 2.5 7B，平衡性能与速度",
        context_length=32768,
    ),
    AIModel(
        id="Qwen/Qwen2.5-14B-Instruct",
        name="Qwen2.5 14B",
        description="通义千问 2.5 14B，更强的推理能力",
        context_length=32768,
    ),
    AIModel(
        id="Qwen/Qwen2.5-32B-Instruct",
        name="Qwen2.5 32B",
        description="通义千问 2.5 32B，高质量输出",
        context_length=32768,
    ),
    AIModel(
        id="Qwen/Qwen2.5-72B-Instruct",
        name="Qwen2.5 72B",
        description="通义千问 2.5 72B，最强性能",
        context_length=32768,
    ),
    AIModel(
        id="deepseek-ai/DeepSeek-V2.5",
        name="DeepSeek V2.5",
        description="DeepSeek V2.5，优秀的中文能力",
        context_length=65536,
    ),
    AIModel(
        id="deepseek-ai/DeepSeek-V3",
        name="DeepSeek V3",
        description="DeepSeek V3，最新版本",
        context_length=65536,
    ),
    AIModel(
        id="meta-llama/Meta-Llama-3.1-8B-Instruct",
        name="Llama 3.1 8B",
        description="Meta Llama 3.1 8B",
        context_length=8192,
    ),
    AIModel(
        id="meta-llama/Meta-Llama-3.1-70B-Instruct",
        name="Llama 3.1 70B",
        description="Meta Llama 3.1 70B",
        context_length=8192,
    ),
]


class SiliconFlowProvider(OpenAICompatibleProvider):
    """SiliconFlow provider"""

    provider_id = "siliconflow"
    name = "SiliconFlow"
    default_base_url = SILICONFLOW_BASE_URL
    default_model = SILICONFLOW_DEFAULT_MODEL
    auto_model = "Pro/deepseek-ai/DeepSeek-V3"

    def recommended_models(self) -> list[AIModel]:
        return list(RECOMMENDED_MODELS)

    async def list_models(self, api_key: str, base_url: str | None = None) -> list[AIModel]:
        """推荐模型在前，合并 API 返回的其余模型；API 失败时只返回推荐模型"""
        try:
            api_models = await super().list_models(api_key, base_url)
        except (ProviderError, httpx.HTTPError, ValueError) as e:
            log.warning(
                "siliconflow_list_models_fallback",
                error=str(e),
                error_type=type(e).__name__,
            )
            return self.recommended_models()

        if not api_models:
            return self.recommended_models()

        recommended_ids = {m.id for m in RECOMMENDED_MODELS}
        others = [m for m in api_models if m.id not in recommended_ids]
        return [*self.recommended_models(), *others]
