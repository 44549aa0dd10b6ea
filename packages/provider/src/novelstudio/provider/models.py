"""数据模型 -- ProviderConfig / ChatMessage / ChatParams / ChatResult

Provider 层的输入输出类型。所有 provider（SiliconFlow、Gemini 及后续注册者）
统一消费 ProviderConfig + ChatParams，统一返回 ChatResult 或文本片段流。
"""

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr

ChatRole = Literal["system", "user", "assistant"]


class AIFunction(StrEnum):
    """AI 功能类型，每个功能可单独指定 provider / 模型"""

    POLISH = "polish"
    EXPAND = "expand"
    COMPRESS = "compress"
    PLAN = "plan"
    CONTINUE = "continue"
    SUMMARIZE = "summarize"
    CHAT = "chat"


# 功能展示名称
FUNCTION_LABELS: dict[AIFunction, str] = {
    AIFunction.POLISH: "润色",
    AIFunction.EXPAND: "扩写",
    AIFunction.COMPRESS: "缩写",
    AIFunction.CONTINUE: "续写",
    AIFunction.PLAN: "规划",
    AIFunction.SUMMARIZE: "总结",
    AIFunction.CHAT: "聊天",
}


class ProviderConfig(BaseModel):
    """单次请求的 provider 配置

    一次请求生命周期内不可变（frozen）。
    """

    model_config = ConfigDict(frozen=True)

    provider_id: str = Field(description="provider 标识，如 siliconflow / gemini")
    api_key: SecretStr = Field(description="API Key（日志中不得输出明文）")
    base_url: str | None = Field(default=None, description="自定义 Base URL，None 时使用 provider 默认值")
    model: str = Field(default="", description="模型 ID")


class ProviderCredentials(BaseModel):
    """某个 provider 的已配置凭证

    paid_api_key 只对区分免费 / 付费档的 provider 有意义。
    """

    api_key: SecretStr = Field(default=SecretStr(""), description="API Key（或免费档 Key）")
    paid_api_key: SecretStr = Field(default=SecretStr(""), description="付费档 Key")
    base_url: str | None = Field(default=None, description="自定义 Base URL")


class ChatMessage(BaseModel):
    """发送给 provider 的单条消息，顺序有语义：system 在前，随后 user/assistant 交替"""

    role: ChatRole = Field(description="消息角色")
    content: str = Field(description="消息正文")


class ChatParams(BaseModel):
    """chat completion 请求参数"""

    messages: list[ChatMessage] = Field(min_length=1, description="有序消息列表")
    model: str | None = Field(default=None, description="覆盖 ProviderConfig.model")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="采样温度")
    max_tokens: int | None = Field(default=None, gt=0, description="最大生成 token 数")


class TokenUsage(BaseModel):
    """Token 使用统计

    key 命名对齐 OpenAI 行业标准：
    prompt_tokens / completion_tokens / total_tokens
    """

    prompt_tokens: int = Field(default=0, ge=0, description="输入 token 数")
    completion_tokens: int = Field(default=0, ge=0, description="输出 token 数")
    total_tokens: int = Field(default=0, ge=0, description="总 token 数")


class ChatResult(BaseModel):
    """非流式调用结果"""

    content: str = Field(default="", description="响应文本")
    finish_reason: str | None = Field(default=None, description="结束原因，如 stop / length")
    usage: TokenUsage | None = Field(default=None, description="Token 使用详情，provider 未返回时为 None")


class StreamChunk(BaseModel):
    """解码后的流式片段

    content 为文本增量；debug 为带外调试信息（仅首帧携带）。
    """

    content: str = Field(default="", description="文本增量")
    debug: dict[str, Any] | None = Field(default=None, description="调试元数据")


class AIModel(BaseModel):
    """模型目录条目"""

    id: str = Field(description="模型 ID")
    name: str = Field(description="展示名称")
    description: str | None = Field(default=None, description="模型说明")
    context_length: int | None = Field(default=None, ge=1, description="上下文窗口长度")


class ProviderInfo(BaseModel):
    """provider 基本信息"""

    id: str
    name: str
    default_base_url: str
    default_model: str
