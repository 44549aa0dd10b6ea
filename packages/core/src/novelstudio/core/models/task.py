"""Task Domain Model -- 按任务类型判别的联合类型

每个变体只携带自己的载荷与结果字段；公共字段在 TaskBase 中。
状态字段只由 ActiveTaskStore 的操作修改。
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Annotated, Literal

from novelstudio.provider.models import AIFunction, ChatMessage
from pydantic import BaseModel, Field
from ulid import ULID

from .context import (
    ContextItem,
    ContinueContext,
    ModifyEnhancedContext,
    PlanContext,
    ProjectInfo,
    SummarizeContext,
)
from .enums import ModifyType, TaskStatus
from .results import PlannedChild


def _new_task_id() -> str:
    return str(ULID())


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TaskBase(BaseModel, ABC):
    """所有任务类型的公共字段；function 由各变体给出"""

    task_id: str = Field(default_factory=_new_task_id, description="唯一标识，ULID 格式")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="当前状态")
    created_at: datetime = Field(default_factory=_utcnow, description="创建时间")
    user_input: str | None = Field(default=None, description="用户额外要求")
    user_contexts: list[ContextItem] = Field(default_factory=list, description="用户附加的参考上下文")
    project: ProjectInfo | None = Field(default=None, description="当前项目")
    streaming_content: str = Field(default="", description="流式累积的原始文本")
    error: str | None = Field(default=None, description="失败原因；取消不设置此字段")

    @property
    @abstractmethod
    def function(self) -> AIFunction: ...

    @property
    def source_text(self) -> str | None:
        """apply 事件中携带的原文"""
        return None


class ModifyTask(TaskBase):
    """润色 / 扩写 / 缩写"""

    kind: Literal["modify"] = "modify"
    modify_type: ModifyType
    selected_text: str
    enhanced_context: ModifyEnhancedContext | None = None
    result_text: str | None = None
    result_explanation: str | None = None

    @property
    def function(self) -> AIFunction:
        return AIFunction(self.modify_type.value)

    @property
    def source_text(self) -> str | None:
        return self.selected_text


class PlanTask(TaskBase):
    """结构规划：为目标节点生成子节点列表"""

    kind: Literal["plan"] = "plan"
    target_node_id: str
    target_node_title: str
    context: PlanContext
    result_children: list[PlannedChild] | None = None
    result_explanation: str | None = None
    result_text: str | None = Field(default=None, description="解析降级时的纯文本")

    @property
    def function(self) -> AIFunction:
        return AIFunction.PLAN

    @property
    def source_text(self) -> str | None:
        return self.context.node_outline or None


class ContinueTask(TaskBase):
    """续写：结果插入到光标处"""

    kind: Literal["continue"] = "continue"
    context: ContinueContext
    result_text: str | None = None
    result_explanation: str | None = None

    @property
    def function(self) -> AIFunction:
        return AIFunction.CONTINUE

    @property
    def source_text(self) -> str | None:
        return self.context.content_before or None


class SummarizeTask(TaskBase):
    """总结：结果替换节点摘要"""

    kind: Literal["summarize"] = "summarize"
    context: SummarizeContext
    result_text: str | None = None
    result_explanation: str | None = None

    @property
    def function(self) -> AIFunction:
        return AIFunction.SUMMARIZE

    @property
    def source_text(self) -> str | None:
        return self.context.current_summary


class ChatTask(TaskBase):
    """自由对话：结果为纯文本，不做结构化解析"""

    kind: Literal["chat"] = "chat"
    message: str
    history: list[ChatMessage] = Field(default_factory=list, description="此前的对话轮次")
    result_text: str | None = None

    @property
    def function(self) -> AIFunction:
        return AIFunction.CHAT


Task = Annotated[
    ModifyTask | PlanTask | ContinueTask | SummarizeTask | ChatTask,
    Field(discriminator="kind"),
]
