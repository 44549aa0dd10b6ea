"""Event Payload 子类型

所有任务事件的结构化 payload 定义。
"""

from pydantic import BaseModel, Field

from .enums import TaskKind, TaskStatus
from .results import PlannedChild


class TaskCreatedPayload(BaseModel):
    """TASK_CREATED 事件 payload"""

    kind: TaskKind
    function: str = Field(description="功能类型，如 polish / plan")


class StateTransitionPayload(BaseModel):
    """STATE_TRANSITION 事件 payload"""

    from_status: TaskStatus
    to_status: TaskStatus
    reason: str = Field(default="", description="流转原因")


class TaskAppliedPayload(BaseModel):
    """TASK_APPLIED 事件 payload -- 宿主据此把结果写入文档"""

    task_id: str
    kind: TaskKind
    function: str
    result_text: str | None = Field(default=None, description="文本类结果")
    result_children: list[PlannedChild] | None = Field(
        default=None,
        description="规划结果（已剔除与已有子节点重名的条目）",
    )
    result_explanation: str | None = None
    source_text: str | None = Field(default=None, description="被替换 / 参照的原文")
    skipped_titles: list[str] = Field(
        default_factory=list,
        description="因与已有子节点重名而跳过的标题",
    )


class TaskFailedPayload(BaseModel):
    """TASK_FAILED 事件 payload"""

    error: str
    error_type: str = ""
