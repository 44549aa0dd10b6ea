"""NovelStudio Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .context import (
    AncestorInfo,
    ChildBrief,
    ContextItem,
    ContinueContext,
    EntityBrief,
    EntityContextItem,
    EntityRecord,
    ModifyEnhancedContext,
    NodeContextItem,
    NodeInfo,
    ParentBrief,
    PlanContext,
    ProjectInfo,
    SelectionContextItem,
    SummarizeContext,
)
from .enums import (
    IN_FLIGHT_STATES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    EntityType,
    ModifyType,
    NodeType,
    TaskEventType,
    TaskKind,
    TaskStatus,
    validate_transition,
)
from .event import TaskEvent
from .payloads import (
    StateTransitionPayload,
    TaskAppliedPayload,
    TaskCreatedPayload,
    TaskFailedPayload,
)
from .results import PlannedChild, PlanResult, TextResult
from .task import ChatTask, ContinueTask, ModifyTask, PlanTask, SummarizeTask, Task, TaskBase

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskKind",
    "ModifyType",
    "NodeType",
    "EntityType",
    "TaskEventType",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "IN_FLIGHT_STATES",
    "validate_transition",
    # Task
    "Task",
    "TaskBase",
    "ModifyTask",
    "PlanTask",
    "ContinueTask",
    "SummarizeTask",
    "ChatTask",
    # 上下文
    "ProjectInfo",
    "NodeInfo",
    "EntityRecord",
    "ContextItem",
    "NodeContextItem",
    "SelectionContextItem",
    "EntityContextItem",
    "AncestorInfo",
    "EntityBrief",
    "ChildBrief",
    "ParentBrief",
    "ModifyEnhancedContext",
    "PlanContext",
    "ContinueContext",
    "SummarizeContext",
    # 结果
    "TextResult",
    "PlannedChild",
    "PlanResult",
    # Event
    "TaskEvent",
    # Payloads
    "TaskCreatedPayload",
    "StateTransitionPayload",
    "TaskAppliedPayload",
    "TaskFailedPayload",
]
