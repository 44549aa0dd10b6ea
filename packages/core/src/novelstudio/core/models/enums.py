"""枚举定义

包含 TaskStatus 状态机、TaskKind、ModifyType、NodeType、EntityType、TaskEventType，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机

    pending -> processing -> completed -> applied
    pending | processing -> cancelled
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    APPLIED = "applied"
    CANCELLED = "cancelled"


# 合法状态流转，不存在回退
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.PROCESSING, TaskStatus.CANCELLED},
    TaskStatus.PROCESSING: {TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    TaskStatus.COMPLETED: {TaskStatus.APPLIED},
    # 终态不可再流转
    TaskStatus.APPLIED: set(),
    TaskStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.APPLIED,
    TaskStatus.CANCELLED,
}

# 进行中的状态（单飞约束针对这两个状态）
IN_FLIGHT_STATES: set[TaskStatus] = {
    TaskStatus.PENDING,
    TaskStatus.PROCESSING,
}


class TaskKind(StrEnum):
    """任务类型（Task 联合类型的判别字段）"""

    MODIFY = "modify"
    PLAN = "plan"
    CONTINUE = "continue"
    SUMMARIZE = "summarize"
    CHAT = "chat"


class ModifyType(StrEnum):
    """修改类任务的子类型"""

    POLISH = "polish"
    EXPAND = "expand"
    COMPRESS = "compress"


class NodeType(StrEnum):
    """文档树节点类型：FOLDER 为卷 / 章节，FILE 为场景"""

    FOLDER = "FOLDER"
    FILE = "FILE"


class EntityType(StrEnum):
    """设定实体类型"""

    CHARACTER = "CHARACTER"
    LOCATION = "LOCATION"
    ITEM = "ITEM"


class TaskEventType(StrEnum):
    """任务事件类型"""

    TASK_CREATED = "TASK_CREATED"
    STATE_TRANSITION = "STATE_TRANSITION"
    TASK_APPLIED = "TASK_APPLIED"
    TASK_FAILED = "TASK_FAILED"


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed
