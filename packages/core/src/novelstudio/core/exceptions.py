"""Core 异常 -- 任务状态机违规"""


class TaskStateError(ValueError):
    """当前状态不允许该操作"""

    def __init__(self, operation: str, status: str) -> None:
        super().__init__(f"操作 {operation} 不允许在状态 {status} 下执行")
        self.operation = operation
        self.status = status


class TaskConflictError(ValueError):
    """已有进行中的任务（单飞约束）"""

    def __init__(self, active_task_id: str) -> None:
        super().__init__(f"已有进行中的任务: {active_task_id}")
        self.active_task_id = active_task_id


class NoActiveTaskError(LookupError):
    """没有活动任务"""

    def __init__(self) -> None:
        super().__init__("当前没有活动任务")
