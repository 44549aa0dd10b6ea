"""TaskEvent Domain Model

任务状态机对外发布的事件。event_id 使用 ULID 格式，时间有序。
宿主编辑器订阅 TASK_APPLIED 事件并自行把结果写入文档。
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field
from ulid import ULID

from .enums import TaskEventType


class TaskEvent(BaseModel):
    """任务事件"""

    event_id: str = Field(default_factory=lambda: str(ULID()), description="唯一标识，ULID 格式")
    task_id: str = Field(description="关联的 Task ID")
    ts: datetime = Field(default_factory=lambda: datetime.now(UTC), description="事件时间戳")
    type: TaskEventType = Field(description="事件类型")
    payload: dict[str, Any] = Field(default_factory=dict, description="结构化 payload")
