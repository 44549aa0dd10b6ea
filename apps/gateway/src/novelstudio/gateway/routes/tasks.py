"""活动任务路由

POST /api/ai/tasks: 创建任务并在后台执行请求。
GET /api/ai/tasks/active: 活动任务快照。
POST /api/ai/tasks/active/cancel: 取消进行中的任务。
POST /api/ai/tasks/active/apply: 应用已完成任务的结果（发布 TASK_APPLIED）。
GET /api/ai/tasks/events: SSE 实时推送任务事件，心跳保活。
"""

import asyncio
import json

import structlog
from fastapi import APIRouter, Depends, Query
from novelstudio.core.config import SSE_HEARTBEAT_INTERVAL
from novelstudio.core.exceptions import NoActiveTaskError, TaskConflictError, TaskStateError
from novelstudio.core.models import TERMINAL_STATES, Task, TaskEvent, TaskEventType, TaskStatus
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse
from starlette.responses import JSONResponse

from ..deps import get_ai_service, get_event_hub, get_task_store
from ..services.ai_request import AIRequestService
from ..services.event_hub import TaskEventHub
from ..services.task_store import ActiveTaskStore
from .ai import ProviderBlock
from .errors import error_response

log = structlog.get_logger()

router = APIRouter()


class CreateTaskRequest(BaseModel):
    """任务创建请求体"""

    task: Task = Field(description="任务（按 kind 判别）")
    provider: ProviderBlock | None = Field(
        default=None,
        description="显式指定 provider；为空时按配置自动选择",
    )


class TaskStateResponse(BaseModel):
    """任务状态响应"""

    task_id: str
    status: str


@router.post("/api/ai/tasks")
async def create_task(
    body: CreateTaskRequest,
    service: AIRequestService = Depends(get_ai_service),
):
    """创建任务

    - 成功返回 202，请求在后台执行
    - 已有进行中的任务返回 409
    """
    config = body.provider.to_config() if body.provider else None
    try:
        task = await service.submit(body.task, config)
    except TaskConflictError as e:
        return error_response(409, "TASK_CONFLICT", str(e))

    return JSONResponse(
        status_code=202,
        content=TaskStateResponse(task_id=task.task_id, status=task.status.value).model_dump(),
    )


@router.get("/api/ai/tasks/active")
async def get_active_task(store: ActiveTaskStore = Depends(get_task_store)):
    """活动任务快照：任务本身 + 加载 / 流式标志 + 错误信息"""
    task = store.active
    return {
        "task": task.model_dump(mode="json") if task is not None else None,
        "is_loading": store.is_loading,
        "is_streaming": store.is_streaming,
        "error": store.error,
        "debug": store.debug_info,
    }


@router.post("/api/ai/tasks/active/cancel")
async def cancel_active_task(service: AIRequestService = Depends(get_ai_service)):
    """取消进行中的任务

    - 200: 取消成功
    - 404: 没有活动任务
    - 409: 任务不在进行中
    """
    task = service.store.active
    if task is None:
        return error_response(404, "NO_ACTIVE_TASK", "当前没有活动任务")

    cancelled = await service.stop_request()
    if not cancelled:
        return error_response(
            409,
            "TASK_NOT_IN_FLIGHT",
            f"任务当前状态为 {task.status.value}，无法取消",
        )
    return TaskStateResponse(task_id=task.task_id, status=task.status.value)


@router.post("/api/ai/tasks/active/apply")
async def apply_active_task(store: ActiveTaskStore = Depends(get_task_store)):
    """应用已完成任务的结果

    - 200: 返回 TASK_APPLIED payload
    - 404: 没有活动任务
    - 409: 任务尚未完成
    """
    try:
        payload = await store.apply()
    except NoActiveTaskError as e:
        return error_response(404, "NO_ACTIVE_TASK", str(e))
    except TaskStateError as e:
        return error_response(409, "TASK_NOT_COMPLETED", str(e))
    return payload.model_dump(mode="json")


def _event_to_sse_data(event: TaskEvent, is_final: bool = False) -> dict:
    data = event.model_dump(mode="json")
    data["final"] = is_final
    return data


def _is_terminal_event(event: TaskEvent) -> bool:
    """判断事件是否标识任务到达终态"""
    if event.type == TaskEventType.STATE_TRANSITION and "to_status" in event.payload:
        try:
            return TaskStatus(event.payload["to_status"]) in TERMINAL_STATES
        except ValueError:
            return False
    return False


@router.get("/api/ai/tasks/events")
async def stream_task_events(
    task_id: str | None = Query(default=None, description="只推送该任务的事件；到达终态后结束"),
    hub: TaskEventHub = Depends(get_event_hub),
):
    """SSE 事件流端点"""
    queue = await hub.subscribe(task_id)

    async def event_generator():
        try:
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=SSE_HEARTBEAT_INTERVAL)
                except TimeoutError:
                    yield {"comment": "heartbeat"}
                    continue

                # 按任务订阅时，终态事件即为最后一帧
                is_final = task_id is not None and _is_terminal_event(event)
                yield {
                    "id": event.event_id,
                    "event": event.type.value,
                    "data": json.dumps(_event_to_sse_data(event, is_final), ensure_ascii=False),
                }
                if is_final:
                    return
        finally:
            await hub.unsubscribe(queue, task_id)
            log.debug("task_events_unsubscribed", task_id=task_id)

    return EventSourceResponse(event_generator())
