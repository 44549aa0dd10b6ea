"""ActiveTaskStore -- 单个活动任务的状态机

持有唯一的活动任务槽位：
1. create: 仅当没有进行中（pending / processing）的任务时允许
2. start -> on_chunk* -> on_stream_end: 流式累积并在结束时解析结构化结果
3. apply: 发布 TASK_APPLIED 事件，宿主据此写入文档，随后清空槽位
4. cancel / fail: 丢弃部分内容，任务进入 cancelled

非法流转抛出 TaskStateError。状态变化通过 TaskEventHub 广播。
"""

from typing import Any

import structlog
from novelstudio.core.exceptions import NoActiveTaskError, TaskConflictError, TaskStateError
from novelstudio.core.models import (
    IN_FLIGHT_STATES,
    ChatTask,
    PlanTask,
    StateTransitionPayload,
    Task,
    TaskAppliedPayload,
    TaskCreatedPayload,
    TaskEvent,
    TaskEventType,
    TaskFailedPayload,
    TaskKind,
    TaskStatus,
    validate_transition,
)
from novelstudio.core.result_parser import filter_new_children, parse_plan_result, parse_text_result

from .event_hub import TaskEventHub

log = structlog.get_logger()


class ActiveTaskStore:
    """活动任务状态机"""

    def __init__(self, hub: TaskEventHub | None = None, debug_mode: bool = False) -> None:
        self._hub = hub
        self._debug_mode = debug_mode
        self._task: Task | None = None
        self._is_loading = False
        self._is_streaming = False
        self._error: str | None = None
        self._debug_info: dict[str, Any] | None = None

    # ---------- 只读视图 ----------

    @property
    def active(self) -> Task | None:
        return self._task

    @property
    def is_loading(self) -> bool:
        """已发起请求、尚未收到首个片段"""
        return self._is_loading

    @property
    def is_streaming(self) -> bool:
        return self._is_streaming

    @property
    def is_busy(self) -> bool:
        return self._task is not None and self._task.status in IN_FLIGHT_STATES

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def debug_info(self) -> dict[str, Any] | None:
        return self._debug_info

    # ---------- 操作 ----------

    async def create(self, task: Task) -> Task:
        """放入新任务

        Raises:
            TaskConflictError: 已有进行中的任务
        """
        if self.is_busy:
            raise TaskConflictError(self._task.task_id)

        task.status = TaskStatus.PENDING
        task.streaming_content = ""
        task.error = None
        self._task = task
        self._error = None
        self._is_loading = False
        self._is_streaming = False

        log.info("task_created", task_id=task.task_id, kind=task.kind, function=task.function.value)
        await self._emit(
            TaskEventType.TASK_CREATED,
            TaskCreatedPayload(kind=TaskKind(task.kind), function=task.function.value).model_dump(
                mode="json"
            ),
        )
        return task

    async def start(self) -> None:
        """pending -> processing，清理残留内容"""
        task = self._require_active()
        await self._transition(task, TaskStatus.PROCESSING, "开始请求")
        task.streaming_content = ""
        task.error = None
        self._error = None
        self._is_loading = True
        self._is_streaming = False

    def on_chunk(self, fragment: str) -> None:
        """按到达顺序追加片段；仅 processing 状态有效"""
        task = self._require_active()
        if task.status != TaskStatus.PROCESSING:
            raise TaskStateError("on_chunk", task.status.value)
        task.streaming_content += fragment
        if self._is_loading:
            self._is_loading = False
            self._is_streaming = True

    async def on_stream_end(self) -> Task:
        """processing -> completed，解析完整缓冲区为结构化结果"""
        task = self._require_active()
        if task.status != TaskStatus.PROCESSING:
            raise TaskStateError("on_stream_end", task.status.value)

        self._store_result(task)
        self._is_loading = False
        self._is_streaming = False
        await self._transition(task, TaskStatus.COMPLETED, "流式输出结束")
        return task

    async def apply(self) -> TaskAppliedPayload:
        """completed -> applied，发布 TASK_APPLIED 并清空活动槽位"""
        task = self._require_active()
        if task.status != TaskStatus.COMPLETED:
            raise TaskStateError("apply", task.status.value)

        payload = self._applied_payload(task)
        # 终态流转必须是该任务的最后一个事件
        await self._emit(TaskEventType.TASK_APPLIED, payload.model_dump(mode="json"))
        await self._transition(task, TaskStatus.APPLIED, "用户应用结果")

        log.info(
            "task_applied",
            task_id=task.task_id,
            kind=task.kind,
            skipped=len(payload.skipped_titles),
        )
        self._task = None
        return payload

    async def cancel(self, reason: str = "用户取消", task_id: str | None = None) -> bool:
        """pending | processing -> cancelled；其他状态下为 no-op

        丢弃部分内容，不调用解析器，不设置 error。
        指定 task_id 时只取消该任务，活动槽位已换成其他任务则不做任何事。

        Returns:
            是否实际发生了取消
        """
        task = self._task
        if task is None or task.status not in IN_FLIGHT_STATES:
            return False
        if task_id is not None and task.task_id != task_id:
            return False

        task.streaming_content = ""
        self._is_loading = False
        self._is_streaming = False
        await self._transition(task, TaskStatus.CANCELLED, reason)
        return True

    async def fail(self, message: str, error_type: str = "", task_id: str | None = None) -> None:
        """传输 / 配置错误：记录唯一的错误信息，进行中的任务进入 cancelled

        指定 task_id 时只作用于该任务仍在进行中的情况，
        已取消或被替换的请求的迟到错误不会落到新任务上。
        """
        if task_id is not None and (
            self._task is None
            or self._task.task_id != task_id
            or self._task.status not in IN_FLIGHT_STATES
        ):
            log.info("stale_task_failure_ignored", task_id=task_id, error_type=error_type)
            return

        self._error = message
        self._is_loading = False
        self._is_streaming = False

        task = self._task
        if task is None:
            return

        task.error = message
        await self._emit(
            TaskEventType.TASK_FAILED,
            TaskFailedPayload(error=message, error_type=error_type).model_dump(mode="json"),
        )
        if task.status in IN_FLIGHT_STATES:
            task.streaming_content = ""
            await self._transition(task, TaskStatus.CANCELLED, "请求失败")

    def record_debug(self, info: dict[str, Any]) -> None:
        """debug_mode 开启时保留最近一次请求的调试信息"""
        if self._debug_mode:
            self._debug_info = info

    def clear_error(self) -> None:
        self._error = None

    # ---------- 内部 ----------

    def _require_active(self) -> Task:
        if self._task is None:
            raise NoActiveTaskError()
        return self._task

    @staticmethod
    def _store_result(task: Task) -> None:
        content = task.streaming_content
        if isinstance(task, ChatTask):
            task.result_text = content.strip()
            return
        if isinstance(task, PlanTask):
            parsed = parse_plan_result(content)
            task.result_children = parsed.children or None
            task.result_explanation = parsed.explanation
            task.result_text = parsed.text
            return
        parsed = parse_text_result(content)
        task.result_text = parsed.result
        task.result_explanation = parsed.explanation

    @staticmethod
    def _applied_payload(task: Task) -> TaskAppliedPayload:
        payload = TaskAppliedPayload(
            task_id=task.task_id,
            kind=TaskKind(task.kind),
            function=task.function.value,
            result_text=task.result_text,
            result_explanation=getattr(task, "result_explanation", None),
            source_text=task.source_text,
        )
        if isinstance(task, PlanTask) and task.result_children:
            existing = [child.title for child in task.context.existing_children]
            kept, skipped = filter_new_children(task.result_children, existing)
            payload.result_children = kept
            payload.skipped_titles = skipped
        return payload

    async def _transition(self, task: Task, to_status: TaskStatus, reason: str) -> None:
        from_status = task.status
        if not validate_transition(from_status, to_status):
            raise TaskStateError(f"{from_status.value} -> {to_status.value}", from_status.value)

        task.status = to_status
        log.info(
            "task_state_transition",
            task_id=task.task_id,
            from_status=from_status.value,
            to_status=to_status.value,
            reason=reason,
        )
        await self._emit(
            TaskEventType.STATE_TRANSITION,
            StateTransitionPayload(
                from_status=from_status,
                to_status=to_status,
                reason=reason,
            ).model_dump(mode="json"),
            task=task,
        )

    async def _emit(
        self,
        event_type: TaskEventType,
        payload: dict[str, Any],
        task: Task | None = None,
    ) -> None:
        task = task or self._task
        if self._hub is None or task is None:
            return
        await self._hub.broadcast(TaskEvent(task_id=task.task_id, type=event_type, payload=payload))
