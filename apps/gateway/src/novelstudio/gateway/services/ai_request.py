"""AIRequestService -- 任务请求编排

一次请求的完整流程：
1. ActiveTaskStore.create（单飞约束）
2. 解析 provider 配置（配置错误不发起网络请求）
3. 组装消息 -> provider.chat_stream，片段逐个交给 on_chunk
4. 流结束 -> on_stream_end；取消 -> cancelled；传输错误 -> fail

一次只有一个请求在进行，同一个 CancellationToken 同时控制 HTTP 读取与状态机。
"""

import asyncio
import time
from typing import Any

import httpx
import structlog
from novelstudio.core.config import DEFAULT_TEMPERATURE
from novelstudio.core.models import Task
from novelstudio.core.prompts import build_messages
from novelstudio.core.truncation import estimate_tokens
from novelstudio.provider import (
    AISettings,
    CancellationToken,
    ChatParams,
    ProviderConfig,
    ProviderConfigError,
    ProviderError,
    ProviderRegistry,
    RequestAbortedError,
    resolve_provider_config,
)

from .task_store import ActiveTaskStore

log = structlog.get_logger()


class AIRequestService:
    """任务请求服务"""

    def __init__(
        self,
        store: ActiveTaskStore,
        registry: ProviderRegistry,
        settings: AISettings,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> None:
        self._store = store
        self._registry = registry
        self._settings = settings
        self._temperature = temperature
        self._token: CancellationToken | None = None
        self._runner: asyncio.Task | None = None

    @property
    def store(self) -> ActiveTaskStore:
        return self._store

    async def send_request(
        self,
        task: Task,
        provider_config: ProviderConfig | None = None,
    ) -> Task:
        """创建任务并等待流式请求结束

        Raises:
            TaskConflictError: 已有进行中的任务
        """
        await self._store.create(task)
        token = CancellationToken()
        self._token = token
        await self._run(task, provider_config, token)
        return task

    async def submit(
        self,
        task: Task,
        provider_config: ProviderConfig | None = None,
    ) -> Task:
        """创建任务并在后台执行请求，立即返回

        Raises:
            TaskConflictError: 已有进行中的任务
        """
        await self._store.create(task)
        token = CancellationToken()
        self._token = token
        self._runner = asyncio.create_task(self._run(task, provider_config, token))
        return task

    async def stop_request(self) -> bool:
        """触发取消令牌并取消活动任务；重复调用无副作用

        返回前等待后台请求退出，之后提交的新任务不会与旧请求交错。
        """
        token = self._token
        if token is not None:
            token.cancel("用户取消")
        cancelled = await self._store.cancel()
        await self.wait_idle()
        return cancelled

    async def wait_idle(self) -> None:
        """等待后台请求结束"""
        runner = self._runner
        if runner is not None and not runner.done() and runner is not asyncio.current_task():
            await asyncio.wait({runner})

    async def _run(
        self,
        task: Task,
        provider_config: ProviderConfig | None,
        token: CancellationToken,
    ) -> None:
        function = task.function
        # 后台执行开始前已被取消
        if token.cancelled:
            self._release(token)
            return

        try:
            config = provider_config or resolve_provider_config(
                self._settings, function, self._registry
            )
            provider = self._registry.require(config.provider_id)
        except ProviderConfigError as e:
            log.warning(
                "ai_request_config_error",
                task_id=task.task_id,
                function=function.value,
                error=str(e),
            )
            await self._store.fail(str(e), type(e).__name__, task_id=task.task_id)
            self._release(token)
            return

        messages = build_messages(task)
        params = ChatParams(
            messages=messages,
            model=config.model or None,
            temperature=self._temperature,
        )
        self._store.record_debug(self._debug_info(task, config, messages))

        start_time = time.monotonic()
        try:
            await self._store.start()
            async for fragment in provider.chat_stream(config, params, token):
                self._store.on_chunk(fragment)
            await self._store.on_stream_end()
            log.info(
                "ai_request_completed",
                task_id=task.task_id,
                function=function.value,
                provider=config.provider_id,
                chars=len(task.streaming_content),
                duration_ms=int((time.monotonic() - start_time) * 1000),
            )
        except RequestAbortedError:
            log.info("ai_request_aborted", task_id=task.task_id, function=function.value)
            await self._store.cancel(task_id=task.task_id)
        except (ProviderError, httpx.HTTPError) as e:
            log.error(
                "ai_request_failed",
                task_id=task.task_id,
                function=function.value,
                provider=config.provider_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._store.fail(
                str(e) or type(e).__name__, type(e).__name__, task_id=task.task_id
            )
        except Exception as e:
            log.error(
                "ai_request_unexpected_error",
                task_id=task.task_id,
                function=function.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._store.fail(
                "AI 请求失败，请查看服务端日志", type(e).__name__, task_id=task.task_id
            )
        finally:
            self._release(token)

    def _release(self, token: CancellationToken) -> None:
        if self._token is token:
            self._token = None

    @staticmethod
    def _debug_info(task: Task, config: ProviderConfig, messages: list) -> dict[str, Any]:
        user_content = messages[-1].content
        return {
            "task_id": task.task_id,
            "function": task.function.value,
            "provider": config.provider_id,
            "model": config.model,
            "messages": [m.model_dump() for m in messages],
            "user_message_chars": len(user_content),
            "estimated_tokens": sum(estimate_tokens(m.content) for m in messages),
        }
