"""CancellationToken -- 协作式取消令牌

同一个令牌同时交给 HTTP 调用与任务状态机：
任一持有者调用 cancel()，解码循环在下一个挂起点（等待响应头 / 等待下一块响应体）
抛出 RequestAbortedError。
"""

import asyncio
import inspect
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from .exceptions import RequestAbortedError

log = structlog.get_logger()

T = TypeVar("T")


class CancellationToken:
    """基于 asyncio.Event 的取消令牌，cancel() 幂等"""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = "请求已取消"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str | None = None) -> bool:
        """发出取消信号

        Returns:
            True 表示本次调用触发了取消；已取消时返回 False
        """
        if self._event.is_set():
            return False
        if reason:
            self._reason = reason
        self._event.set()
        log.debug("cancellation_requested", reason=self._reason)
        return True

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestAbortedError(self._reason)

    async def wait(self) -> None:
        """阻塞直到令牌被取消"""
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """让 awaitable 与取消信号赛跑

        awaitable 先完成则返回其结果；令牌先触发则取消 awaitable 并抛出
        RequestAbortedError。

        Raises:
            RequestAbortedError: 令牌已取消或在等待期间被取消
        """
        if self._event.is_set():
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise RequestAbortedError(self._reason)

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            work.cancel()
            waiter.cancel()
            raise

        if work in done:
            waiter.cancel()
            return work.result()

        # 取消先到：中止底层读取
        work.cancel()
        await asyncio.gather(work, return_exceptions=True)
        raise RequestAbortedError(self._reason)
