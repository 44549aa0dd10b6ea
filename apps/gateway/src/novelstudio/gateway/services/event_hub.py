"""TaskEventHub -- 内存中的任务事件广播器

每个订阅者持有一个 asyncio.Queue，支持 subscribe/unsubscribe/broadcast。
订阅时可指定 task_id，或不指定以接收所有任务的事件。
"""

import asyncio
from collections import defaultdict

import structlog
from novelstudio.core.models import TaskEvent

log = structlog.get_logger()

# 订阅全部任务事件的主题
ALL_TASKS = "*"


class TaskEventHub:
    """任务事件广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        # topic -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    @property
    def subscriber_count(self) -> int:
        return sum(len(queues) for queues in self._subscribers.values())

    async def subscribe(self, task_id: str | None = None) -> asyncio.Queue:
        """订阅事件流

        Args:
            task_id: 只接收该任务的事件；None 表示接收全部

        Returns:
            asyncio.Queue 实例，新事件会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[task_id or ALL_TASKS].add(queue)
        return queue

    async def unsubscribe(self, queue: asyncio.Queue, task_id: str | None = None) -> None:
        """取消订阅"""
        topic = task_id or ALL_TASKS
        self._subscribers[topic].discard(queue)
        if not self._subscribers[topic]:
            del self._subscribers[topic]

    async def broadcast(self, event: TaskEvent) -> None:
        """向该任务的订阅者与全部事件订阅者广播"""
        for topic in (event.task_id, ALL_TASKS):
            queues = self._subscribers.get(topic)
            if not queues:
                continue

            dead_queues = []
            for queue in queues:
                try:
                    queue.put_nowait(event)
                except asyncio.QueueFull:
                    dead_queues.append(queue)

            # 清理已满的队列
            for q in dead_queues:
                queues.discard(q)
                log.warning("event_subscriber_dropped", topic=topic)
            if not queues:
                del self._subscribers[topic]
