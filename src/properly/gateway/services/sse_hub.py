"""SSEHub -- 内存中频道广播器

每个订阅者持有一个 asyncio.Queue，按频道名 subscribe/unsubscribe/broadcast。
队列已满的订阅者视为掉线并被移除（at-most-once，不重发）。
"""

import asyncio
from collections import defaultdict

import structlog

from properly.core.models.payloads import BroadcastEvent

log = structlog.get_logger()


class SSEHub:
    """SSE 频道广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        # channel -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    async def subscribe(self, channel: str) -> asyncio.Queue:
        """订阅指定频道

        Returns:
            asyncio.Queue 实例，新事件会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[channel].add(queue)
        return queue

    async def unsubscribe(self, channel: str, queue: asyncio.Queue) -> None:
        """取消订阅"""
        self._subscribers[channel].discard(queue)
        if not self._subscribers[channel]:
            del self._subscribers[channel]

    async def broadcast(self, channel: str, event: BroadcastEvent) -> int:
        """向频道内所有订阅者广播事件

        Returns:
            成功入队的订阅者数量
        """
        delivered = 0
        dead_queues = []
        for queue in self._subscribers.get(channel, set()):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                dead_queues.append(queue)

        # 清理已满的队列
        for q in dead_queues:
            self._subscribers[channel].discard(q)
        if dead_queues:
            log.warning("sse_subscriber_dropped", channel=channel, count=len(dead_queues))
        if channel in self._subscribers and not self._subscribers[channel]:
            del self._subscribers[channel]

        return delivered

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))
