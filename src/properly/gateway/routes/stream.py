"""SSE 频道事件流路由

GET /api/stream/channel/{channel}: 订阅进程内 hub 的频道，实时推送广播事件。
仅在 realtime_mode=hub 时有事件；只推送连接后的新事件，不回放历史。
"""

import asyncio
import json

from fastapi import APIRouter, Depends
from properly.core.config import SSE_HEARTBEAT_INTERVAL
from properly.core.models.payloads import BroadcastEvent
from sse_starlette.sse import EventSourceResponse

from ..deps import get_sse_hub

router = APIRouter()


def _event_to_sse(event: BroadcastEvent) -> dict:
    """将 BroadcastEvent 转换为 SSE 帧"""
    message_id = event.payload.get("message_id")
    frame = {
        "event": event.event,
        "data": json.dumps(event.payload, ensure_ascii=False),
    }
    if message_id:
        frame["id"] = message_id
    return frame


@router.get("/api/stream/channel/{channel}")
async def stream_channel_events(
    channel: str,
    sse_hub=Depends(get_sse_hub),
):
    """SSE 事件流端点

    1. 注册到 SSEHub 监听频道
    2. 实时推送新事件
    3. 心跳保活
    """

    async def event_generator():
        queue = await sse_hub.subscribe(channel)
        try:
            while True:
                try:
                    event = await asyncio.wait_for(
                        queue.get(), timeout=SSE_HEARTBEAT_INTERVAL
                    )
                    yield _event_to_sse(event)
                except TimeoutError:
                    yield {"comment": "heartbeat"}
        finally:
            await sse_hub.unsubscribe(channel, queue)

    return EventSourceResponse(event_generator())
