"""出站 payload 定义 -- 广播事件与推送通知请求

两者均为瞬态：不落盘，发出即忘。
"""

from typing import Any

from pydantic import BaseModel, Field

from ..config import CHAT_CHANNEL, NEW_MESSAGE_EVENT
from .message import MessageRecord

DEFAULT_NOTIFICATION_TITLE = "New Message"
DEFAULT_NOTIFICATION_BODY = "You have received a new message"
DEFAULT_NOTIFICATION_ICON = (
    "https://res.cloudinary.com/doqfvbdxe/image/upload/"
    "v1730303244/uploads/k5fozza3te6srxjpvbms.png"
)


class BroadcastEvent(BaseModel):
    """实时广播事件 -- 固定频道 + 固定事件名，payload 为完整 MessageRecord"""

    channel: str = Field(default=CHAT_CHANNEL, description="广播频道")
    event: str = Field(default=NEW_MESSAGE_EVENT, description="事件名")
    payload: dict[str, Any] = Field(default_factory=dict, description="消息记录 JSON")

    @classmethod
    def for_message(cls, message: MessageRecord) -> "BroadcastEvent":
        return cls(payload=message.model_dump(mode="json"))


class NotificationRequest(BaseModel):
    """推送通知请求"""

    recipient_ids: list[str] = Field(description="接收者 ID 列表")
    title: str = Field(default=DEFAULT_NOTIFICATION_TITLE)
    body: str = Field(default=DEFAULT_NOTIFICATION_BODY)
    icon: str = Field(default=DEFAULT_NOTIFICATION_ICON)
