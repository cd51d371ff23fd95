"""MessageRecord Domain Model

每次成功提交恰好创建一条。时间戳取自客户端，服务端只做规范化
（统一为 UTC），不以服务端时钟覆盖。
"""

from datetime import UTC, datetime

from pydantic import BaseModel, Field


def normalize_timestamp(value: datetime) -> datetime:
    """将客户端时间戳规范化为 UTC aware datetime

    naive 时间视为 UTC。
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class MessageRecord(BaseModel):
    """MessageRecord 数据模型

    attachment_id 引用（不拥有）AttachmentRecord；
    广播与推送步骤只引用此记录。
    """

    message_id: str = Field(description="唯一标识，ULID 格式")
    sender_id: str = Field(description="发送者 ID")
    receiver_id: str = Field(description="接收者 ID")
    content: str = Field(default="", description="文本内容，有附件时允许为空串")
    timestamp: datetime = Field(description="规范化后的创建时间")
    attachment_id: str | None = Field(
        default=None,
        description="关联的 AttachmentRecord ID",
    )
