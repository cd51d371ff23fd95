"""MessageSubmission Domain Model -- 一次入站的发消息请求

瞬态输入，不落盘。附件以原始字节携带，JSON 序列化时按 base64 编码，
序列化后的长度即为大小校验所用的提交体积。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class AttachmentUpload(BaseModel):
    """待上传附件"""

    model_config = ConfigDict(ser_json_bytes="base64")

    data: bytes = Field(description="原始文件字节")
    type: str = Field(description="声明的 MIME 类型")
    name: str = Field(default="", description="显示名称")


class MessageSubmission(BaseModel):
    """MessageSubmission -- 发送者提交的一条聊天消息

    content 与 attachments 不能同时为空；
    序列化体积不得超过 MAX_SUBMISSION_BYTES。
    """

    model_config = ConfigDict(ser_json_bytes="base64")

    sender_id: str = Field(description="发送者 ID")
    receiver_id: str = Field(description="接收者 ID")
    content: str | None = Field(default=None, description="文本内容")
    attachments: list[AttachmentUpload] = Field(
        default_factory=list,
        description="附件列表（有序）",
    )
    timestamp: datetime = Field(description="客户端提供的时间戳")

    def serialized_size(self) -> int:
        """返回 JSON 序列化后的字节数"""
        return len(self.model_dump_json().encode("utf-8"))

    def has_content(self) -> bool:
        return bool(self.content)

    def has_attachments(self) -> bool:
        return len(self.attachments) > 0
