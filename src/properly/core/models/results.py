"""发送结果与上传结果模型

SendResult 是消息发送入口对调用方的统一返回：success 与 error 二选一。
UploadOutcome 是附件并发上传阶段的标签联合：全部成功或任一失败。
"""

from typing import Literal

from pydantic import BaseModel, Field

from .attachment import AttachmentFile

# 面向用户的固定文案
MESSAGE_SENT = "Message sent!"
SIZE_LIMIT_ERROR = (
    "Message size exceeds 27MB limit. "
    "Please reduce the size of your message or attachments."
)
EMPTY_MESSAGE_ERROR = "Message must contain either content or attachments."
UPLOAD_FAILED_ERROR = "Failed to upload file"
GENERIC_ERROR = "Something went wrong. Please try again!"


class SendResult(BaseModel):
    """消息发送结果 -- {success: str} | {error: str}"""

    success: str | None = Field(default=None)
    error: str | None = Field(default=None)

    @classmethod
    def ok(cls, message: str = MESSAGE_SENT) -> "SendResult":
        return cls(success=message)

    @classmethod
    def fail(cls, reason: str) -> "SendResult":
        return cls(error=reason)

    @property
    def is_success(self) -> bool:
        return self.success is not None

    def to_response(self) -> dict[str, str]:
        """序列化为仅含已设置键的响应体"""
        return self.model_dump(exclude_none=True)


class AllSucceeded(BaseModel):
    """所有附件均上传成功"""

    kind: Literal["all_succeeded"] = "all_succeeded"
    files: list[AttachmentFile] = Field(description="按提交顺序的附件描述符")


class AnyFailed(BaseModel):
    """至少一个附件上传失败

    orphaned_urls 为已成功上传、但不会被任何记录引用的 URL，
    存储端不会回滚，仅用于对账。
    """

    kind: Literal["any_failed"] = "any_failed"
    error_type: str = Field(description="第一个失败的异常类型")
    error_message: str = Field(description="第一个失败的异常信息")
    orphaned_urls: list[str] = Field(default_factory=list)


UploadOutcome = AllSucceeded | AnyFailed
