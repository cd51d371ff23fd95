"""Attachment Domain Model

AttachmentRecord 每次带附件的提交创建一条，创建后不可变，
发送流程从不更新或删除它。
"""

from datetime import datetime

from pydantic import BaseModel, Field


class AttachmentFile(BaseModel):
    """附件描述符 -- 上传完成后得到的 (url, type, name) 三元组"""

    url: str = Field(description="最终存储 URL")
    type: str = Field(description="MIME 类型")
    name: str = Field(default="", description="显示名称")


class AttachmentRecord(BaseModel):
    """AttachmentRecord 数据模型"""

    attachment_id: str = Field(description="唯一标识，ULID 格式")
    files: list[AttachmentFile] = Field(
        default_factory=list,
        description="附件描述符列表，保持提交顺序",
    )
    created_at: datetime = Field(description="创建时间")
