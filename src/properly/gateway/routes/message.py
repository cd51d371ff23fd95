"""消息路由

POST /api/messages: 发送消息（可带附件），返回 {success} 或 {error}。
GET /api/messages: 查询两个用户之间的会话历史，支持 before 游标分页。
GET /api/messages/{message_id}: 查询单条消息。
"""

from fastapi import APIRouter, Depends, Query
from properly.core.config import HISTORY_PAGE_SIZE
from properly.core.models import (
    AttachmentRecord,
    AttachmentUpload,
    MessageRecord,
    MessageSubmission,
)
from pydantic import Base64Bytes, Field
from starlette.responses import JSONResponse

from ..deps import get_message_service
from ..services.message_service import MessageService

router = APIRouter()


class AttachmentIn(AttachmentUpload):
    """请求体中的附件：仅 data 改为 base64 解码

    FastAPI 以 python 模式校验请求体，val_json_bytes 对其不生效。
    """

    data: Base64Bytes = Field(description="base64 编码的文件内容")


class MessageRequest(MessageSubmission):
    """发送消息请求体"""

    attachments: list[AttachmentIn] = Field(default_factory=list, description="附件列表")

    def to_submission(self) -> MessageSubmission:
        """转换为领域模型（附件为原始字节）"""
        # Base64Bytes 的序列化器在 python 模式下也会重新编码，按属性取值
        return MessageSubmission(
            **self.model_dump(exclude={"attachments"}),
            attachments=[
                AttachmentUpload(data=a.data, type=a.type, name=a.name)
                for a in self.attachments
            ],
        )


def _not_found(message_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={
            "error": {
                "code": "MESSAGE_NOT_FOUND",
                "message": f"Message with id {message_id} does not exist",
            }
        },
    )


def _message_to_dict(
    message: MessageRecord,
    attachment: AttachmentRecord | None = None,
) -> dict:
    data = message.model_dump(mode="json")
    data["attachments"] = (
        [f.model_dump() for f in attachment.files] if attachment is not None else []
    )
    return data


@router.post("/api/messages")
async def send_message(
    body: MessageRequest,
    service: MessageService = Depends(get_message_service),
):
    """发送消息

    业务失败（超限、空消息、上传失败、内部错误）同样返回 200，
    由响应体中的 error 字段表达。
    """
    result = await service.send_message(body.to_submission())
    return JSONResponse(status_code=200, content=result.to_response())


@router.get("/api/messages")
async def list_messages(
    user_id: str = Query(description="当前用户 ID"),
    peer_id: str = Query(description="会话对方用户 ID"),
    limit: int = Query(default=HISTORY_PAGE_SIZE, ge=1, le=200),
    before: str | None = Query(default=None, description="游标消息 ID"),
    service: MessageService = Depends(get_message_service),
):
    """查询会话历史，按时间正序"""
    cursor = None
    if before:
        cursor = await service.get_message(before)
        if cursor is None:
            return _not_found(before)

    items = await service.list_conversation(user_id, peer_id, limit=limit, before=cursor)
    return {"messages": [_message_to_dict(m, a) for m, a in items]}


@router.get("/api/messages/{message_id}")
async def get_message(
    message_id: str,
    service: MessageService = Depends(get_message_service),
):
    """查询单条消息，附带附件描述符"""
    message = await service.get_message(message_id)
    if message is None:
        return _not_found(message_id)

    attachment = None
    if message.attachment_id:
        attachment = await service.get_attachment(message.attachment_id)
    return {"message": _message_to_dict(message, attachment)}
