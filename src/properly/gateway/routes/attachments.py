"""附件记录查询路由

GET /api/attachments/{attachment_id}: 返回附件记录及其有序描述符。
"""

from fastapi import APIRouter, Depends
from starlette.responses import JSONResponse

from ..deps import get_message_service
from ..services.message_service import MessageService

router = APIRouter()


@router.get("/api/attachments/{attachment_id}")
async def get_attachment(
    attachment_id: str,
    service: MessageService = Depends(get_message_service),
):
    record = await service.get_attachment(attachment_id)
    if record is None:
        return JSONResponse(
            status_code=404,
            content={
                "error": {
                    "code": "ATTACHMENT_NOT_FOUND",
                    "message": f"Attachment with id {attachment_id} does not exist",
                }
            },
        )
    return {"attachment": record.model_dump(mode="json")}
