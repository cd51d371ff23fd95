"""MessageService -- 消息发送编排与会话查询

发送流程（单次提交）：
1. 大小校验：序列化体积超限直接失败，无副作用
2. 内容校验：文本与附件同时为空直接失败，无副作用
3. 附件并发上传：全部成功才继续；任一失败整次提交失败
4. 附件记录落盘（有附件时）
5. 消息记录落盘，引用附件记录
6. 实时广播（失败被吸收，只记日志）
7. 推送通知接收者（失败被吸收，只记日志）

第 5 步完成即视为发送成功。send_message 从不向调用方抛出异常。
上传、附件落盘、消息落盘之间没有跨服务事务：失败日志携带
submission_id、已上传 URL 与附件记录 ID，供 reconcile 模块对账。
"""

import asyncio
from datetime import UTC, datetime

import structlog
from properly.core.config import (
    CHAT_CHANNEL,
    NEW_MESSAGE_EVENT,
    UPLOAD_FOLDER,
    get_max_submission_bytes,
)
from properly.core.models import (
    EMPTY_MESSAGE_ERROR,
    GENERIC_ERROR,
    SIZE_LIMIT_ERROR,
    TERMINAL_STAGES,
    UPLOAD_FAILED_ERROR,
    AllSucceeded,
    AnyFailed,
    AttachmentFile,
    AttachmentRecord,
    AttachmentUpload,
    MessageRecord,
    MessageSubmission,
    NotificationRequest,
    SendResult,
    SendStage,
    UploadOutcome,
    normalize_timestamp,
    validate_stage_transition,
)
from properly.core.models.payloads import DEFAULT_NOTIFICATION_ICON
from properly.core.store import StoreGroup
from properly.core.store.transaction import persist_attachment, persist_message
from ulid import ULID

log = structlog.get_logger()


class SendProgress:
    """单次提交的阶段与已产生的外部副作用"""

    def __init__(self, submission_id: str) -> None:
        self.submission_id = submission_id
        self.stage = SendStage.VALIDATING
        self.uploaded_urls: list[str] = []
        self.attachment_id: str | None = None

    def advance(self, to_stage: SendStage) -> None:
        if not validate_stage_transition(self.stage, to_stage):
            raise RuntimeError(f"invalid send stage transition {self.stage} -> {to_stage}")
        self.stage = to_stage

    def fail(self) -> None:
        """推进到 FAILED；当前阶段不允许失败时保持原阶段"""
        if self.stage not in TERMINAL_STAGES and validate_stage_transition(
            self.stage, SendStage.FAILED
        ):
            self.stage = SendStage.FAILED


class MessageService:
    """消息业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        storage=None,
        broadcaster=None,
        notifier=None,
        max_submission_bytes: int | None = None,
        notification_icon: str = DEFAULT_NOTIFICATION_ICON,
    ) -> None:
        self._stores = store_group
        self._storage = storage
        self._broadcaster = broadcaster
        self._notifier = notifier
        self._max_submission_bytes = (
            max_submission_bytes
            if max_submission_bytes is not None
            else get_max_submission_bytes()
        )
        self._notification_icon = notification_icon

    async def send_message(self, submission: MessageSubmission) -> SendResult:
        """发送消息（消息发送入口）

        Args:
            submission: 客户端提交

        Returns:
            SendResult -- {success} 或 {error}，从不抛出
        """
        progress = SendProgress(str(ULID()))
        with structlog.contextvars.bound_contextvars(submission_id=progress.submission_id):
            try:
                return await self._send(submission, progress)
            except Exception as e:
                progress.fail()
                log.error(
                    "send_message_failed",
                    stage=progress.stage,
                    error_type=type(e).__name__,
                    error=str(e),
                    uploaded_urls=progress.uploaded_urls,
                    attachment_id=progress.attachment_id,
                )
                return SendResult.fail(GENERIC_ERROR)

    async def _send(self, submission: MessageSubmission, progress: SendProgress) -> SendResult:
        # 1. 大小校验
        size = submission.serialized_size()
        if size > self._max_submission_bytes:
            progress.advance(SendStage.FAILED)
            log.info(
                "submission_rejected",
                reason="size_limit",
                size=size,
                limit=self._max_submission_bytes,
            )
            return SendResult.fail(SIZE_LIMIT_ERROR)

        # 2. 内容校验
        if not submission.has_content() and not submission.has_attachments():
            progress.advance(SendStage.FAILED)
            log.info("submission_rejected", reason="empty")
            return SendResult.fail(EMPTY_MESSAGE_ERROR)

        attachment_id: str | None = None
        if submission.has_attachments():
            # 3. 附件并发上传
            progress.advance(SendStage.UPLOADING)
            outcome = await self._upload_all(submission.attachments)
            if isinstance(outcome, AnyFailed):
                progress.uploaded_urls = outcome.orphaned_urls
                progress.advance(SendStage.FAILED)
                log.warning(
                    "upload_failed",
                    error_type=outcome.error_type,
                    error=outcome.error_message,
                    attachment_count=len(submission.attachments),
                    orphaned_urls=outcome.orphaned_urls,
                )
                return SendResult.fail(UPLOAD_FAILED_ERROR)
            progress.uploaded_urls = [f.url for f in outcome.files]

            # 4. 附件记录落盘
            progress.advance(SendStage.PERSISTING_ATTACHMENT)
            attachment = AttachmentRecord(
                attachment_id=str(ULID()),
                files=outcome.files,
                created_at=datetime.now(UTC),
            )
            await persist_attachment(
                self._stores.conn,
                self._stores.attachment_store,
                attachment,
            )
            attachment_id = attachment.attachment_id
            progress.attachment_id = attachment_id

        # 5. 消息记录落盘
        progress.advance(SendStage.PERSISTING_MESSAGE)
        message = MessageRecord(
            message_id=str(ULID()),
            sender_id=submission.sender_id,
            receiver_id=submission.receiver_id,
            content=submission.content or "",
            timestamp=normalize_timestamp(submission.timestamp),
            attachment_id=attachment_id,
        )
        await persist_message(self._stores.conn, self._stores.message_store, message)

        # 6. 实时广播
        progress.advance(SendStage.BROADCASTING)
        broadcast_ok = await self._broadcast(message)

        # 7. 推送通知
        progress.advance(SendStage.NOTIFYING)
        notified = await self._notify(message.receiver_id)

        progress.advance(SendStage.DONE)
        log.info(
            "message_sent",
            message_id=message.message_id,
            attachment_id=attachment_id,
            broadcast=broadcast_ok,
            notified=notified,
        )
        return SendResult.ok()

    async def _upload_all(self, attachments: list[AttachmentUpload]) -> UploadOutcome:
        """并发上传所有附件

        任一失败即整体失败，但不取消仍在进行的上传；
        已成功的上传作为孤儿 URL 返回，存储端不回滚。
        """
        results = await asyncio.gather(
            *(self._upload_one(a) for a in attachments),
            return_exceptions=True,
        )
        files = [r for r in results if isinstance(r, AttachmentFile)]
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            first = failures[0]
            return AnyFailed(
                error_type=type(first).__name__,
                error_message=str(first),
                orphaned_urls=[f.url for f in files],
            )
        return AllSucceeded(files=files)

    async def _upload_one(self, attachment: AttachmentUpload) -> AttachmentFile:
        blob = await self._storage.upload(
            attachment.data,
            folder=UPLOAD_FOLDER,
            resource_type="auto",
            filename=attachment.name,
            content_type=attachment.type,
        )
        return AttachmentFile(url=blob.secure_url, type=attachment.type, name=attachment.name)

    async def _broadcast(self, message: MessageRecord) -> bool:
        """发布新消息事件；失败记录日志并丢弃"""
        if self._broadcaster is None:
            return False
        try:
            await self._broadcaster.publish(
                CHAT_CHANNEL,
                NEW_MESSAGE_EVENT,
                message.model_dump(mode="json"),
            )
            return True
        except Exception as e:
            log.warning(
                "broadcast_failed",
                message_id=message.message_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return False

    async def _notify(self, receiver_id: str) -> bool:
        """推送通知接收者；失败记录日志并丢弃"""
        if self._notifier is None:
            return False
        request = NotificationRequest(
            recipient_ids=[receiver_id],
            icon=self._notification_icon,
        )
        try:
            await self._notifier.publish_to_users(request)
            log.info("notification_sent", receiver_id=receiver_id)
            return True
        except Exception as e:
            log.error(
                "notification_failed",
                receiver_id=receiver_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return False

    async def get_message(self, message_id: str) -> MessageRecord | None:
        """查询单条消息"""
        return await self._stores.message_store.get_message(message_id)

    async def get_attachment(self, attachment_id: str) -> AttachmentRecord | None:
        """查询附件记录"""
        return await self._stores.attachment_store.get_attachment(attachment_id)

    async def list_conversation(
        self,
        user_id: str,
        peer_id: str,
        limit: int,
        before: MessageRecord | None = None,
    ) -> list[tuple[MessageRecord, AttachmentRecord | None]]:
        """查询会话历史，并附带每条消息的附件记录"""
        messages = await self._stores.message_store.list_conversation(
            user_id, peer_id, limit=limit, before=before
        )
        attachment_ids = [m.attachment_id for m in messages if m.attachment_id]
        attachments = await self._stores.attachment_store.get_attachments(attachment_ids)
        return [
            (m, attachments.get(m.attachment_id) if m.attachment_id else None)
            for m in messages
        ]
