"""MessageService 发送编排测试

测试内容：
1. 校验失败（超限、空消息）无任何副作用
2. 附件并发上传：全部成功才落盘；任一失败零记录
3. 附件记录与消息记录的引用关系
4. 广播/推送失败被吸收，仍返回成功
5. 落盘失败返回通用错误
6. 会话查询附带附件记录
"""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from properly.core.models import (
    EMPTY_MESSAGE_ERROR,
    GENERIC_ERROR,
    MESSAGE_SENT,
    SIZE_LIMIT_ERROR,
    UPLOAD_FAILED_ERROR,
    AttachmentUpload,
    MessageSubmission,
    NotificationRequest,
    SendStage,
)
from properly.core.reconcile import find_orphaned_attachments
from properly.gateway.services.message_service import MessageService, SendProgress
from properly.integrations import (
    BroadcastError,
    NotificationError,
    StorageUploadError,
    StoredBlob,
)

TS = datetime(2024, 10, 30, 15, 47, 24, tzinfo=UTC)


def _submission(**overrides) -> MessageSubmission:
    data = {"sender_id": "u1", "receiver_id": "u2", "timestamp": TS}
    data.update(overrides)
    return MessageSubmission(**data)


def _upload(name: str, mime: str = "image/png") -> AttachmentUpload:
    return AttachmentUpload(data=name.encode(), type=mime, name=name)


def _storage_by_name(fail_names: set[str] | None = None) -> AsyncMock:
    """按文件名返回 URL；fail_names 中的文件上传失败"""
    fail_names = fail_names or set()
    storage = AsyncMock()
    storage.name = "mock"

    async def upload(data, *, folder, resource_type="auto", filename="", content_type=""):
        if filename in fail_names:
            raise StorageUploadError("mock", f"{filename} rejected")
        return StoredBlob(secure_url=f"https://cdn.test/{folder}/{filename}")

    storage.upload.side_effect = upload
    return storage


@pytest.fixture
def storage() -> AsyncMock:
    return _storage_by_name()


@pytest.fixture
def broadcaster() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def notifier() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(store_group, storage, broadcaster, notifier) -> MessageService:
    return MessageService(
        store_group,
        storage=storage,
        broadcaster=broadcaster,
        notifier=notifier,
        notification_icon="https://icon.test/i.png",
    )


async def _count(store_group, table: str) -> int:
    cursor = await store_group.conn.execute(f"SELECT COUNT(*) FROM {table}")
    row = await cursor.fetchone()
    return row[0]


def _assert_no_side_effects(storage, broadcaster, notifier):
    storage.upload.assert_not_awaited()
    broadcaster.publish.assert_not_awaited()
    notifier.publish_to_users.assert_not_awaited()


class TestValidation:
    async def test_empty_submission_rejected(
        self, service, store_group, storage, broadcaster, notifier
    ):
        result = await service.send_message(_submission())

        assert result.to_response() == {"error": EMPTY_MESSAGE_ERROR}
        _assert_no_side_effects(storage, broadcaster, notifier)
        assert await _count(store_group, "messages") == 0

    async def test_empty_string_content_rejected(self, service, storage, broadcaster, notifier):
        result = await service.send_message(_submission(content=""))

        assert result.error == EMPTY_MESSAGE_ERROR
        _assert_no_side_effects(storage, broadcaster, notifier)

    async def test_oversized_submission_rejected(
        self, service, store_group, storage, broadcaster, notifier
    ):
        """28 MiB 附件：超限，零上传零记录"""
        big = AttachmentUpload(data=b"\x00" * (28 * 1024 * 1024), type="video/mp4", name="v.mp4")

        result = await service.send_message(_submission(content="hi", attachments=[big]))

        assert result.to_response() == {"error": SIZE_LIMIT_ERROR}
        _assert_no_side_effects(storage, broadcaster, notifier)
        assert await _count(store_group, "attachments") == 0
        assert await _count(store_group, "messages") == 0

    async def test_size_limit_checked_before_empty_check(self, store_group, storage):
        service = MessageService(store_group, storage=storage, max_submission_bytes=10)

        result = await service.send_message(_submission())

        assert result.error == SIZE_LIMIT_ERROR

    async def test_submission_at_limit_accepted(self, store_group, storage):
        submission = _submission(content="hi")
        service = MessageService(
            store_group,
            storage=storage,
            max_submission_bytes=submission.serialized_size(),
        )

        result = await service.send_message(submission)

        assert result.is_success


class TestTextMessage:
    async def test_content_only(self, service, store_group, storage, broadcaster, notifier):
        """纯文本：无上传、无附件记录、消息引用为空，广播一次并推送接收者"""
        result = await service.send_message(_submission(content="hi"))

        assert result.to_response() == {"success": MESSAGE_SENT}
        storage.upload.assert_not_awaited()
        assert await _count(store_group, "attachments") == 0

        messages = await store_group.message_store.list_conversation("u1", "u2")
        assert len(messages) == 1
        message = messages[0]
        assert message.content == "hi"
        assert message.attachment_id is None
        assert message.timestamp == TS

        broadcaster.publish.assert_awaited_once()
        channel, event, payload = broadcaster.publish.await_args.args
        assert channel == "chat-app"
        assert event == "new-message"
        assert payload["message_id"] == message.message_id
        assert payload["content"] == "hi"
        assert payload["attachment_id"] is None

        notifier.publish_to_users.assert_awaited_once()
        request: NotificationRequest = notifier.publish_to_users.await_args.args[0]
        assert request.recipient_ids == ["u2"]
        assert request.icon == "https://icon.test/i.png"

    async def test_duplicate_sends_create_two_records(self, service, store_group):
        first = await service.send_message(_submission(content="hi"))
        second = await service.send_message(_submission(content="hi"))

        assert first.is_success and second.is_success
        messages = await store_group.message_store.list_conversation("u1", "u2")
        assert len(messages) == 2
        assert messages[0].message_id != messages[1].message_id

    async def test_timestamp_normalized_to_utc(self, service, store_group):
        naive = datetime(2024, 10, 30, 15, 47, 24)

        await service.send_message(_submission(content="hi", timestamp=naive))

        messages = await store_group.message_store.list_conversation("u1", "u2")
        assert messages[0].timestamp == TS


class TestAttachments:
    async def test_single_attachment_without_content(
        self, service, store_group, storage, broadcaster
    ):
        """单附件无文本：一条附件记录，消息内容为空串并引用它"""
        result = await service.send_message(_submission(attachments=[_upload("a.png")]))

        assert result.is_success
        storage.upload.assert_awaited_once()
        kwargs = storage.upload.await_args.kwargs
        assert kwargs["folder"] == "uploads"
        assert kwargs["resource_type"] == "auto"

        messages = await store_group.message_store.list_conversation("u1", "u2")
        assert len(messages) == 1
        message = messages[0]
        assert message.content == ""
        assert message.attachment_id is not None

        record = await store_group.attachment_store.get_attachment(message.attachment_id)
        assert len(record.files) == 1
        assert record.files[0].url == "https://cdn.test/uploads/a.png"
        assert record.files[0].type == "image/png"
        assert record.files[0].name == "a.png"

        payload = broadcaster.publish.await_args.args[2]
        assert payload["attachment_id"] == record.attachment_id

    async def test_multiple_attachments_one_record_in_order(
        self, service, store_group, storage
    ):
        uploads = [_upload("a.png"), _upload("b.pdf", "application/pdf"), _upload("c.png")]

        result = await service.send_message(_submission(content="files", attachments=uploads))

        assert result.is_success
        assert storage.upload.await_count == 3
        assert await _count(store_group, "attachments") == 1

        message = (await store_group.message_store.list_conversation("u1", "u2"))[0]
        record = await store_group.attachment_store.get_attachment(message.attachment_id)
        assert [f.name for f in record.files] == ["a.png", "b.pdf", "c.png"]
        assert [f.type for f in record.files] == ["image/png", "application/pdf", "image/png"]

    async def test_one_upload_failure_fails_submission(
        self, store_group, broadcaster, notifier
    ):
        """任一上传失败：整次失败，零记录，不广播不推送"""
        storage = _storage_by_name(fail_names={"b.png"})
        service = MessageService(
            store_group, storage=storage, broadcaster=broadcaster, notifier=notifier
        )
        uploads = [_upload("a.png"), _upload("b.png"), _upload("c.png")]

        result = await service.send_message(_submission(content="hi", attachments=uploads))

        assert result.to_response() == {"error": UPLOAD_FAILED_ERROR}
        # 其余上传不被取消
        assert storage.upload.await_count == 3
        assert await _count(store_group, "attachments") == 0
        assert await _count(store_group, "messages") == 0
        broadcaster.publish.assert_not_awaited()
        notifier.publish_to_users.assert_not_awaited()

    async def test_upload_all_reports_orphaned_urls(self, store_group):
        storage = _storage_by_name(fail_names={"b.png"})
        service = MessageService(store_group, storage=storage)

        outcome = await service._upload_all([_upload("a.png"), _upload("b.png")])

        assert outcome.kind == "any_failed"
        assert outcome.error_type == "StorageUploadError"
        assert outcome.orphaned_urls == ["https://cdn.test/uploads/a.png"]

    async def test_upload_all_success(self, store_group, storage):
        service = MessageService(store_group, storage=storage)

        outcome = await service._upload_all([_upload("a.png"), _upload("b.png")])

        assert outcome.kind == "all_succeeded"
        assert [f.name for f in outcome.files] == ["a.png", "b.png"]


class TestDeliveryFailures:
    async def test_broadcast_failure_still_succeeds(
        self, service, store_group, broadcaster, notifier
    ):
        broadcaster.publish.side_effect = BroadcastError("pusher down")

        result = await service.send_message(_submission(content="hi"))

        assert result.to_response() == {"success": MESSAGE_SENT}
        assert await _count(store_group, "messages") == 1
        notifier.publish_to_users.assert_awaited_once()

    async def test_notification_failure_still_succeeds(self, service, store_group, notifier):
        notifier.publish_to_users.side_effect = NotificationError("beams down")

        result = await service.send_message(_submission(content="hi"))

        assert result.to_response() == {"success": MESSAGE_SENT}
        assert await _count(store_group, "messages") == 1

    async def test_unexpected_delivery_errors_absorbed(
        self, service, broadcaster, notifier
    ):
        broadcaster.publish.side_effect = RuntimeError("boom")
        notifier.publish_to_users.side_effect = ValueError("bad")

        result = await service.send_message(_submission(content="hi"))

        assert result.is_success

    async def test_without_delivery_clients(self, store_group):
        service = MessageService(store_group)

        result = await service.send_message(_submission(content="hi"))

        assert result.is_success


class TestPersistenceFailures:
    async def test_message_persist_failure_returns_generic_error(
        self, service, store_group, broadcaster, notifier, monkeypatch
    ):
        """消息落盘失败：通用错误，附件记录成为孤儿，不广播不推送"""
        monkeypatch.setattr(
            store_group.message_store,
            "create_message",
            AsyncMock(side_effect=RuntimeError("disk full")),
        )

        result = await service.send_message(
            _submission(content="hi", attachments=[_upload("a.png")])
        )

        assert result.to_response() == {"error": GENERIC_ERROR}
        broadcaster.publish.assert_not_awaited()
        notifier.publish_to_users.assert_not_awaited()

        report = await find_orphaned_attachments(store_group.conn)
        assert len(report.attachments) == 1
        assert report.urls == ["https://cdn.test/uploads/a.png"]

    async def test_attachment_persist_failure_returns_generic_error(
        self, service, store_group, monkeypatch
    ):
        monkeypatch.setattr(
            store_group.attachment_store,
            "create_attachment",
            AsyncMock(side_effect=RuntimeError("disk full")),
        )

        result = await service.send_message(
            _submission(content="hi", attachments=[_upload("a.png")])
        )

        assert result.error == GENERIC_ERROR
        assert await _count(store_group, "messages") == 0

    async def test_concurrent_failure_does_not_discard_other_submission(
        self, service, store_group, broadcaster, monkeypatch
    ):
        """并发提交：一个落盘失败回滚，不影响另一个已报告成功的提交"""
        create_message = store_group.message_store.create_message

        async def interleaved(record):
            if record.content == "boom":
                await asyncio.sleep(0)
                raise RuntimeError("disk full")
            await create_message(record)
            # 插入与提交之间让出事件循环
            await asyncio.sleep(0)

        monkeypatch.setattr(store_group.message_store, "create_message", interleaved)

        good, bad = await asyncio.gather(
            service.send_message(_submission(content="hi")),
            service.send_message(_submission(sender_id="u3", content="boom")),
        )

        assert good.to_response() == {"success": MESSAGE_SENT}
        assert bad.to_response() == {"error": GENERIC_ERROR}
        messages = await store_group.message_store.list_conversation("u1", "u2")
        assert [m.content for m in messages] == ["hi"]
        assert await _count(store_group, "messages") == 1
        payload = broadcaster.publish.await_args.args[2]
        assert payload["message_id"] == messages[0].message_id

    async def test_storage_not_configured_fails_upload(self, store_group):
        service = MessageService(store_group)

        result = await service.send_message(_submission(attachments=[_upload("a.png")]))

        assert result.error == UPLOAD_FAILED_ERROR


class TestSendProgress:
    def test_advance_and_fail(self):
        progress = SendProgress("sub-1")
        progress.advance(SendStage.UPLOADING)
        progress.fail()
        assert progress.stage == SendStage.FAILED

    def test_invalid_advance_raises(self):
        progress = SendProgress("sub-1")
        with pytest.raises(RuntimeError):
            progress.advance(SendStage.DONE)

    def test_fail_ignored_after_persisting(self):
        progress = SendProgress("sub-1")
        progress.advance(SendStage.PERSISTING_MESSAGE)
        progress.advance(SendStage.BROADCASTING)
        progress.fail()
        assert progress.stage == SendStage.BROADCASTING
