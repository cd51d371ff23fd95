"""推送通知客户端测试"""

import json

import httpx
import pytest
from properly.core.models import NotificationRequest
from properly.integrations import BeamsNotifier, LogOnlyNotifier, NotificationError


class TestBeamsNotifier:
    async def test_publish_to_users(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={"publishId": "pub-123"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            notifier = BeamsNotifier(client, instance_id="inst-1", secret_key="beams-secret")
            await notifier.publish_to_users(
                NotificationRequest(recipient_ids=["u2"], icon="https://icon.test/i.png")
            )

        request: httpx.Request = seen["request"]
        assert str(request.url) == (
            "https://inst-1.pushnotifications.pusher.com"
            "/publish_api/v1/instances/inst-1/publishes/users"
        )
        assert request.headers["Authorization"] == "Bearer beams-secret"
        body = json.loads(request.read())
        assert body["users"] == ["u2"]
        notification = body["web"]["notification"]
        assert notification["title"] == "New Message"
        assert notification["body"] == "You have received a new message"
        assert notification["icon"] == "https://icon.test/i.png"

    async def test_no_recipients_rejected(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("should not send")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            notifier = BeamsNotifier(client, "inst-1", "beams-secret")
            with pytest.raises(NotificationError) as exc_info:
                await notifier.publish_to_users(NotificationRequest(recipient_ids=[]))
        assert exc_info.value.recoverable is False

    async def test_rejected_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"error": "Unprocessable"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            notifier = BeamsNotifier(client, "inst-1", "beams-secret")
            with pytest.raises(NotificationError, match="HTTP 422"):
                await notifier.publish_to_users(NotificationRequest(recipient_ids=["u2"]))


class TestLogOnlyNotifier:
    async def test_publish_does_not_raise(self):
        await LogOnlyNotifier().publish_to_users(NotificationRequest(recipient_ids=["u2"]))
