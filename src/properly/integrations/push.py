"""推送通知客户端 -- 向接收者已注册的设备/浏览器端点发送带外通知

两种后端：
- BeamsNotifier: Pusher Beams Publish API，按用户 ID 推送 web 通知
- LogOnlyNotifier: 只记录日志（开发/测试）
"""

from typing import Protocol

import httpx
import structlog

from properly.core.models.payloads import NotificationRequest

from .exceptions import NotificationError

log = structlog.get_logger()


class PushNotifier(Protocol):
    """推送通知接口"""

    async def publish_to_users(self, request: NotificationRequest) -> None:
        """向 request.recipient_ids 推送通知，失败抛出 NotificationError"""
        ...


class BeamsNotifier:
    """Pusher Beams Publish API 客户端"""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        instance_id: str,
        secret_key: str,
        timeout_s: int = 30,
    ) -> None:
        self._http = http_client
        self._instance_id = instance_id
        self._secret_key = secret_key
        self._timeout_s = timeout_s

    @property
    def publish_url(self) -> str:
        return (
            f"https://{self._instance_id}.pushnotifications.pusher.com"
            f"/publish_api/v1/instances/{self._instance_id}/publishes/users"
        )

    async def publish_to_users(self, request: NotificationRequest) -> None:
        if not request.recipient_ids:
            raise NotificationError("no recipients", recoverable=False)

        body = {
            "users": request.recipient_ids,
            "web": {
                "notification": {
                    "title": request.title,
                    "body": request.body,
                    "icon": request.icon,
                }
            },
        }
        try:
            resp = await self._http.post(
                self.publish_url,
                json=body,
                headers={"Authorization": f"Bearer {self._secret_key}"},
                timeout=self._timeout_s,
            )
        except httpx.HTTPError as e:
            raise NotificationError(f"beams publish failed: {e}") from e

        if resp.status_code != 200:
            raise NotificationError(
                f"beams publish rejected: HTTP {resp.status_code} {resp.text[:200]}"
            )

        log.info(
            "notification_published",
            backend="beams",
            publish_id=resp.json().get("publishId", ""),
            recipient_count=len(request.recipient_ids),
        )


class LogOnlyNotifier:
    """仅记录日志的推送实现"""

    async def publish_to_users(self, request: NotificationRequest) -> None:
        log.info(
            "notification_logged",
            backend="log",
            recipient_ids=request.recipient_ids,
            title=request.title,
        )
