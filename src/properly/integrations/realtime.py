"""实时广播客户端 -- 向命名频道发布事件，已连接客户端无需轮询

两种后端：
- PusherChannelsBroadcaster: Pusher Channels HTTP API（HMAC-SHA256 签名）
- HubBroadcaster: 进程内 SSE hub，由 gateway 的 SSE 路由推送给订阅者

投递语义均为 at-most-once，不跟踪确认。
"""

import hashlib
import hmac
import json
import time
from typing import Any, Protocol

import httpx
import structlog

from properly.core.models.payloads import BroadcastEvent

from .exceptions import BroadcastError

log = structlog.get_logger()

PUSHER_AUTH_VERSION = "1.0"


class Broadcaster(Protocol):
    """实时广播接口"""

    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        """发布事件，失败抛出 BroadcastError"""
        ...


def sign_pusher_request(
    secret: str,
    method: str,
    path: str,
    params: dict[str, str],
) -> str:
    """计算 Pusher HTTP API 的 auth_signature

    待签名串为 "METHOD\\nPATH\\nQUERY"，QUERY 为按键名排序的 key=value 串
    （不含 auth_signature）。

    Returns:
        HMAC-SHA256 十六进制摘要
    """
    query = "&".join(f"{k.lower()}={params[k]}" for k in sorted(params, key=str.lower))
    to_sign = "\n".join([method.upper(), path, query])
    return hmac.new(
        secret.encode("utf-8"),
        to_sign.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class PusherChannelsBroadcaster:
    """Pusher Channels HTTP API 客户端"""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        app_id: str,
        key: str,
        secret: str,
        cluster: str = "mt1",
        timeout_s: int = 30,
    ) -> None:
        self._http = http_client
        self._app_id = app_id
        self._key = key
        self._secret = secret
        self._host = f"https://api-{cluster}.pusher.com"
        self._timeout_s = timeout_s

    @property
    def events_path(self) -> str:
        return f"/apps/{self._app_id}/events"

    def _build_query(self, body: bytes, timestamp: int | None = None) -> dict[str, str]:
        params = {
            "auth_key": self._key,
            "auth_timestamp": str(timestamp if timestamp is not None else int(time.time())),
            "auth_version": PUSHER_AUTH_VERSION,
            "body_md5": hashlib.md5(body).hexdigest(),
        }
        params["auth_signature"] = sign_pusher_request(
            self._secret, "POST", self.events_path, params
        )
        return params

    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        body = json.dumps(
            {
                "name": event,
                "channels": [channel],
                "data": json.dumps(payload, ensure_ascii=False),
            },
            ensure_ascii=False,
        ).encode("utf-8")

        try:
            resp = await self._http.post(
                f"{self._host}{self.events_path}",
                params=self._build_query(body),
                content=body,
                headers={"Content-Type": "application/json"},
                timeout=self._timeout_s,
            )
        except httpx.HTTPError as e:
            raise BroadcastError(f"pusher publish failed: {e}") from e

        if resp.status_code != 200:
            raise BroadcastError(
                f"pusher publish rejected: HTTP {resp.status_code} {resp.text[:200]}"
            )

        log.debug("broadcast_published", backend="pusher", channel=channel, event=event)


class HubBroadcaster:
    """进程内广播 -- 把事件交给 SSE hub 分发"""

    def __init__(self, hub) -> None:
        """
        Args:
            hub: 提供 async broadcast(channel, event) 的 SSE hub
        """
        self._hub = hub

    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        try:
            await self._hub.broadcast(
                channel,
                BroadcastEvent(channel=channel, event=event, payload=payload),
            )
        except Exception as e:
            raise BroadcastError(f"hub publish failed: {e}") from e

        log.debug("broadcast_published", backend="hub", channel=channel, event=event)
