"""Properly Integrations -- 外部服务客户端

对象存储、实时广播、推送通知三类出站客户端的公开接口导出。
"""

# 配置
from .config import IntegrationConfig, load_integration_config

# 异常
from .exceptions import (
    BroadcastError,
    IntegrationError,
    NotificationError,
    StorageUploadError,
)

# 推送通知
from .push import BeamsNotifier, LogOnlyNotifier, PushNotifier

# 实时广播
from .realtime import Broadcaster, HubBroadcaster, PusherChannelsBroadcaster

# 对象存储
from .storage import (
    BlobStorage,
    CloudinaryStorage,
    LocalStorage,
    S3Storage,
    StoredBlob,
)

__all__ = [
    "IntegrationConfig",
    "load_integration_config",
    "IntegrationError",
    "StorageUploadError",
    "BroadcastError",
    "NotificationError",
    "BlobStorage",
    "StoredBlob",
    "CloudinaryStorage",
    "S3Storage",
    "LocalStorage",
    "Broadcaster",
    "PusherChannelsBroadcaster",
    "HubBroadcaster",
    "PushNotifier",
    "BeamsNotifier",
    "LogOnlyNotifier",
]
