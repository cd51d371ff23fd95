"""IntegrationConfig -- 外部服务配置加载

从环境变量加载对象存储、实时广播、推送通知三类客户端的运行模式与凭据。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

from properly.core.models.payloads import DEFAULT_NOTIFICATION_ICON

log = structlog.get_logger()

_DEFAULT_TIMEOUT_S = 30


class IntegrationConfig(BaseModel):
    """集成配置 -- 从环境变量加载

    运行模式:
        storage_mode: cloudinary / s3 / local
        realtime_mode: pusher / hub
        push_mode: beams / log
    """

    # 对象存储
    storage_mode: Literal["cloudinary", "s3", "local"] = Field(
        default="local",
        description="附件存储后端",
    )
    cloudinary_cloud_name: str = Field(default="", description="Cloudinary cloud name")
    cloudinary_upload_preset: str = Field(
        default="properly",
        description="unsigned upload preset",
    )
    s3_bucket: str = Field(default="", description="S3 / R2 bucket")
    s3_endpoint: str = Field(default="", description="S3 兼容端点 URL")
    s3_access_key: str = Field(default="")
    s3_secret_key: SecretStr = Field(default=SecretStr(""))
    s3_public_base_url: str = Field(default="", description="公开访问 URL 前缀")

    # 实时广播
    realtime_mode: Literal["pusher", "hub"] = Field(
        default="hub",
        description="广播后端：Pusher Channels 或进程内 SSE hub",
    )
    pusher_app_id: str = Field(default="")
    pusher_key: str = Field(default="")
    pusher_secret: SecretStr = Field(default=SecretStr(""))
    pusher_cluster: str = Field(default="mt1")

    # 推送通知
    push_mode: Literal["beams", "log"] = Field(
        default="log",
        description="推送后端：Pusher Beams 或仅记录日志",
    )
    beams_instance_id: str = Field(default="")
    beams_secret_key: SecretStr = Field(default=SecretStr(""))
    notification_icon_url: str = Field(default=DEFAULT_NOTIFICATION_ICON)

    http_timeout_s: int = Field(
        default=_DEFAULT_TIMEOUT_S,
        ge=1,
        description="出站 HTTP 调用超时（秒）",
    )


# 环境变量 -> 字段
_ENV_FIELDS: dict[str, str] = {
    "PROPERLY_STORAGE_MODE": "storage_mode",
    "CLOUDINARY_CLOUD_NAME": "cloudinary_cloud_name",
    "CLOUDINARY_UPLOAD_PRESET": "cloudinary_upload_preset",
    "S3_BUCKET": "s3_bucket",
    "S3_ENDPOINT": "s3_endpoint",
    "S3_ACCESS_KEY": "s3_access_key",
    "S3_PUBLIC_BASE_URL": "s3_public_base_url",
    "PROPERLY_REALTIME_MODE": "realtime_mode",
    "PUSHER_APP_ID": "pusher_app_id",
    "PUSHER_KEY": "pusher_key",
    "PUSHER_CLUSTER": "pusher_cluster",
    "PROPERLY_PUSH_MODE": "push_mode",
    "BEAMS_INSTANCE_ID": "beams_instance_id",
    "PROPERLY_NOTIFICATION_ICON_URL": "notification_icon_url",
}

_SECRET_ENV_FIELDS: dict[str, str] = {
    "S3_SECRET_KEY": "s3_secret_key",
    "PUSHER_SECRET": "pusher_secret",
    "BEAMS_SECRET_KEY": "beams_secret_key",
}


def load_integration_config() -> IntegrationConfig:
    """从环境变量加载集成配置

    未设置的变量使用字段默认值；PROPERLY_HTTP_TIMEOUT_S 非法时
    记录 warning 并回退到默认值，不阻塞启动。

    Returns:
        IntegrationConfig 实例
    """
    kwargs: dict = {}

    for env_var, field_name in _ENV_FIELDS.items():
        if val := os.environ.get(env_var):
            kwargs[field_name] = val

    for env_var, field_name in _SECRET_ENV_FIELDS.items():
        if val := os.environ.get(env_var):
            kwargs[field_name] = SecretStr(val)

    if val := os.environ.get("PROPERLY_HTTP_TIMEOUT_S"):
        try:
            kwargs["http_timeout_s"] = int(val)
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="PROPERLY_HTTP_TIMEOUT_S",
                value=val,
                fallback=_DEFAULT_TIMEOUT_S,
            )

    return IntegrationConfig(**kwargs)
