"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + 外部服务客户端初始化 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from properly.core.config import get_db_path, get_uploads_dir
from properly.core.store import create_store_group
from properly.integrations import (
    BeamsNotifier,
    CloudinaryStorage,
    HubBroadcaster,
    IntegrationConfig,
    LocalStorage,
    LogOnlyNotifier,
    PusherChannelsBroadcaster,
    S3Storage,
    load_integration_config,
)

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .routes import attachments, health, message, stream
from .services.sse_hub import SSEHub

log = structlog.get_logger()

# local 存储模式下上传文件的对外 URL 前缀
LOCAL_MEDIA_PREFIX = "/media"


def build_storage(config: IntegrationConfig, http_client: httpx.AsyncClient):
    """根据 storage_mode 创建对象存储客户端"""
    if config.storage_mode == "cloudinary":
        return CloudinaryStorage(
            http_client,
            cloud_name=config.cloudinary_cloud_name,
            upload_preset=config.cloudinary_upload_preset,
            timeout_s=config.http_timeout_s,
        )
    if config.storage_mode == "s3":
        return S3Storage.from_credentials(
            endpoint_url=config.s3_endpoint,
            access_key=config.s3_access_key,
            secret_key=config.s3_secret_key.get_secret_value(),
            bucket=config.s3_bucket,
            public_base_url=config.s3_public_base_url,
        )
    uploads_dir = get_uploads_dir()
    uploads_dir.mkdir(parents=True, exist_ok=True)
    return LocalStorage(uploads_dir, public_base_url=LOCAL_MEDIA_PREFIX)


def build_broadcaster(config: IntegrationConfig, http_client: httpx.AsyncClient, hub: SSEHub):
    """根据 realtime_mode 创建广播客户端"""
    if config.realtime_mode == "pusher":
        return PusherChannelsBroadcaster(
            http_client,
            app_id=config.pusher_app_id,
            key=config.pusher_key,
            secret=config.pusher_secret.get_secret_value(),
            cluster=config.pusher_cluster,
            timeout_s=config.http_timeout_s,
        )
    return HubBroadcaster(hub)


def build_notifier(config: IntegrationConfig, http_client: httpx.AsyncClient):
    """根据 push_mode 创建推送客户端"""
    if config.push_mode == "beams":
        return BeamsNotifier(
            http_client,
            instance_id=config.beams_instance_id,
            secret_key=config.beams_secret_key.get_secret_value(),
            timeout_s=config.http_timeout_s,
        )
    return LogOnlyNotifier()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 和外部服务客户端，关闭时清理连接"""
    store_group = await create_store_group(get_db_path())
    app.state.store_group = store_group

    app.state.sse_hub = SSEHub()

    config = load_integration_config()
    app.state.integration_config = config

    # 所有 HTTP 集成共享一个连接池
    http_client = httpx.AsyncClient()
    app.state.http_client = http_client

    app.state.storage = build_storage(config, http_client)
    app.state.broadcaster = build_broadcaster(config, http_client, app.state.sse_hub)
    app.state.notifier = build_notifier(config, http_client)

    log.info(
        "integrations_initialized",
        storage_mode=config.storage_mode,
        realtime_mode=config.realtime_mode,
        push_mode=config.push_mode,
        timeout_s=config.http_timeout_s,
    )

    yield

    await http_client.aclose()
    if hasattr(app.state, "store_group") and app.state.store_group:
        await app.state.store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="Properly Chat Gateway",
        version="0.1.0",
        description="Properly in-app chat messaging API",
        lifespan=lifespan,
    )

    app.add_middleware(LoggingMiddleware)

    setup_logging()
    setup_logfire(app)

    app.include_router(message.router, tags=["message"])
    app.include_router(attachments.router, tags=["attachments"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])

    # local 存储模式：挂载上传目录（目录在 lifespan 中创建）
    if load_integration_config().storage_mode == "local":
        app.mount(
            LOCAL_MEDIA_PREFIX,
            StaticFiles(directory=str(get_uploads_dir()), check_dir=False),
            name="media",
        )

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
