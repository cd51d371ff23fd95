"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 与外部服务句柄

所有句柄在 lifespan 中创建一次并挂在 app.state 上，进程内共享；
测试可直接替换 app.state 上的句柄。
"""

from fastapi import Request
from properly.core.store import StoreGroup

from .services.message_service import MessageService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_sse_hub(request: Request):
    """从 app.state 获取 SSEHub 实例"""
    return request.app.state.sse_hub


def get_message_service(request: Request) -> MessageService:
    """用 app.state 上的共享句柄组装 MessageService"""
    state = request.app.state
    config = getattr(state, "integration_config", None)
    kwargs = {}
    if config is not None:
        kwargs["notification_icon"] = config.notification_icon_url
    return MessageService(
        state.store_group,
        storage=getattr(state, "storage", None),
        broadcaster=getattr(state, "broadcaster", None),
        notifier=getattr(state, "notifier", None),
        **kwargs,
    )
