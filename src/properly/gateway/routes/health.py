"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、本地存储目录与集成运行模式。
"""

import structlog
from fastapi import APIRouter, Request
from properly.integrations.storage import LocalStorage
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 数据库连通性
    2. storage: 存储后端；local 模式额外检查目录可访问
    3. realtime / push: 当前运行模式（外部服务不做真实探测）
    """
    checks = {}
    all_ok = True

    # 1. SQLite 连通性检查
    try:
        store_group = request.app.state.store_group
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
    except Exception as e:
        log.warning("ready_check_failed", check="sqlite", error=str(e))
        checks["sqlite"] = f"error: {str(e)}"
        all_ok = False

    # 2. 存储后端检查
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        checks["storage"] = "error: not configured"
        all_ok = False
    elif isinstance(storage, LocalStorage):
        if storage.root_dir.exists() and storage.root_dir.is_dir():
            checks["storage"] = "local: ok"
        else:
            checks["storage"] = "local: error: directory does not exist"
            all_ok = False
    else:
        checks["storage"] = storage.name

    # 3. 集成运行模式
    config = getattr(request.app.state, "integration_config", None)
    if config is not None:
        checks["realtime"] = config.realtime_mode
        checks["push"] = config.push_mode

    status_code = 200 if all_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
