"""全局 pytest 配置 -- 临时 SQLite 数据库与 Store fixture"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def tmp_uploads_dir(tmp_path: Path) -> Path:
    """提供临时本地上传目录"""
    uploads_dir = tmp_path / "uploads"
    uploads_dir.mkdir(parents=True, exist_ok=True)
    return uploads_dir


@pytest_asyncio.fixture
async def db_conn(tmp_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    from properly.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(tmp_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def store_group(tmp_db_path: Path):
    """提供共享连接的 StoreGroup"""
    from properly.core.store import create_store_group

    group = await create_store_group(str(tmp_db_path))
    yield group
    await group.conn.close()


@pytest.fixture
def client_ts() -> datetime:
    """固定的客户端时间戳"""
    return datetime(2024, 10, 30, 15, 47, 24, tzinfo=UTC)
