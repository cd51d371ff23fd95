"""Properly Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

from pathlib import Path

import aiosqlite

from .attachment_store import SqliteAttachmentStore
from .message_store import SqliteMessageStore
from .sqlite_init import init_db
from .transaction import connection_write_lock, persist_attachment, persist_message


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.attachment_store = SqliteAttachmentStore(conn)
        self.message_store = SqliteMessageStore(conn)
        # 所有写入 + 提交步骤共用的连接级写锁
        self.write_lock = connection_write_lock(conn)


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteAttachmentStore",
    "SqliteMessageStore",
    "init_db",
    "connection_write_lock",
    "persist_attachment",
    "persist_message",
]
