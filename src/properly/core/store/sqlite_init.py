"""SQLite 数据库初始化

PRAGMA 配置 + 两张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# attachments 表 DDL（files 为 JSON 数组，保持提交顺序）
_ATTACHMENTS_DDL = """
CREATE TABLE IF NOT EXISTS attachments (
    attachment_id  TEXT PRIMARY KEY,
    files          TEXT NOT NULL DEFAULT '[]',
    created_at     TEXT NOT NULL
);
"""

# messages 表 DDL
_MESSAGES_DDL = """
CREATE TABLE IF NOT EXISTS messages (
    message_id     TEXT PRIMARY KEY,
    sender_id      TEXT NOT NULL,
    receiver_id    TEXT NOT NULL,
    content        TEXT NOT NULL DEFAULT '',
    timestamp      TEXT NOT NULL,
    attachment_id  TEXT,

    FOREIGN KEY (attachment_id) REFERENCES attachments(attachment_id)
);
"""

_MESSAGES_INDEXES = [
    # 会话查询：双方 ID + 时间排序
    (
        "CREATE INDEX IF NOT EXISTS idx_messages_pair_ts "
        "ON messages(sender_id, receiver_id, timestamp);"
    ),
    "CREATE INDEX IF NOT EXISTS idx_messages_attachment_id ON messages(attachment_id);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    await conn.execute(_ATTACHMENTS_DDL)
    await conn.execute(_MESSAGES_DDL)

    for idx_sql in _MESSAGES_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
