"""单记录写入的事务封装

附件记录与消息记录各自独立提交：两次写入之间没有跨表事务，
消息写入失败时已提交的附件记录会保留（由 reconcile 模块对账）。

同一连接上的事务是连接级的：commit/rollback 会作用于该连接上所有
未提交的写入。所有写入 + 提交步骤因此在连接级写锁内串行执行，
一次提交的回滚不会丢弃并发提交的写入。
"""

import asyncio
import weakref

import aiosqlite

from ..models.attachment import AttachmentRecord
from ..models.message import MessageRecord
from .attachment_store import SqliteAttachmentStore
from .message_store import SqliteMessageStore

_write_locks: "weakref.WeakKeyDictionary[aiosqlite.Connection, asyncio.Lock]" = (
    weakref.WeakKeyDictionary()
)


def connection_write_lock(conn: aiosqlite.Connection) -> asyncio.Lock:
    """返回连接对应的写锁（每个连接一把）"""
    lock = _write_locks.get(conn)
    if lock is None:
        lock = asyncio.Lock()
        _write_locks[conn] = lock
    return lock


async def persist_attachment(
    conn: aiosqlite.Connection,
    attachment_store: SqliteAttachmentStore,
    record: AttachmentRecord,
) -> None:
    """写入并提交一条附件记录

    Raises:
        Exception: 如果写入或提交失败，自动回滚后抛出
    """
    async with connection_write_lock(conn):
        try:
            await attachment_store.create_attachment(record)
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise


async def persist_message(
    conn: aiosqlite.Connection,
    message_store: SqliteMessageStore,
    record: MessageRecord,
) -> None:
    """写入并提交一条消息记录

    Raises:
        Exception: 如果写入或提交失败，自动回滚后抛出
    """
    async with connection_write_lock(conn):
        try:
            await message_store.create_message(record)
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
