"""MessageStore SQLite 实现

消息记录只插入、不更新。时间戳以 UTC ISO 字符串存储，
同一格式下字典序即时间序。
"""

from datetime import datetime

import aiosqlite

from ..models.message import MessageRecord

_COLUMNS = "message_id, sender_id, receiver_id, content, timestamp, attachment_id"


class SqliteMessageStore:
    """MessageStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_message(self, record: MessageRecord) -> None:
        """插入消息记录

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        await self._conn.execute(
            f"INSERT INTO messages ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
            (
                record.message_id,
                record.sender_id,
                record.receiver_id,
                record.content,
                record.timestamp.isoformat(timespec="microseconds"),
                record.attachment_id,
            ),
        )

    async def get_message(self, message_id: str) -> MessageRecord | None:
        """根据 message_id 查询消息"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM messages WHERE message_id = ?",
            (message_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_message(row)

    async def list_conversation(
        self,
        user_id: str,
        peer_id: str,
        limit: int = 50,
        before: MessageRecord | None = None,
    ) -> list[MessageRecord]:
        """查询两个用户之间的会话（双向），按时间正序返回

        Args:
            user_id: 一方用户 ID
            peer_id: 另一方用户 ID
            limit: 最多返回条数
            before: 游标消息，仅返回严格早于它的消息
        """
        params: list = [user_id, peer_id, peer_id, user_id]
        cursor_clause = ""
        if before is not None:
            ts = before.timestamp.isoformat(timespec="microseconds")
            cursor_clause = (
                "AND (timestamp < ? OR (timestamp = ? AND message_id < ?))"
            )
            params.extend([ts, ts, before.message_id])
        params.append(limit)

        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM messages
            WHERE ((sender_id = ? AND receiver_id = ?)
                OR (sender_id = ? AND receiver_id = ?))
            {cursor_clause}
            ORDER BY timestamp DESC, message_id DESC
            LIMIT ?
            """,
            tuple(params),
        )
        rows = await cursor.fetchall()
        messages = [self._row_to_message(row) for row in rows]
        messages.reverse()
        return messages

    async def count_messages(self) -> int:
        cursor = await self._conn.execute("SELECT COUNT(*) FROM messages")
        row = await cursor.fetchone()
        return row[0] if row else 0

    @staticmethod
    def _row_to_message(row: aiosqlite.Row) -> MessageRecord:
        """将数据库行转换为 MessageRecord 模型"""
        return MessageRecord(
            message_id=row[0],
            sender_id=row[1],
            receiver_id=row[2],
            content=row[3],
            timestamp=datetime.fromisoformat(row[4]),
            attachment_id=row[5],
        )
