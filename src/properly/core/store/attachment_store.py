"""AttachmentStore SQLite 实现

附件记录只插入、不更新、不删除。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.attachment import AttachmentFile, AttachmentRecord

_COLUMNS = "attachment_id, files, created_at"


class SqliteAttachmentStore:
    """AttachmentStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_attachment(self, record: AttachmentRecord) -> None:
        """插入附件记录

        注意：此方法不自动提交事务，需由调用方管理事务。
        """
        files_json = json.dumps(
            [f.model_dump() for f in record.files],
            ensure_ascii=False,
        )
        await self._conn.execute(
            f"INSERT INTO attachments ({_COLUMNS}) VALUES (?, ?, ?)",
            (
                record.attachment_id,
                files_json,
                record.created_at.isoformat(timespec="microseconds"),
            ),
        )

    async def get_attachment(self, attachment_id: str) -> AttachmentRecord | None:
        """根据 attachment_id 查询附件记录"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM attachments WHERE attachment_id = ?",
            (attachment_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_attachment(row)

    async def get_attachments(self, attachment_ids: list[str]) -> dict[str, AttachmentRecord]:
        """批量查询附件记录，返回 attachment_id -> AttachmentRecord"""
        if not attachment_ids:
            return {}
        placeholders = ", ".join("?" for _ in attachment_ids)
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM attachments WHERE attachment_id IN ({placeholders})",
            tuple(attachment_ids),
        )
        rows = await cursor.fetchall()
        records = [self._row_to_attachment(row) for row in rows]
        return {r.attachment_id: r for r in records}

    async def list_unreferenced(self) -> list[AttachmentRecord]:
        """查询没有任何消息引用的附件记录（消息落盘失败留下的孤儿）"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM attachments a
            WHERE NOT EXISTS (
                SELECT 1 FROM messages m WHERE m.attachment_id = a.attachment_id
            )
            ORDER BY created_at ASC
            """
        )
        rows = await cursor.fetchall()
        return [self._row_to_attachment(row) for row in rows]

    @staticmethod
    def _row_to_attachment(row: aiosqlite.Row) -> AttachmentRecord:
        """将数据库行转换为 AttachmentRecord 模型"""
        files_data = json.loads(row[1]) if row[1] else []
        return AttachmentRecord(
            attachment_id=row[0],
            files=[AttachmentFile(**f) for f in files_data],
            created_at=datetime.fromisoformat(row[2]),
        )
