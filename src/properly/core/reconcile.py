"""孤儿资源对账模块

发送流程在上传、附件落盘、消息落盘之间没有跨服务事务：
消息写入失败时会留下无人引用的附件记录及其已上传的文件。
此模块找出这些记录，供人工或自动清理。
"""

import time

import aiosqlite
import structlog
from pydantic import BaseModel, Field

from .models.attachment import AttachmentRecord
from .store.attachment_store import SqliteAttachmentStore

log = structlog.get_logger()


class OrphanReport(BaseModel):
    """对账结果"""

    attachments: list[AttachmentRecord] = Field(default_factory=list)

    @property
    def urls(self) -> list[str]:
        """所有孤儿附件引用的存储 URL"""
        return [f.url for record in self.attachments for f in record.files]


async def find_orphaned_attachments(conn: aiosqlite.Connection) -> OrphanReport:
    """查询所有无消息引用的附件记录

    Args:
        conn: 已初始化的数据库连接

    Returns:
        OrphanReport
    """
    start = time.monotonic()
    store = SqliteAttachmentStore(conn)
    orphans = await store.list_unreferenced()
    report = OrphanReport(attachments=orphans)

    log.info(
        "orphan_scan_completed",
        orphan_count=len(orphans),
        url_count=len(report.urls),
        duration_ms=int((time.monotonic() - start) * 1000),
    )
    return report
