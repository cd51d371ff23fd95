"""Store Protocol 接口定义

定义 AttachmentStore、MessageStore 的抽象接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from typing import Protocol

from ..models.attachment import AttachmentRecord
from ..models.message import MessageRecord


class AttachmentStore(Protocol):
    """附件记录存储接口"""

    async def create_attachment(self, record: AttachmentRecord) -> None:
        """插入附件记录"""
        ...

    async def get_attachment(self, attachment_id: str) -> AttachmentRecord | None:
        """根据 attachment_id 查询附件记录"""
        ...

    async def get_attachments(
        self, attachment_ids: list[str]
    ) -> dict[str, AttachmentRecord]:
        """批量查询附件记录"""
        ...

    async def list_unreferenced(self) -> list[AttachmentRecord]:
        """查询无消息引用的附件记录"""
        ...


class MessageStore(Protocol):
    """消息记录存储接口"""

    async def create_message(self, record: MessageRecord) -> None:
        """插入消息记录"""
        ...

    async def get_message(self, message_id: str) -> MessageRecord | None:
        """根据 message_id 查询消息"""
        ...

    async def list_conversation(
        self,
        user_id: str,
        peer_id: str,
        limit: int = 50,
        before: MessageRecord | None = None,
    ) -> list[MessageRecord]:
        """查询两个用户之间的会话"""
        ...
