"""Properly Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .attachment import AttachmentFile, AttachmentRecord
from .enums import (
    TERMINAL_STAGES,
    VALID_STAGE_TRANSITIONS,
    SendStage,
    validate_stage_transition,
)
from .message import MessageRecord, normalize_timestamp
from .payloads import BroadcastEvent, NotificationRequest
from .results import (
    EMPTY_MESSAGE_ERROR,
    GENERIC_ERROR,
    MESSAGE_SENT,
    SIZE_LIMIT_ERROR,
    UPLOAD_FAILED_ERROR,
    AllSucceeded,
    AnyFailed,
    SendResult,
    UploadOutcome,
)
from .submission import AttachmentUpload, MessageSubmission

__all__ = [
    # 枚举 / 状态机
    "SendStage",
    "VALID_STAGE_TRANSITIONS",
    "TERMINAL_STAGES",
    "validate_stage_transition",
    # 提交
    "MessageSubmission",
    "AttachmentUpload",
    # 记录
    "AttachmentFile",
    "AttachmentRecord",
    "MessageRecord",
    "normalize_timestamp",
    # 出站 payload
    "BroadcastEvent",
    "NotificationRequest",
    # 结果
    "SendResult",
    "UploadOutcome",
    "AllSucceeded",
    "AnyFailed",
    "MESSAGE_SENT",
    "SIZE_LIMIT_ERROR",
    "EMPTY_MESSAGE_ERROR",
    "UPLOAD_FAILED_ERROR",
    "GENERIC_ERROR",
]
