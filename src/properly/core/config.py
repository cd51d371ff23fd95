"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、本地上传目录、消息体大小上限等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("PROPERLY_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "PROPERLY_DB_PATH",
        str(_get_base_dir() / "sqlite" / "properly.db"),
    )


def get_uploads_dir() -> Path:
    """获取本地附件存储目录（local 存储模式）"""
    return Path(
        os.environ.get(
            "PROPERLY_UPLOADS_DIR",
            str(_get_base_dir() / "uploads"),
        )
    )


def get_max_submission_bytes() -> int:
    """获取单次消息提交序列化后的最大字节数（默认 27 MiB）"""
    return int(
        os.environ.get("PROPERLY_MAX_SUBMISSION_BYTES", str(MAX_SUBMISSION_BYTES))
    )


# 消息提交序列化后的大小上限：27 MiB
MAX_SUBMISSION_BYTES: int = 27 * 1024 * 1024

# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(
    os.environ.get("PROPERLY_SSE_HEARTBEAT_INTERVAL", "15")
)

# 实时广播的固定频道与事件名
CHAT_CHANNEL: str = "chat-app"
NEW_MESSAGE_EVENT: str = "new-message"

# 附件上传的固定目标目录
UPLOAD_FOLDER: str = "uploads"

# 会话历史默认分页大小
HISTORY_PAGE_SIZE: int = 50
