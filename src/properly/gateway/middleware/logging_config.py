"""日志配置 -- structlog + 标准库 logging 统一输出

PROPERLY_LOG_FORMAT 选择渲染器（dev 控制台 / json），PROPERLY_LOG_LEVEL 设置级别。
出站客户端（httpx、boto3）的逐请求日志压到 WARNING；
事件字段中的凭据（Pusher / Beams / S3 secret、Authorization 头）统一打码。
Logfire APM 由 LOGFIRE_SEND_TO_LOGFIRE 控制，默认关闭。
"""

import logging
import os

import structlog
from fastapi import FastAPI
from structlog.typing import EventDict, Processor, WrappedLogger

# 逐请求刷日志的第三方 logger
NOISY_LOGGERS = ("httpx", "httpcore", "botocore", "boto3", "s3transfer")

# 需要打码的事件字段（小写比较）
REDACTED_KEYS = frozenset(
    {
        "authorization",
        "secret",
        "secret_key",
        "pusher_secret",
        "beams_secret_key",
        "s3_secret_key",
    }
)
REDACTED = "***"


def redact_secrets(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """把凭据字段替换为占位符"""
    for key in event_dict:
        if key.lower() in REDACTED_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def build_renderer(log_format: str) -> Processor:
    """json -> JSONRenderer；其余 -> 控制台渲染"""
    if log_format == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def setup_logging() -> None:
    """初始化 structlog 与标准库 logging"""
    log_format = os.environ.get("PROPERLY_LOG_FORMAT", "dev").lower()
    level = logging.getLevelNamesMapping().get(
        os.environ.get("PROPERLY_LOG_LEVEL", "INFO").upper(), logging.INFO
    )

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # uvicorn / httpx / boto3 等标准库日志也走同一渲染器
    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=build_renderer(log_format),
            foreign_pre_chain=pre_chain,
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def setup_logfire(app: FastAPI) -> None:
    """LOGFIRE_SEND_TO_LOGFIRE=true 时启用 Logfire（需安装 apm extra）"""
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return
    try:
        import logfire

        logfire.configure()
        logfire.instrument_fastapi(app)
        logfire.instrument_httpx()
    except Exception as e:
        structlog.get_logger().warning(
            "logfire_init_failed",
            error_type=type(e).__name__,
            error=str(e),
        )
