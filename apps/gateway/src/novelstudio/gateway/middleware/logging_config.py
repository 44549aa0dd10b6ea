"""structlog 配置模块

dev 模式：pretty print 可读输出
json 模式：结构化 JSON 输出
标准库 logging（uvicorn / httpx）经 ProcessorFormatter 统一渲染。
所有输出先经过 redact_secrets，API Key 与鉴权头不会出现在日志中。
"""

import logging
import os
import re
from collections.abc import Mapping
from typing import Any

import structlog

REDACTED = "***"

_SECRET_KEYS = frozenset({"api_key", "authorization", "password", "token", "secret"})
_BEARER_RE = re.compile(r"(Bearer\s+)[^\s\"',]+", re.IGNORECASE)


def _is_secret_key(key: str) -> bool:
    name = key.lower().replace("-", "_")
    return name in _SECRET_KEYS or name.endswith(("_api_key", "_token", "_secret"))


def _redact(value: Any) -> Any:
    if isinstance(value, str):
        return _BEARER_RE.sub(rf"\g<1>{REDACTED}", value)
    if isinstance(value, Mapping):
        return {
            k: REDACTED if isinstance(k, str) and _is_secret_key(k) else _redact(v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_redact(v) for v in value]
    if isinstance(value, tuple):
        return tuple(_redact(v) for v in value)
    return value


def redact_secrets(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """把凭证类字段替换为 ***，并遮蔽字符串中的 Bearer token（含嵌套的 headers 等映射）"""
    for key, value in event_dict.items():
        if _is_secret_key(key):
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _redact(value)
    return event_dict


def setup_logging() -> None:
    """初始化 structlog 配置

    根据 NOVELSTUDIO_LOG_FORMAT 环境变量选择渲染模式：
    - "json": 结构化 JSON 输出（生产环境）
    - "dev" (默认): pretty print 可读输出
    """
    log_format = os.environ.get("NOVELSTUDIO_LOG_FORMAT", "dev")
    log_level = os.environ.get("NOVELSTUDIO_LOG_LEVEL", "INFO")

    # 基础处理器链
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # httpx 每个请求一条 INFO，流式场景下过于嘈杂
    logging.getLogger("httpx").setLevel(logging.WARNING)
