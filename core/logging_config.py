"""
Structlog 日志配置模块

structlog 与标准库 logging 共用一条处理链：应用事件和 uvicorn/httpx 的日志
都经由 ProcessorFormatter 渲染，DEBUG 下输出彩色控制台格式，否则输出单行 JSON。
"""
import json
import logging
from typing import Any, Optional

import structlog
from structlog.contextvars import merge_contextvars
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer, TimeStamper, add_log_level
from structlog.stdlib import ProcessorFormatter

from core.config import settings

# 第三方库日志过于啰嗦（每次 WebDAV 请求都会输出），统一压到 WARNING
_NOISY_LOGGERS = ("httpx", "httpcore", "multipart")

# 事件字段中出现这些键时只输出掩码（WebDAV 凭据不能落到日志里）
_SECRET_KEYS = frozenset({"password", "authorization", "auth", "credentials"})
_MASK = "***"


def redact_secrets(_logger: Any, _method: str, event_dict: dict) -> dict:
    for key in event_dict.keys() & _SECRET_KEYS:
        event_dict[key] = _MASK
    headers = event_dict.get("headers")
    if isinstance(headers, dict):
        event_dict["headers"] = {
            k: (_MASK if k.lower() in _SECRET_KEYS else v) for k, v in headers.items()
        }
    return event_dict


def get_renderer(debug: bool) -> Any:
    if debug:
        return ConsoleRenderer(colors=True)

    # structlog 会把 default 等关键字传给 serializer；中文文件名原样输出
    def _dumps(obj, default=None, **kwargs):
        return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)

    return JSONRenderer(serializer=_dumps)


def _resolve_level(level: Optional[str], debug: bool) -> int:
    if level:
        resolved = logging.getLevelName(level.upper())
        if isinstance(resolved, int):
            return resolved
    return logging.DEBUG if debug else logging.INFO


def configure_logging(debug: Optional[bool] = None, level: Optional[str] = None) -> None:
    """
    配置 structlog 并桥接标准库 logging

    Args:
        debug: 是否使用控制台渲染，默认取 settings.DEBUG
        level: 根日志级别名（INFO/WARNING ...），默认取 settings.LOG_LEVEL
    """
    debug = settings.DEBUG if debug is None else debug
    level = settings.LOG_LEVEL if level is None else level

    shared_pre_chain: list[Any] = [
        merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso", utc=True),
        redact_secrets,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*shared_pre_chain, ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        ProcessorFormatter(
            foreign_pre_chain=shared_pre_chain,
            processors=[ProcessorFormatter.remove_processors_meta, get_renderer(debug)],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_resolve_level(level, debug))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """获取 structlog logger 实例。"""
    return structlog.get_logger(name)


# 初始化配置
configure_logging()
