"""
结构化日志配置

基于 structlog：
- development: 人类可读的控制台输出
- production: JSON lines 输出到 stdout

环境变量：
- LOG_FORMAT: json / console
- LOG_LEVEL: DEBUG / INFO / WARNING / ERROR
"""

import logging
import sys

import structlog

from talofix.core.config import settings


def setup_logging() -> None:
    """初始化日志（应用启动时调用一次）"""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.LOG_FORMAT == "json":
        renderer = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=shared_processors + renderer,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=not settings.is_test,
    )


def get_logger(name: str):
    """获取 logger"""
    return structlog.get_logger(name)
