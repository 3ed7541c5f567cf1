"""Logging setup for applications embedding the container.

Every module logs through ``structlog.get_logger(__name__)`` with event names
and keyword fields. The library never configures logging itself; applications
that want the container's events rendered call :func:`configure_logging` once
at startup.

Usage:
    from beanery.log import LoggingConfig, configure_logging

    configure_logging(LoggingConfig(level="DEBUG", json_format=False))
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Optional

import structlog

__all__ = ["LoggingConfig", "configure_logging"]


@dataclass
class LoggingConfig:
    """Configuration for structured logging."""

    level: str = field(
        default_factory=lambda: os.getenv("BEANERY_LOG_LEVEL", "INFO").upper()
    )
    json_format: bool = field(
        default_factory=lambda: os.getenv("BEANERY_LOG_FORMAT", "console").lower()
        == "json"
    )


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Route structlog events through stdlib logging with a console or JSON renderer.

    Args:
        config: Logging configuration. Uses environment defaults if not provided.
    """
    config = config or LoggingConfig()
    level = logging.getLevelName(config.level)
    if not isinstance(level, int):
        raise ValueError(f"unknown log level: {config.level}")

    renderer = (
        structlog.processors.JSONRenderer()
        if config.json_format
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))

    package_logger = logging.getLogger("beanery")
    package_logger.setLevel(level)
    for existing in package_logger.handlers[:]:
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.propagate = False
