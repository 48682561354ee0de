from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

from authsync.config import Settings


def setup_logging(
    log_level: str = "INFO", debug: bool = False, stream: TextIO = sys.stderr
) -> None:
    """Route structlog through stdlib logging. Library output goes to stderr by default."""
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=stream, level=level)


def setup_logging_from_settings(settings: Settings) -> None:
    setup_logging(log_level=settings.LOG_LEVEL, debug=settings.DEBUG)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
