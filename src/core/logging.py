"""
Logging configuration.

structlog handles all application logging. Values bound with
``structlog.contextvars`` (such as the request ID) are merged into every
event. The stdlib ``logging`` module is configured with the same level
so SQLAlchemy and uvicorn output lands in the same stream.

Usage:
    from src.core.logging import configure_logging
    configure_logging(level="INFO", fmt="json")

    logger = structlog.get_logger(__name__)
    logger.info("role_upserted", role_id="editor", app_id="blog")
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure structlog and the stdlib root logger."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stdout,
        force=True,
    )

    renderer: Any
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
