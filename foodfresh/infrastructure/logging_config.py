"""Logging setup: stdlib root handler plus structlog rendering."""

import logging
from typing import Optional

import structlog

from foodfresh.infrastructure.config import get_log_level


def configure_logging(level: Optional[str] = None, *, json_output: bool = False) -> None:
    """
    Configure stdlib logging and structlog.

    Args:
        level: Level name (default: LOG_LEVEL env var)
        json_output: Render JSON lines instead of console output
    """
    level_name = (level or get_log_level()).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    renderer = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
    )
