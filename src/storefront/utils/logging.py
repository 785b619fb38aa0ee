"""Logging setup for the storefront context.

Everything logs through structlog with keyword fields. The level comes from
``STOREFRONT_LOG_LEVEL`` (default INFO); Protean's own chatter is kept at
WARNING and above.
"""

import logging
import os

import structlog


def configure_logging(level: str | None = None) -> None:
    level_name = (level or os.environ.get("STOREFRONT_LOG_LEVEL", "INFO")).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=False,
    )

    logging.getLogger("protean").setLevel(logging.WARNING)


def get_logger(name: str):
    return structlog.get_logger(name)
