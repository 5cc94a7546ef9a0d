#!/usr/bin/env python3
"""
Dedup sweeper - structlog configuration.

Centralised structlog setup, JSON for machines or console for humans.

Usage:
    from config.logging import configure_logging

    # Once, at program start
    configure_logging()

    # In modules
    import structlog
    logger = structlog.get_logger(__name__)
    logger.info("message", key=value)
"""

import logging
import sys

import structlog
from structlog.types import EventDict, WrappedLogger

APP_NAME = "dedup-sweep"


def add_app_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add the application name to every log entry."""
    event_dict["app"] = APP_NAME
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    enable_colors: bool = False,
) -> None:
    """
    Configure structlog for the sweeper.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: If True, logs are JSON lines. If False, human-readable
        enable_colors: Colorize console output (ignored for JSON)

    Example:
        >>> configure_logging(level="DEBUG", json_format=False, enable_colors=True)
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
        force=True,
    )

    processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=enable_colors))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
