"""Logging configuration utilities."""

import logging
from typing import List, Optional


def setup_logging(
    level: str = "INFO",
    format_string: Optional[str] = None,
    quiet_loggers: Optional[List[str]] = None,
) -> None:
    """Configure logging for the bridge.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        format_string: Custom format string for log messages.
        quiet_loggers: List of logger names to set to WARNING level.
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Convert string to logging level
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=format_string,
    )

    # Quiet down verbose third-party loggers
    default_quiet = ["aiohttp", "asyncio", "paho"]
    quiet_loggers = (quiet_loggers or []) + default_quiet

    for logger_name in quiet_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

