"""Logger configuration for applications embedding the client."""

import os
import sys
from typing import Any, Optional

from loguru import logger

LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"


def setup_logging(level: Optional[str] = None, sink: Any = None) -> int:
    """Enable the client's loguru output and attach a sink for it.

    The package disables its own logger on import so that a library does not
    write to an application's console uninvited. Calling this turns it back on.

    Args:
        level: Minimum level, defaults to ``ZHUGE_LOG_LEVEL`` or INFO
        sink: Any loguru sink, defaults to stderr

    Returns:
        The loguru handler id, for ``logger.remove``
    """
    level = level or os.getenv("ZHUGE_LOG_LEVEL", "INFO")

    logger.enable("zhuge_analytics")
    handler_id = logger.add(
        sink=sink if sink is not None else sys.stderr,
        format=LOG_FORMAT,
        level=level,
        colorize=sink is None,
        filter="zhuge_analytics",
        enqueue=True,  # Thread-safe logging
    )

    logger.info(f"Zhuge analytics logging enabled at {level}")
    return handler_id
