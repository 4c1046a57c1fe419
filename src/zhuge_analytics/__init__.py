"""Zhuge analytics client - batched identify/track/page delivery."""

from loguru import logger

from .config import AppCredentials, ClientConfig, load_config, setup_logging
from .core import Analytics, EventBatch, EventType, NormalizedRecord, TransportError, ValidationError, ZhugeError
from .version import VERSION as __version__

# Silent unless the application opts in through setup_logging().
logger.disable("zhuge_analytics")

__all__ = [
    "Analytics",
    "AppCredentials",
    "ClientConfig",
    "EventBatch",
    "EventType",
    "NormalizedRecord",
    "TransportError",
    "ValidationError",
    "ZhugeError",
    "load_config",
    "setup_logging",
]
