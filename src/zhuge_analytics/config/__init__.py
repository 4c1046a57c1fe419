"""Configuration module for the Zhuge analytics client."""

from .logger_config import setup_logging
from .settings import DEFAULT_HOST, AppCredentials, ClientConfig, load_config, resolve_write_key

__all__ = ["AppCredentials", "ClientConfig", "DEFAULT_HOST", "load_config", "resolve_write_key", "setup_logging"]
