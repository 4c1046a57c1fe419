"""Configuration management for the Zhuge analytics client.

Options are resolved once, when the client is built: explicit arguments win
over ``ZHUGE_*`` environment variables, which win over the defaults below.
The resulting ClientConfig is immutable.
"""

from __future__ import annotations

import base64
import math
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_HOST = "https://apipool.zhugeio.com"
UPLOAD_ENDPOINT = "/open/v1/event_statis_srv/upload_event"
DEFAULT_FLUSH_AT = 20
DEFAULT_FLUSH_AFTER_MS = 10000


class AppCredentials(BaseModel):
    """An ``appid``/``secret`` pair accepted in place of a plain write key."""

    model_config = ConfigDict(str_strip_whitespace=True, coerce_numbers_to_str=True, extra="forbid")

    appid: str = Field(..., min_length=1, description="Application identifier")
    secret: str = Field(..., min_length=1, description="Application secret")

    def to_write_key(self) -> str:
        """Encode as base64(``appid:secret``)."""
        return base64.b64encode(f"{self.appid}:{self.secret}".encode("utf-8")).decode("ascii")


WriteKey = Union[str, AppCredentials, Mapping]


@dataclass(frozen=True)
class ClientConfig:
    """Resolved, immutable client configuration."""

    write_key: str
    host: str = DEFAULT_HOST
    flush_at: float = DEFAULT_FLUSH_AT  # may be math.inf
    flush_after: Optional[float] = DEFAULT_FLUSH_AFTER_MS  # milliseconds, None = disabled
    proxy: Optional[str] = None
    app_key: Optional[str] = None

    # Transport settings
    timeout_seconds: float = 15.0
    max_attempts: int = 3
    retry_backoff_base: float = 0.5
    retry_backoff_max: float = 5.0

    @property
    def flush_after_seconds(self) -> Optional[float]:
        """Debounce delay in seconds, or None when the timer is disabled."""
        if self.flush_after is None:
            return None
        return self.flush_after / 1000.0

    @property
    def upload_url(self) -> str:
        return self.host.rstrip("/") + UPLOAD_ENDPOINT

    def get_batcher_config(self) -> dict:
        """Get configuration for the event batcher."""
        return {
            "flush_at": self.flush_at,
            "flush_after_seconds": self.flush_after_seconds,
            "api_key": self.app_key,
        }

    def get_sender_config(self) -> dict:
        """Get configuration for the HTTP sender."""
        return {
            "upload_url": self.upload_url,
            "write_key": self.write_key,
            "proxy": self.proxy,
            "timeout_seconds": self.timeout_seconds,
            "max_attempts": self.max_attempts,
            "retry_backoff_base": self.retry_backoff_base,
            "retry_backoff_max": self.retry_backoff_max,
        }


def resolve_write_key(write_key: Any) -> tuple[str, Optional[str]]:
    """Turn a write key option into the basic-auth user name.

    Returns:
        Tuple of (encoded_write_key, appid or None)
    """
    if not write_key:
        raise ValueError("You must pass your Zhuge project's write key.")

    if isinstance(write_key, Mapping):
        write_key = AppCredentials.model_validate(dict(write_key))

    if isinstance(write_key, AppCredentials):
        return write_key.to_write_key(), write_key.appid

    return str(write_key), None


def coerce_flush_at(value: Any) -> float:
    """Apply the default and the floor of 1 to ``flush_at``."""
    if value is None:
        return DEFAULT_FLUSH_AT
    if value == math.inf:
        return math.inf
    return max(int(value), 1)


def coerce_flush_after(value: Any) -> Optional[float]:
    """Apply the default to ``flush_after``; falsy or non-finite values disable the timer."""
    if value is None:
        return DEFAULT_FLUSH_AFTER_MS
    if not value or not math.isfinite(value) or value < 0:
        return None
    return float(value)


def _env_number(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw}")
        return None


def load_config(
    write_key: WriteKey,
    host: Optional[str] = None,
    flush_at: Optional[float] = None,
    flush_after: Optional[float] = None,
    proxy: Optional[str] = None,
    app_key: Optional[str] = None,
    timeout_seconds: Optional[float] = None,
    max_attempts: Optional[int] = None,
    retry_backoff_base: Optional[float] = None,
    retry_backoff_max: Optional[float] = None,
) -> ClientConfig:
    """Build a ClientConfig from explicit options and environment overrides.

    Args:
        write_key: Plain write key, or an ``{"appid", "secret"}`` pair
        host: Collection endpoint base URL
        flush_at: Queue length that triggers an immediate flush (floor 1)
        flush_after: Inactivity delay in milliseconds before a flush; falsy disables
        proxy: HTTP(S) proxy URL
        app_key: Value sent as ``ak`` in every batch, defaults to the credential appid

    Returns:
        Resolved ClientConfig
    """
    encoded_key, appid = resolve_write_key(write_key)

    if host is None:
        host = os.getenv("ZHUGE_HOST") or DEFAULT_HOST

    if flush_at is None:
        env_flush_at = _env_number("ZHUGE_FLUSH_AT")
        flush_at = int(env_flush_at) if env_flush_at is not None else None

    if flush_after is None:
        flush_after = _env_number("ZHUGE_FLUSH_AFTER")

    if proxy is None:
        proxy = os.getenv("ZHUGE_PROXY") or None

    if timeout_seconds is None:
        timeout_seconds = _env_number("ZHUGE_TIMEOUT_SECONDS") or ClientConfig.timeout_seconds

    config = ClientConfig(
        write_key=encoded_key,
        host=host,
        flush_at=coerce_flush_at(flush_at),
        flush_after=coerce_flush_after(flush_after),
        proxy=proxy,
        app_key=app_key if app_key is not None else appid,
        timeout_seconds=timeout_seconds,
        max_attempts=max(int(max_attempts), 1) if max_attempts is not None else ClientConfig.max_attempts,
        retry_backoff_base=retry_backoff_base if retry_backoff_base is not None else ClientConfig.retry_backoff_base,
        retry_backoff_max=retry_backoff_max if retry_backoff_max is not None else ClientConfig.retry_backoff_max,
    )
    logger.debug(f"Loaded client config: host={config.host} flush_at={config.flush_at} flush_after={config.flush_after}")
    return config
