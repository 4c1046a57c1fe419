"""HTTP sender for transmitting event batches to the collection endpoint.

This module posts one JSON batch per call with basic authentication, optional
proxy routing and transparent retry of transient network failures. Failures
are returned as TransportError values, never raised.
"""

from __future__ import annotations

import base64
import json
import socket
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.request import OpenerDirector, ProxyHandler, Request, build_opener

import pydantic
from loguru import logger
from pydantic import BaseModel, ConfigDict

from ..config.settings import DEFAULT_HOST, UPLOAD_ENDPOINT
from ..core.errors import TransportError
from ..core.events import EventBatch
from ..version import VERSION

# Gateway failures are retried like dropped connections; anything else is final.
RETRY_STATUSES = frozenset({502, 503, 504})


@dataclass
class SenderConfig:
    """Configuration for the HTTP sender."""

    upload_url: str = DEFAULT_HOST + UPLOAD_ENDPOINT
    write_key: str = ""
    proxy: Optional[str] = None

    # HTTP settings
    timeout_seconds: float = 15.0
    max_attempts: int = 3
    retry_backoff_base: float = 0.5
    retry_backoff_max: float = 5.0


class UploadResponse(BaseModel):
    """Body returned by the collection endpoint."""

    model_config = ConfigDict(extra="allow")

    return_code: Optional[int] = None
    return_message: Optional[str] = None


class _RetryableError(Exception):
    def __init__(self, error: TransportError):
        super().__init__(error.message)
        self.error = error


def error_from_response(status: int, text: str) -> Optional[TransportError]:
    """Derive the batch outcome from an HTTP response.

    Returns:
        None when the body reports ``return_code`` 0, otherwise a TransportError
        carrying the remote ``return_message`` or a generic status description
    """
    try:
        body: Optional[UploadResponse] = UploadResponse.model_validate_json(text)
    except pydantic.ValidationError:
        body = None

    if body is not None and body.return_code == 0:
        return None

    message = (body.return_message if body else None) or f"{status} {text}".strip()
    return TransportError(message, status=status, return_code=body.return_code if body else None)


class HTTPSender:
    """HTTP sender for transmitting event batches."""

    def __init__(self, config: Optional[SenderConfig] = None):
        """Initialize the HTTP sender.

        Args:
            config: Sender configuration
        """
        self.config = config or SenderConfig()
        self._opener = self._build_opener()
        self._auth_header = "Basic " + base64.b64encode(f"{self.config.write_key}:".encode("utf-8")).decode("ascii")

        # Statistics, updated from the delivery worker and read from any thread
        self._lock = threading.Lock()
        self._total_batches_sent = 0
        self._total_batches_failed = 0
        self._total_records_sent = 0
        self._total_retries = 0
        self._last_successful_send: Optional[datetime] = None
        self._last_error: Optional[str] = None

    def send_batch(self, batch: EventBatch) -> Optional[TransportError]:
        """Send a batch to the collection endpoint.

        Args:
            batch: Event batch to send

        Returns:
            None on success, otherwise the TransportError describing the failure
        """
        start_time = time.time()

        try:
            payload = batch.to_dict()
            body = json.dumps(payload, default=_json_default).encode("utf-8")
            error = self._send_with_retries(body)
        except Exception as e:
            error = TransportError(f"Unexpected error sending batch: {e}")
            logger.exception(error.message)

        send_time = time.time() - start_time
        if error is None:
            with self._lock:
                self._total_batches_sent += 1
                self._total_records_sent += batch.size()
                self._last_successful_send = datetime.now()
                self._last_error = None
            logger.info(f"Sent batch of {batch.size()} records in {send_time:.2f}s")
        else:
            with self._lock:
                self._total_batches_failed += 1
                self._last_error = error.message
            logger.error(f"Failed to send batch of {batch.size()} records: {error.message}")

        return error

    def get_stats(self) -> Dict[str, Any]:
        """Get sender statistics."""
        with self._lock:
            return {
                "total_batches_sent": self._total_batches_sent,
                "total_batches_failed": self._total_batches_failed,
                "total_records_sent": self._total_records_sent,
                "total_retries": self._total_retries,
                "last_successful_send": self._last_successful_send.isoformat() if self._last_successful_send else None,
                "last_error": self._last_error,
            }

    def _build_opener(self) -> OpenerDirector:
        if self.config.proxy:
            return build_opener(ProxyHandler({"http": self.config.proxy, "https": self.config.proxy}))
        # Only the configured proxy is used, never one from the environment.
        return build_opener(ProxyHandler({}))

    def _send_with_retries(self, body: bytes) -> Optional[TransportError]:
        """Post ``body``, retrying transient failures up to ``max_attempts`` times."""
        attempts = max(1, self.config.max_attempts)
        last_error: Optional[TransportError] = None

        for attempt in range(attempts):
            try:
                status, text = self._send_request(body)
                return error_from_response(status, text)
            except _RetryableError as e:
                last_error = e.error

            if attempt < attempts - 1:
                delay = min(self.config.retry_backoff_base * (2**attempt), self.config.retry_backoff_max)
                logger.warning(f"Send attempt {attempt + 1} failed: {last_error.message}. Retrying in {delay:.1f}s...")
                with self._lock:
                    self._total_retries += 1
                time.sleep(delay)

        return last_error

    def _send_request(self, body: bytes) -> Tuple[int, str]:
        """Send a single HTTP request.

        Returns:
            Tuple of (status, response_text)

        Raises:
            _RetryableError: on network failure or a gateway status
        """
        req = Request(
            self.config.upload_url,
            data=body,
            method="POST",
            headers={
                "Content-Type": "application/json",
                "Authorization": self._auth_header,
                "User-Agent": f"zhuge-python/{VERSION}",
            },
        )

        try:
            with self._opener.open(req, timeout=self.config.timeout_seconds) as response:
                status = response.status
                text = response.read().decode("utf-8", errors="replace")

        except HTTPError as e:
            status = e.code
            text = e.read().decode("utf-8", errors="replace") if e.fp else ""
            e.close()

        except URLError as e:
            raise _RetryableError(TransportError(f"Network error: {e.reason}")) from e

        except (socket.timeout, ConnectionError) as e:
            raise _RetryableError(TransportError(f"Network error: {e}")) from e

        logger.debug(f"Upload response: {status} {text}")
        if status in RETRY_STATUSES:
            raise _RetryableError(TransportError(f"{status} {text}".strip(), status=status))

        return status, text


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
