"""Error types raised or delivered by the Zhuge analytics client."""

from __future__ import annotations

from typing import Optional


class ZhugeError(Exception):
    """Base class for all client errors."""


class ValidationError(ZhugeError, ValueError):
    """A message violated the caller-input contract. Raised synchronously, never enqueued."""


class TransportError(ZhugeError):
    """A batch could not be delivered.

    Only ever handed to callbacks; the client never raises it.
    """

    def __init__(self, message: str, status: Optional[int] = None, return_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.return_code = return_code
