"""HTTP transport module."""

from .http_sender import HTTPSender, SenderConfig, UploadResponse, error_from_response

__all__ = ["HTTPSender", "SenderConfig", "UploadResponse", "error_from_response"]
