"""Core client components: events, normalizer, errors and the public client."""

from .client import Analytics
from .errors import TransportError, ValidationError, ZhugeError
from .event_normalizer import LIBRARY, RULES, EventNormalizer, validate
from .events import EventBatch, EventType, NormalizedRecord, PendingItem

__all__ = [
    # Event model
    "EventBatch",
    "EventType",
    "NormalizedRecord",
    "PendingItem",
    # Normalizer
    "EventNormalizer",
    "LIBRARY",
    "RULES",
    "validate",
    # Errors
    "TransportError",
    "ValidationError",
    "ZhugeError",
    # Client
    "Analytics",
]
