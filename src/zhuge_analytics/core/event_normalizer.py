"""Event normalizer for converting caller messages to wire-format records.

Validation is table driven: ``RULES`` maps each recognised message field to the
semantic types it may hold. The call-level contracts (identity, event name,
page category) are layered on top by the ``normalize_*`` helpers.
"""

from __future__ import annotations

import copy
import time
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple, Union

from loguru import logger

from ..version import VERSION
from .errors import ValidationError
from .events import EventType, NormalizedRecord

LIBRARY = {"name": "zhuge-python", "version": VERSION}

RULES: Dict[str, Tuple[str, ...]] = {
    "anonymousId": ("string", "number"),
    "category": ("string",),
    "context": ("object",),
    "event": ("string",),
    "groupId": ("string", "number"),
    "integrations": ("object",),
    "name": ("string",),
    "previousId": ("string", "number"),
    "timestamp": ("date", "number"),
    "userId": ("string", "number"),
}


def type_of(value: Any) -> str:
    """Return the semantic type name used by ``RULES``."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (datetime, date)):
        return "date"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _is_missing(value: Any) -> bool:
    return value is None or value == ""


def validate(message: Any) -> None:
    """Check ``message`` against the rule table.

    Raises:
        ValidationError: if the message is not a mapping or a field has the wrong type
    """
    if not isinstance(message, Mapping):
        raise ValidationError("message must be an object")

    for key, expected in RULES.items():
        value = message.get(key)
        if _is_missing(value):
            continue
        if type_of(value) not in expected:
            article = "an" if expected[0] == "object" else "a"
            raise ValidationError(f"{key} must be {article} {' or '.join(expected)}")


def _require_identity(message: Mapping) -> None:
    if _is_missing(message.get("anonymousId")) and _is_missing(message.get("userId")):
        raise ValidationError("missing identity")


class EventNormalizer:
    """Converts caller messages to standardized records."""

    @staticmethod
    def normalize(event_type: Union[EventType, str], message: Any, timestamp: Optional[int] = None) -> NormalizedRecord:
        """Validate ``message`` and reshape it into a NormalizedRecord.

        The caller's message is never mutated: properties and context are deep
        copied before the library context is merged in.

        Args:
            event_type: Wire tag for the record
            message: Caller-supplied mapping
            timestamp: Epoch seconds to stamp, defaults to now

        Returns:
            Standardized NormalizedRecord
        """
        validate(message)
        return EventNormalizer._build(event_type, message, timestamp)

    @staticmethod
    def _build(event_type: Union[EventType, str], message: Mapping, timestamp: Optional[int] = None) -> NormalizedRecord:
        # Callers have already run validate() on message.
        try:
            event_type = EventType(event_type)
        except ValueError:
            raise ValidationError(f"unknown event type {event_type!r}") from None

        source = message.get("traits") or message.get("properties") or {}
        if not isinstance(source, Mapping):
            raise ValidationError("properties must be an object")
        properties = copy.deepcopy(dict(source))

        nested_context = properties.get("context") or {}
        if not isinstance(nested_context, Mapping):
            raise ValidationError("properties.context must be an object")

        # Library identity wins on the "library" key; every other key is kept.
        context: Dict[str, Any] = {}
        context.update(nested_context)
        context.update(copy.deepcopy(message.get("context") or {}))
        context["library"] = dict(LIBRARY)
        properties["context"] = context

        record = NormalizedRecord(
            user_key=message.get("userId"),
            event_id=message.get("event"),
            timestamp_seconds=int(time.time()) if timestamp is None else timestamp,
            event_type=event_type,
            properties=properties,
        )
        logger.debug(f"Normalized {event_type.value} record for user {record.user_key!r}")
        return record

    @staticmethod
    def normalize_identify(message: Any) -> NormalizedRecord:
        """Normalize an identify call. Requires ``anonymousId`` or ``userId``."""
        validate(message)
        _require_identity(message)
        return EventNormalizer._build(EventType.IDENTIFY, message)

    @staticmethod
    def normalize_track(message: Any) -> NormalizedRecord:
        """Normalize a track call. Requires an identity and a non-empty ``event``."""
        validate(message)
        _require_identity(message)
        if _is_missing(message.get("event")):
            raise ValidationError("missing event")
        return EventNormalizer._build(EventType.CUSTOM, message)

    @staticmethod
    def normalize_page(message: Any) -> NormalizedRecord:
        """Normalize a page call.

        Requires an identity and a ``category``; ``category`` and ``name`` are
        copied into the properties of the record, not into the caller's message.
        """
        validate(message)
        _require_identity(message)
        if _is_missing(message.get("category")):
            raise ValidationError("missing category")

        source = message.get("properties") or {}
        if not isinstance(source, Mapping):
            raise ValidationError("properties must be an object")
        properties = dict(source)
        properties["category"] = message.get("category") or properties.get("category")
        name = message.get("name") or properties.get("name")
        if name is not None:
            properties["name"] = name

        page_message = dict(message)
        page_message.pop("traits", None)
        page_message["properties"] = properties
        return EventNormalizer._build(EventType.CUSTOM, page_message)
