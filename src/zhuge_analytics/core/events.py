"""Event models for the Zhuge analytics client.

Records flow through the client as: caller message → EventNormalizer →
NormalizedRecord → EventQueue (as PendingItem) → EventBatch → HTTPSender.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

UserKey = Union[str, int, float, None]
Callback = Callable[[Optional[Exception], Any], None]

SDK_TAG = "web"


class EventType(str, Enum):
    """Wire tags for the kinds of events the collection endpoint accepts."""

    IDENTIFY = "idf"
    CUSTOM = "cus"


@dataclass
class NormalizedRecord:
    """A caller message reshaped into the wire format."""

    user_key: UserKey
    event_id: Optional[str]
    timestamp_seconds: int
    event_type: EventType
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cuid": self.user_key,
            "eid": self.event_id,
            "ts": self.timestamp_seconds,
            "et": self.event_type.value,
            "pr": self.properties,
        }


def _noop(error: Optional[Exception], batch: Any) -> None:
    pass


@dataclass
class PendingItem:
    """A queued record together with the callback to resolve once it is flushed."""

    record: NormalizedRecord
    callback: Callback = _noop


@dataclass
class EventBatch:
    """One upload: every record drained by a single flush, in enqueue order."""

    records: List[NormalizedRecord]
    api_key: Optional[str] = None
    sdk_tag: str = SDK_TAG
    send_time_seconds: int = field(default_factory=lambda: int(time.time()))

    @property
    def batch_user_key(self) -> UserKey:
        # Taken from the first record only, even when the batch mixes users.
        return self.records[0].user_key if self.records else None

    def size(self) -> int:
        """Return the number of records in this batch."""
        return len(self.records)

    def to_dict(self) -> Dict[str, Any]:
        """Convert batch to the JSON payload posted to the collection endpoint."""
        return {
            "ts": self.send_time_seconds,
            "cuid": self.batch_user_key,
            "ak": self.api_key,
            "sdk": self.sdk_tag,
            "data": [record.to_dict() for record in self.records],
        }
