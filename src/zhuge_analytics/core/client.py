"""Public client for sending identify, track and page events to Zhuge."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from ..batcher import BatcherConfig, EventBatcher, FlushResult
from ..config.settings import ClientConfig, WriteKey, load_config
from ..queuer import EventQueue
from ..sender import HTTPSender, SenderConfig
from .event_normalizer import EventNormalizer
from .events import Callback, EventType, PendingItem


class Analytics:
    """Buffers analytics events and ships them to the collection endpoint in batches.

    Example:
        >>> analytics = Analytics("write-key", flush_at=50)
        >>> analytics.track({"userId": "u1", "event": "signed_up"})
        >>> error, batch = analytics.flush().result(timeout=10)
    """

    def __init__(self, write_key: WriteKey, config: Optional[ClientConfig] = None, **options: Any):
        """Initialize the client.

        Args:
            write_key: Plain write key, or an ``{"appid", "secret"}`` pair
            config: A pre-built ClientConfig; ``write_key`` and ``options`` are ignored when given
            **options: ``host``, ``flush_at``, ``flush_after`` (ms), ``proxy`` and transport settings,
                see ``load_config``
        """
        self.config = config if config is not None else load_config(write_key, **options)

        self._queue = EventQueue()
        self.sender = HTTPSender(SenderConfig(**self.config.get_sender_config()))
        self.batcher = EventBatcher(
            config=BatcherConfig(**self.config.get_batcher_config()),
            event_queue=self._queue,
            sender=self.sender,
        )

        logger.info(f"Initialized analytics client for {self.config.host}")

    @property
    def write_key(self) -> str:
        return self.config.write_key

    @property
    def host(self) -> str:
        return self.config.host

    @property
    def flush_at(self) -> float:
        return self.config.flush_at

    @property
    def flush_after(self) -> Optional[float]:
        return self.config.flush_after

    @property
    def proxy(self) -> Optional[str]:
        return self.config.proxy

    @property
    def queue(self) -> List[PendingItem]:
        """Snapshot of the items waiting to be flushed, oldest first."""
        return self._queue.snapshot()

    def identify(self, message: Dict[str, Any], callback: Optional[Callback] = None) -> "Analytics":
        """Send an identify message. Requires ``anonymousId`` or ``userId``."""
        record = EventNormalizer.normalize_identify(message)
        self.batcher.enqueue(record, callback)
        return self

    def track(self, message: Dict[str, Any], callback: Optional[Callback] = None) -> "Analytics":
        """Send a track message. Requires an identity and an ``event``."""
        record = EventNormalizer.normalize_track(message)
        self.batcher.enqueue(record, callback)
        return self

    def page(self, message: Dict[str, Any], callback: Optional[Callback] = None) -> "Analytics":
        """Send a page message. Requires an identity and a ``category``."""
        record = EventNormalizer.normalize_page(message)
        self.batcher.enqueue(record, callback)
        return self

    def group(self, message: Dict[str, Any], callback: Optional[Callback] = None) -> "Analytics":
        raise NotImplementedError("group is not supported by the Zhuge collection endpoint")

    def alias(self, message: Dict[str, Any], callback: Optional[Callback] = None) -> "Analytics":
        raise NotImplementedError("alias is not supported by the Zhuge collection endpoint")

    def enqueue(self, event_type: Union[EventType, str], message: Dict[str, Any], callback: Optional[Callback] = None) -> "Analytics":
        """Normalize ``message`` as ``event_type`` and queue it, skipping the call-level checks."""
        record = EventNormalizer.normalize(event_type, message)
        self.batcher.enqueue(record, callback)
        return self

    def flush(self, callback: Optional[Callback] = None) -> "Future[FlushResult]":
        """Send up to ``flush_at`` queued items now.

        ``callback(error, batch)`` runs after every item callback of the batch.

        Returns:
            Future resolving to ``(error, batch)``
        """
        return self.batcher.flush(callback)

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Flush everything still queued and wait for delivery.

        Never called automatically; applications call it before exiting.
        """
        return self.batcher.shutdown(timeout)

    def get_stats(self) -> Dict[str, Any]:
        """Get client statistics."""
        return {
            "host": self.config.host,
            "queue": self._queue.get_stats(),
            "batcher": self.batcher.get_stats(),
            "sender": self.sender.get_stats(),
        }
