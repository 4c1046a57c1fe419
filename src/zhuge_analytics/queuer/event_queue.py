"""In-memory pending-item queue for the Zhuge analytics client.

This module provides the thread-safe FIFO buffer that holds records between
``enqueue`` and ``flush``. Items leave the queue only through ``drain``, which
removes a bounded prefix in one locked step, so records appended while a batch
is in flight always land behind it.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, List

from loguru import logger

from ..core.events import PendingItem


class EventQueue:
    """Thread-safe FIFO of PendingItem."""

    def __init__(self) -> None:
        self._queue: Deque[PendingItem] = deque()
        self._lock = threading.RLock()

        # Statistics
        self._total_enqueued = 0
        self._total_drained = 0

    def enqueue(self, item: PendingItem) -> int:
        """Append an item to the tail of the queue.

        Returns:
            Queue length after the append
        """
        with self._lock:
            self._queue.append(item)
            self._total_enqueued += 1
            size = len(self._queue)

        logger.debug(f"Enqueued {item.record.event_type.value} record, queue size: {size}")
        return size

    def drain(self, max_items: float) -> List[PendingItem]:
        """Remove and return up to ``max_items`` items from the head.

        Args:
            max_items: Upper bound on items removed, may be math.inf

        Returns:
            Items in insertion order (may be empty)
        """
        items: List[PendingItem] = []

        with self._lock:
            while len(items) < max_items and self._queue:
                items.append(self._queue.popleft())
            self._total_drained += len(items)
            remaining = len(self._queue)

        if items:
            logger.debug(f"Drained {len(items)} items, queue size: {remaining}")

        return items

    def snapshot(self) -> List[PendingItem]:
        """Return a copy of the pending items without removing them."""
        with self._lock:
            return list(self._queue)

    def size(self) -> int:
        """Return the current queue size."""
        with self._lock:
            return len(self._queue)

    def __len__(self) -> int:
        return self.size()

    def is_empty(self) -> bool:
        """Check if the queue is empty."""
        with self._lock:
            return len(self._queue) == 0

    def get_stats(self) -> dict:
        """Get queue statistics."""
        with self._lock:
            return {
                "current_size": len(self._queue),
                "total_enqueued": self._total_enqueued,
                "total_drained": self._total_drained,
            }
