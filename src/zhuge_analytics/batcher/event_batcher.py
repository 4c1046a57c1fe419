"""Event batcher deciding when queued records are flushed.

Every enqueue checks two triggers: the queue reaching ``flush_at`` items flushes
immediately, and an inactivity deadline flushes ``flush_after`` after the most
recent enqueue. A flush drains up to ``flush_at`` items in one locked step and
hands them to a single delivery worker, which posts them as one batch and
resolves every item callback plus the flush callback with the same outcome.

Two long-lived threads serve each batcher: a scheduler that sleeps until the
deadline, and the delivery worker. Batches are delivered one at a time, in
flush order.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from loguru import logger

from ..core.errors import TransportError
from ..core.events import Callback, EventBatch, NormalizedRecord, PendingItem
from ..queuer import EventQueue
from ..sender import HTTPSender

FlushResult = Tuple[Optional[Exception], Optional[EventBatch]]


def _noop(error: Optional[Exception], batch: Any) -> None:
    pass


@dataclass
class BatcherConfig:
    """Configuration for the event batcher."""

    flush_at: float = 20  # Queue length that triggers an immediate flush
    flush_after_seconds: Optional[float] = 10.0  # Inactivity delay, None disables the timer
    api_key: Optional[str] = None  # Sent as "ak" in every batch


class EventBatcher:
    """Owns the pending queue, the flush deadline and the delivery worker of one client."""

    def __init__(
        self,
        config: Optional[BatcherConfig] = None,
        event_queue: Optional[EventQueue] = None,
        sender: Optional[HTTPSender] = None,
    ):
        """Initialize the event batcher.

        Args:
            config: Batcher configuration
            event_queue: Queue to buffer pending items in
            sender: Transport used to post each batch
        """
        self.config = config or BatcherConfig()
        self.event_queue = event_queue if event_queue is not None else EventQueue()
        self.sender = sender

        # Guards the queue drain and the deadline; re-entrant because enqueue may flush.
        self._lock = threading.RLock()
        self._deadline_changed = threading.Condition(self._lock)
        self._deadline: Optional[float] = None
        self._scheduler: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._in_flight: Set[Future] = set()

        # Statistics
        self._total_flushes = 0
        self._total_batches_dispatched = 0
        self._total_records_flushed = 0
        self._total_callback_errors = 0

    @property
    def timer_armed(self) -> bool:
        with self._lock:
            return self._deadline is not None

    def enqueue(self, record: NormalizedRecord, callback: Optional[Callback] = None) -> None:
        """Append a record and apply the size and time triggers."""
        item = PendingItem(record=record, callback=callback or _noop)

        with self._lock:
            size = self.event_queue.enqueue(item)
            if size >= self.config.flush_at:
                logger.debug(f"Queue reached {size} items, flushing")
                self.flush()
            self._reset_timer()

    def flush(self, callback: Optional[Callback] = None) -> "Future[FlushResult]":
        """Drain up to ``flush_at`` items and send them as one batch.

        The callback always runs on the delivery worker, never in the caller's
        stack, including when there is nothing to send.

        Returns:
            Future resolving to ``(error, batch)`` once every callback has run
        """
        callback = callback or _noop

        with self._lock:
            self._total_flushes += 1
            self._cancel_timer()
            items = self.event_queue.drain(self.config.flush_at)
            if items and not self.event_queue.is_empty():
                self._reset_timer()

            if not items:
                return self._submit(self._complete_empty, callback)

            batch = EventBatch(records=[item.record for item in items], api_key=self.config.api_key)
            logger.debug(f"flush: {batch.size()} records for user {batch.batch_user_key!r}")
            return self._submit(self._deliver, items, batch, callback)

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Stop the scheduler, flush everything still queued and wait for delivery.

        The batcher stays usable; a later enqueue or flush starts new threads.

        Returns:
            True if every in-flight batch completed within ``timeout``
        """
        with self._lock:
            self._cancel_timer()
            while not self.event_queue.is_empty():
                self.flush()
            self._cancel_timer()

            self._scheduler = None
            self._deadline_changed.notify_all()
            executor, self._executor = self._executor, None
            pending = list(self._in_flight)

        done, not_done = wait(pending, timeout=timeout)
        if executor is not None:
            executor.shutdown(wait=not not_done)
        if not_done:
            logger.warning(f"Shutdown timed out with {len(not_done)} batches still in flight")
        logger.info(f"Stopped event batcher. Stats - Flushes: {self._total_flushes}, Batches: {self._total_batches_dispatched}, Records: {self._total_records_flushed}")
        return not not_done

    def get_stats(self) -> Dict[str, Any]:
        """Get batcher statistics."""
        with self._lock:
            return {
                "queue_size": self.event_queue.size(),
                "timer_armed": self._deadline is not None,
                "in_flight_batches": len(self._in_flight),
                "total_flushes": self._total_flushes,
                "total_batches_dispatched": self._total_batches_dispatched,
                "total_records_flushed": self._total_records_flushed,
                "total_callback_errors": self._total_callback_errors,
                "config": {
                    "flush_at": self.config.flush_at,
                    "flush_after_seconds": self.config.flush_after_seconds,
                },
            }

    def _reset_timer(self) -> None:
        """Move the flush deadline to ``flush_after`` from now, or clear it if disabled."""
        with self._lock:
            delay = self.config.flush_after_seconds
            if not delay:
                self._cancel_timer()
                return

            self._deadline = time.monotonic() + delay
            if self._scheduler is None:
                self._scheduler = threading.Thread(target=self._schedule_loop, name="zhuge-scheduler", daemon=True)
                self._scheduler.start()
            self._deadline_changed.notify_all()

    def _cancel_timer(self) -> None:
        with self._lock:
            self._deadline = None
            self._deadline_changed.notify_all()

    def _schedule_loop(self) -> None:
        """Sleep until the deadline and flush; exits once replaced by shutdown."""
        me = threading.current_thread()
        with self._lock:
            while self._scheduler is me:
                if self._deadline is None:
                    self._deadline_changed.wait()
                    continue

                remaining = self._deadline - time.monotonic()
                if remaining > 0:
                    self._deadline_changed.wait(remaining)
                    continue

                self._deadline = None
                logger.debug("Flushing after inactivity timeout")
                try:
                    self.flush()
                except Exception:
                    logger.exception("Scheduled flush failed")

    def _submit(self, target: Callable[..., FlushResult], *args: Any) -> "Future[FlushResult]":
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="zhuge-flush")
            future = self._executor.submit(target, *args)
            self._in_flight.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._in_flight.discard(future)

    def _complete_empty(self, callback: Callback) -> FlushResult:
        self._invoke(callback, None, None)
        return None, None

    def _deliver(self, items: List[PendingItem], batch: EventBatch, callback: Callback) -> FlushResult:
        """Send ``batch`` and resolve every callback with the shared outcome."""
        if self.sender is None:
            error: Optional[TransportError] = TransportError("No sender configured")
        else:
            error = self.sender.send_batch(batch)

        with self._lock:
            self._total_batches_dispatched += 1
            self._total_records_flushed += batch.size()

        for fn in [item.callback for item in items] + [callback]:
            self._invoke(fn, error, batch)

        logger.debug(f"flushed: {batch.size()} records, error={error}")
        return error, batch

    def _invoke(self, fn: Callback, error: Optional[Exception], batch: Optional[EventBatch]) -> None:
        try:
            fn(error, batch)
        except Exception:
            with self._lock:
                self._total_callback_errors += 1
            logger.exception("Flush callback raised")
