"""Event batching module: flush policy and callback fan-out."""

from .event_batcher import BatcherConfig, EventBatcher, FlushResult

__all__ = ["BatcherConfig", "EventBatcher", "FlushResult"]
