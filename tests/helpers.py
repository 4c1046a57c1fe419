"""Test helpers shared by the test modules."""

from zhuge_analytics.core.events import EventType, NormalizedRecord

WRITE_KEY = "key"


def make_record(event_id, user_key="u1"):
    return NormalizedRecord(
        user_key=user_key,
        event_id=event_id,
        timestamp_seconds=1700000000,
        event_type=EventType.CUSTOM,
        properties={},
    )


class RecordingSender:
    """Stand-in transport that records batches and returns a fixed outcome."""

    def __init__(self, error=None, gate=None):
        self.error = error
        self.gate = gate
        self.batches = []

    def send_batch(self, batch):
        if self.gate is not None:
            self.gate.wait(5)
        self.batches.append(batch)
        return self.error
