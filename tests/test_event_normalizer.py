"""Tests for message validation and normalization."""

import time
from datetime import datetime

import pytest

from zhuge_analytics.core import event_normalizer
from zhuge_analytics.core.errors import ValidationError
from zhuge_analytics.core.event_normalizer import LIBRARY, EventNormalizer, type_of, validate
from zhuge_analytics.core.events import EventType
from zhuge_analytics.version import VERSION


def test_library_context_identifies_sdk():
    assert LIBRARY == {"name": "zhuge-python", "version": VERSION}


def test_identify_mapping():
    before = int(time.time())
    record = EventNormalizer.normalize_identify({"userId": "id", "traits": {"plan": "pro"}})
    after = int(time.time())

    assert record.event_type is EventType.IDENTIFY
    assert record.user_key == "id"
    assert record.event_id is None
    assert before <= record.timestamp_seconds <= after
    assert record.properties == {"plan": "pro", "context": {"library": LIBRARY}}


def test_track_mapping():
    record = EventNormalizer.normalize_track({"userId": "id", "event": "event", "timestamp": int(time.time())})

    assert record.to_dict() == {
        "cuid": "id",
        "eid": "event",
        "ts": record.timestamp_seconds,
        "et": "cus",
        "pr": {"context": {"library": LIBRARY}},
    }


def test_track_accepts_numeric_user_id():
    record = EventNormalizer.normalize_track({"userId": 1, "event": "jumped the shark"})

    assert record.user_key == 1
    assert record.event_id == "jumped the shark"


def test_page_copies_category_and_name_into_properties():
    message = {"userId": "id", "name": "name", "category": "category", "properties": {"path": "/"}}

    record = EventNormalizer.normalize_page(message)

    assert record.event_type is EventType.CUSTOM
    assert record.event_id is None
    assert record.properties == {"path": "/", "name": "name", "category": "category", "context": {"library": LIBRARY}}
    assert message == {"userId": "id", "name": "name", "category": "category", "properties": {"path": "/"}}


def test_normalizing_does_not_mutate_the_message():
    properties = {"context": {"ip": "1.2.3.4"}, "nested": {"a": 1}}
    message = {"userId": "id", "event": "test", "properties": properties}

    record = EventNormalizer.normalize_track(message)
    record.properties["nested"]["a"] = 2

    assert set(message) == {"userId", "event", "properties"}
    assert properties == {"context": {"ip": "1.2.3.4"}, "nested": {"a": 1}}


def test_context_is_extended_not_replaced():
    record = EventNormalizer.normalize(EventType.CUSTOM, {"event": "test", "context": {"name": "travis"}})

    assert record.properties["context"] == {"library": LIBRARY, "name": "travis"}


def test_nested_context_must_be_an_object():
    with pytest.raises(ValidationError, match="properties.context must be an object"):
        EventNormalizer.normalize_track({"userId": "u", "event": "e", "properties": {"context": "web"}})
    with pytest.raises(ValidationError, match="properties.context must be an object"):
        EventNormalizer.normalize_identify({"userId": "u", "traits": {"context": ["web"]}})


def test_call_helpers_validate_once(monkeypatch):
    calls = []

    def counting_validate(message):
        calls.append(message)
        validate(message)

    monkeypatch.setattr(event_normalizer, "validate", counting_validate)

    EventNormalizer.normalize_track({"userId": "u", "event": "e"})
    EventNormalizer.normalize_page({"userId": "u", "category": "docs"})

    assert len(calls) == 2


def test_library_wins_over_caller_library_key():
    record = EventNormalizer.normalize(EventType.CUSTOM, {"context": {"library": {"name": "other"}, "os": "linux"}})

    assert record.properties["context"] == {"library": LIBRARY, "os": "linux"}


def test_unknown_event_type_is_rejected():
    with pytest.raises(ValidationError, match="unknown event type"):
        EventNormalizer.normalize("type", {})


@pytest.mark.parametrize("message", [None, "string", 42, ["list"]])
def test_message_must_be_an_object(message):
    with pytest.raises(ValidationError, match="message must be an object"):
        validate(message)


@pytest.mark.parametrize(
    "field, value, expected",
    [
        ("userId", {"x": 1}, "userId must be a string or number"),
        ("anonymousId", True, "anonymousId must be a string or number"),
        ("event", 5, "event must be a string"),
        ("context", "ctx", "context must be an object"),
        ("integrations", [], "integrations must be an object"),
        ("timestamp", "yesterday", "timestamp must be a date or number"),
    ],
)
def test_field_types_are_checked(field, value, expected):
    with pytest.raises(ValidationError, match=expected):
        validate({field: value})


def test_valid_field_types_pass():
    validate({"userId": 1, "anonymousId": "a", "context": {}, "timestamp": datetime.now(), "groupId": 3})


def test_type_of():
    assert type_of(True) == "boolean"
    assert type_of(1.5) == "number"
    assert type_of({}) == "object"
    assert type_of(datetime.now()) == "date"


@pytest.mark.parametrize("normalize", [EventNormalizer.normalize_identify, EventNormalizer.normalize_track, EventNormalizer.normalize_page])
def test_identity_is_required(normalize):
    with pytest.raises(ValidationError, match="missing identity"):
        normalize({})


def test_anonymous_id_satisfies_identity():
    record = EventNormalizer.normalize_identify({"anonymousId": "anon"})

    assert record.user_key is None


def test_track_requires_event():
    with pytest.raises(ValidationError, match="missing event"):
        EventNormalizer.normalize_track({"userId": "id"})


def test_page_requires_category():
    with pytest.raises(ValidationError, match="missing category"):
        EventNormalizer.normalize_page({"userId": "id", "name": "home"})


def test_validation_error_is_a_value_error():
    with pytest.raises(ValueError):
        EventNormalizer.normalize_track({"userId": "id"})
