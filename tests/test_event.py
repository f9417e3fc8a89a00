import re

import pytest

import webthing_fastapi as wt

TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\+00:00$")


def test_event_with_data():
    """Events with data include it in their description."""
    event = wt.Event("overheated", 102)
    description = event.as_event_description()
    assert list(description) == ["overheated"]
    assert description["overheated"]["data"] == 102
    assert TIMESTAMP_RE.match(description["overheated"]["timestamp"])
    assert event.data == 102
    assert event.has_data


def test_event_without_data():
    """Events without data have no ``data`` key."""
    event = wt.Event("pressed")
    assert "data" not in event.as_event_description()["pressed"]
    assert event.data is None
    assert not event.has_data


def test_event_with_none_data():
    """``None`` is valid data, and is distinct from no data."""
    event = wt.Event("reset", None)
    assert event.as_event_description()["reset"]["data"] is None
    assert event.has_data


def test_events_are_immutable():
    """Events can't be changed once created."""
    event = wt.Event("overheated", 102)
    with pytest.raises(AttributeError):
        event.data = 5
    with pytest.raises(AttributeError):
        event.extra = 5
