"""Check the example Things behave as documented."""

import time

import pytest

import webthing_fastapi as wt
from webthing_fastapi.example_things import (
    ExampleDimmableLight,
    FadeAction,
    FakeHumiditySensor,
    make_lamp,
)


def test_lamp_description():
    td = make_lamp().as_thing_description()
    assert td["@type"] == ["OnOffSwitch", "Light"]
    assert list(td["properties"]) == ["on", "brightness"]
    assert list(td["actions"]) == ["fade"]
    assert list(td["events"]) == ["overheated"]


def test_light_fade():
    """Fading sets the level, then raises an event."""
    light = ExampleDimmableLight()
    action = light.perform_action("fade", {"level": 20, "duration": 1})
    assert isinstance(action, FadeAction)
    action.start()
    assert action.wait(5)
    assert light.get_property("level") == 20
    (event,) = light.get_event_descriptions()
    assert event["overheated"]["data"] == 102


def test_light_fade_cancelled():
    light = ExampleDimmableLight()
    action = light.perform_action("fade", {"level": 20, "duration": 10000})
    action.start()
    action.cancel()
    assert action.wait(5)
    assert light.get_property("level") == 50
    assert light.get_event_descriptions() == []


def test_light_rejects_bad_fade():
    light = ExampleDimmableLight()
    assert light.perform_action("fade", {"level": 20}) is None
    assert light.perform_action("fade", {"level": 20, "duration": 0}) is None


def test_sensor_polling():
    """The sensor reads from its device while it is entered."""
    sensor = FakeHumiditySensor(poll_interval=0.01)
    assert sensor._poll_thread is None
    with sensor:
        for _ in range(500):
            if sensor.get_property("level") != 0.0:
                break
            time.sleep(0.01)
    assert sensor._poll_thread is None
    assert 0 <= sensor.get_property("level") <= 100


def test_sensor_level_is_read_only():
    sensor = FakeHumiditySensor()
    prop = sensor.find_property("level")
    with pytest.raises(wt.ReadOnlyPropertyError):
        prop.set_value(10)
    assert sensor.get_property("level") == 0.0
