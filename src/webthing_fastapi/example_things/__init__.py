"""Example Things, used for testing and demonstration purposes.

`.make_lamp` builds a lamp on a plain `.Thing`, which is how a single device
is usually described. `.ExampleDimmableLight` and `.FakeHumiditySensor` are
`.Thing` subclasses, and are served together in ``examples/multiple_things.py``.
"""

from __future__ import annotations
import random
import threading
from typing import Any, Optional
import uuid

from webthing_fastapi.action import Action
from webthing_fastapi.event import Event
from webthing_fastapi.property import Property
from webthing_fastapi.thing import Thing
from webthing_fastapi.value import Value


class FadeAction(Action):
    """Fade a light to a new level, then report that it overheated.

    The class is used directly as the action factory, so it is called with
    the `.Thing` and the (already validated) input.
    """

    def __init__(self, thing: Thing, input: dict[str, Any]) -> None:
        """Create a fade action with a new ID.

        :param thing: the light to fade.
        :param input: a dictionary with ``level`` and ``duration`` (in ms).
        """
        super().__init__(str(uuid.uuid4()), thing, "fade", input)

    def perform_action(self) -> None:
        """Wait for the duration, then set the level.

        Cancelling the action stops it before the level changes.
        """
        if self.cancel_requested.wait(self.input["duration"] / 1000):
            return
        thing = self.thing
        if thing is None:
            return
        thing.set_property("level", self.input["level"])
        thing.add_event(Event("overheated", 102))


class FadeBehaviour:
    """The work done by the lamp's ``fade`` action.

    This is an `.ActionBehaviour`: the `.Thing` wraps it in an `.Action`.
    """

    def __init__(self, thing: Thing, input: dict[str, Any]) -> None:
        self.thing = thing
        self.input = input
        self._cancelled = threading.Event()

    def perform_action(self) -> None:
        """Wait for the duration, then set the brightness."""
        if self._cancelled.wait(self.input["duration"] / 1000):
            return
        self.thing.set_property("brightness", self.input["brightness"])
        self.thing.add_event(Event("overheated", 102))

    def cancel(self) -> None:
        """Stop waiting, and leave the brightness unchanged."""
        self._cancelled.set()


class ExampleDimmableLight(Thing):
    """A dimmable light that logs received commands."""

    def __init__(self) -> None:
        """Create the light, with its properties, action and event."""
        super().__init__(
            "urn:dev:ops:my-lamp-1234",
            "My Lamp",
            ["OnOffSwitch", "Light"],
            "A web connected lamp",
        )

        self.add_available_action(
            "fade",
            {
                "title": "Fade",
                "description": "Fade the lamp to a given level",
                "input": {
                    "type": "object",
                    "required": ["level", "duration"],
                    "properties": {
                        "level": {
                            "type": "integer",
                            "minimum": 0,
                            "maximum": 100,
                            "unit": "percent",
                        },
                        "duration": {
                            "type": "integer",
                            "minimum": 1,
                            "unit": "milliseconds",
                        },
                    },
                },
            },
            FadeAction,
        )

        self.add_available_event(
            "overheated",
            {
                "description": "The lamp has exceeded its safe operating temperature",
                "type": "number",
                "unit": "degree celsius",
            },
        )

        self.add_property(
            Property(
                self,
                "on",
                Value(True, lambda v: self.logger.info("On-State is now %s", v)),
                {
                    "@type": "OnOffProperty",
                    "title": "On/Off",
                    "type": "boolean",
                    "description": "Whether the lamp is turned on",
                },
            )
        )
        self.add_property(
            Property(
                self,
                "level",
                Value(50, lambda v: self.logger.info("New light level is %s", v)),
                {
                    "@type": "BrightnessProperty",
                    "title": "Brightness",
                    "type": "integer",
                    "description": "The level of light from 0-100",
                    "minimum": 0,
                    "maximum": 100,
                    "unit": "percent",
                },
            )
        )


class FakeHumiditySensor(Thing):
    """A humidity sensor which updates its measurement every few seconds.

    Polling starts when the sensor is entered as a context manager, which
    the server does when it starts.
    """

    def __init__(self, poll_interval: float = 3.0) -> None:
        """Create the sensor.

        :param poll_interval: the time between readings, in seconds.
        """
        super().__init__(
            "urn:dev:ops:my-humidity-sensor-1234",
            "My Humidity Sensor",
            ["MultiLevelSensor"],
            "A web connected humidity sensor",
        )
        self.poll_interval = poll_interval
        self._stop = threading.Event()
        self._poll_thread: Optional[threading.Thread] = None

        self.level: Value[float] = Value(0.0)
        self.add_property(
            Property(
                self,
                "level",
                self.level,
                {
                    "@type": "LevelProperty",
                    "title": "Humidity",
                    "type": "number",
                    "description": "The current humidity in %",
                    "minimum": 0,
                    "maximum": 100,
                    "unit": "percent",
                    "readOnly": True,
                },
            )
        )

    def __enter__(self) -> FakeHumiditySensor:
        """Start polling the sensor.

        :return: this sensor.
        """
        self._stop.clear()
        self._poll_thread = threading.Thread(target=self._poll, daemon=True)
        self._poll_thread.start()
        return self

    def __exit__(self, exc_t: Any, exc_v: Any, exc_tb: Any) -> None:
        """Stop polling the sensor.

        :param exc_t: Exception type.
        :param exc_v: Exception value.
        :param exc_tb: Traceback.
        """
        self._stop.set()
        if self._poll_thread is not None:
            self._poll_thread.join()
            self._poll_thread = None

    def _poll(self) -> None:
        while not self._stop.wait(self.poll_interval):
            new_level = self.read_from_gpio()
            self.logger.debug("Setting new humidity level: %s", new_level)
            # Notifies all subscribers, if the value changed.
            self.level.notify_of_external_update(new_level)

    def read_from_gpio(self) -> float:
        """Mimic an actual sensor updating its reading every few seconds.

        :return: a humidity reading, in percent.
        """
        return abs(70.0 * random.random() * (-0.5 + random.random()))


def make_lamp() -> Thing:
    """Create a lamp that can be switched on and off, and dimmed.

    :return: the lamp, which is a plain `.Thing`.
    """
    thing = Thing(
        "urn:dev:ops:my-lamp-1234",
        "My Lamp",
        ["OnOffSwitch", "Light"],
        "A web connected lamp",
    )

    thing.add_property(
        Property(
            thing,
            "on",
            Value(True),
            {
                "@type": "OnOffProperty",
                "title": "On/Off",
                "type": "boolean",
                "description": "Whether the lamp is turned on",
            },
        )
    )
    thing.add_property(
        Property(
            thing,
            "brightness",
            Value(50),
            {
                "@type": "BrightnessProperty",
                "title": "Brightness",
                "type": "integer",
                "description": "The level of light from 0-100",
                "minimum": 0,
                "maximum": 100,
                "unit": "percent",
            },
        )
    )

    thing.add_available_action(
        "fade",
        {
            "title": "Fade",
            "description": "Fade the lamp to a given level",
            "input": {
                "type": "object",
                "required": ["brightness", "duration"],
                "properties": {
                    "brightness": {
                        "type": "integer",
                        "minimum": 0,
                        "maximum": 100,
                        "unit": "percent",
                    },
                    "duration": {
                        "type": "integer",
                        "minimum": 1,
                        "unit": "milliseconds",
                    },
                },
            },
        },
        FadeBehaviour,
    )

    thing.add_available_event(
        "overheated",
        {
            "description": "The lamp has exceeded its safe operating temperature",
            "type": "number",
            "unit": "degree celsius",
        },
    )

    return thing
