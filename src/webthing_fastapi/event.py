"""Events emitted by a `.Thing`.

An `.Event` is an immutable record of something that happened. Events are
added to a Thing with `.Thing.add_event`, which appends them to the Thing's
event log and relays them to clients that have subscribed to that event.
"""

from __future__ import annotations
from typing import Any

from .utilities import timestamp


class Event:
    """An Event represents an individual event from a thing.

    ``data`` is optional. An event created without data has no ``data`` key
    in its description, which is distinct from an event whose data is
    ``None``.
    """

    __slots__ = ("_name", "_data", "_time")

    def __init__(self, name: str, data: Any = ...) -> None:
        """Create an event, timestamped now.

        :param name: the name of the event type, as registered with
            `.Thing.add_available_event`.
        :param data: the data associated with the event. Leave this out if
            the event carries no data.
        """
        object.__setattr__(self, "_name", name)
        object.__setattr__(self, "_data", data)
        object.__setattr__(self, "_time", timestamp())

    def __setattr__(self, name: str, value: Any) -> None:
        """Prevent modification, as events are immutable.

        :param name: the attribute name.
        :param value: the new value.

        :raise AttributeError: always.
        """
        raise AttributeError(f"{type(self).__name__} objects are immutable.")

    @property
    def name(self) -> str:
        """The name of the event."""
        return self._name

    @property
    def has_data(self) -> bool:
        """Whether data was supplied when the event was created."""
        return self._data is not ...

    @property
    def data(self) -> Any:
        """The event's data, or ``None`` if there is none."""
        return self._data if self.has_data else None

    @property
    def time(self) -> str:
        """The time the event was created, as an ISO 8601 string."""
        return self._time

    def as_event_description(self) -> dict[str, dict[str, Any]]:
        """Describe the event, as it is sent to clients.

        :return: a dictionary of the form ``{name: {"timestamp": ..., "data": ...}}``
            where ``data`` is present only if it was supplied.
        """
        description: dict[str, Any] = {"timestamp": self._time}
        if self.has_data:
            description["data"] = self._data
        return {self._name: description}
