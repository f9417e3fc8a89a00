"""Containers for the Things served by a `.WebThingServer`.

A server either exposes a single `.Thing` at its root, or several Things,
each under its index in the list (``/0``, ``/1`` and so on). The two modes
are represented by `.SingleThing` and `.MultipleThings`, which share the
same small interface so the server can handle them uniformly.
"""

from __future__ import annotations
from typing import Optional, Sequence, Union

from .thing import Thing


class SingleThing:
    """A container for a single thing."""

    def __init__(self, thing: Thing) -> None:
        """Initialise the container.

        :param thing: the thing to store.
        """
        self.thing = thing

    def get_thing(self, idx: Union[str, int, None] = None) -> Optional[Thing]:
        """Get the thing. The index is ignored.

        :param idx: ignored, so this may be called like `.MultipleThings.get_thing`.

        :return: the thing.
        """
        return self.thing

    def get_things(self) -> list[Thing]:
        """Get the list of things: a list containing only our thing."""
        return [self.thing]

    def get_name(self) -> str:
        """Get the name of this container: the title of the thing."""
        return self.thing.title


class MultipleThings:
    """A container for multiple things."""

    def __init__(self, things: Sequence[Thing], name: str) -> None:
        """Initialise the container.

        :param things: the things to store.
        :param name: the name of this collection of things, used when
            advertising the server.
        """
        self.things = list(things)
        self.name = name

    def get_thing(self, idx: Union[str, int, None]) -> Optional[Thing]:
        """Get the thing at the given index.

        :param idx: the index, either as an integer or as a string from a URL.

        :return: the thing, or ``None`` if ``idx`` isn't a valid index.
        """
        try:
            i = int(idx)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if i < 0 or i >= len(self.things):
            return None
        return self.things[i]

    def get_things(self) -> list[Thing]:
        """Get the list of things."""
        return list(self.things)

    def get_name(self) -> str:
        """Get the name of this group of things."""
        return self.name


ThingContainer = Union[SingleThing, MultipleThings]
