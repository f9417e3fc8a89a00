r"""WebThing-FastAPI.

This is the top level module for WebThing-FastAPI, a library for exposing
devices over the `Web Thing API <https://webthings.io/api/>`_ using Python.
A device is described as a `.Thing` with properties, actions and events,
and served over HTTP and websockets by a `.WebThingServer`\ .

This module contains a number of convenience
imports and is intended to be imported using:

.. code-block:: python

    import webthing_fastapi as wt

    thing = wt.Thing("urn:dev:ops:my-lamp-1234", "My Lamp", ["Light"])
    thing.add_property(
        wt.Property(thing, "on", wt.Value(True), {"type": "boolean"})
    )
    wt.WebThingServer(wt.SingleThing(thing), port=8888).start()

Symbols in the top-level module mostly exist elsewhere in the package, but
should be imported from here as a preference, to ensure code does not
break if modules are rearranged.
"""

from .value import Value
from .property import Property
from .event import Event
from .action import Action, ActionBehaviour, ActionStatus
from .thing import Thing, Subscriber
from .registry import SingleThing, MultipleThings
from .thing_description import (
    ActionMetadata,
    EventMetadata,
    PropertyMetadata,
)
from .exceptions import (
    ActionError,
    PropertyValidationError,
    ReadOnlyPropertyError,
)
from .server import WebThingServer, cli, server_from_config
from .server.config_model import ThingConfig, ThingServerConfig

# The symbols in __all__ are part of our public API.
# They are imported when using `import webthing_fastapi as wt`.
__all__ = [
    "Value",
    "Property",
    "Event",
    "Action",
    "ActionBehaviour",
    "ActionStatus",
    "Thing",
    "Subscriber",
    "SingleThing",
    "MultipleThings",
    "ActionMetadata",
    "EventMetadata",
    "PropertyMetadata",
    "ActionError",
    "PropertyValidationError",
    "ReadOnlyPropertyError",
    "WebThingServer",
    "cli",
    "server_from_config",
    "ThingConfig",
    "ThingServerConfig",
]
