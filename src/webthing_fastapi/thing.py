"""A class to represent hardware or software Things.

The `.Thing` class is the aggregate at the centre of this library. It owns
the properties, actions and events of one device, renders its Thing
Description, and pushes notifications to subscribed clients. See the
`Web Thing API <https://webthings.io/api/>`_ for the protocol it implements.

Concurrency
-----------

A `.Thing` may be used from several threads at once: HTTP requests, the
websocket handler, action threads and sensor-polling threads all call into
it. Every method that reads or modifies its collections holds a single
re-entrant lock, so mutations are serialised and each subscriber receives
notifications in the order the changes happened.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
import logging
from threading import RLock
from typing import (
    Any,
    Callable,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)
import uuid

from typing_extensions import Self
from anyio.to_thread import run_sync
import jsonschema

from .action import Action, ActionBehaviour, ActionStatus
from .event import Event
from .logs import THING_LOGGER
from .property import Property
from .thing_description import (
    ActionMetadata,
    EventMetadata,
    ThingDescription,
    coerce_metadata,
)
from .thing_description.validation import (
    first_error,
    make_validator,
    sanitize_input_schema,
)
from .webthing_subprotocol import (
    ActionStatusMessage,
    EventMessage,
    PropertyStatusMessage,
)

_LOGGER = logging.getLogger(__name__)

WEBTHINGS_CONTEXT = "https://webthings.io/schemas"

ActionFactory = Callable[["Thing", Any], Union[Action, ActionBehaviour]]
"""Creates the action (or its behaviour) from the Thing and the input."""


@runtime_checkable
class Subscriber(Protocol):
    """Something that receives notifications from a `.Thing`.

    Subscribers are usually websocket connections, but anything with a
    ``send`` method will do. ``send`` is called with a dictionary that is
    ready to be serialised as JSON. It should not block, and may raise an
    exception if the message can't be delivered: such errors are ignored.
    """

    def send(self, message: dict[str, Any]) -> None:
        """Deliver a message to the client."""
        ...


@dataclass
class AvailableAction:
    """An action type that may be performed on a `.Thing`."""

    metadata: ActionMetadata
    factory: ActionFactory
    input_validator: Optional[jsonschema.Draft7Validator] = None


@dataclass
class AvailableEvent:
    """An event type that a `.Thing` may emit, and who is listening for it."""

    metadata: EventMetadata
    subscribers: set[Subscriber] = field(default_factory=set)


class Thing:
    r"""Represents a Thing, as defined by the Web Thing API.

    A `.Thing` may be built up by calling `.Thing.add_property`,
    `.Thing.add_available_action` and `.Thing.add_available_event`, either
    on an instance or in the ``__init__`` of a subclass.

    Subclassing Notes
    -----------------

    * ``__init__``: call ``super().__init__`` with the Thing's ID and title,
        then add properties, actions and events. Don't initialise any hardware
        at this time, as your Thing may be instantiated quite early.
    * ``__enter__(self)`` and ``__exit__(self, exc_t, exc_v, exc_tb)`` are where
        you should start and stop communications with the hardware, or any
        background polling. The `.WebThingServer` calls them when it starts
        and stops.
    """

    def __init__(
        self,
        id: str,
        title: str,
        type_: Union[str, Sequence[str], None] = None,
        description: str = "",
        event_history_length: Optional[int] = None,
        action_history_length: Optional[int] = None,
    ) -> None:
        """Initialise the Thing.

        :param id: the Thing's unique ID, which must be a URI.
        :param title: the Thing's human-readable title.
        :param type_: the Thing's ``@type``, as a string or list of strings.
        :param description: a description of the Thing.
        :param event_history_length: the number of events to keep. By
            default, all events are kept.
        :param action_history_length: the number of actions of each type to
            keep. When there are more, the oldest completed actions are
            dropped. By default, all actions are kept.
        """
        if type_ is None:
            type_ = []
        elif isinstance(type_, str):
            type_ = [type_]
        self.id = id
        self.title = title
        self.context = WEBTHINGS_CONTEXT
        self.type: list[str] = list(type_)
        self.description = description or ""
        self.href_prefix = ""
        self.ui_href: Optional[str] = None
        self.action_history_length = action_history_length

        self._lock = RLock()
        self._properties: dict[str, Property] = {}
        self._available_actions: dict[str, AvailableAction] = {}
        self._actions: dict[str, list[Action]] = {}
        self._available_events: dict[str, AvailableEvent] = {}
        self._events: deque[Event] = deque(maxlen=event_history_length)
        self._subscribers: set[Subscriber] = set()

    async def __aenter__(self) -> Self:
        """Context management is used to set up/close the thing.

        As things do everything with threaded code, we define async
        ``__aenter__`` and ``__aexit__`` wrappers to call the synchronous
        code, if it exists.

        :return: this object.
        """
        if hasattr(self, "__enter__"):
            return await run_sync(self.__enter__)
        else:
            return self

    async def __aexit__(
        self, exc_t: Any | None, exc_v: Any | None, exc_tb: Any
    ) -> None:
        """Wrap context management functions, if they exist.

        See ``__aenter__`` for more details.

        :param exc_t: The type of the exception, or ``None``.
        :param exc_v: The exception that occurred, or ``None``.
        :param exc_tb: The traceback for the exception, or ``None``.
        """
        if hasattr(self, "__exit__"):
            await run_sync(self.__exit__, exc_t, exc_v, exc_tb)

    @property
    def logger(self) -> logging.Logger:
        """A logger for messages from this Thing."""
        return THING_LOGGER.getChild(self.id.replace(".", "_"))

    @property
    def href(self) -> str:
        """The URL of this Thing, relative to the server."""
        return self.href_prefix or "/"

    def set_href_prefix(self, prefix: str) -> None:
        """Set the prefix of any hrefs associated with this thing.

        This is called by the server when a `.Thing` is one of several, so
        that each one's URLs are distinct. It is passed on to all properties
        and existing actions, and applied to any added later.

        :param prefix: the prefix, e.g. ``/0``.
        """
        with self._lock:
            self.href_prefix = prefix
            for prop in self._properties.values():
                prop.set_href_prefix(prefix)
            for actions in self._actions.values():
                for action in actions:
                    action.set_href_prefix(prefix)

    def set_ui_href(self, href: str) -> None:
        """Set the href of this thing's custom UI.

        :param href: the URL of the UI.
        """
        self.ui_href = href

    def as_thing_description(self) -> dict[str, Any]:
        """Return the Thing Description of this Thing.

        The description is built from copies of the metadata, so it may be
        modified by the caller, and calling this repeatedly with no changes
        in between gives identical results.

        :return: the Thing Description as a dictionary.
        """
        with self._lock:
            prefix = self.href_prefix
            actions = {}
            for name, action_type in self._available_actions.items():
                actions[name] = action_type.metadata.as_dict()
                actions[name]["links"] = [
                    {"rel": "action", "href": f"{prefix}/actions/{name}"}
                ]
            events = {}
            for name, event_type in self._available_events.items():
                events[name] = event_type.metadata.as_dict()
                events[name]["links"] = [
                    {"rel": "event", "href": f"{prefix}/events/{name}"}
                ]
            links: list[dict[str, str]] = [
                {"rel": "properties", "href": f"{prefix}/properties"},
                {"rel": "actions", "href": f"{prefix}/actions"},
                {"rel": "events", "href": f"{prefix}/events"},
                {"rel": "self", "href": self.href},
            ]
            if self.ui_href:
                links.append(
                    {"rel": "alternate", "mediaType": "text/html", "href": self.ui_href}
                )
            extra: dict[str, Any] = {}
            if self.description:
                extra["description"] = self.description
            td = ThingDescription(
                id=self.id,
                title=self.title,
                context=self.context,
                type=list(self.type),
                properties=self.get_property_descriptions(),
                actions=actions,
                events=events,
                links=links,
                **extra,
            )
        return td.as_dict()

    # Properties

    def get_property_descriptions(self) -> dict[str, dict[str, Any]]:
        """Describe the Thing's properties.

        :return: a dictionary mapping property names to descriptions.
        """
        with self._lock:
            return {
                name: prop.as_property_description()
                for name, prop in self._properties.items()
            }

    def add_property(self, property: Property) -> None:
        """Add a property to this thing.

        :param property: the property to add. It replaces any existing
            property with the same name.

        :raise ValueError: if the property was created for a different Thing.
        """
        if property.thing is not self:
            raise ValueError(
                f"Property '{property.name}' belongs to a different Thing."
            )
        with self._lock:
            property.set_href_prefix(self.href_prefix)
            self._properties[property.name] = property

    def remove_property(self, property: Property) -> None:
        """Remove a property from this thing.

        :param property: the property to remove. Nothing happens if it's
            not present.
        """
        with self._lock:
            if self._properties.get(property.name) is property:
                del self._properties[property.name]

    def find_property(self, property_name: str) -> Optional[Property]:
        """Find a property by name.

        :param property_name: the name of the property.

        :return: the `.Property`, or ``None`` if there's no such property.
        """
        with self._lock:
            return self._properties.get(property_name)

    def has_property(self, property_name: str) -> bool:
        """Determine whether this thing has a given property.

        :param property_name: the name of the property.

        :return: ``True`` if the property exists.
        """
        with self._lock:
            return property_name in self._properties

    def get_property(self, property_name: str) -> Any:
        """Get a property's value.

        :param property_name: the name of the property.

        :return: the current value, or ``None`` if there's no such property.
        """
        prop = self.find_property(property_name)
        if prop is None:
            return None
        return prop.get_value()

    def get_properties(self) -> dict[str, Any]:
        """Get the values of all properties.

        :return: a dictionary mapping property names to values.
        """
        with self._lock:
            return {name: prop.get_value() for name, prop in self._properties.items()}

    def set_property(self, property_name: str, value: Any) -> None:
        """Set a property value.

        Setting a property that doesn't exist does nothing. This lets a
        request that sets several properties succeed for those that exist.

        :param property_name: the name of the property.
        :param value: the new value.

        :raise PropertyValidationError: if the value is not valid for the
            property, in which case the property is not changed.
        """
        with self._lock:
            prop = self._properties.get(property_name)
            if prop is None:
                return
            prop.set_value(value)

    # Actions

    def add_available_action(
        self,
        name: str,
        metadata: ActionMetadata | Mapping[str, Any] | None,
        factory: ActionFactory,
    ) -> None:
        """Add an action type to this thing.

        :param name: the name of the action.
        :param metadata: the action metadata (title, description, input
            schema...) as an `.ActionMetadata` or a dictionary.
        :param factory: called as ``factory(thing, input)`` to create each
            action. It may return an `.Action` (so an `.Action` subclass
            whose ``__init__`` takes ``(thing, input)`` may be used directly)
            or an `.ActionBehaviour`, which is wrapped in an `.Action` with a
            new unique ID.

        :raise jsonschema.exceptions.SchemaError: if the input schema is
            invalid.
        """
        action_metadata = coerce_metadata(ActionMetadata, metadata)
        validator = None
        if action_metadata.input is not None:
            validator = make_validator(sanitize_input_schema(action_metadata.input))
        with self._lock:
            self._available_actions[name] = AvailableAction(
                metadata=action_metadata,
                factory=factory,
                input_validator=validator,
            )
            self._actions.setdefault(name, [])

    def perform_action(self, action_name: str, input: Any = None) -> Optional[Action]:
        """Create an action, ready to be started.

        The input is checked against the action's input schema (if it has
        one). The new action is added to the Thing and subscribers are
        notified that it has been ``created``. The caller must then call
        `.Action.start`.

        :param action_name: the name of the action.
        :param input: the input for the action.

        :return: the new `.Action`, or ``None`` if there is no such action or
            the input is not valid.
        """
        with self._lock:
            action_type = self._available_actions.get(action_name)
            if action_type is None:
                _LOGGER.debug("Rejected request for unknown action %s", action_name)
                return None
            if action_type.input_validator is not None:
                error = first_error(action_type.input_validator, input)
                if error is not None:
                    _LOGGER.debug(
                        "Rejected input for action %s: %s", action_name, error.message
                    )
                    return None

            created = action_type.factory(self, input)
            if isinstance(created, Action):
                action = created
            else:
                action = Action(str(uuid.uuid4()), self, action_name, input, created)
            action.set_href_prefix(self.href_prefix)
            self.action_notify(action)
            self._actions[action_name].append(action)
            self._discard_old_actions(action_name)
            return action

    def _discard_old_actions(self, action_name: str) -> None:
        """Drop the oldest completed actions, if there are too many."""
        if self.action_history_length is None:
            return
        actions = self._actions[action_name]
        excess = len(actions) - self.action_history_length
        for action in list(actions):
            if excess <= 0:
                break
            if action.status is ActionStatus.COMPLETED:
                actions.remove(action)
                excess -= 1

    def get_action(self, action_name: str, action_id: str) -> Optional[Action]:
        """Get an action.

        :param action_name: the name of the action.
        :param action_id: the ID of the action.

        :return: the `.Action`, or ``None`` if it's not found.
        """
        with self._lock:
            for action in self._actions.get(action_name, []):
                if action.id == action_id:
                    return action
            return None

    def remove_action(self, action_name: str, action_id: str) -> bool:
        """Cancel and remove an existing action.

        :param action_name: the name of the action.
        :param action_id: the ID of the action.

        :return: ``True`` if the action was found and removed.
        """
        action = self.get_action(action_name, action_id)
        if action is None:
            return False
        # Cancel without holding the lock, in case cancel() waits for the
        # action's thread, which may itself need the lock.
        action.cancel()
        with self._lock:
            actions = self._actions[action_name]
            if action in actions:
                actions.remove(action)
        return True

    def get_action_descriptions(
        self, action_name: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """Describe the Thing's actions.

        :param action_name: only describe actions with this name.

        :return: a list of action descriptions, oldest first.
        """
        with self._lock:
            if not action_name:
                actions = [a for name in self._actions for a in self._actions[name]]
            else:
                actions = list(self._actions.get(action_name, []))
            return [a.as_action_description() for a in actions]

    # Events

    def add_available_event(
        self,
        name: str,
        metadata: EventMetadata | Mapping[str, Any] | None = None,
    ) -> None:
        """Add an event type to this thing.

        :param name: the name of the event.
        :param metadata: the event metadata (type, description, unit...) as
            an `.EventMetadata` or a dictionary.
        """
        event_metadata = coerce_metadata(EventMetadata, metadata)
        with self._lock:
            self._available_events[name] = AvailableEvent(metadata=event_metadata)

    def add_event(self, event: Event) -> None:
        """Record a new event and notify its subscribers.

        :param event: the event that occurred.
        """
        with self._lock:
            self._events.append(event)
            self.event_notify(event)

    def get_event_descriptions(
        self, event_name: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """Describe the events that have occurred.

        :param event_name: only describe events with this name.

        :return: a list of event descriptions, oldest first.
        """
        with self._lock:
            return [
                e.as_event_description()
                for e in self._events
                if not event_name or e.name == event_name
            ]

    # Subscribers

    def add_subscriber(self, subscriber: Subscriber) -> None:
        """Add a subscriber for property and action notifications.

        :param subscriber: the subscriber, e.g. a websocket connection.
        """
        with self._lock:
            self._subscribers.add(subscriber)

    def remove_subscriber(self, subscriber: Subscriber) -> None:
        """Remove a subscriber, including from every event it subscribed to.

        :param subscriber: the subscriber to remove.
        """
        with self._lock:
            self._subscribers.discard(subscriber)
            for event_type in self._available_events.values():
                event_type.subscribers.discard(subscriber)

    def add_event_subscriber(self, name: str, subscriber: Subscriber) -> None:
        """Subscribe to an event.

        :param name: the name of the event. Unknown names are ignored.
        :param subscriber: the subscriber.
        """
        with self._lock:
            if name in self._available_events:
                self._available_events[name].subscribers.add(subscriber)

    def remove_event_subscriber(self, name: str, subscriber: Subscriber) -> None:
        """Unsubscribe from an event.

        :param name: the name of the event.
        :param subscriber: the subscriber.
        """
        with self._lock:
            if name in self._available_events:
                self._available_events[name].subscribers.discard(subscriber)

    def _send(self, subscribers: set[Subscriber], message: dict[str, Any]) -> None:
        """Send a message to each subscriber, ignoring delivery failures."""
        for subscriber in list(subscribers):
            try:
                subscriber.send(message)
            except Exception as e:  # noqa: BLE001
                # One closed connection must not stop delivery to the others.
                _LOGGER.debug("Could not notify %r: %r", subscriber, e)

    def property_notify(self, property: Property) -> None:
        """Notify all subscribers of a property change.

        :param property: the property that changed.
        """
        with self._lock:
            message = PropertyStatusMessage(
                data={property.name: property.get_value()}
            ).model_dump()
            self._send(self._subscribers, message)

    def action_notify(self, action: Action) -> None:
        """Notify all subscribers of an action status change.

        :param action: the action whose status changed.
        """
        with self._lock:
            message = ActionStatusMessage(
                data=action.as_action_description()
            ).model_dump()
            self._send(self._subscribers, message)

    def event_notify(self, event: Event) -> None:
        """Notify the subscribers of an event that it has occurred.

        Only subscribers to this event type are notified, not every
        subscriber to the Thing.

        :param event: the event that occurred.
        """
        with self._lock:
            event_type = self._available_events.get(event.name)
            if event_type is None:
                return
            message = EventMessage(data=event.as_event_description()).model_dump()
            self._send(event_type.subscribers, message)
