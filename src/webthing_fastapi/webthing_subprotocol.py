"""Web Thing WebSocket message models.

This module defines models for the messages sent over websockets, following
the `Web Thing API <https://webthings.io/api/#web-thing-websocket-api>`_.
Every message is a JSON object with a ``messageType`` and some ``data``.

Messages sent by the server are notifications of property changes, action
status changes and events, or errors. Messages from clients set properties,
request actions or subscribe to events.
"""

from __future__ import annotations
from http import HTTPStatus
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

__all__ = [
    "ValidationError",
    "WebThingMessage",
    "PropertyStatusMessage",
    "ActionStatusMessage",
    "EventMessage",
    "ErrorDetails",
    "ErrorMessage",
    "IncomingMessage",
    "error_message",
]


class WebThingMessage(BaseModel):
    """A base model for all websocket messages."""

    messageType: str
    data: Any


class PropertyStatusMessage(WebThingMessage):
    """Sent when property values change: ``data`` maps names to values."""

    messageType: Literal["propertyStatus"] = "propertyStatus"
    data: dict[str, Any]


class ActionStatusMessage(WebThingMessage):
    """Sent when an action changes status: ``data`` is its description."""

    messageType: Literal["actionStatus"] = "actionStatus"
    data: dict[str, dict[str, Any]]


class EventMessage(WebThingMessage):
    """Sent to event subscribers: ``data`` is the event description."""

    messageType: Literal["event"] = "event"
    data: dict[str, dict[str, Any]]


class ErrorDetails(BaseModel):
    """The body of an error message.

    ``status`` is an HTTP status line such as ``"400 Bad Request"``, and
    ``request`` echoes the message that caused the error, where relevant.
    """

    status: str
    message: str
    request: Optional[Any] = None


class ErrorMessage(WebThingMessage):
    """Sent in response to a message that couldn't be processed."""

    messageType: Literal["error"] = "error"
    data: ErrorDetails


class IncomingMessage(BaseModel):
    """A message received from a client.

    Only the envelope is checked here. ``data`` is interpreted according to
    ``messageType``:

    * ``setProperty``: ``{name: value, ...}``
    * ``requestAction``: ``{name: {"input": ...}, ...}``
    * ``addEventSubscription``: ``{name: {}, ...}``
    """

    model_config = ConfigDict(extra="allow")

    messageType: str
    data: dict[str, Any]


def error_message(
    status: HTTPStatus, message: str, request: Optional[Any] = None
) -> dict[str, Any]:
    """Make an error message, ready to send to a websocket.

    :param status: the HTTP status that best describes the error.
    :param message: a human-readable description of the error.
    :param request: the message that caused the error, if it should be
        sent back to the client.

    :return: the error message as a dictionary.
    """
    details = ErrorDetails(
        status=f"{status.value} {status.phrase}", message=message, request=request
    )
    return ErrorMessage(data=details).model_dump(exclude_none=True)
