"""Relay property changes, action status and events to websocket clients.

Each websocket connection is attached to one `.Thing`. It is registered as
a subscriber of that Thing, so it receives every property and action status
notification, and it may also subscribe to individual events.

Notifications are raised in whichever thread changed the Thing (an HTTP
request, an action, or a sensor polling loop). They are handed to the event
loop through the server's `anyio.from_thread.BlockingPortal`, and placed in
a memory stream that a task reads from and sends to the websocket. This
keeps each client's messages in the order the changes happened, and means
a slow client never blocks the Thing.

Messages from the client are processed in a worker thread, because they
change the Thing and so must not run in the event loop.
"""

from __future__ import annotations
from http import HTTPStatus
import json
import logging
import math
from typing import TYPE_CHECKING, Any, Optional

from anyio import (
    BrokenResourceError,
    CancelScope,
    ClosedResourceError,
    create_memory_object_stream,
    create_task_group,
)
from anyio.abc import ObjectReceiveStream, ObjectSendStream
from anyio.from_thread import BlockingPortal
from anyio.to_thread import run_sync
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

from .exceptions import PropertyValidationError
from .webthing_subprotocol import IncomingMessage, ValidationError, error_message

if TYPE_CHECKING:
    from .thing import Subscriber, Thing

_LOGGER = logging.getLogger(__name__)


class WebSocketSubscriber:
    """A `.Subscriber` that forwards notifications to a websocket.

    ``send`` may be called from any thread except the event loop's own.
    """

    def __init__(
        self, portal: BlockingPortal, send_stream: ObjectSendStream[dict[str, Any]]
    ) -> None:
        """Initialise the subscriber.

        :param portal: a portal into the event loop running the websocket.
        :param send_stream: the stream that is relayed to the websocket.
        """
        self._portal = portal
        self._send_stream = send_stream

    async def _enqueue(self, message: dict[str, Any]) -> None:
        try:
            self._send_stream.send_nowait(message)
        except (BrokenResourceError, ClosedResourceError):
            _LOGGER.debug("Dropped a message for a closed websocket.")

    def send(self, message: dict[str, Any]) -> None:
        """Queue a message to be sent to the websocket.

        :param message: the message, which must be JSON serialisable.

        :raise RuntimeError: if the event loop is no longer running.
        """
        self._portal.start_task_soon(self._enqueue, message)


def handle_message(thing: Thing, subscriber: Subscriber, text: str) -> None:
    """Process one message received from a websocket client.

    Errors are reported to the client with an ``error`` message, and do not
    stop the processing of further messages.

    :param thing: the `.Thing` the websocket is attached to.
    :param subscriber: the subscriber representing this websocket, which is
        used both to subscribe to events and to send error messages.
    :param text: the message received, which should be a JSON object.
    """
    try:
        raw = json.loads(text)
    except ValueError:
        subscriber.send(
            error_message(HTTPStatus.BAD_REQUEST, "Parsing request failed")
        )
        return
    try:
        message = IncomingMessage.model_validate(raw)
    except ValidationError:
        subscriber.send(error_message(HTTPStatus.BAD_REQUEST, "Invalid message"))
        return

    if message.messageType == "setProperty":
        for name, value in message.data.items():
            try:
                thing.set_property(name, value)
            except PropertyValidationError as e:
                subscriber.send(error_message(HTTPStatus.BAD_REQUEST, str(e)))
            except Exception as e:  # noqa: BLE001
                # The device refused the value: tell the client that sent it.
                _LOGGER.debug("Setting %s on %s failed: %r", name, thing.id, e)
                subscriber.send(error_message(HTTPStatus.BAD_REQUEST, str(e)))
    elif message.messageType == "requestAction":
        for name, params in message.data.items():
            action = None
            if isinstance(params, dict):
                action = thing.perform_action(name, params.get("input"))
            if action is not None:
                action.start()
            else:
                subscriber.send(
                    error_message(
                        HTTPStatus.BAD_REQUEST, "Invalid action request", request=raw
                    )
                )
    elif message.messageType == "addEventSubscription":
        for name in message.data:
            thing.add_event_subscriber(name, subscriber)
    else:
        subscriber.send(
            error_message(
                HTTPStatus.BAD_REQUEST,
                f"Unknown messageType: {message.messageType}",
                request=raw,
            )
        )


async def relay_notifications_to_websocket(
    websocket: WebSocket, receive_stream: ObjectReceiveStream[dict[str, Any]]
) -> None:
    """Relay objects from a stream to a websocket as JSON.

    :param websocket: the WebSocket we are communicating over.
    :param receive_stream: the stream of messages to send.
    """
    async with receive_stream:
        async for item in receive_stream:
            try:
                await websocket.send_json(jsonable_encoder(item))
            except (WebSocketDisconnect, RuntimeError):
                # The socket closed while messages were still queued.
                return


async def process_messages_from_websocket(
    websocket: WebSocket,
    send_stream: ObjectSendStream[dict[str, Any]],
    thing: Thing,
    subscriber: Subscriber,
) -> None:
    """Process messages received from a websocket, until it disconnects.

    Binary frames are decoded as UTF-8 text. Frames that aren't valid UTF-8
    get the same error as unparsable JSON.

    :param websocket: the WebSocket we are communicating over.
    :param send_stream: the stream relayed to the websocket. It is closed
        when the client disconnects, which stops the relay.
    :param thing: the `.Thing` the websocket is attached to.
    :param subscriber: the subscriber representing this websocket.
    """
    async with send_stream:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
            text = message.get("text")
            if text is None:
                try:
                    text = (message.get("bytes") or b"").decode("utf-8")
                except UnicodeDecodeError:
                    await run_sync(
                        subscriber.send,
                        error_message(HTTPStatus.BAD_REQUEST, "Parsing request failed"),
                    )
                    continue
            await run_sync(handle_message, thing, subscriber, text)


async def websocket_endpoint(
    thing: Optional[Thing], websocket: WebSocket, portal: BlockingPortal
) -> None:
    """Handle communication to a client via websocket.

    :param thing: the `.Thing` the websocket is attached to, or ``None`` if
        the client asked for a Thing that doesn't exist.
    :param websocket: the web socket that has been created.
    :param portal: a portal into the event loop handling ``websocket``.
    """
    if thing is None:
        await websocket.accept()
        await websocket.send_json(
            error_message(HTTPStatus.NOT_FOUND, "Invalid thing_id")
        )
        await websocket.close()
        return
    send_stream, receive_stream = create_memory_object_stream[dict[str, Any]](
        max_buffer_size=math.inf
    )
    subscriber = WebSocketSubscriber(portal, send_stream)
    # Subscribe before accepting, so no change after the handshake is missed.
    await run_sync(thing.add_subscriber, subscriber)
    try:
        await websocket.accept()
        async with create_task_group() as tg:
            tg.start_soon(relay_notifications_to_websocket, websocket, receive_stream)
            tg.start_soon(
                process_messages_from_websocket,
                websocket,
                send_stream,
                thing,
                subscriber,
            )
    finally:
        with CancelScope(shield=True):
            await run_sync(thing.remove_subscriber, subscriber)
