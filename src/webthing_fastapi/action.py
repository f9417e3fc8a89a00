"""Actions performed by a `.Thing`.

An `.Action` is a request to do something that may take a while. Each one
has a lifecycle tracked by its `.ActionStatus`, which only ever moves
forward::

    created --start()--> pending --finish()--> completed

`.Thing.perform_action` creates actions in the ``created`` state, and the
caller then calls `.Action.start`. The two steps are separate so that the
HTTP transport can send its ``201 Created`` response before the work begins.

The work itself is done by `.Action.perform_action`. This may be provided
either by subclassing `.Action`, or by wrapping any object that implements
`.ActionBehaviour`. It runs in its own thread, so it may block (e.g. while
waiting for hardware) without holding up the server. ``async def``
implementations are also supported, and are run in an event loop in that
thread.
"""

from __future__ import annotations
from enum import Enum
import inspect
import logging
from threading import Event, Lock, Thread
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Optional,
    Protocol,
    runtime_checkable,
)
from weakref import ref

import anyio

from .exceptions import ActionAlreadyStartedError, ActionError
from .utilities import timestamp

if TYPE_CHECKING:
    from .thing import Thing

_LOGGER = logging.getLogger(__name__)


class ActionStatus(Enum):
    """The current status of an `.Action`."""

    CREATED = "created"
    """The `.Action` has been requested, but not yet started."""
    PENDING = "pending"
    """The `.Action` is running in its thread."""
    COMPLETED = "completed"
    """The `.Action` has finished, whether or not its work succeeded."""


@runtime_checkable
class ActionBehaviour(Protocol):
    """The work done by an action.

    Objects implementing this protocol may be returned by the factory passed
    to `.Thing.add_available_action`, and will be wrapped in a generic
    `.Action`. A ``cancel()`` method is optional: if present, it is called
    when the action is cancelled.
    """

    def perform_action(self) -> Any:
        """Do the work of the action, blocking until it is finished."""
        ...


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


class Action:
    """An Action represents an individual action on a thing."""

    def __init__(
        self,
        id: str,
        thing: Thing,
        name: str,
        input: Any = None,
        behaviour: Optional[ActionBehaviour] = None,
    ) -> None:
        """Create an action in the ``created`` state.

        :param id: the ID of this action, unique among actions with the same
            name on the same `.Thing`.
        :param thing: the `.Thing` this action belongs to. Only a weak
            reference is kept, so an action never keeps its Thing alive.
        :param name: the name of the action type.
        :param input: the input supplied when the action was requested. This
            has already been validated against the action's input schema.
        :param behaviour: an object that does the work, if `.perform_action`
            is not overridden in a subclass.
        """
        self.id = id
        self._thing = ref(thing)
        self.name = name
        self.input = input
        self.behaviour = behaviour
        self.href_prefix = ""
        self._href = f"/actions/{name}/{id}"

        self._status_lock = Lock()  # This Lock protects the properties below
        self._status = ActionStatus.CREATED
        self.time_requested: str = timestamp()
        self.time_completed: Optional[str] = None
        self.exception: Optional[BaseException] = None

        self.cancel_requested = Event()
        """Set when the action is cancelled. Long-running work may poll this."""
        self._finished = Event()
        self._thread: Optional[Thread] = None

    @property
    def thing(self) -> Optional[Thing]:
        """The `.Thing` this action belongs to, if it still exists."""
        return self._thing()

    @property
    def status(self) -> ActionStatus:
        """The current status of the action."""
        with self._status_lock:
            return self._status

    @property
    def href(self) -> str:
        """The URL of this action, including any prefix."""
        return f"{self.href_prefix}{self._href}"

    def set_href_prefix(self, prefix: str) -> None:
        """Set the prefix of any hrefs associated with this action.

        :param prefix: the prefix, e.g. ``/0`` for the first of several Things.
        """
        self.href_prefix = prefix

    def as_action_description(self) -> dict[str, dict[str, Any]]:
        """Describe the action, as it is sent to clients.

        :return: a dictionary of the form ``{name: {"href": ..., ...}}``.
            ``input`` is only present if there was input, and
            ``timeCompleted`` only once the action has completed.
        """
        with self._status_lock:
            description: dict[str, Any] = {
                "href": self.href,
                "timeRequested": self.time_requested,
                "status": self._status.value,
            }
            if self.input is not None:
                description["input"] = self.input
            if self.time_completed is not None:
                description["timeCompleted"] = self.time_completed
        return {self.name: description}

    def _notify(self) -> None:
        thing = self.thing
        if thing is not None:
            thing.action_notify(self)

    def start(self) -> None:
        """Start performing the action.

        The status changes to ``pending`` (and subscribers are notified)
        before this method returns. `.Action.perform_action` then runs in a
        new thread, and `.Action.finish` is called when it returns or raises.

        :raise ActionAlreadyStartedError: if the action has been started before.
        """
        with self._status_lock:
            if self._status is not ActionStatus.CREATED:
                raise ActionAlreadyStartedError(
                    f"Action {self.name}/{self.id} is already {self._status.value}."
                )
            self._status = ActionStatus.PENDING
        self._notify()
        self._thread = Thread(
            target=self._run, name=f"action-{self.name}-{self.id}", daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        """Run the action's work, then finish it whatever happens."""
        try:
            ret = self.perform_action()
            if inspect.isawaitable(ret):
                anyio.run(_await, ret)
        except ActionError as e:
            # Anticipated errors are logged without a traceback
            self.exception = e
            _LOGGER.error("Action %s/%s failed: %s", self.name, self.id, e)
        except Exception as e:  # skipcq: PYL-W0703
            self.exception = e
            _LOGGER.exception("Action %s/%s raised an exception", self.name, self.id)
        finally:
            self.finish()

    def perform_action(self) -> Any:
        """Do the work of the action.

        Override this in a subclass, or supply a ``behaviour``. It may be a
        normal method (which may block) or an ``async def`` method. The
        default does nothing, unless there is a ``behaviour``, in which case
        its ``perform_action`` is called.

        :return: ``None``, or an awaitable that will be awaited.
        """
        if self.behaviour is not None:
            return self.behaviour.perform_action()
        return None

    def cancel(self) -> None:
        """Ask the action to stop.

        This is advisory. It sets `.Action.cancel_requested` and calls the
        behaviour's ``cancel()`` method, if there is one, but it does not
        change the status. `.Thing.remove_action` calls this before it drops
        the action.
        """
        self.cancel_requested.set()
        cancel = getattr(self.behaviour, "cancel", None)
        if callable(cancel):
            cancel()

    def finish(self) -> None:
        """Finish performing the action.

        The status changes to ``completed``, the completion time is recorded
        and subscribers are notified. Calling this again has no effect.
        """
        with self._status_lock:
            if self._status is ActionStatus.COMPLETED:
                return
            self._status = ActionStatus.COMPLETED
            self.time_completed = timestamp()
        self._notify()
        self._finished.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the action has finished.

        :param timeout: the maximum time to wait, in seconds.

        :return: ``True`` if the action has completed, ``False`` on timeout.
        """
        return self._finished.wait(timeout)
