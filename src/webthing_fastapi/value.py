"""An observable, settable value.

A `.Value` is used for communicating between the `.Thing` representation
and the actual physical device. It caches the last known value, and tells
its observer (the `.Property` that owns it) whenever that value changes,
either because a client wrote a new value or because the device reported
a new reading.
"""

from __future__ import annotations
from threading import Lock
from typing import Any, Callable, Generic, Optional, TypeVar

from .exceptions import ValueAlreadyObservedError

T = TypeVar("T")


class Value(Generic[T]):
    """A property value.

    Device drivers create a `.Value`, optionally with a ``value_forwarder``
    that writes new values to the hardware, and call
    `.Value.notify_of_external_update` when a sensor produces a new reading.
    That is the entire interface a driver needs.
    """

    def __init__(
        self,
        initial_value: T,
        value_forwarder: Optional[Callable[[T], None]] = None,
    ) -> None:
        """Initialise the value.

        :param initial_value: the value to report until something changes it.
        :param value_forwarder: a function that updates the actual value on
            the device. It is called from `.Value.set` and may raise an
            exception if the device could not be updated.
        """
        self._last_value: T = initial_value
        self._value_forwarder = value_forwarder
        self._observer: Optional[Callable[[T], None]] = None
        self._lock = Lock()

    def set_observer(self, callback: Callable[[T], None]) -> None:
        """Register the function to call when the value changes.

        There is a single observer slot, filled by the `.Property` that owns
        this value.

        :param callback: called with the new value after each change.

        :raise ValueAlreadyObservedError: if an observer is already set.
        """
        if self._observer is not None:
            raise ValueAlreadyObservedError(
                "This Value already belongs to a Property, and may not be shared."
            )
        self._observer = callback

    def get(self) -> T:
        """Return the last known value from the underlying device."""
        return self._last_value

    def set(self, value: T) -> None:
        """Set a new value, forwarding it to the device.

        The forwarder (if there is one) is called first. If it raises, the
        exception propagates and the cached value is left unchanged, so the
        reported value always matches what the device actually has.

        :param value: the new value.
        """
        if self._value_forwarder is not None:
            self._value_forwarder(value)
        self.notify_of_external_update(value)

    def notify_of_external_update(self, value: T) -> None:
        """Record a new value reported by the device, and notify the observer.

        Nothing happens if ``value`` is ``None`` or equal to the current
        value of the same type, so repeated identical readings produce a single
        notification. ``False`` is a change from ``0``, as is ``1.0`` from ``1``.

        :param value: the new value.
        """
        if value is None:
            return
        with self._lock:
            if type(value) is type(self._last_value) and value == self._last_value:
                return
            self._last_value = value
        if self._observer is not None:
            self._observer(value)
