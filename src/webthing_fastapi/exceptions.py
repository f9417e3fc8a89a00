"""A submodule for custom WebThing-FastAPI Exceptions."""


# An __all__ for this module is less than helpful, unless we have an
# automated check that everything's included.


class PropertyValidationError(ValueError):
    """A value could not be written to a property.

    This is raised by `.Property.set_value` (and so by `.Thing.set_property`)
    when the new value does not satisfy the JSON schema in the property's
    metadata. The write is rejected before the underlying `.Value` is
    touched, so a failed write never changes the property.

    The HTTP and websocket transports translate this error into a
    ``400 Bad Request`` response.
    """


class ReadOnlyPropertyError(PropertyValidationError):
    """A property is read-only.

    The property's metadata declares ``readOnly: true``, so it may not be
    written to over the network. Device code should update read-only
    properties with `.Value.notify_of_external_update` instead.
    """


class ValueAlreadyObservedError(RuntimeError):
    """A `.Value` is already bound to a `.Property`.

    Each `.Value` has a single observer slot, which is filled by the
    `.Property` that owns it. Sharing one `.Value` between two properties
    would leave one of them silently disconnected, so it is an error.
    """


class ActionAlreadyStartedError(RuntimeError):
    """An action has been started more than once.

    The action lifecycle only moves forward (``created`` to ``pending`` to
    ``completed``), so `.Action.start` may only be called on an action that
    is still ``created``.
    """


class ActionError(RuntimeError):
    """The action ended in an anticipated error state.

    When this error is raised from `.Action.perform_action`, the work stops
    and the error is logged at error level without a traceback. The action
    still finishes with ``completed`` status.

    Subclass this error for errors that do not need further traceback
    information to be provided with the error message in logs.
    """


class ServerNotRunningError(RuntimeError):
    """The WebThingServer is not running.

    This exception is raised when a function assumes the server's event loop
    is running, and it is not. Websocket subscribers need the loop in order to
    deliver messages.
    """
