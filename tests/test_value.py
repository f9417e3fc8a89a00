"""Test the `Value` class that links properties to devices."""

import pytest

import webthing_fastapi as wt
from webthing_fastapi.exceptions import ValueAlreadyObservedError


def test_initial_value():
    """A new Value reports its initial value."""
    assert wt.Value(3).get() == 3


def test_set_forwards_then_notifies(mocker):
    """`set` calls the forwarder, records the value and notifies."""
    forwarder = mocker.Mock()
    observer = mocker.Mock()
    value = wt.Value(1, forwarder)
    value.set_observer(observer)

    value.set(2)

    forwarder.assert_called_once_with(2)
    observer.assert_called_once_with(2)
    assert value.get() == 2


def test_forwarder_error_leaves_value_unchanged(mocker):
    """If the device refuses a value, it isn't recorded."""
    forwarder = mocker.Mock(side_effect=IOError("device unplugged"))
    observer = mocker.Mock()
    value = wt.Value(1, forwarder)
    value.set_observer(observer)

    with pytest.raises(IOError):
        value.set(5)

    assert value.get() == 1
    observer.assert_not_called()


def test_unchanged_value_does_not_notify(mocker):
    """Repeated identical readings produce a single notification."""
    observer = mocker.Mock()
    value = wt.Value(0.0)
    value.set_observer(observer)

    value.notify_of_external_update(0.0)
    observer.assert_not_called()

    value.notify_of_external_update(1.5)
    value.notify_of_external_update(1.5)
    observer.assert_called_once_with(1.5)


def test_none_is_ignored(mocker):
    """A reading of None is not recorded."""
    observer = mocker.Mock()
    value = wt.Value(True)
    value.set_observer(observer)

    value.notify_of_external_update(None)

    assert value.get() is True
    observer.assert_not_called()


def test_no_observer():
    """Updates work before a Property has been attached."""
    value = wt.Value("a")
    value.notify_of_external_update("b")
    assert value.get() == "b"


def test_single_observer(mocker):
    """A Value may only be observed once."""
    value = wt.Value(0)
    value.set_observer(mocker.Mock())
    with pytest.raises(ValueAlreadyObservedError):
        value.set_observer(mocker.Mock())


@pytest.mark.parametrize(
    ("initial", "new"),
    [(0, False), (1, True), (False, 0), (1, 1.0)],
)
def test_type_change_is_a_change(mocker, initial, new):
    """Values that compare equal but differ in type are recorded."""
    observer = mocker.Mock()
    value = wt.Value(initial)
    value.set_observer(observer)

    value.set(new)

    assert value.get() is new
    observer.assert_called_once_with(new)


def test_untyped_property_accepts_bool():
    thing = wt.Thing("urn:dev:test:untyped", "Untyped")
    thing.add_property(wt.Property(thing, "any", wt.Value(0)))
    thing.set_property("any", False)
    assert thing.get_property("any") is False
