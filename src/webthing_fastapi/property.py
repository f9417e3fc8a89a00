"""Properties of a `.Thing`.

A `.Property` represents an individual state value of a `.Thing`. It binds
a `.Value` (which talks to the device) to a name and some metadata. The
metadata is a JSON schema that documents the property in the Thing
Description and is also used to validate values written by clients.
"""

from __future__ import annotations
from typing import TYPE_CHECKING, Any, Generic, Mapping, Optional, TypeVar
from weakref import ref

from .exceptions import PropertyValidationError, ReadOnlyPropertyError
from .thing_description import PropertyMetadata, coerce_metadata
from .thing_description.validation import first_error, make_validator
from .value import Value

if TYPE_CHECKING:
    from .thing import Thing

T = TypeVar("T")


class Property(Generic[T]):
    """A Property represents an individual state value of a thing."""

    def __init__(
        self,
        thing: Thing,
        name: str,
        value: Value[T],
        metadata: PropertyMetadata | Mapping[str, Any] | None = None,
    ) -> None:
        """Initialise the property.

        :param thing: the `.Thing` this property belongs to. Only a weak
            reference is kept.
        :param name: the name of the property, unique within its `.Thing`.
        :param value: the `.Value` holding the property's value. It must not
            be shared with any other property.
        :param metadata: the property metadata (type, description, unit,
            bounds and so on), either as a `.PropertyMetadata` or as a
            dictionary using the Web Thing field names.

        :raise jsonschema.exceptions.SchemaError: if the metadata is not a
            valid JSON schema.
        """
        self._thing = ref(thing)
        self.name = name
        self.value = value
        self.metadata: PropertyMetadata = coerce_metadata(PropertyMetadata, metadata)
        self.href_prefix = ""
        self._href = f"/properties/{name}"
        self._validator = make_validator(self.metadata.schema_dict())

        # Tell the Thing whenever the underlying value changes.
        self.value.set_observer(self._value_updated)

    def _value_updated(self, _new_value: T) -> None:
        thing = self._thing()
        if thing is not None:
            thing.property_notify(self)

    @property
    def thing(self) -> Optional[Thing]:
        """The `.Thing` this property belongs to, if it still exists."""
        return self._thing()

    @property
    def href(self) -> str:
        """The URL of this property, including any prefix."""
        return f"{self.href_prefix}{self._href}"

    def set_href_prefix(self, prefix: str) -> None:
        """Set the prefix of any hrefs associated with this property.

        :param prefix: the prefix, e.g. ``/0`` for the first of several Things.
        """
        self.href_prefix = prefix

    def validate_value(self, value: Any) -> None:
        """Check a new value before setting it.

        :param value: the proposed new value.

        :raise ReadOnlyPropertyError: if the property is read-only.
        :raise PropertyValidationError: if the value doesn't match the
            property's schema.
        """
        if self.metadata.readOnly:
            raise ReadOnlyPropertyError(f"Property '{self.name}' is read-only")
        error = first_error(self._validator, value)
        if error is not None:
            raise PropertyValidationError(
                f"Invalid value for property '{self.name}': {error.message}"
            )

    def as_property_description(self) -> dict[str, Any]:
        """Describe the property, for the Thing Description.

        :return: a copy of the metadata, with a link to this property
            appended to ``links``.
        """
        description = self.metadata.as_dict()
        description.setdefault("links", []).append(
            {"rel": "property", "href": self.href}
        )
        return description

    def get_value(self) -> T:
        """Return the current value of the property."""
        return self.value.get()

    def set_value(self, value: T) -> None:
        """Validate and set a new value.

        Nothing is changed if validation fails. If the value's forwarder
        raises an exception, it propagates and the value is not recorded.

        :param value: the new value.
        """
        self.validate_value(value)
        self.value.set(value)
