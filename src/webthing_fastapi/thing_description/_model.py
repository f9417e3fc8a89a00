"""pydantic models for affordance metadata and Thing Descriptions.

Property, action and event metadata are loosely-typed bags of optional
fields in the Web Thing API. We model the fields we know about explicitly,
so that typos in types or bounds are caught when a `.Thing` is built rather
than when a client first reads its description, and allow any other keys
through unchanged. JSON Schema keywords such as ``items`` or ``required``
are therefore preserved, and are honoured by validation.
"""

from __future__ import annotations
import copy
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

JSONType = Literal["null", "boolean", "object", "array", "number", "integer", "string"]
Number = Union[int, float]


class LinkElement(BaseModel):
    """A link, as used in the ``links`` arrays of a Thing Description."""

    model_config = ConfigDict(extra="allow")

    rel: Optional[str] = None
    href: str
    mediaType: Optional[str] = None


class AffordanceMetadata(BaseModel):
    """Fields common to the metadata of every interaction affordance."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    semantic_type: Optional[Union[str, list[str]]] = Field(
        default=None, alias="@type"
    )
    title: Optional[str] = None
    description: Optional[str] = None
    links: Optional[list[LinkElement]] = None

    def as_dict(self) -> dict[str, Any]:
        """Return the metadata as a fresh dictionary.

        Only fields that were supplied are included, so explicit ``None``
        values survive while absent fields stay absent. The result is a deep
        copy and may be modified freely.

        :return: the metadata as a dictionary using the wire field names.
        """
        return copy.deepcopy(self.model_dump(by_alias=True, exclude_unset=True))


class DataSchemaMetadata(AffordanceMetadata):
    """Metadata that also describes a data value, as a JSON schema."""

    type: Optional[JSONType] = None
    unit: Optional[str] = None
    minimum: Optional[Number] = None
    maximum: Optional[Number] = None
    multipleOf: Optional[Number] = None
    enum: Optional[list[Any]] = None
    readOnly: Optional[bool] = None

    def schema_dict(self) -> dict[str, Any]:
        """Return the metadata as a JSON schema for validating values.

        ``links`` is not a data constraint, so it is removed. Annotation
        keywords like ``title`` and ``unit`` are left in place, as JSON
        schema validators ignore them.

        :return: a JSON schema dictionary.
        """
        schema = self.as_dict()
        schema.pop("links", None)
        return schema


class PropertyMetadata(DataSchemaMetadata):
    """Metadata for a `.Property`."""


class EventMetadata(DataSchemaMetadata):
    """Metadata for an event type registered with `.Thing.add_available_event`."""


class ActionMetadata(AffordanceMetadata):
    """Metadata for an action type registered with `.Thing.add_available_action`.

    ``input`` is a JSON schema that action input is validated against before
    an `.Action` is created.
    """

    input: Optional[dict[str, Any]] = None
    output: Optional[dict[str, Any]] = None


class ThingDescription(BaseModel):
    """A Thing Description, as served at the root URL of each Thing.

    Affordances are stored as plain dictionaries because their metadata may
    contain arbitrary extra keys. The server adds ``href``, ``base`` and
    the security fields to the serialised description when it is served.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    title: str
    context: str = Field(alias="@context")
    type: list[str] = Field(alias="@type")
    properties: dict[str, dict[str, Any]]
    actions: dict[str, dict[str, Any]]
    events: dict[str, dict[str, Any]]
    links: list[LinkElement]
    description: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        """Serialise the description, omitting fields that were not supplied.

        :return: the Thing Description as a dictionary.
        """
        return self.model_dump(by_alias=True, exclude_unset=True)


class NoSecurityScheme(BaseModel):
    """The only security scheme we support: no security."""

    scheme: Literal["nosec"] = "nosec"
