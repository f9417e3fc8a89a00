"""Thing Description module.

This module supports the generation of Thing Descriptions. The top level
function lives in `.Thing.as_thing_description`, but the supporting models
and validation code are in this submodule.

pydantic models for affordance metadata and the description itself are in
`.thing_description._model`. Using `pydantic.BaseModel` means that mistakes
in metadata are caught when a `.Thing` is built in Python, which makes them
much easier to debug.

JSON schema validation of property values and action input is in
`.thing_description.validation`.
"""

from __future__ import annotations
from typing import Any, Mapping, TypeVar

from ._model import (
    ActionMetadata,
    AffordanceMetadata,
    DataSchemaMetadata,
    EventMetadata,
    LinkElement,
    NoSecurityScheme,
    PropertyMetadata,
    ThingDescription,
)

__all__ = [
    "ActionMetadata",
    "AffordanceMetadata",
    "DataSchemaMetadata",
    "EventMetadata",
    "LinkElement",
    "NoSecurityScheme",
    "PropertyMetadata",
    "ThingDescription",
    "coerce_metadata",
]

MetadataT = TypeVar("MetadataT", bound=AffordanceMetadata)


def coerce_metadata(
    model: type[MetadataT], metadata: MetadataT | Mapping[str, Any] | None
) -> MetadataT:
    """Convert a metadata argument into a metadata model.

    Metadata may be supplied as a model instance, as a dictionary using the
    wire field names (e.g. ``"@type"``, ``"readOnly"``), or as ``None`` for
    no metadata.

    :param model: the metadata model class to use.
    :param metadata: the metadata supplied by the caller.

    :return: an instance of ``model``. Model instances are copied, so the
        caller may keep modifying the original.

    :raise TypeError: if ``metadata`` is neither a model nor a mapping.
    """
    if metadata is None:
        return model()
    if isinstance(metadata, model):
        return metadata.model_copy(deep=True)
    if isinstance(metadata, AffordanceMetadata):
        return model.model_validate(metadata.as_dict())
    if isinstance(metadata, Mapping):
        return model.model_validate(dict(metadata))
    raise TypeError(f"Can't use {metadata!r} as {model.__name__}.")
