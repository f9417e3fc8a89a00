"""Validate property values and action input against JSON schemas.

Property metadata and action input schemas are JSON Schema (draft 7)
documents, with a few extra annotation keys used by the Web Thing API. We
use `jsonschema` to check values, so the full vocabulary (``required``,
``items``, ``multipleOf`` and so on) is honoured without hard-coding any
per-type logic here.
"""

from __future__ import annotations
import copy
from typing import Any, Mapping

import jsonschema
import jsonschema.exceptions

JSONSchema = dict[str, Any]

PRESENTATION_KEYS = ("title", "unit", "@type")
"""Keys of an input schema's properties that describe, rather than constrain."""


def make_validator(schema: Mapping[str, Any]) -> jsonschema.Draft7Validator:
    """Check a schema and return a validator for it.

    Checking the schema up front means a mistake in a Thing's metadata
    raises an error when the Thing is built, rather than when a client
    first tries to write a value.

    :param schema: a JSON schema.

    :return: a validator that may be used repeatedly.

    :raise jsonschema.exceptions.SchemaError: if the schema is not valid.
    """
    jsonschema.Draft7Validator.check_schema(schema)
    return jsonschema.Draft7Validator(schema)


def sanitize_input_schema(schema: Mapping[str, Any]) -> JSONSchema:
    """Strip presentation-only keys from an action's input schema.

    Action input schemas are published in the Thing Description, so the
    entries in their ``properties`` often carry ``title``, ``unit`` or
    ``@type`` keys. These are not data constraints, so they are removed
    from a copy of the schema before it is used for validation.

    :param schema: the ``input`` entry of an action's metadata.

    :return: a sanitised deep copy of ``schema``.
    """
    sanitized: JSONSchema = copy.deepcopy(dict(schema))
    properties = sanitized.get("properties")
    if isinstance(properties, Mapping):
        for prop in properties.values():
            if isinstance(prop, dict):
                for key in PRESENTATION_KEYS:
                    prop.pop(key, None)
    return sanitized


def first_error(
    validator: jsonschema.Draft7Validator, value: Any
) -> jsonschema.exceptions.ValidationError | None:
    """Return the most relevant validation error, or ``None`` if ``value`` is valid.

    :param validator: a validator from `.make_validator`.
    :param value: the value to check.

    :return: the best error to report, or ``None``.
    """
    return jsonschema.exceptions.best_match(validator.iter_errors(value))
