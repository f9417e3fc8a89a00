r"""Pydantic models to load server configuration from a file or string.

A configuration lists the Things to serve, and the options passed to
`.WebThingServer`\ . Each Thing is given as an import string such as
``"webthing_fastapi.example_things:make_lamp"``, or as a `.ThingConfig`
that also supplies arguments. The imported object may be a `.Thing`
subclass or any other callable that returns a `.Thing`\ .

These models are used by the `.cli` module, and by `.server_from_config`\ .
"""

from __future__ import annotations
from importlib import import_module
import re
from typing import Annotated, Any, Optional, TypeAlias, Union
from collections.abc import Mapping, Sequence

from pydantic import (
    AliasChoices,
    BaseModel,
    Field,
    ImportString,
    ValidatorFunctionWrapHandler,
    WrapValidator,
    field_validator,
)

PYTHON_EL_RE_STR = r"[a-zA-Z_][a-zA-Z0-9_]*"
IMPORT_REGEX = re.compile(
    rf"^{PYTHON_EL_RE_STR}(?:\.{PYTHON_EL_RE_STR})*:{PYTHON_EL_RE_STR}$"
)


class ThingImportFailure(BaseException):
    """A Thing could not be imported. Raised with the import traceback."""


def contain_import_errors(value: Any, handler: ValidatorFunctionWrapHandler) -> Any:  # noqa: DOC503
    """Report a module that won't import as one clear error.

    pydantic's `ImportString` turns any exception raised while importing a
    module into a validation error, which hides the traceback. This wraps
    it, and re-raises the underlying failure as a `.ThingImportFailure`.

    :param value: The value being validated.
    :param handler: The validator handler.

    :return: The validated value.

    :raises ThingImportFailure: if the module can't be imported or doesn't
        contain the named object, with the traceback of the import.
    """
    try:
        return handler(value)
    except Exception:
        if not (isinstance(value, str) and IMPORT_REGEX.match(value)):
            raise
        module_name, object_name = value.split(":")
        try:
            module = import_module(module_name)
        except Exception as import_err:  # noqa: BLE001
            msg = f"[{type(import_err).__name__}] {import_err}"
            exc = ThingImportFailure(msg)
            raise exc.with_traceback(import_err.__traceback__) from None
        if not hasattr(module, object_name):
            msg = (
                f"[ImportError] cannot import name '{object_name}' from "
                f"'{module_name}'"
            )
            raise ThingImportFailure(msg) from None
        raise


ThingImportString = Annotated[
    ImportString,
    WrapValidator(contain_import_errors),
]


class ThingConfig(BaseModel):
    r"""The information needed to create a `.Thing` for a `.WebThingServer`\ ."""

    cls: ThingImportString = Field(
        validation_alias=AliasChoices("cls", "class"),
        description="A Thing subclass, or a function that returns a Thing.",
    )

    args: Sequence[Any] = Field(
        default_factory=list,
        description="Positional arguments to pass to `cls`.",
    )

    kwargs: Mapping[str, Any] = Field(
        default_factory=dict,
        description="Keyword arguments to pass to `cls`.",
    )


ThingsConfig: TypeAlias = Sequence[Union[ThingConfig, ThingImportString]]


class ThingServerConfig(BaseModel):
    r"""The configuration parameters for a `.WebThingServer`\ ."""

    things: ThingsConfig = Field(
        min_length=1,
        description=(
            """The Things to serve.

            A single Thing is served at the root of the server. Several
            Things are served under their index in this list, e.g. ``/0``.
            Each one is either the import string of a class or function, or
            a `.ThingConfig` that also gives arguments.
            """
        ),
    )

    @field_validator("things", mode="after")
    @classmethod
    def check_things(cls, things: ThingsConfig) -> ThingsConfig:
        r"""Convert every item of ``things`` to a `.ThingConfig`.

        Import strings become `.ThingConfig` objects with no arguments, and
        dictionaries are validated as `.ThingConfig`\ . We don't check for
        `.Thing` instances here, as that happens when they are created.

        :param things: The validated value of the field.

        :return: A list of `.ThingConfig` instances.
        """
        return normalise_things_config(things)

    @property
    def thing_configs(self) -> list[ThingConfig]:
        """The ``things`` field, where every item is a `.ThingConfig`."""
        return normalise_things_config(self.things)

    name: str = Field(
        default="WebThings",
        description="The name of the collection, if there are several Things.",
    )

    port: Optional[int] = Field(
        default=None,
        description="The port to listen on. Defaults to 80, or 443 with TLS.",
    )

    hostname: Optional[str] = Field(
        default=None,
        description="An extra host name to accept in the Host header.",
    )

    base_path: str = Field(
        default="/",
        description="The path under which the Things are served.",
    )

    disable_host_validation: bool = Field(
        default=False,
        description="Accept requests with any Host header.",
    )


def normalise_things_config(things: ThingsConfig) -> list[ThingConfig]:
    r"""Ensure every Thing is defined by a `.ThingConfig` object.

    :param things: A list of Things, either as imported objects or
        `.ThingConfig` objects or dictionaries.

    :return: A list of `.ThingConfig` objects.

    :raises ValueError: if an item is neither a `.ThingConfig`, a
        `dict` nor a callable.
    """
    normalised: list[ThingConfig] = []
    for item in things:
        if isinstance(item, ThingConfig):
            normalised.append(item)
        elif isinstance(item, Mapping):
            normalised.append(ThingConfig.model_validate(item))
        elif callable(item):
            normalised.append(ThingConfig(cls=item))
        else:
            raise ValueError(
                "Things must be specified either as a callable or a ThingConfig."
            )
    return normalised
