"""Schema adapter: turns Pydantic types into structural tool schemas.

A :class:`SchemaDescriptor` serves two purposes: it advertises a tool's input
shape in ``tools/list`` (``describe``) and checks incoming arguments before a
handler runs (``validate``).  :func:`adapt` builds one from any type that
Pydantic's :class:`~pydantic.TypeAdapter` understands::

    class EchoArgs(BaseModel):
        message: str

    schema = adapt(EchoArgs)
    schema.describe()            # {"type": "object", "properties": {...}, ...}
    schema.validate({"message": "hi"})   # EchoArgs(message="hi")
"""

from __future__ import annotations

import copy
import json
from typing import Any, Protocol, runtime_checkable

from pydantic import PydanticUserError, TypeAdapter, ValidationError
from pydantic.errors import PydanticSchemaGenerationError

from paperserve.protocols.errors import SchemaAdaptationError, SchemaValidationError

_EMPTY_OBJECT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


@runtime_checkable
class SchemaDescriptor(Protocol):
    """Structural schema for a tool's arguments."""

    def describe(self) -> dict[str, Any]:
        """Return the JSON Schema advertised to protocol clients."""
        ...

    def validate(self, value: Any) -> Any:
        """Return the decoded value or raise :class:`SchemaValidationError`."""
        ...


class PydanticSchema:
    """:class:`SchemaDescriptor` backed by a Pydantic ``TypeAdapter``."""

    def __init__(self, source: Any, adapter: TypeAdapter[Any], json_schema: dict[str, Any]) -> None:
        self.source = source
        self._adapter = adapter
        self._json_schema = json_schema

    def describe(self) -> dict[str, Any]:
        return copy.deepcopy(self._json_schema)

    def validate(self, value: Any) -> Any:
        try:
            return self._adapter.validate_python(value)
        except ValidationError as exc:
            raise SchemaValidationError(validation_issues(exc)) from exc

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PydanticSchema):
            return NotImplemented
        return self._json_schema == other._json_schema

    def __hash__(self) -> int:
        return hash(json.dumps(self._json_schema, sort_keys=True))

    def __repr__(self) -> str:
        label = getattr(self.source, "__name__", repr(self.source))
        return f"PydanticSchema({label})"


class EmptySchema:
    """Schema for tools that take no arguments; accepts only an object."""

    def describe(self) -> dict[str, Any]:
        return copy.deepcopy(_EMPTY_OBJECT_SCHEMA)

    def validate(self, value: Any) -> dict[str, Any]:
        if not isinstance(value, dict):
            raise SchemaValidationError(
                [{"path": "", "message": "Input should be an object", "type": "dict_type"}]
            )
        return dict(value)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, EmptySchema)

    def __hash__(self) -> int:
        return hash(EmptySchema)

    def __repr__(self) -> str:
        return "EmptySchema()"


def adapt(source: Any) -> SchemaDescriptor:
    """Build a :class:`SchemaDescriptor` from a source schema.

    Args:
        source: A Pydantic model, dataclass, ``TypedDict`` or any other type
            accepted by :class:`~pydantic.TypeAdapter`; ``None`` for tools
            without arguments.  An existing descriptor is returned unchanged.

    Raises:
        SchemaAdaptationError: If Pydantic cannot build a JSON Schema for the
            source, or the schema does not describe a JSON object.
    """
    if source is None:
        return EmptySchema()
    if isinstance(source, SchemaDescriptor) and not isinstance(source, type):
        return source

    try:
        adapter: TypeAdapter[Any] = TypeAdapter(source)
        json_schema = adapter.json_schema()
    except (PydanticSchemaGenerationError, PydanticUserError, TypeError) as exc:
        raise SchemaAdaptationError(source, str(exc)) from exc

    if json_schema.get("type") != "object":
        raise SchemaAdaptationError(source, "tool arguments must be described by an object schema")

    return PydanticSchema(source, adapter, json_schema)


def validation_issues(exc: ValidationError) -> list[dict[str, str]]:
    """Flatten a Pydantic ``ValidationError`` into path/message/type triples."""
    return [
        {
            "path": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors(include_url=False, include_input=False)
    ]
