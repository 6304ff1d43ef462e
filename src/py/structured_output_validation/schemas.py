"""
Structured Output Validation — Validation Gate

Runs parsed candidates through a schema and normalizes failures into
SchemaViolationError. Ships two schema engines: a Pydantic wrapper and a
small dependency-free field schema.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from .types import OutputSchema, SchemaViolationError, Violation

T = TypeVar("T")

__all__ = [
    "validate_candidate",
    "PydanticSchema",
    "JsonObjectSchema",
    "FieldDef",
]


def validate_candidate(value: Any, schema: OutputSchema) -> Any:
    """
    Validate a parsed value against the schema.

    Returns the (possibly coerced) value. Raises SchemaViolationError listing
    every violation, not just the first.
    """
    return schema.validate(value)


class PydanticSchema(Generic[T]):
    """
    OutputSchema backed by Pydantic.

    Accepts a BaseModel subclass or any type Pydantic can build a
    TypeAdapter for. Validation runs in lax mode, so numeric strings are
    coerced to numbers where the field type allows.
    """

    def __init__(self, model: type[T]) -> None:
        self._model = model
        self._adapter: TypeAdapter[T] = TypeAdapter(model)

    @property
    def model(self) -> type[T]:
        return self._model

    def to_json_schema(self) -> dict[str, Any]:
        return self._adapter.json_schema()

    def validate(self, value: Any) -> T:
        try:
            return self._adapter.validate_python(value)
        except ValidationError as err:
            violations = [
                Violation(path=tuple(error["loc"]), reason=error["msg"])
                for error in err.errors()
            ]
            raise SchemaViolationError(violations) from err


# --- Built-in field schema ---


@dataclass
class FieldDef:
    """Definition for a single field in a JSON object schema."""

    type: str  # "string", "number", "boolean", "array", "object"
    required: bool = True
    description: str | None = None
    enum: list[Any] | None = None

    # Accept numeric strings for "number" fields and convert them.
    coerce: bool = False


# Python type name -> expected JSON type name mapping.
# json.loads produces int/float for numbers and bool for booleans,
# so we map Python type names to the schema's type vocabulary.
_TYPE_MAP: dict[str, str] = {
    "str": "string",
    "int": "number",
    "float": "number",
    "bool": "boolean",
    "list": "array",
    "dict": "object",
}

_NUMERIC_RE = re.compile(r"\s*-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?\s*")
_INTEGER_RE = re.compile(r"\s*-?\d+\s*")


def _coerce_number(value: Any) -> Any:
    if not isinstance(value, str) or not _NUMERIC_RE.fullmatch(value):
        return value
    return int(value) if _INTEGER_RE.fullmatch(value) else float(value)


class JsonObjectSchema:
    """
    A simple schema that validates JSON objects against field definitions.
    No external dependencies.

    For anything beyond flat objects, PydanticSchema is the better fit.
    """

    def __init__(self, schema_name: str, fields: dict[str, FieldDef]) -> None:
        self._schema_name = schema_name
        self._fields = fields

    @property
    def name(self) -> str:
        return self._schema_name

    def validate(self, value: Any) -> dict[str, Any]:
        if not isinstance(value, dict):
            actual = _TYPE_MAP.get(type(value).__name__, type(value).__name__)
            raise SchemaViolationError([Violation(path=(), reason=f"Expected a JSON object, got {actual}")])

        result = dict(value)
        violations: list[Violation] = []

        for field_name, field_def in self._fields.items():
            field_value = result.get(field_name)

            if field_value is None:
                if field_def.required:
                    violations.append(Violation(path=(field_name,), reason="Missing required field"))
                continue

            if field_def.coerce and field_def.type == "number":
                field_value = _coerce_number(field_value)
                result[field_name] = field_value

            # Type check — map Python runtime types to schema type names
            actual_type = _TYPE_MAP.get(type(field_value).__name__, type(field_value).__name__)
            if actual_type != field_def.type:
                violations.append(Violation(
                    path=(field_name,),
                    reason=f'Expected type "{field_def.type}", got "{actual_type}" (value: {json.dumps(field_value)})',
                ))
                continue

            if field_def.enum is not None and field_value not in field_def.enum:
                violations.append(Violation(
                    path=(field_name,),
                    reason=f"Value {json.dumps(field_value)} not in allowed values: {json.dumps(field_def.enum)}",
                ))

        if violations:
            raise SchemaViolationError(violations)

        return result

    def to_json_schema(self) -> dict[str, Any]:
        """Generate a JSON Schema representation."""
        properties: dict[str, dict[str, Any]] = {}
        required: list[str] = []

        for field_name, field_def in self._fields.items():
            prop: dict[str, Any] = {"type": field_def.type}
            if field_def.description:
                prop["description"] = field_def.description
            if field_def.enum is not None:
                prop["enum"] = field_def.enum
            properties[field_name] = prop

            if field_def.required:
                required.append(field_name)

        return {
            "title": self._schema_name,
            "type": "object",
            "properties": properties,
            "required": required,
        }
