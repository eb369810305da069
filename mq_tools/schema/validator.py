"""Canonical schema -> runtime validator compiler.

Each canonical schema is compiled once into a pydantic type (strict
primitives, `Annotated` constraints, `Literal` enums, unions, and
`create_model` objects that allow extra keys) wrapped in a TypeAdapter.
Validation never transforms the value: the adapter's output is discarded
and the caller's value is returned as-is.
"""

import re
from datetime import date
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import (
    AfterValidator,
    AwareDatetime,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    StrictBool,
    StrictStr,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    WrapValidator,
    create_model,
)
from pydantic_core import PydanticCustomError

from .models import CanonicalSchema, ValidationResult, Violation

_OBJECT_CONFIG = ConfigDict(extra="allow")

_FORMAT_ADAPTERS: dict[str, TypeAdapter] = {
    "email": TypeAdapter(EmailStr),
    "uuid": TypeAdapter(UUID),
    "date": TypeAdapter(date),
    "date-time": TypeAdapter(AwareDatetime),
}


class SchemaValidationError(Exception):
    """Value rejected by a compiled validator."""

    def __init__(self, violations: list[Violation]):
        self.violations = violations
        super().__init__(", ".join(str(v) for v in violations))


class Validator:
    """Compiled validator for one canonical schema."""

    def __init__(self, adapter: TypeAdapter, schema: CanonicalSchema | None = None):
        self.adapter = adapter
        self.schema = schema

    def validate(self, value: Any) -> ValidationResult:
        try:
            self.adapter.validate_python(value)
        except ValidationError as e:
            return ValidationResult(ok=False, violations=_violations(e))
        return ValidationResult(ok=True, value=value)

    def parse(self, value: Any) -> Any:
        """Return `value` if valid, else raise SchemaValidationError."""
        result = self.validate(value)
        if not result.ok:
            raise SchemaValidationError(result.violations)
        return value

    def is_valid(self, value: Any) -> bool:
        return self.validate(value).ok


def compile_validator(schema: CanonicalSchema | dict[str, Any] | None) -> Validator:
    """Build a Validator from a canonical schema (or its JSON Schema dump)."""
    if isinstance(schema, dict):
        schema = CanonicalSchema.model_validate(schema)
    return Validator(_adapter(build_type(schema)), schema)


def build_type(schema: CanonicalSchema | None) -> Any:
    """Pydantic type accepting exactly the values `schema` accepts."""
    if schema is None:
        return Any
    return _BUILDERS[schema.kind](schema)


# ============================================================================
# HELPERS
# ============================================================================


def _adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


def _violations(error: ValidationError) -> list[Violation]:
    return [
        Violation(
            path=list(detail["loc"]),
            message="Required" if detail["type"] == "missing" else detail["msg"],
        )
        for detail in error.errors(include_url=False)
    ]


def _reject_all(value: Any) -> Any:
    raise PydanticCustomError("union_invalid", "Invalid input")


def _collapse_union(value: Any, handler: Any) -> Any:
    # One error at the union's location instead of one per member
    try:
        return handler(value)
    except ValidationError:
        raise PydanticCustomError("union_invalid", "Invalid input")


def _reject_bool(value: Any) -> Any:
    if isinstance(value, bool):
        raise PydanticCustomError("float_type", "Input should be a valid number")
    return value


def _require_whole(value: float) -> float:
    if not value.is_integer():
        raise PydanticCustomError(
            "int_from_float", "Input should be a valid integer, got a number with a fractional part"
        )
    return value


def _format_check(fmt: str) -> AfterValidator:
    adapter = _FORMAT_ADAPTERS[fmt]

    def check(value: str) -> str:
        try:
            adapter.validate_python(value)
        except ValidationError as e:
            raise PydanticCustomError(
                "format_invalid",
                "Invalid {format}: {reason}",
                {"format": fmt, "reason": e.errors(include_url=False)[0]["msg"]},
            )
        return value

    return AfterValidator(check)


def _pattern_check(pattern: str) -> AfterValidator:
    # Unanchored, as JSON Schema patterns are
    compiled = re.compile(pattern)

    def check(value: str) -> str:
        if compiled.search(value) is None:
            raise PydanticCustomError(
                "string_pattern_mismatch", "String should match pattern '{pattern}'", {"pattern": pattern}
            )
        return value

    return AfterValidator(check)


# ============================================================================
# COMPOSITES
# ============================================================================


def _build_union(members: list[CanonicalSchema]) -> Any:
    if not members:
        return Annotated[Any, AfterValidator(_reject_all)]
    if len(members) == 1:
        return build_type(members[0])

    options = tuple(build_type(member) for member in members)
    return Annotated[Union[options], WrapValidator(_collapse_union)]


def _build_one_of(schema: CanonicalSchema) -> Any:
    return _build_union(schema.one_of or [])


def _build_any_of(schema: CanonicalSchema) -> Any:
    return _build_union(schema.any_of or [])


def _build_all_of(schema: CanonicalSchema) -> Any:
    members = schema.all_of or []
    if not members:
        return Any
    if len(members) == 1:
        return build_type(members[0])

    adapters = [_adapter(build_type(member)) for member in members]

    def check_all(value: Any) -> Any:
        for adapter in adapters:
            try:
                adapter.validate_python(value)
            except ValidationError as e:
                raise PydanticCustomError(
                    "all_of_invalid", "{reason}", {"reason": "; ".join(str(v) for v in _violations(e))}
                )
        return value

    return Annotated[Any, AfterValidator(check_all)]


# ============================================================================
# PRIMITIVES
# ============================================================================


def _build_string(schema: CanonicalSchema) -> Any:
    if schema.enum is not None:
        if not schema.enum:
            return Annotated[Any, AfterValidator(_reject_all)]
        return Literal[tuple(schema.enum)]

    metadata: list[Any] = [
        StringConstraints(min_length=schema.min_length, max_length=schema.max_length)
    ]
    if schema.pattern is not None:
        metadata.append(_pattern_check(schema.pattern))
    if schema.format in _FORMAT_ADAPTERS:
        metadata.append(_format_check(schema.format))
    return Annotated[(StrictStr, *metadata)]


def _build_number(schema: CanonicalSchema) -> Any:
    metadata: list[Any] = [
        Field(strict=True, ge=schema.minimum, le=schema.maximum, allow_inf_nan=False),
        BeforeValidator(_reject_bool),
    ]
    if schema.type == "integer":
        metadata.append(AfterValidator(_require_whole))
    return Annotated[(float, *metadata)]


def _build_boolean(schema: CanonicalSchema) -> Any:
    return StrictBool


def _build_array(schema: CanonicalSchema) -> Any:
    item_type = build_type(schema.items) if schema.items is not None else Any
    return Annotated[
        list[item_type],
        Field(min_length=schema.min_items, max_length=schema.max_items),
    ]


def _build_object(schema: CanonicalSchema) -> Any:
    if not schema.properties:
        return dict[str, Any]

    required = set(schema.required or [])
    fields: dict[str, Any] = {}
    # Property names are arbitrary strings; fields are positional, keyed by alias
    for index, (name, prop) in enumerate(schema.properties.items()):
        default = ... if name in required else None
        fields[f"field_{index}"] = (build_type(prop), Field(default, alias=name))

    return create_model("Object", __config__=_OBJECT_CONFIG, **fields)


def _build_any(schema: CanonicalSchema) -> Any:
    return Any


_BUILDERS = {
    "circular": _build_any,
    "any": _build_any,
    "oneOf": _build_one_of,
    "anyOf": _build_any_of,
    "allOf": _build_all_of,
    "string": _build_string,
    "number": _build_number,
    "integer": _build_number,
    "boolean": _build_boolean,
    "array": _build_array,
    "object": _build_object,
}
