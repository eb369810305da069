"""Canonical schema and validation result models.

The canonical schema is the converter's structural representation of an
OpenAPI schema fragment. It round-trips through JSON Schema keys via aliases,
so the same model parses `inputSchema`/`outputSchema` from the tool file and
dumps them back for `tools/list`.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

PRIMITIVE_KINDS = ("string", "number", "integer", "boolean", "array", "object")


class CanonicalSchema(BaseModel):
    """Tagged schema node. See `kind` for the tag."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str | list[str] | None = None
    description: str | None = None
    format: str | None = None
    enum: list[Any] | None = None
    pattern: str | None = None
    minimum: int | float | None = None
    maximum: int | float | None = None
    min_length: int | None = Field(None, alias="minLength")
    max_length: int | None = Field(None, alias="maxLength")
    default: Any = None

    # object
    properties: dict[str, "CanonicalSchema"] | None = None
    required: list[str] | None = None
    additional_properties: "bool | CanonicalSchema | None" = Field(
        None, alias="additionalProperties"
    )

    # array
    items: "CanonicalSchema | None" = None
    min_items: int | None = Field(None, alias="minItems")
    max_items: int | None = Field(None, alias="maxItems")

    # composites
    one_of: list["CanonicalSchema"] | None = Field(None, alias="oneOf")
    any_of: list["CanonicalSchema"] | None = Field(None, alias="anyOf")
    all_of: list["CanonicalSchema"] | None = Field(None, alias="allOf")

    # circular-reference placeholder
    circular: bool | None = Field(None, alias="x-circular")
    ref: str | None = Field(None, alias="x-ref")

    @classmethod
    def open_object(cls) -> "CanonicalSchema":
        """Object schema with no constraints."""
        return cls(type="object")

    @classmethod
    def circular_placeholder(cls, ref: str) -> "CanonicalSchema":
        return cls(type="object", circular=True, ref=ref)

    @property
    def kind(self) -> str:
        """Tag used by the validator compiler.

        Composite keywords win over `type`; a missing or unrecognized type
        is `any`.
        """
        if self.circular:
            return "circular"
        if self.one_of is not None:
            return "oneOf"
        if self.any_of is not None:
            return "anyOf"
        if self.all_of is not None:
            return "allOf"
        if isinstance(self.type, str) and self.type in PRIMITIVE_KINDS:
            return self.type
        return "any"

    def to_json_schema(self) -> dict[str, Any]:
        """Dump as a JSON Schema dict (camelCase keys, unset keys omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


CanonicalSchema.model_rebuild()


class Violation(BaseModel):
    """A single validation failure at `path` (property names / list indices)."""

    path: list[str | int] = []
    message: str

    @property
    def location(self) -> str:
        return ".".join(str(part) for part in self.path)

    def __str__(self) -> str:
        return f"{self.location}: {self.message}"


class ValidationResult(BaseModel):
    """Outcome of Validator.validate()."""

    ok: bool
    value: Any = None
    violations: list[Violation] = []
