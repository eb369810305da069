"""OpenAPI schema fragment -> canonical schema conversion.

Resolves `$ref` pointers against the loaded OpenAPI document, breaks
reference cycles with an open placeholder schema, and caches resolved
references for the lifetime of the converter.

Usage:
    converter = SchemaConverter(openapi_document)
    schema = converter.to_canonical({"$ref": "#/components/schemas/User"})
"""

from typing import Any

from mq_obs.logging import get_logger

from .models import CanonicalSchema

logger = get_logger(__name__)

_SCALAR_KEYWORDS = {
    "type": "type",
    "description": "description",
    "format": "format",
    "enum": "enum",
    "pattern": "pattern",
    "minimum": "minimum",
    "maximum": "maximum",
    "minLength": "min_length",
    "maxLength": "max_length",
    "default": "default",
}

_COMPOSITE_KEYWORDS = {"oneOf": "one_of", "anyOf": "any_of", "allOf": "all_of"}


class SchemaReferenceError(Exception):
    """A `$ref` pointer does not resolve inside the loaded document."""

    def __init__(self, ref: str):
        super().__init__(f"Cannot resolve reference: {ref}")
        self.ref = ref


class SchemaConverter:
    """Converts OpenAPI schema fragments to CanonicalSchema."""

    def __init__(self, document: dict[str, Any] | None = None):
        """Initialize converter.

        Args:
            document: Full OpenAPI document that `$ref` pointers resolve against
        """
        self.document = document or {}
        self._ref_cache: dict[str, CanonicalSchema] = {}

    def to_canonical(self, fragment: Any) -> CanonicalSchema:
        """Convert an OpenAPI schema fragment.

        Raises:
            SchemaReferenceError: A `$ref` inside the fragment does not resolve
        """
        return self._convert(fragment, frozenset())

    def resolve_ref(self, ref: str) -> CanonicalSchema:
        """Resolve a `$ref` pointer to its canonical schema."""
        return self._resolve(ref, frozenset())

    def lookup(self, ref: str) -> Any:
        """Walk a local JSON pointer (`#/a/b/0`) and return the raw target."""
        if not ref.startswith("#"):
            raise SchemaReferenceError(ref)

        current: Any = self.document
        for segment in ref.split("/")[1:]:
            segment = segment.replace("~1", "/").replace("~0", "~")
            if isinstance(current, dict) and segment in current:
                current = current[segment]
            elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
                current = current[int(segment)]
            else:
                raise SchemaReferenceError(ref)
        return current

    def _resolve(self, ref: str, resolving: frozenset[str]) -> CanonicalSchema:
        # Cycle: the reference is already on the resolution path
        if ref in resolving:
            logger.debug("schema_ref_circular", ref=ref)
            return CanonicalSchema.circular_placeholder(ref)

        cached = self._ref_cache.get(ref)
        if cached is not None:
            return cached

        target = self.lookup(ref)
        result = self._convert(target, resolving | {ref})
        self._ref_cache[ref] = result
        return result

    def _convert(self, fragment: Any, resolving: frozenset[str]) -> CanonicalSchema:
        if not isinstance(fragment, dict):
            return CanonicalSchema.open_object()

        if "$ref" in fragment:
            return self._resolve(fragment["$ref"], resolving)

        fields: dict[str, Any] = {
            attr: fragment[key]
            for key, attr in _SCALAR_KEYWORDS.items()
            if fragment.get(key) is not None
        }
        schema_type = fragment.get("type")

        if schema_type == "object":
            if fragment.get("properties"):
                fields["properties"] = {
                    name: self._convert(value, resolving)
                    for name, value in fragment["properties"].items()
                }
            if fragment.get("required") is not None:
                fields["required"] = list(fragment["required"])
            if "additionalProperties" in fragment:
                extra = fragment["additionalProperties"]
                # `false` becomes an open object schema, see DESIGN.md
                fields["additional_properties"] = (
                    True if extra is True else self._convert(extra, resolving)
                )

        if schema_type == "array":
            if fragment.get("items") is not None:
                fields["items"] = self._convert(fragment["items"], resolving)
            if fragment.get("minItems") is not None:
                fields["min_items"] = fragment["minItems"]
            if fragment.get("maxItems") is not None:
                fields["max_items"] = fragment["maxItems"]

        for key, attr in _COMPOSITE_KEYWORDS.items():
            if fragment.get(key) is not None:
                fields[attr] = [self._convert(member, resolving) for member in fragment[key]]

        return CanonicalSchema(**fields)
