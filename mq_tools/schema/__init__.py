"""Schema conversion and validation.

- SchemaConverter: OpenAPI fragment -> CanonicalSchema (`$ref`, cycles, caching)
- compile_validator: CanonicalSchema -> Validator
"""

from .converter import SchemaConverter, SchemaReferenceError
from .models import CanonicalSchema, ValidationResult, Violation
from .validator import SchemaValidationError, Validator, compile_validator

__all__ = [
    "CanonicalSchema",
    "SchemaConverter",
    "SchemaReferenceError",
    "SchemaValidationError",
    "ValidationResult",
    "Validator",
    "Violation",
    "compile_validator",
]
