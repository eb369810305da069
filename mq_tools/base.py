"""Tool Definition models.

A tool is one Marqeta endpoint described declaratively: HTTP method, path
template, parameter locations, request body and the input/output schemas.
Definitions are loaded once from the precompiled tool file and never mutated.
"""

import re
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mq_tools.schema.models import CanonicalSchema

PATH_PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")


class ToolScope(str, Enum):
    """Read tools are safe retrievals; write tools mutate upstream state."""

    READ = "read"
    WRITE = "write"


class ParameterSpec(BaseModel):
    """A single path, query or header parameter."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    location: Literal["path", "query", "header"] | None = Field(None, alias="in")
    required: bool = False
    param_schema: CanonicalSchema = Field(default_factory=CanonicalSchema, alias="schema")
    description: str | None = None


class ParameterGroups(BaseModel):
    """Parameters keyed by input property name, grouped by location."""

    path: dict[str, ParameterSpec] = {}
    query: dict[str, ParameterSpec] = {}
    header: dict[str, ParameterSpec] = {}

    def all_keys(self) -> set[str]:
        return set(self.path) | set(self.query) | set(self.header)


class RequestBodySpec(BaseModel):
    """Declared request body."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    content_type: str | None = Field("application/json", alias="contentType")
    required: bool = False
    body_schema: CanonicalSchema = Field(default_factory=CanonicalSchema, alias="schema")


class HttpSpec(BaseModel):
    """How a tool maps to an HTTP request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    method: str
    path: str
    parameters: ParameterGroups = Field(default_factory=ParameterGroups)
    request_body: RequestBodySpec | None = Field(None, alias="requestBody")

    @model_validator(mode="after")
    def check_path_placeholders(self) -> "HttpSpec":
        """Every `{placeholder}` must be a declared path parameter."""
        placeholders = set(PATH_PLACEHOLDER_RE.findall(self.path))
        undeclared = placeholders - set(self.parameters.path)
        if undeclared:
            raise ValueError(
                f"Path {self.path} uses undeclared path parameter(s): {', '.join(sorted(undeclared))}"
            )
        return self


class ToolDefinition(BaseModel):
    """One callable tool, as stored in the precompiled tool file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    name: str
    description: str = ""
    service: str
    scope: ToolScope
    http: HttpSpec
    input_schema: CanonicalSchema = Field(
        default_factory=CanonicalSchema.open_object, alias="inputSchema"
    )
    output_schema: CanonicalSchema = Field(
        default_factory=CanonicalSchema.open_object, alias="outputSchema"
    )

    @property
    def is_read_only(self) -> bool:
        return self.scope == ToolScope.READ

    def to_json(self) -> dict[str, Any]:
        """Serialize in tool-file form (camelCase keys, unset keys omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def to_listing(self) -> dict[str, Any]:
        """Shape returned for `tools/list`."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema.to_json_schema(),
        }
