"""OpenAPI document -> tool definitions.

Produces the precompiled tool file the MCP server loads at startup. One tool
per operation; schemas go through SchemaConverter so `$ref`s (including
cyclic ones) are resolved once here rather than at call time.
"""

import re
from typing import Any

from mq_obs.logging import get_logger
from mq_tools.base import (
    HttpSpec,
    ParameterGroups,
    ParameterSpec,
    RequestBodySpec,
    ToolDefinition,
    ToolScope,
)
from mq_tools.schema import CanonicalSchema, SchemaConverter, SchemaReferenceError

logger = get_logger(__name__)

HTTP_METHODS = ("get", "put", "post", "patch", "delete", "head", "options")
READ_METHODS = {"get", "head", "options"}
PARAMETER_LOCATIONS = ("path", "query", "header")
JSON_CONTENT_TYPE = "application/json"


def _snake(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", value.lower()).strip("_")


def _sanitize_name(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]", "_", value)


def _fallback_operation_id(method: str, path: str) -> str:
    sanitized = path.strip("/").replace("/", "_").replace("{", "").replace("}", "")
    return f"{method}_{sanitized or 'root'}"


class OpenAPIToolGenerator:
    """Builds ToolDefinitions from one OpenAPI 3 document."""

    def __init__(self, document: dict[str, Any], service: str | None = None):
        """Initialize generator.

        Args:
            document: Parsed OpenAPI document
            service: Service tag for every generated tool (default: first
                operation tag, else first path segment)
        """
        self.document = document
        self.service = service
        self.converter = SchemaConverter(document)

    def generate(self) -> list[ToolDefinition]:
        tools: list[ToolDefinition] = []
        for path, item in (self.document.get("paths") or {}).items():
            item = self._deref(item) or {}
            shared = item.get("parameters") or []
            for method in HTTP_METHODS:
                operation = item.get(method)
                if operation:
                    tools.append(self._build_tool(path, method, operation, shared))

        logger.info("openapi_tools_generated", count=len(tools), service=self.service)
        return tools

    def _deref(self, obj: Any) -> Any:
        """Follow `$ref` chains on non-schema objects (parameters, bodies, responses)."""
        seen: set[str] = set()
        while isinstance(obj, dict) and "$ref" in obj:
            ref = obj["$ref"]
            if ref in seen:
                raise SchemaReferenceError(ref)
            seen.add(ref)
            obj = self.converter.lookup(ref)
        return obj

    def _service_for(self, path: str, operation: dict[str, Any]) -> str:
        if self.service:
            return self.service
        tags = operation.get("tags") or []
        if tags:
            return _snake(tags[0])
        segments = [s for s in path.split("/") if s and not s.startswith("{")]
        # Skip a leading version segment such as "v3"
        if len(segments) > 1 and re.fullmatch(r"v\d+", segments[0]):
            segments = segments[1:]
        return _snake(segments[0]) if segments else "default"

    def _build_tool(
        self,
        path: str,
        method: str,
        operation: dict[str, Any],
        shared_parameters: list[Any],
    ) -> ToolDefinition:
        operation_id = operation.get("operationId") or _fallback_operation_id(method, path)
        service = self._service_for(path, operation)

        groups: dict[str, dict[str, ParameterSpec]] = {loc: {} for loc in PARAMETER_LOCATIONS}
        properties: dict[str, CanonicalSchema] = {}
        required: list[str] = []

        # Operation-level parameters override path-level ones with the same name/location
        merged: dict[tuple[str, str], dict[str, Any]] = {}
        for raw in [*shared_parameters, *(operation.get("parameters") or [])]:
            param = self._deref(raw)
            if param.get("name") and param.get("in"):
                merged[(param["name"], param["in"])] = param

        for (name, location), param in merged.items():
            if location not in groups:
                continue
            schema = self.converter.to_canonical(param.get("schema"))
            if param.get("description") and not schema.description:
                schema = schema.model_copy(update={"description": param["description"]})
            is_required = location == "path" or bool(param.get("required", False))

            groups[location][name] = ParameterSpec(
                name=name,
                location=location,
                required=is_required,
                param_schema=schema,
                description=param.get("description"),
            )
            properties[name] = schema
            if is_required:
                required.append(name)

        request_body = self._build_request_body(operation.get("requestBody"))
        if request_body is not None:
            body_schema = request_body.body_schema
            if body_schema.type == "object" and body_schema.properties:
                for name, prop in body_schema.properties.items():
                    properties.setdefault(name, prop)
                if request_body.required:
                    for name in body_schema.required or []:
                        if name not in required:
                            required.append(name)

        return ToolDefinition(
            name=f"{service}_{_sanitize_name(operation_id)}",
            description=operation.get("description") or operation.get("summary") or "",
            service=service,
            scope=ToolScope.READ if method in READ_METHODS else ToolScope.WRITE,
            http=HttpSpec(
                method=method,
                path=path,
                parameters=ParameterGroups(**groups),
                request_body=request_body,
            ),
            input_schema=CanonicalSchema(
                type="object",
                properties=properties or None,
                required=required or None,
            ),
            output_schema=self._build_output_schema(operation.get("responses") or {}),
        )

    def _build_request_body(self, raw: Any) -> RequestBodySpec | None:
        body = self._deref(raw)
        if not body:
            return None

        content = body.get("content") or {}
        if JSON_CONTENT_TYPE in content:
            content_type = JSON_CONTENT_TYPE
        else:
            content_type = next(iter(content), JSON_CONTENT_TYPE)
        media = content.get(content_type) or {}

        return RequestBodySpec(
            content_type=content_type,
            required=bool(body.get("required", False)),
            body_schema=self.converter.to_canonical(media.get("schema")),
        )

    def _build_output_schema(self, responses: dict[str, Any]) -> CanonicalSchema:
        for code in sorted(responses, key=str):
            if not str(code).startswith("2"):
                continue
            response = self._deref(responses[code]) or {}
            content = response.get("content") or {}
            media = content.get(JSON_CONTENT_TYPE) or next(iter(content.values()), None)
            if media and media.get("schema") is not None:
                return self.converter.to_canonical(media["schema"])
        return CanonicalSchema.open_object()


def generate_tools(document: dict[str, Any], service: str | None = None) -> list[ToolDefinition]:
    """Convenience wrapper around OpenAPIToolGenerator."""
    return OpenAPIToolGenerator(document, service=service).generate()
