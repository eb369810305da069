"""OpenAPI -> tool definition generation."""

from .generator import OpenAPIToolGenerator, generate_tools

__all__ = ["OpenAPIToolGenerator", "generate_tools"]
