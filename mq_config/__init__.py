"""
Marqeta MCP Configuration Package.

Provides Pydantic Settings loaded from environment variables.
"""

from mq_config.settings import ConfigurationError, Settings

__all__ = ["ConfigurationError", "Settings"]
