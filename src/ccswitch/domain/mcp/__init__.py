"""Domain primitives for MCP server management."""

from .value_objects import McpScope, normalize_definition, validate_server_id

__all__ = ["McpScope", "normalize_definition", "validate_server_id"]
