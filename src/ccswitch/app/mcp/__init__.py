from .registry import McpRegistry, project_enabled

__all__ = ["McpRegistry", "project_enabled"]
