"""Value objects describing shared MCP server definitions."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Dict

from ..errors import NotFoundError, ValidationError
from ..schema import validate_mcp_definition

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9._-]{0,63})$")

# Keys the UI attaches to an entry that must never reach a live file.
UI_ONLY_KEYS = ("enabled", "source", "id", "name", "description", "tags", "homepage", "docs")
ENVELOPE_KEY = "server"


def validate_server_id(server_id: str) -> str:
    if not _NAME_PATTERN.match(server_id or ""):
        raise ValidationError(
            "MCP server id must be alphanumeric with optional '.', '-' or '_' and <=64 chars",
        )
    return server_id


def normalize_definition(server_id: str, spec: Any) -> Dict[str, Any]:
    """Unwrap a ``server`` envelope, strip UI-only keys and shape-check the result."""

    if not isinstance(spec, dict):
        raise ValidationError(f"MCP server '{server_id}' must be an object")
    obj = copy.deepcopy(spec)
    if ENVELOPE_KEY in obj:
        inner = obj.pop(ENVELOPE_KEY)
        if not isinstance(inner, dict):
            raise ValidationError(f"MCP server '{server_id}' field 'server' must be an object")
        obj = copy.deepcopy(inner)
    for key in UI_ONLY_KEYS:
        obj.pop(key, None)
    if "type" not in obj:
        obj["type"] = "http" if "url" in obj and "command" not in obj else "stdio"
    validate_mcp_definition(server_id, obj)
    return obj


@dataclass
class McpScope:
    """Registered MCP servers for one app plus the ids projected to its live file."""

    servers: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    enabled: Dict[str, bool] = field(default_factory=dict)

    def is_enabled(self, server_id: str) -> bool:
        return bool(self.enabled.get(server_id)) and server_id in self.servers

    def get(self, server_id: str) -> Dict[str, Any]:
        try:
            return self.servers[server_id]
        except KeyError:
            raise NotFoundError(f"MCP server not found: {server_id}") from None

    def upsert(self, server_id: str, definition: Dict[str, Any]) -> bool:
        if self.servers.get(server_id) == definition:
            return False
        self.servers[server_id] = copy.deepcopy(definition)
        return True

    def remove(self, server_id: str) -> bool:
        self.enabled.pop(server_id, None)
        return self.servers.pop(server_id, None) is not None

    def set_enabled(self, server_id: str, enabled: bool) -> bool:
        self.get(server_id)
        if self.is_enabled(server_id) == enabled:
            return False
        if enabled:
            self.enabled[server_id] = True
        else:
            self.enabled.pop(server_id, None)
        return True

    def enabled_servers(self) -> Dict[str, Dict[str, Any]]:
        return {
            server_id: copy.deepcopy(definition)
            for server_id, definition in sorted(self.servers.items())
            if self.is_enabled(server_id)
        }

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {
            server_id: {**copy.deepcopy(definition), "enabled": self.is_enabled(server_id)}
            for server_id, definition in sorted(self.servers.items())
        }

    def copy(self) -> "McpScope":
        return McpScope(servers=copy.deepcopy(self.servers), enabled=dict(self.enabled))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "servers": copy.deepcopy(self.servers),
            "enabled": {server_id: True for server_id in sorted(self.enabled) if self.is_enabled(server_id)},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "McpScope":
        data = data or {}
        servers: Dict[str, Dict[str, Any]] = {}
        enabled: Dict[str, bool] = {}
        for server_id, spec in (data.get("servers") or {}).items():
            if not isinstance(spec, dict):
                raise ValidationError(f"MCP server '{server_id}' must be an object")
            entry = copy.deepcopy(spec)
            # older documents kept the flag inside the definition
            if entry.pop("enabled", False) is True:
                enabled[server_id] = True
            servers[server_id] = entry
        for server_id, flag in (data.get("enabled") or {}).items():
            if flag and server_id in servers:
                enabled[server_id] = True
        return cls(servers=servers, enabled=enabled)


__all__ = ["ENVELOPE_KEY", "McpScope", "UI_ONLY_KEYS", "normalize_definition", "validate_server_id"]
