"""The persisted single-source-of-truth document."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict

from ..apps import MCP_APPS, AppType
from ..errors import UnsupportedError, ValidationError
from ..mcp import McpScope
from ..provider import ProviderManager

CONFIG_VERSION = 2


@dataclass
class MultiAppConfig:
    """Per-app provider managers plus per-app MCP scopes."""

    managers: Dict[AppType, ProviderManager] = field(default_factory=dict)
    mcp: Dict[AppType, McpScope] = field(default_factory=dict)
    version: int = CONFIG_VERSION
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for app in AppType:
            self.ensure_app(app)

    def ensure_app(self, app: AppType) -> ProviderManager:
        manager = self.managers.get(app)
        if manager is None:
            manager = self.managers[app] = ProviderManager()
        if app.supports_mcp and app not in self.mcp:
            self.mcp[app] = McpScope()
        return manager

    def manager(self, app: AppType) -> ProviderManager:
        return self.ensure_app(app)

    def mcp_scope(self, app: AppType) -> McpScope:
        if not app.supports_mcp:
            raise UnsupportedError(f"MCP servers are not supported for {app.value}")
        self.ensure_app(app)
        return self.mcp[app]

    def copy(self) -> "MultiAppConfig":
        return MultiAppConfig(
            managers={app: manager.copy() for app, manager in self.managers.items()},
            mcp={app: scope.copy() for app, scope in self.mcp.items()},
            version=self.version,
            extra=copy.deepcopy(self.extra),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = copy.deepcopy(self.extra)
        payload["version"] = CONFIG_VERSION
        for app in AppType:
            payload[app.value] = self.manager(app).to_dict()
        payload["mcp"] = {app.value: self.mcp_scope(app).to_dict() for app in MCP_APPS}
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "MultiAppConfig":
        data = data or {}
        if not isinstance(data, dict):
            raise ValidationError("config.json root must be an object")
        if "version" not in data and "providers" in data:
            return cls._from_v1(data)
        managers = {app: ProviderManager.from_dict(data.get(app.value)) for app in AppType}
        raw_mcp = data.get("mcp") or {}
        if not isinstance(raw_mcp, dict):
            raise ValidationError("'mcp' must be an object keyed by app type")
        scopes = {app: McpScope.from_dict(raw_mcp.get(app.value)) for app in MCP_APPS}
        known = {"version", "mcp", *(app.value for app in AppType)}
        extra = {key: copy.deepcopy(value) for key, value in data.items() if key not in known}
        return cls(managers=managers, mcp=scopes, version=int(data.get("version") or CONFIG_VERSION), extra=extra)

    @classmethod
    def _from_v1(cls, data: Dict[str, Any]) -> "MultiAppConfig":
        manager = ProviderManager.from_dict({"providers": data.get("providers"), "current": data.get("current")})
        return cls(managers={AppType.CLAUDE: manager}, version=1)


__all__ = ["CONFIG_VERSION", "MultiAppConfig"]
