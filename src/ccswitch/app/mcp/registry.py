"""Application service for shared MCP server definitions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from ccswitch.app.store import ConfigStore
from ccswitch.domain.apps import AppType
from ccswitch.domain.errors import ConflictError, ValidationError
from ccswitch.domain.mcp import McpScope, normalize_definition, validate_server_id
from ccswitch.ports.live_config import LiveConfigAdapter
from ccswitch.settings import RuntimeSettings
from ccswitch.utils.telemetry import record_structured_event


def project_enabled(adapter: LiveConfigAdapter, scope: McpScope) -> int:
    """Overwrite the app's live MCP collection with the enabled servers."""

    servers = scope.enabled_servers()
    adapter.write_mcp_servers(servers)
    return len(servers)


@dataclass
class McpRegistry:
    """Keeps per-app MCP definitions and projects the enabled subset to live files."""

    store: ConfigStore
    adapters: Mapping[AppType, LiveConfigAdapter]
    settings: RuntimeSettings

    def list(self, app: AppType) -> Dict[str, Dict[str, Any]]:
        with self.store.read() as config:
            return config.mcp_scope(app).snapshot()

    def upsert(self, app: AppType, server_id: str, definition: Any) -> bool:
        validate_server_id(server_id)
        normalized = normalize_definition(server_id, definition)
        with self.store.transaction() as txn:
            scope = txn.config.mcp_scope(app)
            changed = scope.upsert(server_id, normalized)
            if scope.is_enabled(server_id):
                self._project(app, scope)
            if changed:
                txn.commit()
        return changed

    def delete(self, app: AppType, server_id: str) -> bool:
        with self.store.transaction() as txn:
            scope = txn.config.mcp_scope(app)
            existed = scope.remove(server_id)
            self._project(app, scope)
            if existed:
                txn.commit()
        return existed

    def set_enabled(self, app: AppType, server_id: str, enabled: bool) -> bool:
        with self.store.transaction() as txn:
            scope = txn.config.mcp_scope(app)
            changed = scope.set_enabled(server_id, enabled)
            self._project(app, scope)
            if changed:
                txn.commit()
        return changed

    def project_to_live(self, app: AppType) -> int:
        with self.store.transaction() as txn:
            return self._project(app, txn.config.mcp_scope(app))

    def has_conflict(self, app: AppType, server_id: str) -> bool:
        with self.store.read() as config:
            return server_id in config.mcp_scope(app.mcp_peer()).servers

    def copy_to_other_app(self, app: AppType, server_id: str, *, overwrite: bool = False) -> bool:
        target = app.mcp_peer()
        with self.store.transaction() as txn:
            definition = txn.config.mcp_scope(app).get(server_id)
            destination = txn.config.mcp_scope(target)
            if server_id in destination.servers and not overwrite:
                raise ConflictError(
                    f"MCP server '{server_id}' already exists for {target.value}; pass overwrite to replace it",
                )
            changed = destination.upsert(server_id, definition)
            if destination.is_enabled(server_id):
                self._project(target, destination)
            if changed:
                txn.commit()
        return True

    def import_from_live(self, app: AppType) -> int:
        with self.store.transaction() as txn:
            scope = txn.config.mcp_scope(app)
            live = self.adapters[app].read_mcp_servers()
            changed = 0
            for server_id, spec in live.items():
                try:
                    validate_server_id(server_id)
                    normalized = normalize_definition(server_id, spec)
                except ValidationError as exc:
                    record_structured_event(
                        self.settings,
                        "mcp.import",
                        status="skipped",
                        level="warn",
                        component="mcp",
                        payload={"app": app.value, "id": server_id, "reason": str(exc)},
                    )
                    continue
                updated = scope.upsert(server_id, normalized)
                newly_enabled = not scope.is_enabled(server_id)
                scope.enabled[server_id] = True
                if updated or newly_enabled:
                    changed += 1
            if changed:
                txn.commit()
        return changed

    def _project(self, app: AppType, scope: McpScope) -> int:
        count = project_enabled(self.adapters[app], scope)
        record_structured_event(
            self.settings,
            "mcp.sync",
            status="success",
            component="mcp",
            payload={"app": app.value, "count": count},
        )
        return count


__all__ = ["McpRegistry", "project_enabled"]
