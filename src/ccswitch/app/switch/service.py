"""Backfill-then-activate transitions between providers."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from ccswitch.app.mcp.registry import project_enabled
from ccswitch.app.store import ConfigStore, Transaction
from ccswitch.domain.apps import AppType
from ccswitch.domain.config import MultiAppConfig
from ccswitch.domain.errors import NotFoundError, UnsupportedError, ValidationError
from ccswitch.domain.provider import Provider
from ccswitch.ports.live_config import LiveConfigAdapter
from ccswitch.settings import RuntimeSettings
from ccswitch.utils.telemetry import record_structured_event


@dataclass(frozen=True)
class SwitchResult:
    app: AppType
    previous_id: str
    current_id: str
    backfilled: bool


def write_live(config: MultiAppConfig, adapter: LiveConfigAdapter, settings_config: Dict[str, Any]) -> None:
    """Write the owned fields live, then re-project the app's enabled MCP servers."""

    adapter.write(settings_config)
    app = adapter.app_type
    if app.supports_mcp:
        # cached codex config text may carry a stale [mcp_servers] table
        project_enabled(adapter, config.mcp_scope(app))


def switch_in(config: MultiAppConfig, adapter: LiveConfigAdapter, target_id: str) -> SwitchResult:
    """Backfill the outgoing provider, write ``target_id`` live and make it current.

    Operates on ``config`` only; the caller owns the transaction and commits it.
    """

    app = adapter.app_type
    manager = config.manager(app)
    target = manager.get(target_id)

    outgoing = manager.current_provider()
    backfilled = False
    if outgoing is not None:
        live = adapter.read()
        if live:
            manager.put(outgoing.with_settings(adapter.backfill(outgoing.settings_config, live)))
            backfilled = True
        if outgoing.id == target.id:
            target = manager.get(target_id)

    write_live(config, adapter, target.settings_config)

    previous = manager.current
    manager.activate(target.id)
    return SwitchResult(app=app, previous_id=previous, current_id=target.id, backfilled=backfilled)


@dataclass
class SwitchCoordinator:
    """Moves the active provider pointer only after the live config is written."""

    store: ConfigStore
    adapters: Mapping[AppType, LiveConfigAdapter]
    settings: RuntimeSettings

    def switch(self, app: AppType, target_id: str) -> SwitchResult:
        start = time.perf_counter()
        with self.store.transaction() as txn:
            result = switch_in(txn.config, self.adapters[app], target_id)
            txn.commit()
        self._record("provider.switch", app, start, {"from": result.previous_id, "to": result.current_id})
        return result

    def disable(self, app: AppType) -> str:
        """Clear the owned live fields and return the id that was active."""

        if not app.supports_disable:
            raise UnsupportedError(f"Disabling the active provider is not supported for {app.value}")
        start = time.perf_counter()
        with self.store.transaction() as txn:
            manager = txn.config.manager(app)
            previous = manager.current
            self.adapters[app].clear()
            manager.activate("")
            txn.commit()
        self._record("provider.disable", app, start, {"from": previous})
        return previous

    def switch_endpoint(self, app: AppType, url: str) -> Provider:
        self._check_endpoint_support(app)
        start = time.perf_counter()
        with self.store.transaction() as txn:
            provider = self._switch_endpoint_in(txn, app, url)
            txn.commit()
        self._record("provider.endpoint", app, start, {"provider": provider.id, "url": url})
        return provider

    def switch_with_endpoint(self, app: AppType, target_id: str, url: str) -> Provider:
        """Activate ``target_id`` and then point it at ``url`` in one critical section."""

        self._check_endpoint_support(app)
        start = time.perf_counter()
        with self.store.transaction() as txn:
            self._check_endpoint_allowed(txn.config.manager(app).get(target_id), url)
            switch_in(txn.config, self.adapters[app], target_id)
            provider = self._switch_endpoint_in(txn, app, url)
            txn.commit()
        self._record("provider.endpoint", app, start, {"provider": provider.id, "url": url})
        return provider

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _switch_endpoint_in(self, txn: Transaction, app: AppType, url: str) -> Provider:
        manager = txn.config.manager(app)
        current = manager.current_provider()
        if current is None:
            raise NotFoundError(f"No active {app.value} provider")
        self._check_endpoint_allowed(current, url)
        adapter = self.adapters[app]
        updated_settings = adapter.with_endpoint(current.settings_config, url)
        adapter.set_endpoint(url)
        updated = current.with_settings(updated_settings)
        manager.put(updated)
        return updated

    def _check_endpoint_support(self, app: AppType) -> None:
        if not self.adapters[app].supports_endpoints:
            raise UnsupportedError(f"Endpoint switching is not supported for {app.value}")

    @staticmethod
    def _check_endpoint_allowed(provider: Provider, url: str) -> None:
        if not provider.alternative_urls:
            raise ValidationError(f"Provider '{provider.name}' has no alternative endpoints configured")
        if url not in provider.alternative_urls:
            raise ValidationError(f"Endpoint {url} is not in the alternatives of provider '{provider.name}'")

    def _record(self, event: str, app: AppType, start: float, payload: dict) -> None:
        record_structured_event(
            self.settings,
            event,
            status="success",
            component="provider",
            duration_ms=(time.perf_counter() - start) * 1000,
            payload={"app": app.value, **payload},
        )


__all__ = ["SwitchCoordinator", "SwitchResult", "switch_in", "write_live"]
