"""Wires settings, adapters and services for one process."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from ccswitch.adapters.env import build_environment_store
from ccswitch.adapters.live import build_live_adapters
from ccswitch.app.mcp import McpRegistry
from ccswitch.app.migration import MigrationImporter
from ccswitch.app.providers import ProviderService
from ccswitch.app.store import ConfigStore
from ccswitch.app.switch import SwitchCoordinator
from ccswitch.domain.apps import AppType
from ccswitch.ports.env_store import EnvironmentStore
from ccswitch.ports.live_config import LiveConfigAdapter
from ccswitch.settings import RuntimeSettings


@dataclass
class Services:
    settings: RuntimeSettings
    store: ConfigStore
    adapters: Mapping[AppType, LiveConfigAdapter]
    providers: ProviderService
    switcher: SwitchCoordinator
    mcp: McpRegistry
    migration: MigrationImporter


def build_services(
    settings: RuntimeSettings,
    *,
    env_store: EnvironmentStore | None = None,
    migrate: bool = True,
) -> Services:
    """Open the store and, unless told otherwise, absorb legacy copies first."""

    adapters = build_live_adapters(settings, env_store or build_environment_store(settings))
    store = ConfigStore.open(settings)
    importer = MigrationImporter(settings)
    if migrate:
        importer.run(store)
    return Services(
        settings=settings,
        store=store,
        adapters=adapters,
        providers=ProviderService(store, adapters, settings),
        switcher=SwitchCoordinator(store, adapters, settings),
        mcp=McpRegistry(store, adapters, settings),
        migration=importer,
    )


__all__ = ["Services", "build_services"]
