"""Live configuration adapters, one per app type."""

from __future__ import annotations

from typing import Dict

from ccswitch.domain.apps import AppType
from ccswitch.ports.env_store import EnvironmentStore
from ccswitch.ports.live_config import LiveConfigAdapter
from ccswitch.settings import RuntimeSettings

from .claude import ClaudeLiveConfig
from .codex import CodexLiveConfig
from .droid import DroidLiveConfig


def build_live_adapters(settings: RuntimeSettings, env_store: EnvironmentStore) -> Dict[AppType, LiveConfigAdapter]:
    return {
        AppType.CLAUDE: ClaudeLiveConfig(settings),
        AppType.CODEX: CodexLiveConfig(settings),
        AppType.DROID: DroidLiveConfig(settings, env_store),
    }


__all__ = ["ClaudeLiveConfig", "CodexLiveConfig", "DroidLiveConfig", "build_live_adapters"]
