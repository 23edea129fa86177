"""Live configuration adapter for Droid (API key in a user environment variable)."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict

from ccswitch.domain.apps import AppType
from ccswitch.domain.errors import ValidationError
from ccswitch.ports.env_store import EnvironmentStore
from ccswitch.ports.live_config import LiveConfigAdapter
from ccswitch.settings import RuntimeSettings

API_KEY_ENV = "Factory_API_Key"
API_KEY_FIELD = "apiKey"


class DroidLiveConfig(LiveConfigAdapter):
    """Owns the Factory_API_Key variable; nothing on disk belongs to Droid itself."""

    app_type = AppType.DROID

    def __init__(self, settings: RuntimeSettings, env_store: EnvironmentStore) -> None:
        self._settings = settings
        self._env = env_store

    def config_dir(self) -> Path:
        return self._settings.user_home / ".droid"

    def exists(self) -> bool:
        return self._env.get(API_KEY_ENV) is not None

    def read(self) -> Dict[str, Any]:
        value = self._env.get(API_KEY_ENV)
        return {} if value is None else {API_KEY_FIELD: value}

    def extract_owned(self, live: Dict[str, Any]) -> Dict[str, Any]:
        if API_KEY_FIELD not in live:
            return {}
        return {API_KEY_FIELD: live[API_KEY_FIELD]}

    def backfill(self, settings_config: Dict[str, Any], live: Dict[str, Any]) -> Dict[str, Any]:
        updated = copy.deepcopy(settings_config)
        updated.update(self.extract_owned(live))
        return updated

    def write(self, settings_config: Dict[str, Any]) -> None:
        api_key = settings_config.get(API_KEY_FIELD)
        if not isinstance(api_key, str) or not api_key.strip():
            raise ValidationError("Droid provider requires a non-empty 'apiKey'")
        self._env.set(API_KEY_ENV, api_key.strip())

    def clear(self) -> None:
        self._env.unset(API_KEY_ENV)


__all__ = ["API_KEY_ENV", "API_KEY_FIELD", "DroidLiveConfig"]
