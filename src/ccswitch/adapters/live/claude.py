"""Live configuration adapter for Claude Code."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict

from ccswitch.domain.apps import AppType
from ccswitch.domain.errors import ValidationError
from ccswitch.ports.live_config import LiveConfigAdapter
from ccswitch.settings import RuntimeSettings
from ccswitch.utils.atomic import read_json, write_json_atomic

TOKEN_KEY = "ANTHROPIC_AUTH_TOKEN"
BASE_URL_KEY = "ANTHROPIC_BASE_URL"
OWNED_ENV_KEYS = (TOKEN_KEY, BASE_URL_KEY)
MCP_KEY = "mcpServers"


def _load_object(path: Path) -> Dict[str, Any]:
    data = read_json(path, default={})
    if not isinstance(data, dict):
        raise ValidationError(f"{path} root must be a JSON object")
    return data


def _env_of(document: Dict[str, Any]) -> Dict[str, Any]:
    env = document.get("env")
    return env if isinstance(env, dict) else {}


class ClaudeLiveConfig(LiveConfigAdapter):
    """Owns two env leaves of settings.json and the mcpServers map of ~/.claude.json."""

    app_type = AppType.CLAUDE
    supports_endpoints = True

    def __init__(self, settings: RuntimeSettings) -> None:
        self._settings = settings

    @property
    def settings_path(self) -> Path:
        return self._settings.claude_settings_path

    @property
    def mcp_path(self) -> Path:
        return self._settings.claude_mcp_path

    def config_dir(self) -> Path:
        return self._settings.claude_dir

    def exists(self) -> bool:
        return self.settings_path.exists()

    def read(self) -> Dict[str, Any]:
        return _load_object(self.settings_path)

    def extract_owned(self, live: Dict[str, Any]) -> Dict[str, Any]:
        env = _env_of(live)
        return {"env": {key: env[key] for key in OWNED_ENV_KEYS if key in env}}

    def backfill(self, settings_config: Dict[str, Any], live: Dict[str, Any]) -> Dict[str, Any]:
        updated = copy.deepcopy(settings_config)
        env = dict(_env_of(updated))
        live_env = _env_of(live)
        for key in OWNED_ENV_KEYS:
            if key in live_env:
                env[key] = live_env[key]
            else:
                env.pop(key, None)
        updated["env"] = env
        return updated

    def write(self, settings_config: Dict[str, Any]) -> None:
        document = self.read()
        env = dict(_env_of(document))
        wanted = _env_of(settings_config)
        for key in OWNED_ENV_KEYS:
            if key in wanted:
                env[key] = wanted[key]
            else:
                env.pop(key, None)
        document["env"] = env
        write_json_atomic(self.settings_path, document)

    def clear(self) -> None:
        document = self.read()
        env = {key: value for key, value in _env_of(document).items() if key not in OWNED_ENV_KEYS}
        document["env"] = env
        write_json_atomic(self.settings_path, document)

    def set_endpoint(self, url: str) -> None:
        document = self.read()
        env = dict(_env_of(document))
        env[BASE_URL_KEY] = url
        document["env"] = env
        write_json_atomic(self.settings_path, document)

    def endpoint_of(self, settings_config: Dict[str, Any]) -> str | None:
        value = _env_of(settings_config).get(BASE_URL_KEY)
        return value if isinstance(value, str) else None

    def with_endpoint(self, settings_config: Dict[str, Any], url: str) -> Dict[str, Any]:
        updated = copy.deepcopy(settings_config)
        env = dict(_env_of(updated))
        env[BASE_URL_KEY] = url
        updated["env"] = env
        return updated

    def read_mcp_servers(self) -> Dict[str, Dict[str, Any]]:
        servers = _load_object(self.mcp_path).get(MCP_KEY) or {}
        if not isinstance(servers, dict):
            raise ValidationError(f"{self.mcp_path} field '{MCP_KEY}' must be an object")
        return servers

    def write_mcp_servers(self, servers: Dict[str, Dict[str, Any]]) -> None:
        document = _load_object(self.mcp_path)
        document[MCP_KEY] = copy.deepcopy(servers)
        write_json_atomic(self.mcp_path, document)


__all__ = ["BASE_URL_KEY", "ClaudeLiveConfig", "OWNED_ENV_KEYS", "TOKEN_KEY"]
