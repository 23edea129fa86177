"""Live configuration adapter for Codex (auth.json + config.toml)."""

from __future__ import annotations

import copy
import json
import tomllib
from pathlib import Path
from typing import Any, Dict

import tomlkit
from tomlkit.exceptions import ParseError

from ccswitch.domain.apps import AppType
from ccswitch.domain.errors import CcSwitchError, IOFailure, ValidationError
from ccswitch.domain.schema import validate_codex_config_text
from ccswitch.ports.live_config import LiveConfigAdapter
from ccswitch.settings import RuntimeSettings
from ccswitch.utils.atomic import atomic_write, read_json, read_text, write_text_atomic

MCP_TABLE = "mcp_servers"


class CodexLiveConfig(LiveConfigAdapter):
    """Owns auth.json entirely and config.toml as an opaque, validated text blob."""

    app_type = AppType.CODEX

    def __init__(self, settings: RuntimeSettings) -> None:
        self._settings = settings

    @property
    def auth_path(self) -> Path:
        return self._settings.codex_auth_path

    @property
    def config_path(self) -> Path:
        return self._settings.codex_config_path

    def config_dir(self) -> Path:
        return self._settings.codex_dir

    def exists(self) -> bool:
        return self.auth_path.exists()

    def read(self) -> Dict[str, Any]:
        if not self.auth_path.exists():
            return {}
        auth = read_json(self.auth_path, default={})
        if not isinstance(auth, dict):
            raise ValidationError(f"{self.auth_path} root must be a JSON object")
        return {"auth": auth, "config": read_text(self.config_path) or ""}

    def extract_owned(self, live: Dict[str, Any]) -> Dict[str, Any]:
        if "auth" not in live:
            return {}
        return {"auth": copy.deepcopy(live["auth"]), "config": live.get("config") or ""}

    def backfill(self, settings_config: Dict[str, Any], live: Dict[str, Any]) -> Dict[str, Any]:
        if "auth" not in live:
            return copy.deepcopy(settings_config)
        updated = copy.deepcopy(settings_config)
        updated.update(self.extract_owned(live))
        return updated

    def write(self, settings_config: Dict[str, Any]) -> None:
        auth = settings_config.get("auth")
        if not isinstance(auth, dict):
            raise ValidationError("Codex provider is missing an 'auth' object")
        config_text = settings_config.get("config")
        if config_text is not None and not isinstance(config_text, str):
            raise ValidationError("Codex 'config' must be a string")
        config_text = config_text or ""
        validate_codex_config_text(config_text)
        self._write_pair(json.dumps(auth, ensure_ascii=False, indent=2) + "\n", config_text)

    def _write_pair(self, auth_text: str, config_text: str) -> None:
        previous_auth = self._snapshot(self.auth_path)
        write_text_atomic(self.auth_path, auth_text)
        try:
            write_text_atomic(self.config_path, config_text)
        except CcSwitchError:
            self._restore(self.auth_path, previous_auth)
            raise

    @staticmethod
    def _snapshot(path: Path) -> bytes | None:
        if not path.exists():
            return None
        try:
            return path.read_bytes()
        except OSError as exc:
            raise IOFailure(f"Failed to read {path}: {exc}", path) from exc

    @staticmethod
    def _restore(path: Path, previous: bytes | None) -> None:
        if previous is None:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as exc:
                raise IOFailure(f"Failed to roll back {path}: {exc}", path) from exc
            return
        atomic_write(path, previous)

    def read_mcp_servers(self) -> Dict[str, Dict[str, Any]]:
        text = read_text(self.config_path) or ""
        try:
            document = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ValidationError(f"Codex config.toml is not valid TOML: {exc}") from exc
        table = document.get(MCP_TABLE) or {}
        if not isinstance(table, dict):
            raise ValidationError(f"Codex config.toml '{MCP_TABLE}' must be a table")
        servers: Dict[str, Dict[str, Any]] = {}
        for server_id, entry in table.items():
            if not isinstance(entry, dict):
                raise ValidationError(f"Codex MCP server '{server_id}' must be a table")
            servers[server_id] = _from_codex_entry(entry)
        return servers

    def write_mcp_servers(self, servers: Dict[str, Dict[str, Any]]) -> None:
        text = read_text(self.config_path) or ""
        try:
            document = tomlkit.parse(text)
        except ParseError as exc:
            raise ValidationError(f"Codex config.toml is not valid TOML: {exc}") from exc
        if MCP_TABLE in document:
            del document[MCP_TABLE]
        if servers:
            table = tomlkit.table()
            for server_id, definition in sorted(servers.items()):
                entry = tomlkit.table()
                for key, value in _to_codex_entry(definition).items():
                    entry.add(key, value)
                table.add(server_id, entry)
            document[MCP_TABLE] = table
        rendered = tomlkit.dumps(document)
        validate_codex_config_text(rendered)
        write_text_atomic(self.config_path, rendered)


def _from_codex_entry(entry: Dict[str, Any]) -> Dict[str, Any]:
    definition = copy.deepcopy(entry)
    if "type" not in definition:
        definition["type"] = "http" if "url" in definition and "command" not in definition else "stdio"
    return definition


def _to_codex_entry(definition: Dict[str, Any]) -> Dict[str, Any]:
    entry = {key: copy.deepcopy(value) for key, value in definition.items() if value is not None}
    if entry.get("type", "stdio") == "stdio":
        entry.pop("type", None)
    return entry


__all__ = ["CodexLiveConfig", "MCP_TABLE"]
