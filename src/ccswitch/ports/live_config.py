"""Port definition for an application's live configuration."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict

from ccswitch.domain.apps import AppType
from ccswitch.domain.errors import UnsupportedError


class LiveConfigAdapter(ABC):
    """Reads and merges the fields ccswitch owns in one app's live config."""

    app_type: AppType
    supports_endpoints = False

    @abstractmethod
    def config_dir(self) -> Path:
        """Directory holding the app's live configuration."""

    @abstractmethod
    def exists(self) -> bool:
        """Whether live configuration is present at all."""

    @abstractmethod
    def read(self) -> Dict[str, Any]:
        """Return the live document, or an empty default when absent."""

    @abstractmethod
    def extract_owned(self, live: Dict[str, Any]) -> Dict[str, Any]:
        """Return the owned subset of ``live`` shaped as a provider settingsConfig."""

    @abstractmethod
    def write(self, settings_config: Dict[str, Any]) -> None:
        """Merge the owned fields of ``settings_config`` into the live config."""

    def clear(self) -> None:
        """Empty the owned fields (provider disabled)."""

        raise UnsupportedError(f"Disabling the active provider is not supported for {self.app_type.value}")

    def set_endpoint(self, url: str) -> None:
        raise UnsupportedError(f"Endpoint switching is not supported for {self.app_type.value}")

    def endpoint_of(self, settings_config: Dict[str, Any]) -> str | None:
        return None

    def with_endpoint(self, settings_config: Dict[str, Any], url: str) -> Dict[str, Any]:
        raise UnsupportedError(f"Endpoint switching is not supported for {self.app_type.value}")

    def backfill(self, settings_config: Dict[str, Any], live: Dict[str, Any]) -> Dict[str, Any]:
        """Return ``settings_config`` updated with the owned values found in ``live``."""

        return self.extract_owned(live)

    def read_mcp_servers(self) -> Dict[str, Dict[str, Any]]:
        raise UnsupportedError(f"MCP servers are not supported for {self.app_type.value}")

    def write_mcp_servers(self, servers: Dict[str, Dict[str, Any]]) -> None:
        raise UnsupportedError(f"MCP servers are not supported for {self.app_type.value}")


__all__ = ["LiveConfigAdapter"]
