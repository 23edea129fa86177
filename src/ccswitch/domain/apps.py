"""Supported client applications."""

from __future__ import annotations

from enum import Enum

from .errors import NotFoundError, UnsupportedError


class AppType(str, Enum):
    CLAUDE = "claude"
    CODEX = "codex"
    DROID = "droid"

    @classmethod
    def parse(cls, value: "str | AppType") -> "AppType":
        if isinstance(value, AppType):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise NotFoundError(f"Unknown app type: {value!r}")

    @property
    def supports_mcp(self) -> bool:
        return self in MCP_APPS

    @property
    def supports_disable(self) -> bool:
        # codex refuses to start with an empty auth.json
        return self is not AppType.CODEX

    def mcp_peer(self) -> "AppType":
        """Return the other MCP-capable app (copy target)."""

        if not self.supports_mcp:
            raise UnsupportedError(f"MCP servers are not supported for {self.value}")
        return AppType.CODEX if self is AppType.CLAUDE else AppType.CLAUDE


MCP_APPS = (AppType.CLAUDE, AppType.CODEX)

__all__ = ["AppType", "MCP_APPS"]
