"""Process-local environment store (tests and dry runs)."""

from __future__ import annotations

from typing import Dict

from ccswitch.ports.env_store import EnvironmentStore


class InMemoryEnvironmentStore(EnvironmentStore):
    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self.values: Dict[str, str] = dict(initial or {})

    def get(self, name: str) -> str | None:
        return self.values.get(name)

    def set(self, name: str, value: str) -> None:
        self.values[name] = value

    def unset(self, name: str) -> None:
        self.values.pop(name, None)


__all__ = ["InMemoryEnvironmentStore"]
