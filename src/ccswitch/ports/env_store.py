"""Port definition for persistent user environment variables."""

from __future__ import annotations

from abc import ABC, abstractmethod


class EnvironmentStore(ABC):
    """Abstraction over where user-level environment variables persist."""

    @abstractmethod
    def get(self, name: str) -> str | None:
        """Return the persisted value, if any."""

    @abstractmethod
    def set(self, name: str, value: str) -> None:
        """Persist ``name=value``; reapplying the same value is a no-op."""

    @abstractmethod
    def unset(self, name: str) -> None:
        """Remove the variable; removing an absent variable succeeds."""


__all__ = ["EnvironmentStore"]
