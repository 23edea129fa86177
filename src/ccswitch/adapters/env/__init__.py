"""Environment store adapters and backend selection."""

from __future__ import annotations

import sys

from ccswitch.ports.env_store import EnvironmentStore
from ccswitch.settings import RuntimeSettings

from .memory import InMemoryEnvironmentStore
from .shell_profile import ShellProfileEnvironmentStore


def build_environment_store(settings: RuntimeSettings) -> EnvironmentStore:
    backend = settings.droid_env_backend
    if backend == "auto":
        backend = "registry" if sys.platform == "win32" else "shell"
    if backend == "registry":
        from .windows_registry import WindowsRegistryEnvironmentStore

        return WindowsRegistryEnvironmentStore()
    if backend == "memory":
        return InMemoryEnvironmentStore()
    return ShellProfileEnvironmentStore(settings.shell_profiles)


__all__ = ["InMemoryEnvironmentStore", "ShellProfileEnvironmentStore", "build_environment_store"]
