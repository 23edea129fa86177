"""User environment variables stored under HKEY_CURRENT_USER\\Environment."""

from __future__ import annotations

import sys

from ccswitch.domain.errors import IOFailure, UnsupportedError
from ccswitch.ports.env_store import EnvironmentStore

_ENV_SUBKEY = "Environment"


class WindowsRegistryEnvironmentStore(EnvironmentStore):
    """Persists variables in the per-user registry hive.

    Running processes keep their old environment; new terminals pick up the
    change after the shell is restarted.
    """

    def __init__(self) -> None:
        if sys.platform != "win32":
            raise UnsupportedError("The registry environment backend is only available on Windows")
        import winreg

        self._winreg = winreg

    def get(self, name: str) -> str | None:
        winreg = self._winreg
        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, _ENV_SUBKEY, 0, winreg.KEY_READ) as key:
                value, _kind = winreg.QueryValueEx(key, name)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise IOFailure(f"Failed to read registry value {name}: {exc}") from exc
        return str(value)

    def set(self, name: str, value: str) -> None:
        if self.get(name) == value:
            return
        winreg = self._winreg
        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, _ENV_SUBKEY, 0, winreg.KEY_SET_VALUE) as key:
                winreg.SetValueEx(key, name, 0, winreg.REG_SZ, value)
        except OSError as exc:
            raise IOFailure(f"Failed to set registry value {name}: {exc}") from exc

    def unset(self, name: str) -> None:
        winreg = self._winreg
        try:
            with winreg.OpenKey(winreg.HKEY_CURRENT_USER, _ENV_SUBKEY, 0, winreg.KEY_SET_VALUE) as key:
                winreg.DeleteValue(key, name)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise IOFailure(f"Failed to delete registry value {name}: {exc}") from exc


__all__ = ["WindowsRegistryEnvironmentStore"]
