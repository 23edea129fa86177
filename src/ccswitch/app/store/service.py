"""Lock-guarded owner of the persisted config document."""

from __future__ import annotations

import shutil
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from ccswitch.domain.config import CONFIG_VERSION, MultiAppConfig
from ccswitch.domain.errors import IOFailure, LockFailure
from ccswitch.settings import RuntimeSettings
from ccswitch.utils.atomic import read_json, write_json_atomic


@dataclass
class Transaction:
    """Working copy handed to a critical section; nothing persists until commit()."""

    store: "ConfigStore"
    config: MultiAppConfig
    committed: bool = field(default=False)

    def commit(self) -> None:
        self.store._commit(self.config)
        self.committed = True


class ConfigStore:
    """Holds the in-memory config and rewrites config.json on every commit."""

    def __init__(self, path: Path, config: MultiAppConfig, *, lock_timeout: float = 10.0) -> None:
        self._path = path
        self._config = config
        self._lock = threading.RLock()
        self._lock_timeout = lock_timeout
        self._loaded_version = config.version

    @classmethod
    def open(cls, settings: RuntimeSettings) -> "ConfigStore":
        return cls.load(settings.config_path, lock_timeout=settings.lock_timeout)

    @classmethod
    def load(cls, path: Path, *, lock_timeout: float = 10.0) -> "ConfigStore":
        data = read_json(path, default={})
        return cls(path, MultiAppConfig.from_dict(data), lock_timeout=lock_timeout)

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Exclusive critical section over a copy of the config."""

        self._acquire()
        try:
            yield Transaction(store=self, config=self._config.copy())
        finally:
            self._lock.release()

    @contextmanager
    def read(self) -> Iterator[MultiAppConfig]:
        """Short read-only view; callers must not mutate the yielded config."""

        self._acquire()
        try:
            yield self._config
        finally:
            self._lock.release()

    def snapshot(self) -> MultiAppConfig:
        with self.read() as config:
            return config.copy()

    def save(self) -> None:
        """Persist the current in-memory config as-is."""

        with self.read() as config:
            self._write(config)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _acquire(self) -> None:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise LockFailure(f"Timed out after {self._lock_timeout:.1f}s waiting for the config lock")

    def _commit(self, config: MultiAppConfig) -> None:
        self._write(config)
        self._config = config

    def _write(self, config: MultiAppConfig) -> None:
        self._backup_legacy()
        write_json_atomic(self._path, config.to_dict())
        config.version = CONFIG_VERSION
        self._loaded_version = CONFIG_VERSION

    def _backup_legacy(self) -> None:
        if self._loaded_version >= CONFIG_VERSION or not self._path.exists():
            return
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        target = self._path.with_name(f"config.v{self._loaded_version}.backup.{stamp}.json")
        try:
            shutil.copy2(self._path, target)
        except OSError as exc:
            raise IOFailure(f"Failed to back up {self._path}: {exc}", self._path) from exc


__all__ = ["ConfigStore", "Transaction"]
