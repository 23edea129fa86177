from __future__ import annotations

import json
import threading

import pytest

from ccswitch.app.store import ConfigStore
from ccswitch.domain.apps import AppType
from ccswitch.domain.errors import LockFailure, ValidationError
from ccswitch.domain.provider import Provider
from ccswitch.settings import RuntimeSettings


def test_missing_file_opens_empty(runtime_settings: RuntimeSettings) -> None:
    store = ConfigStore.open(runtime_settings)
    assert store.snapshot().manager(AppType.CLAUDE).providers == {}
    assert not runtime_settings.config_path.exists()


def test_uncommitted_transaction_is_discarded(runtime_settings: RuntimeSettings) -> None:
    store = ConfigStore.open(runtime_settings)
    with store.transaction() as txn:
        txn.config.manager(AppType.DROID).put(Provider(id="d", name="D", settings_config={"apiKey": "k"}))
    assert store.snapshot().manager(AppType.DROID).providers == {}

    with store.transaction() as txn:
        txn.config.manager(AppType.DROID).put(Provider(id="d", name="D", settings_config={"apiKey": "k"}))
        txn.commit()
    reloaded = ConfigStore.load(runtime_settings.config_path)
    assert "d" in reloaded.snapshot().manager(AppType.DROID).providers


def test_v1_file_is_backed_up_before_rewrite(runtime_settings: RuntimeSettings) -> None:
    path = runtime_settings.config_path
    path.parent.mkdir(parents=True, exist_ok=True)
    legacy = {"providers": {"p1": {"id": "p1", "name": "One", "settingsConfig": {}}}, "current": "p1"}
    path.write_text(json.dumps(legacy), encoding="utf-8")

    store = ConfigStore.open(runtime_settings)
    store.save()
    store.save()

    backups = sorted(path.parent.glob("config.v1.backup.*.json"))
    assert len(backups) == 1
    assert json.loads(backups[0].read_text(encoding="utf-8")) == legacy
    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["version"] == 2
    assert document["claude"]["current"] == "p1"


def test_corrupt_file_is_validation_error(runtime_settings: RuntimeSettings) -> None:
    path = runtime_settings.config_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("{broken", encoding="utf-8")
    with pytest.raises(ValidationError):
        ConfigStore.open(runtime_settings)


def test_lock_timeout_raises(runtime_settings: RuntimeSettings) -> None:
    store = ConfigStore.open(runtime_settings)
    held = threading.Event()
    release = threading.Event()

    def hold() -> None:
        with store.transaction():
            held.set()
            release.wait(5)

    worker = threading.Thread(target=hold)
    worker.start()
    try:
        assert held.wait(5)
        with pytest.raises(LockFailure):
            with store.transaction():
                pass
    finally:
        release.set()
        worker.join(5)
