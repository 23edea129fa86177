from __future__ import annotations

import json

import pytest

from ccswitch.adapters.env import InMemoryEnvironmentStore
from ccswitch.app.container import build_services
from ccswitch.app.migration import MigrationImporter
from ccswitch.app.store import ConfigStore
from ccswitch.app.store import service as store_module
from ccswitch.domain.apps import AppType
from ccswitch.domain.errors import IOFailure
from ccswitch.domain.provider import Provider
from ccswitch.settings import RuntimeSettings


def _seed_copies(settings: RuntimeSettings) -> None:
    claude_dir = settings.claude_dir
    codex_dir = settings.codex_dir
    claude_dir.mkdir(parents=True, exist_ok=True)
    codex_dir.mkdir(parents=True, exist_ok=True)
    (claude_dir / "settings.json").write_text(json.dumps({"env": {"ANTHROPIC_AUTH_TOKEN": "live"}}), encoding="utf-8")
    (claude_dir / "settings-Work.json").write_text(
        json.dumps({"env": {"ANTHROPIC_AUTH_TOKEN": "w", "ANTHROPIC_BASE_URL": "https://work"}}),
        encoding="utf-8",
    )
    (claude_dir / "settings-Personal.json").write_text(json.dumps({"env": {"ANTHROPIC_AUTH_TOKEN": "p"}}), encoding="utf-8")
    (claude_dir / "settings-broken.json").write_text("{not json", encoding="utf-8")
    (codex_dir / "auth-team.json").write_text(json.dumps({"OPENAI_API_KEY": "sk-team"}), encoding="utf-8")
    (codex_dir / "config-team.toml").write_text('model = "o3"\n', encoding="utf-8")


def _store_with(settings: RuntimeSettings, *providers: Provider) -> ConfigStore:
    store = ConfigStore.open(settings)
    with store.transaction() as txn:
        for provider in providers:
            txn.config.manager(AppType.CLAUDE).put(provider)
        txn.commit()
    return store


def test_run_imports_archives_and_store_wins(runtime_settings: RuntimeSettings) -> None:
    _seed_copies(runtime_settings)
    existing = Provider(id="kept", name="personal", settings_config={"env": {"ANTHROPIC_AUTH_TOKEN": "store"}})
    store = _store_with(runtime_settings, existing)

    importer = MigrationImporter(runtime_settings)
    assert importer.run(store) is True

    config = ConfigStore.load(runtime_settings.config_path).snapshot()
    claude = config.manager(AppType.CLAUDE)
    names = sorted(provider.name for provider in claude.providers.values())
    assert names == ["Work", "personal"]
    assert claude.get("kept").settings_config == {"env": {"ANTHROPIC_AUTH_TOKEN": "store"}}
    work = claude.find_by_name("work")
    assert work.settings_config["env"]["ANTHROPIC_BASE_URL"] == "https://work"

    team = config.manager(AppType.CODEX).find_by_name("team")
    assert team.settings_config == {"auth": {"OPENAI_API_KEY": "sk-team"}, "config": 'model = "o3"\n'}

    remaining = sorted(path.name for path in runtime_settings.claude_dir.iterdir())
    assert remaining == ["settings-broken.json", "settings.json"]
    assert list(runtime_settings.codex_dir.iterdir()) == []
    archived = sorted(path.name for path in runtime_settings.archive_dir.rglob("*") if path.is_file())
    assert archived == ["auth-team.json", "config-team.toml", "settings-Personal.json", "settings-Work.json"]


def test_run_is_guarded_by_marker(runtime_settings: RuntimeSettings) -> None:
    importer = MigrationImporter(runtime_settings)
    store = ConfigStore.open(runtime_settings)
    assert importer.run(store) is False
    assert runtime_settings.migration_marker.exists()

    _seed_copies(runtime_settings)
    assert importer.run(store) is False
    assert store.snapshot().manager(AppType.CLAUDE).providers == {}


def test_failed_commit_keeps_copies_for_next_start(
    runtime_settings: RuntimeSettings, monkeypatch: pytest.MonkeyPatch
) -> None:
    _seed_copies(runtime_settings)
    store = ConfigStore.open(runtime_settings)
    importer = MigrationImporter(runtime_settings)

    def refuse(path, payload):
        raise IOFailure("disk full", path)

    monkeypatch.setattr(store_module, "write_json_atomic", refuse)
    with pytest.raises(IOFailure):
        importer.run(store)

    assert (runtime_settings.claude_dir / "settings-Work.json").exists()
    assert not runtime_settings.migration_marker.exists()
    assert not runtime_settings.archive_dir.exists()
    assert store.snapshot().manager(AppType.CLAUDE).providers == {}

    monkeypatch.undo()
    assert importer.run(store) is True
    names = sorted(provider.name for provider in store.snapshot().manager(AppType.CLAUDE).providers.values())
    assert names == ["Personal", "Work"]
    assert not (runtime_settings.claude_dir / "settings-Work.json").exists()
    assert runtime_settings.migration_marker.exists()


def test_unreadable_copy_emits_warning(runtime_settings: RuntimeSettings) -> None:
    _seed_copies(runtime_settings)
    MigrationImporter(runtime_settings).run(ConfigStore.open(runtime_settings))

    log = runtime_settings.log_dir / "telemetry.jsonl"
    events = [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines()]
    warnings = [evt for evt in events if evt["event"] == "migration.copies" and evt["status"] == "skipped"]
    assert len(warnings) == 1
    assert warnings[0]["level"] == "warn"
    summary = [evt for evt in events if evt["event"] == "migration.copies" and evt["status"] == "success"]
    assert summary[-1]["payload"] == {"found": 3, "imported": 3, "skipped": 1}


def test_bootstrap_persists_imported_copies(runtime_settings: RuntimeSettings) -> None:
    _seed_copies(runtime_settings)
    build_services(runtime_settings, env_store=InMemoryEnvironmentStore())

    document = json.loads(runtime_settings.config_path.read_text(encoding="utf-8"))
    assert len(document["claude"]["providers"]) == 2
    assert len(document["codex"]["providers"]) == 1
