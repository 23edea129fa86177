from __future__ import annotations

import json
import threading
import tomllib
from dataclasses import replace

import pytest

from ccswitch.adapters.env import InMemoryEnvironmentStore
from ccswitch.app.container import Services, build_services
from ccswitch.app.store import ConfigStore
from ccswitch.domain.apps import AppType
from ccswitch.domain.errors import IOFailure, NotFoundError, UnsupportedError, ValidationError
from ccswitch.domain.provider import Provider
from ccswitch.settings import RuntimeSettings


@pytest.fixture()
def services(runtime_settings: RuntimeSettings) -> Services:
    return build_services(runtime_settings, env_store=InMemoryEnvironmentStore())


def _claude(provider_id: str, token: str, url: str, **kwargs) -> Provider:
    return Provider(
        id=provider_id,
        name=provider_id.upper(),
        settings_config={"env": {"ANTHROPIC_AUTH_TOKEN": token, "ANTHROPIC_BASE_URL": url}},
        **kwargs,
    )


def _live_env(settings: RuntimeSettings) -> dict:
    return json.loads((settings.claude_dir / "settings.json").read_text(encoding="utf-8"))["env"]


def _load_events(settings: RuntimeSettings, event: str) -> list[dict]:
    log_file = settings.log_dir / "telemetry.jsonl"
    if not log_file.exists():
        return []
    records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines() if line.strip()]
    return [record for record in records if record["event"] == event]


def test_switch_backfills_outgoing_url(services: Services, runtime_settings: RuntimeSettings) -> None:
    services.providers.add(AppType.CLAUDE, _claude("p1", "t1", "https://a"), activate=True)
    services.providers.add(AppType.CLAUDE, _claude("p2", "t2", "https://b"))

    result = services.switcher.switch(AppType.CLAUDE, "p2")

    assert result.previous_id == "p1" and result.current_id == "p2"
    assert _live_env(runtime_settings)["ANTHROPIC_BASE_URL"] == "https://b"
    stored = services.providers.list(AppType.CLAUDE)["p1"]
    assert stored.settings_config["env"]["ANTHROPIC_BASE_URL"] == "https://a"
    assert _load_events(runtime_settings, "provider.switch")[-1]["payload"] == {"app": "claude", "from": "p1", "to": "p2"}


def test_round_trip_captures_live_edits(services: Services, runtime_settings: RuntimeSettings) -> None:
    services.providers.add(AppType.CLAUDE, _claude("a", "ta", "https://a"), activate=True)
    services.providers.add(AppType.CLAUDE, _claude("b", "tb", "https://b"))

    live_path = runtime_settings.claude_dir / "settings.json"
    document = json.loads(live_path.read_text(encoding="utf-8"))
    document["env"]["ANTHROPIC_AUTH_TOKEN"] = "ta-rotated"
    document["env"]["UNRELATED"] = "1"
    live_path.write_text(json.dumps(document), encoding="utf-8")

    services.switcher.switch(AppType.CLAUDE, "b")
    services.switcher.switch(AppType.CLAUDE, "a")

    stored_a = services.providers.list(AppType.CLAUDE)["a"].settings_config["env"]
    live = _live_env(runtime_settings)
    assert stored_a == {"ANTHROPIC_AUTH_TOKEN": "ta-rotated", "ANTHROPIC_BASE_URL": "https://a"}
    assert {key: live[key] for key in stored_a} == stored_a
    assert live["UNRELATED"] == "1"


def test_failed_live_write_changes_nothing(
    services: Services, runtime_settings: RuntimeSettings, monkeypatch: pytest.MonkeyPatch
) -> None:
    services.providers.add(AppType.CLAUDE, _claude("p1", "t1", "https://a"), activate=True)
    services.providers.add(AppType.CLAUDE, _claude("p2", "t2", "https://b"))
    persisted_before = runtime_settings.config_path.read_bytes()
    live_before = (runtime_settings.claude_dir / "settings.json").read_bytes()

    def boom(settings_config):
        raise IOFailure("permission denied", runtime_settings.claude_dir / "settings.json")

    monkeypatch.setattr(services.adapters[AppType.CLAUDE], "write", boom)

    with pytest.raises(IOFailure):
        services.switcher.switch(AppType.CLAUDE, "p2")

    assert services.providers.get_current(AppType.CLAUDE) == "p1"
    assert runtime_settings.config_path.read_bytes() == persisted_before
    assert (runtime_settings.claude_dir / "settings.json").read_bytes() == live_before
    reloaded = ConfigStore.load(runtime_settings.config_path)
    assert reloaded.snapshot().manager(AppType.CLAUDE).current == "p1"


def test_switch_unknown_provider(services: Services) -> None:
    with pytest.raises(NotFoundError):
        services.switcher.switch(AppType.CLAUDE, "ghost")


def test_disable_clears_owned_fields(services: Services, runtime_settings: RuntimeSettings) -> None:
    services.providers.add(AppType.CLAUDE, _claude("p1", "t1", "https://a"), activate=True)

    previous = services.switcher.disable(AppType.CLAUDE)

    assert previous == "p1"
    assert services.providers.get_current(AppType.CLAUDE) == ""
    assert "ANTHROPIC_AUTH_TOKEN" not in _live_env(runtime_settings)
    assert "p1" in services.providers.list(AppType.CLAUDE)


def test_disable_codex_is_unsupported(services: Services) -> None:
    with pytest.raises(UnsupportedError):
        services.switcher.disable(AppType.CODEX)


def test_disable_droid_unsets_variable(runtime_settings: RuntimeSettings) -> None:
    env = InMemoryEnvironmentStore()
    services = build_services(runtime_settings, env_store=env)
    services.providers.add(AppType.DROID, Provider(id="d1", name="Droid", settings_config={"apiKey": "fk-1"}), activate=True)
    assert env.values == {"Factory_API_Key": "fk-1"}

    services.switcher.disable(AppType.DROID)
    assert env.values == {}


def test_switch_endpoint_allow_list(services: Services, runtime_settings: RuntimeSettings) -> None:
    with pytest.raises(NotFoundError):
        services.switcher.switch_endpoint(AppType.CLAUDE, "https://a2")

    provider = _claude("p1", "t1", "https://a", alternative_urls=["https://a", "https://a2"])
    services.providers.add(AppType.CLAUDE, provider, activate=True)

    updated = services.switcher.switch_endpoint(AppType.CLAUDE, "https://a2")

    assert updated.settings_config["env"]["ANTHROPIC_BASE_URL"] == "https://a2"
    assert _live_env(runtime_settings)["ANTHROPIC_BASE_URL"] == "https://a2"
    assert _live_env(runtime_settings)["ANTHROPIC_AUTH_TOKEN"] == "t1"
    with pytest.raises(ValidationError):
        services.switcher.switch_endpoint(AppType.CLAUDE, "https://evil")


def test_switch_with_endpoint(services: Services, runtime_settings: RuntimeSettings) -> None:
    services.providers.add(AppType.CLAUDE, _claude("p1", "t1", "https://a"), activate=True)
    services.providers.add(AppType.CLAUDE, _claude("p2", "t2", "https://b", alternative_urls=["https://b", "https://b2"]))

    with pytest.raises(ValidationError):
        services.switcher.switch_with_endpoint(AppType.CLAUDE, "p2", "https://nope")
    assert services.providers.get_current(AppType.CLAUDE) == "p1"

    services.switcher.switch_with_endpoint(AppType.CLAUDE, "p2", "https://b2")
    assert services.providers.get_current(AppType.CLAUDE) == "p2"
    assert _live_env(runtime_settings) == {"ANTHROPIC_AUTH_TOKEN": "t2", "ANTHROPIC_BASE_URL": "https://b2"}


def test_codex_switch_keeps_enabled_mcp_servers(services: Services, runtime_settings: RuntimeSettings) -> None:
    codex = AppType.CODEX
    services.providers.add(codex, Provider(id="c1", name="One", settings_config={"auth": {"OPENAI_API_KEY": "k1"}, "config": 'model = "o3"\n'}), activate=True)
    services.providers.add(codex, Provider(id="c2", name="Two", settings_config={"auth": {"OPENAI_API_KEY": "k2"}, "config": 'model = "gpt-5"\n'}))
    services.mcp.upsert(codex, "fs", {"command": "npx", "args": ["fs"]})
    services.mcp.set_enabled(codex, "fs", True)

    services.switcher.switch(codex, "c2")

    document = tomllib.loads(runtime_settings.codex_config_path.read_text(encoding="utf-8"))
    assert document["model"] == "gpt-5"
    assert list(document["mcp_servers"]) == ["fs"]
    auth = json.loads(runtime_settings.codex_auth_path.read_text(encoding="utf-8"))
    assert auth == {"OPENAI_API_KEY": "k2"}


def test_disabled_server_stays_out_after_switch_back(services: Services, runtime_settings: RuntimeSettings) -> None:
    codex = AppType.CODEX
    services.providers.add(codex, Provider(id="c1", name="One", settings_config={"auth": {"OPENAI_API_KEY": "k1"}, "config": 'model = "o3"\n'}), activate=True)
    services.providers.add(codex, Provider(id="c2", name="Two", settings_config={"auth": {"OPENAI_API_KEY": "k2"}, "config": 'model = "gpt-5"\n'}))
    services.mcp.upsert(codex, "fs", {"command": "npx", "args": ["fs"]})
    services.mcp.set_enabled(codex, "fs", True)

    services.switcher.switch(codex, "c2")
    services.mcp.set_enabled(codex, "fs", False)
    services.switcher.switch(codex, "c1")

    document = tomllib.loads(runtime_settings.codex_config_path.read_text(encoding="utf-8"))
    assert document["model"] == "o3"
    assert "fs" not in document.get("mcp_servers", {})
    assert services.mcp.list(codex)["fs"]["enabled"] is False


def test_endpoint_switch_unsupported_before_allow_list(services: Services) -> None:
    services.providers.add(
        AppType.CODEX,
        Provider(id="c1", name="One", settings_config={"auth": {"OPENAI_API_KEY": "k1"}}),
        activate=True,
    )
    with pytest.raises(UnsupportedError):
        services.switcher.switch_endpoint(AppType.CODEX, "https://alt")
    with pytest.raises(UnsupportedError):
        services.switcher.switch_with_endpoint(AppType.DROID, "d1", "https://alt")


def test_current_is_not_observed_mid_switch(runtime_settings: RuntimeSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    services = build_services(replace(runtime_settings, lock_timeout=5.0), env_store=InMemoryEnvironmentStore())
    services.providers.add(AppType.CLAUDE, _claude("p1", "t1", "https://a"), activate=True)
    services.providers.add(AppType.CLAUDE, _claude("p2", "t2", "https://b"))

    adapter = services.adapters[AppType.CLAUDE]
    original_write = adapter.write
    writing = threading.Event()
    release = threading.Event()

    def slow_write(settings_config):
        writing.set()
        release.wait(5)
        original_write(settings_config)

    monkeypatch.setattr(adapter, "write", slow_write)
    observed: list[str] = []

    switcher = threading.Thread(target=services.switcher.switch, args=(AppType.CLAUDE, "p2"))
    reader = threading.Thread(target=lambda: observed.append(services.providers.get_current(AppType.CLAUDE)))
    switcher.start()
    try:
        assert writing.wait(5)
        reader.start()
        reader.join(0.3)
        assert reader.is_alive()
        assert observed == []
    finally:
        release.set()
        switcher.join(5)
        reader.join(5)

    assert observed == ["p2"]
