from __future__ import annotations

import pytest

from ccswitch.domain.errors import NotFoundError, ValidationError
from ccswitch.domain.provider import Provider, ProviderManager


def _provider(provider_id: str, name: str | None = None) -> Provider:
    return Provider(id=provider_id, name=name or provider_id, settings_config={"env": {"ANTHROPIC_AUTH_TOKEN": provider_id}})


def test_provider_round_trip_keeps_unknown_keys() -> None:
    raw = {
        "id": "p1",
        "name": "Primary",
        "settingsConfig": {"env": {"ANTHROPIC_BASE_URL": "https://a"}},
        "websiteUrl": "https://example.com",
        "alternativeUrls": ["https://a", " ", "https://b"],
        "createdAt": 1700000000000,
        "sortIndex": 3,
    }
    provider = Provider.from_dict(raw)
    assert provider.alternative_urls == ["https://a", "https://b"]
    payload = provider.to_dict()
    assert payload["sortIndex"] == 3
    assert payload["settingsConfig"] == raw["settingsConfig"]
    assert payload["createdAt"] == 1700000000000


def test_provider_rejects_bad_id_and_settings() -> None:
    with pytest.raises(ValidationError):
        Provider(id="../etc", name="x", settings_config={})
    with pytest.raises(ValidationError):
        Provider(id="ok", name="x", settings_config=[])  # type: ignore[arg-type]
    with pytest.raises(ValidationError):
        Provider(id="ok", name="  ", settings_config={})


def test_create_generates_id_and_timestamp() -> None:
    provider = Provider.create("Demo", {"apiKey": "k"})
    assert len(provider.id) == 32
    assert provider.created_at is not None


def test_manager_refuses_to_remove_current() -> None:
    manager = ProviderManager()
    manager.put(_provider("a"))
    manager.put(_provider("b"))
    manager.activate("a")

    with pytest.raises(ValidationError):
        manager.remove("a")
    assert set(manager.providers) == {"a", "b"}

    removed = manager.remove("b")
    assert removed.id == "b"
    with pytest.raises(NotFoundError):
        manager.remove("b")


def test_manager_activate_unknown_and_clear() -> None:
    manager = ProviderManager()
    manager.put(_provider("a"))
    with pytest.raises(NotFoundError):
        manager.activate("missing")
    manager.activate("a")
    assert manager.current_provider() is not None
    manager.activate("")
    assert manager.current_provider() is None


def test_manager_from_dict_drops_dangling_current() -> None:
    manager = ProviderManager.from_dict({"providers": {"a": {"name": "A", "settingsConfig": {}}}, "current": "gone"})
    assert manager.current == ""
    assert manager.get("a").id == "a"


def test_find_by_name_is_case_insensitive() -> None:
    manager = ProviderManager()
    manager.put(_provider("a", "Work Account"))
    assert manager.find_by_name("work account ").id == "a"
    assert manager.find_by_name("personal") is None
