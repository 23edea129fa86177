from __future__ import annotations

import pytest

from ccswitch.domain.errors import NotFoundError, ValidationError
from ccswitch.domain.mcp import McpScope, normalize_definition, validate_server_id
from ccswitch.domain.schema import validate_provider_settings
from ccswitch.domain.apps import AppType


def test_normalize_strips_ui_keys_and_unwraps_envelope() -> None:
    spec = {
        "id": "fs",
        "name": "Filesystem",
        "enabled": True,
        "tags": ["local"],
        "server": {"type": "stdio", "command": "npx", "args": ["-y", "fs"], "homepage": "https://x"},
    }
    assert normalize_definition("fs", spec) == {"type": "stdio", "command": "npx", "args": ["-y", "fs"]}


def test_normalize_defaults_type() -> None:
    assert normalize_definition("web", {"url": "https://mcp.example"})["type"] == "http"
    assert normalize_definition("cli", {"command": "run"})["type"] == "stdio"


@pytest.mark.parametrize(
    "spec",
    [
        {"type": "stdio"},
        {"type": "http", "command": "x"},
        {"type": "ws", "url": "wss://x"},
        {"command": "x", "args": "not-a-list"},
        "string",
    ],
)
def test_normalize_rejects_bad_shapes(spec: object) -> None:
    with pytest.raises(ValidationError):
        normalize_definition("bad", spec)


def test_server_id_rules() -> None:
    assert validate_server_id("my-server_1.v2") == "my-server_1.v2"
    for bad in ("", "-lead", "has space", "x" * 65):
        with pytest.raises(ValidationError):
            validate_server_id(bad)


def test_scope_enable_flags() -> None:
    scope = McpScope()
    scope.upsert("a", {"type": "stdio", "command": "a"})
    assert scope.set_enabled("a", True) is True
    assert scope.set_enabled("a", True) is False
    assert list(scope.enabled_servers()) == ["a"]
    assert scope.snapshot()["a"]["enabled"] is True
    with pytest.raises(NotFoundError):
        scope.set_enabled("missing", True)
    assert scope.remove("a") is True
    assert scope.enabled == {}


def test_scope_reads_legacy_inline_flag() -> None:
    scope = McpScope.from_dict({"servers": {"a": {"type": "stdio", "command": "a", "enabled": True}}})
    assert scope.is_enabled("a")
    assert "enabled" not in scope.servers["a"]


def test_provider_settings_schema_per_app() -> None:
    validate_provider_settings(AppType.CLAUDE, {"env": {"ANTHROPIC_BASE_URL": "https://a"}})
    validate_provider_settings(AppType.CODEX, {"auth": {"OPENAI_API_KEY": "k"}, "config": 'model = "o3"\n'})
    validate_provider_settings(AppType.DROID, {"apiKey": "fk-1"})

    with pytest.raises(ValidationError):
        validate_provider_settings(AppType.CLAUDE, {"env": ["x"]})
    with pytest.raises(ValidationError):
        validate_provider_settings(AppType.CODEX, {"config": ""})
    with pytest.raises(ValidationError, match="TOML"):
        validate_provider_settings(AppType.CODEX, {"auth": {}, "config": "model = "})
    with pytest.raises(ValidationError):
        validate_provider_settings(AppType.DROID, {})
