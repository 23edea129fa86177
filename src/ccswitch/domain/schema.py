"""Shape checks for provider settings and MCP server definitions."""

from __future__ import annotations

import json
import tomllib
from functools import lru_cache
from importlib import resources
from typing import Any, Iterator, Tuple

from jsonschema import Draft202012Validator

from .apps import AppType
from .errors import ValidationError

_SCHEMA_PACKAGE = "ccswitch.resources"
_PROVIDER_SCHEMA = "provider_settings.schema.json"
_MCP_SCHEMA = "mcp_server.schema.json"


@lru_cache(maxsize=None)
def _load_schema(name: str) -> dict[str, Any]:
    resource = resources.files(_SCHEMA_PACKAGE) / name
    with resource.open("r", encoding="utf-8") as handle:
        return json.load(handle)


@lru_cache(maxsize=None)
def _provider_validator(app: AppType) -> Draft202012Validator:
    schema = _load_schema(_PROVIDER_SCHEMA)
    scoped = {"$defs": schema["$defs"], "$ref": f"#/$defs/{app.value}"}
    return Draft202012Validator(scoped)


@lru_cache(maxsize=1)
def _mcp_validator() -> Draft202012Validator:
    return Draft202012Validator(_load_schema(_MCP_SCHEMA))


def _iter_errors(validator: Draft202012Validator, payload: Any) -> Iterator[Tuple[str, str]]:
    for error in validator.iter_errors(payload):
        path = ".".join(str(item) for item in error.absolute_path)
        yield path, error.message


def _raise_first(label: str, errors: list[Tuple[str, str]]) -> None:
    if not errors:
        return
    path, message = errors[0]
    location = f" at '{path}'" if path else ""
    raise ValidationError(f"{label}{location}: {message}")


def validate_codex_config_text(text: str | None) -> None:
    """Reject config.toml text that does not parse."""

    if text is None or not text.strip():
        return
    try:
        tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ValidationError(f"Codex config.toml is not valid TOML: {exc}") from exc


def validate_provider_settings(app: AppType, settings_config: Any) -> None:
    errors = sorted(_iter_errors(_provider_validator(app), settings_config))
    _raise_first(f"Invalid {app.value} provider settings", errors)
    if app is AppType.CODEX:
        validate_codex_config_text(settings_config.get("config"))


def validate_mcp_definition(server_id: str, definition: Any) -> None:
    errors = sorted(_iter_errors(_mcp_validator(), definition))
    _raise_first(f"Invalid MCP server '{server_id}'", errors)


__all__ = ["validate_codex_config_text", "validate_mcp_definition", "validate_provider_settings"]
