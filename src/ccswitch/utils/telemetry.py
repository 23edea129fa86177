"""Structured operational events written as JSON lines."""

from __future__ import annotations

import json
import os
import time
from collections import Counter
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Iterable, Iterator

from jsonschema import Draft202012Validator

from ccswitch.settings import RuntimeSettings

LOG_NAME = "telemetry.jsonl"

_DISABLE_VALUES = {"0", "false", "no", "off"}
_SCHEMA_RESOURCE = "telemetry.schema.json"
_SCHEMA_PACKAGE = "ccswitch.resources"
_SECRET_KEYS = {"apikey", "api_key", "token", "anthropic_auth_token", "openai_api_key", "auth"}


def telemetry_enabled() -> bool:
    value = os.getenv("CCSWITCH_TELEMETRY", "1").lower()
    return value not in _DISABLE_VALUES


def record_structured_event(
    settings: RuntimeSettings,
    event: str,
    *,
    payload: dict[str, Any] | None = None,
    level: str = "info",
    status: str | None = None,
    component: str | None = None,
    duration_ms: float | None = None,
) -> None:
    if not telemetry_enabled():
        return
    record: dict[str, Any] = {
        "ts": time.time(),
        "event": event,
        "payload": _redact(payload or {}),
        "level": level,
    }
    if status:
        record["status"] = status
    if component:
        record["component"] = component
    if duration_ms is not None:
        record["durationMs"] = duration_ms
    _validator().validate(record)
    path = log_path(settings)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(record, ensure_ascii=False) + "\n")


def log_path(settings: RuntimeSettings) -> Path:
    return settings.log_dir / LOG_NAME


def iter_events(settings: RuntimeSettings) -> Iterator[dict[str, Any]]:
    """Yield recorded events oldest first; unparsable lines are skipped."""

    path = log_path(settings)
    if not path.exists():
        return
    with path.open("r", encoding="utf-8") as fh:
        for line in fh:
            if not line.strip():
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                continue


def summarize(events: Iterable[dict[str, Any]]) -> dict[str, Any]:
    by_event: Counter[str] = Counter()
    by_status: Counter[str] = Counter()
    for evt in events:
        by_event[evt.get("event", "unknown")] += 1
        by_status[evt.get("status", "unknown")] += 1
    return {"total": sum(by_event.values()), "by_event": dict(by_event), "by_status": dict(by_status)}


def clear(settings: RuntimeSettings) -> None:
    log_path(settings).unlink(missing_ok=True)


def _redact(payload: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in payload.items():
        if key.lower() in _SECRET_KEYS:
            cleaned[key] = "***"
        elif isinstance(value, dict):
            cleaned[key] = _redact(value)
        else:
            cleaned[key] = value
    return cleaned


@lru_cache(maxsize=1)
def _validator() -> Draft202012Validator:
    resource = resources.files(_SCHEMA_PACKAGE) / _SCHEMA_RESOURCE
    with resource.open("r", encoding="utf-8") as handle:
        return Draft202012Validator(json.load(handle))


__all__ = [
    "clear",
    "iter_events",
    "log_path",
    "record_structured_event",
    "summarize",
    "telemetry_enabled",
]
