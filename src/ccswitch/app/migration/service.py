"""One-time absorption of per-provider config copies left by older releases."""

from __future__ import annotations

import json
import shutil
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ccswitch.app.store import ConfigStore
from ccswitch.domain.apps import AppType
from ccswitch.domain.config import MultiAppConfig
from ccswitch.domain.errors import CcSwitchError, IOFailure
from ccswitch.domain.provider import Provider
from ccswitch.domain.schema import validate_provider_settings
from ccswitch.settings import RuntimeSettings
from ccswitch.utils.atomic import write_json_atomic
from ccswitch.utils.telemetry import record_structured_event

CLAUDE_PREFIX = "settings-"
CODEX_AUTH_PREFIX = "auth-"
CODEX_CONFIG_PREFIX = "config-"


@dataclass
class LegacyCopy:
    """A provider recovered from copy files, plus the files that back it."""

    app: AppType
    name: str
    settings_config: Dict[str, Any]
    files: List[Path] = field(default_factory=list)


@dataclass
class MigrationPlan:
    copies: List[LegacyCopy]
    skipped: List[Dict[str, str]]


class MigrationImporter:
    """Detects legacy copy files and merges them into the config once."""

    def __init__(self, settings: RuntimeSettings) -> None:
        self._settings = settings

    @property
    def marker(self) -> Path:
        return self._settings.migration_marker

    def already_ran(self) -> bool:
        return self.marker.exists()

    def detect(self) -> MigrationPlan:
        plan = MigrationPlan(copies=[], skipped=[])
        self._detect_claude(plan)
        self._detect_codex(plan)
        return plan

    def apply(self, config: MultiAppConfig, plan: MigrationPlan) -> bool:
        """Merge ``plan`` into ``config`` by name; the store wins on conflict."""

        changed = False
        for item in plan.copies:
            manager = config.manager(item.app)
            if manager.find_by_name(item.name) is None:
                manager.put(Provider.create(item.name, item.settings_config))
                changed = True
        return changed

    def archive(self, plan: MigrationPlan) -> None:
        archive_root = self._settings.archive_dir / datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        for item in plan.copies:
            for path in item.files:
                self._move_file(path, archive_root / item.app.value / path.name)

    def run(self, store: ConfigStore) -> bool:
        """Import copies into ``store``; returns whether it changed.

        Copies are archived and the marker written only after the store
        commit succeeds.
        """

        if self.already_ran():
            return False
        with store.transaction() as txn:
            plan = self.detect()
            before = {app: len(txn.config.manager(app).providers) for app in AppType}
            changed = self.apply(txn.config, plan)
            imported = sum(len(txn.config.manager(app).providers) - count for app, count in before.items())
            if changed:
                txn.commit()
            self.archive(plan)
            self._write_marker(imported, len(plan.skipped))
        record_structured_event(
            self._settings,
            "migration.copies",
            status="success",
            component="migration",
            payload={"found": len(plan.copies), "imported": imported, "skipped": len(plan.skipped)},
        )
        return changed

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def _detect_claude(self, plan: MigrationPlan) -> None:
        for path in _candidates(self._settings.claude_dir, CLAUDE_PREFIX, ".json"):
            name = path.stem[len(CLAUDE_PREFIX):]
            try:
                data = _load_json_object(path)
                env = data.get("env") or {}
                settings_config = {"env": env}
                validate_provider_settings(AppType.CLAUDE, settings_config)
            except CcSwitchError as exc:
                self._skip(plan, AppType.CLAUDE, path, str(exc))
                continue
            plan.copies.append(LegacyCopy(AppType.CLAUDE, name, settings_config, [path]))

    def _detect_codex(self, plan: MigrationPlan) -> None:
        codex_dir = self._settings.codex_dir
        for auth_path in _candidates(codex_dir, CODEX_AUTH_PREFIX, ".json"):
            name = auth_path.stem[len(CODEX_AUTH_PREFIX):]
            config_path = codex_dir / f"{CODEX_CONFIG_PREFIX}{name}.toml"
            try:
                auth = _load_json_object(auth_path)
                config_text = _load_toml_text(config_path)
                settings_config = {"auth": auth, "config": config_text or ""}
                validate_provider_settings(AppType.CODEX, settings_config)
            except CcSwitchError as exc:
                self._skip(plan, AppType.CODEX, auth_path, str(exc))
                continue
            files = [auth_path]
            if config_text is not None:
                files.append(config_path)
            plan.copies.append(LegacyCopy(AppType.CODEX, name, settings_config, files))

    def _skip(self, plan: MigrationPlan, app: AppType, path: Path, reason: str) -> None:
        plan.skipped.append({"app": app.value, "path": str(path), "reason": reason})
        record_structured_event(
            self._settings,
            "migration.copies",
            status="skipped",
            level="warn",
            component="migration",
            payload={"app": app.value, "path": str(path), "reason": reason},
        )

    # ------------------------------------------------------------------
    # Filesystem
    # ------------------------------------------------------------------

    def _move_file(self, source: Path, target: Path) -> None:
        if not source.exists():
            return
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(target))
        except OSError as exc:
            raise IOFailure(f"Failed to archive {source}: {exc}", source) from exc

    def _write_marker(self, imported: int, skipped: int) -> None:
        write_json_atomic(
            self.marker,
            {
                "migratedAt": datetime.now(timezone.utc).isoformat(),
                "imported": imported,
                "skipped": skipped,
            },
        )


def _candidates(directory: Path, prefix: str, suffix: str) -> List[Path]:
    if not directory.is_dir():
        return []
    return sorted(
        path
        for path in directory.iterdir()
        if path.is_file() and path.name.startswith(prefix) and path.suffix == suffix and len(path.stem) > len(prefix)
    )


def _load_json_object(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise IOFailure(f"Unreadable copy {path}: {exc}", path) from exc
    if not isinstance(data, dict):
        raise IOFailure(f"Copy {path} is not a JSON object", path)
    return data


def _load_toml_text(path: Path) -> Optional[str]:
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="utf-8")
        tomllib.loads(text)
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        raise IOFailure(f"Unreadable copy {path}: {exc}", path) from exc
    return text


__all__ = ["LegacyCopy", "MigrationImporter", "MigrationPlan"]
