"""Runtime settings for the ccswitch core."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

from ccswitch import __version__
from ccswitch.domain.errors import IOFailure, ValidationError
from ccswitch.utils.atomic import write_text_atomic

ENV_BACKENDS = ("auto", "shell", "registry", "memory")
DEFAULT_LOCK_TIMEOUT = 10.0


@dataclass(frozen=True)
class RuntimeSettings:
    home_dir: Path
    claude_dir: Path
    codex_dir: Path
    user_home: Path
    droid_env_backend: str = "auto"
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    cli_version: str = __version__

    @property
    def config_path(self) -> Path:
        return self.home_dir / "config.json"

    @property
    def settings_path(self) -> Path:
        return self.home_dir / "settings.yaml"

    @property
    def archive_dir(self) -> Path:
        return self.home_dir / "archive"

    @property
    def log_dir(self) -> Path:
        return self.home_dir / "logs"

    @property
    def migration_marker(self) -> Path:
        return self.home_dir / "migrated.copies.v1"

    @property
    def claude_settings_path(self) -> Path:
        preferred = self.claude_dir / "settings.json"
        legacy = self.claude_dir / "claude.json"
        if not preferred.exists() and legacy.exists():
            return legacy
        return preferred

    @property
    def claude_mcp_path(self) -> Path:
        return self.user_home / ".claude.json"

    @property
    def codex_auth_path(self) -> Path:
        return self.codex_dir / "auth.json"

    @property
    def codex_config_path(self) -> Path:
        return self.codex_dir / "config.toml"

    @property
    def shell_profiles(self) -> tuple[Path, ...]:
        return (
            self.user_home / ".bashrc",
            self.user_home / ".zshrc",
            self.user_home / ".profile",
        )


def _default_home_dir(user_home: Path) -> Path:
    override = os.environ.get("CCSWITCH_HOME", "").strip()
    if override:
        return Path(override).expanduser()
    return user_home / ".cc-switch"


def _read_overrides(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValidationError(f"{path} is not valid YAML: {exc}") from exc
    except OSError as exc:
        raise IOFailure(f"Failed to read {path}: {exc}", path) from exc
    if not isinstance(data, dict):
        raise ValidationError(f"{path} must contain a mapping of settings")
    return data


def _pick_dir(env_var: str, configured: Any, fallback: Path) -> Path:
    value = os.environ.get(env_var, "").strip() or (str(configured).strip() if configured else "")
    if value:
        return Path(value).expanduser()
    return fallback


def load_settings(user_home: Path | None = None) -> RuntimeSettings:
    home = (user_home or Path.home()).expanduser()
    base = _default_home_dir(home)
    overrides = _read_overrides(base / "settings.yaml")

    backend = str(overrides.get("droid_env_backend", "auto")).strip().lower() or "auto"
    if backend not in ENV_BACKENDS:
        raise ValidationError(f"droid_env_backend must be one of {', '.join(ENV_BACKENDS)}, got '{backend}'")
    try:
        lock_timeout = float(overrides.get("lock_timeout", DEFAULT_LOCK_TIMEOUT))
    except (TypeError, ValueError):
        raise ValidationError(f"lock_timeout must be a number of seconds, got {overrides['lock_timeout']!r}") from None

    return RuntimeSettings(
        home_dir=base,
        claude_dir=_pick_dir("CCSWITCH_CLAUDE_DIR", overrides.get("claude_config_dir"), home / ".claude"),
        codex_dir=_pick_dir("CCSWITCH_CODEX_DIR", overrides.get("codex_config_dir"), home / ".codex"),
        user_home=home,
        droid_env_backend=backend,
        lock_timeout=lock_timeout,
    )


def save_overrides(settings: RuntimeSettings, values: Dict[str, Any]) -> Path:
    """Merge ``values`` into settings.yaml and return its path."""

    current = _read_overrides(settings.settings_path)
    current.update({key: value for key, value in values.items() if value is not None})
    write_text_atomic(settings.settings_path, yaml.safe_dump(current, sort_keys=True, allow_unicode=True))
    return settings.settings_path

