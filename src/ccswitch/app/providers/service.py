"""Provider CRUD plus live import/sync for each app."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping

from ccswitch.app.store import ConfigStore
from ccswitch.app.switch import switch_in, write_live
from ccswitch.domain.apps import AppType
from ccswitch.domain.errors import ConflictError, NotFoundError, UnsupportedError, ValidationError
from ccswitch.domain.provider import Provider
from ccswitch.domain.schema import validate_provider_settings
from ccswitch.ports.live_config import LiveConfigAdapter
from ccswitch.settings import RuntimeSettings
from ccswitch.utils.telemetry import record_structured_event

DEFAULT_PROVIDER_ID = "default"
DEFAULT_BATCH_PREFIX = "Key"
DROID_KEY_PREFIX = "fk-"
_KEY_SEPARATORS = re.compile(r"[\n,;]+")
_UNSAFE_FILENAME_CHARS = set('<>:"/\\|?*')


@dataclass
class ProviderService:
    """Adds, edits and removes providers; the active one is written live first."""

    store: ConfigStore
    adapters: Mapping[AppType, LiveConfigAdapter]
    settings: RuntimeSettings

    def list(self, app: AppType) -> Dict[str, Provider]:
        with self.store.read() as config:
            return dict(config.manager(app).providers)

    def get_current(self, app: AppType) -> str:
        with self.store.read() as config:
            return config.manager(app).current

    def add(self, app: AppType, provider: Provider, *, activate: bool = False) -> Provider:
        """Register ``provider``; with ``activate`` it is switched to in the same critical section."""

        validate_provider_settings(app, provider.settings_config)
        with self.store.transaction() as txn:
            manager = txn.config.manager(app)
            if provider.id in manager.providers:
                raise ConflictError(f"Provider already exists: {provider.id}")
            manager.put(provider)
            if activate:
                switch_in(txn.config, self.adapters[app], provider.id)
            txn.commit()
        return provider

    def batch_add(self, app: AppType, keys_text: str, name_prefix: str = DEFAULT_BATCH_PREFIX) -> List[Provider]:
        """Create one provider per distinct ``fk-`` key found in ``keys_text``.

        Keys may be separated by newlines, commas or semicolons. Providers are
        named ``"<prefix> 1"``, ``"<prefix> 2"`` and so on, in input order.
        None of them is activated.
        """

        if app is not AppType.DROID:
            raise UnsupportedError(f"Batch key import is only supported for {AppType.DROID.value}")
        keys = parse_api_keys(keys_text)
        if not keys:
            raise ValidationError(f"No API keys starting with '{DROID_KEY_PREFIX}' were found")
        prefix = name_prefix.strip() or DEFAULT_BATCH_PREFIX
        created = [
            Provider.create(f"{prefix} {index}", {"apiKey": key}, category="official")
            for index, key in enumerate(keys, start=1)
        ]
        for provider in created:
            validate_provider_settings(app, provider.settings_config)
        with self.store.transaction() as txn:
            manager = txn.config.manager(app)
            for provider in created:
                manager.put(provider)
            txn.commit()
        record_structured_event(
            self.settings,
            "provider.batch_add",
            status="success",
            component="provider",
            payload={"app": app.value, "count": len(created)},
        )
        return created

    def update(self, app: AppType, provider: Provider) -> Provider:
        validate_provider_settings(app, provider.settings_config)
        with self.store.transaction() as txn:
            manager = txn.config.manager(app)
            manager.get(provider.id)
            if manager.current == provider.id:
                write_live(txn.config, self.adapters[app], provider.settings_config)
            manager.put(provider)
            txn.commit()
        return provider

    def delete(self, app: AppType, provider_id: str) -> Provider:
        with self.store.transaction() as txn:
            manager = txn.config.manager(app)
            removed = manager.remove(provider_id)
            txn.commit()
        for path in legacy_copy_paths(self.settings, app, removed):
            self._remove_copy(app, path)
        return removed

    def import_default(self, app: AppType) -> bool:
        """Seed a ``default`` provider from live config when the app has none."""

        with self.store.transaction() as txn:
            manager = txn.config.manager(app)
            if manager.providers:
                return False
            adapter = self.adapters[app]
            if not adapter.exists():
                raise NotFoundError(f"No live {app.value} configuration found in {adapter.config_dir()}")
            live = adapter.read()
            settings_config = adapter.extract_owned(live)
            validate_provider_settings(app, settings_config)
            provider = Provider.create(DEFAULT_PROVIDER_ID, settings_config, provider_id=DEFAULT_PROVIDER_ID)
            manager.put(provider)
            manager.activate(provider.id)
            txn.commit()
        record_structured_event(
            self.settings,
            "provider.import_default",
            status="success",
            component="provider",
            payload={"app": app.value},
        )
        return True

    def sync_current(self, app: AppType) -> bool:
        """Backfill the live owned fields into the active provider."""

        with self.store.transaction() as txn:
            manager = txn.config.manager(app)
            current = manager.current_provider()
            if current is None:
                return False
            live = self.adapters[app].read()
            if not live:
                return False
            updated = current.with_settings(self.adapters[app].backfill(current.settings_config, live))
            if updated.settings_config == current.settings_config:
                return False
            manager.put(updated)
            txn.commit()
        return True

    def _remove_copy(self, app: AppType, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            # the store is already committed
            record_structured_event(
                self.settings,
                "provider.delete",
                status="skipped",
                level="warn",
                component="provider",
                payload={"app": app.value, "path": str(path), "reason": str(exc)},
            )


def parse_api_keys(keys_text: str) -> List[str]:
    """Split pasted keys and keep the distinct ones that look like Factory keys."""

    seen: Dict[str, None] = {}
    for chunk in _KEY_SEPARATORS.split(keys_text or ""):
        key = chunk.strip()
        if key.startswith(DROID_KEY_PREFIX):
            seen.setdefault(key, None)
    return list(seen)


def legacy_copy_paths(settings: RuntimeSettings, app: AppType, provider: Provider) -> List[Path]:
    """Per-provider config copies older releases kept next to the live files."""

    names = {provider.id, provider.name}
    paths: List[Path] = []
    if app is AppType.CLAUDE:
        for name in sorted(names):
            paths.append(settings.claude_dir / f"settings-{_sanitize(name)}.json")
    elif app is AppType.CODEX:
        for name in sorted(names):
            paths.append(settings.codex_dir / f"auth-{_sanitize(name)}.json")
            paths.append(settings.codex_dir / f"config-{_sanitize(name)}.toml")
    return paths


def _sanitize(name: str) -> str:
    cleaned = "".join("-" if ch in _UNSAFE_FILENAME_CHARS else ch for ch in name.strip())
    return cleaned or "provider"


__all__ = ["DEFAULT_PROVIDER_ID", "ProviderService", "legacy_copy_paths", "parse_api_keys"]
