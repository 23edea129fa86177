"""Provider profiles and the per-app manager that tracks the active one."""

from __future__ import annotations

import copy
import re
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from ..errors import NotFoundError, ValidationError

_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")
_KNOWN_KEYS = {"id", "name", "settingsConfig", "websiteUrl", "category", "createdAt", "alternativeUrls"}


def new_provider_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Provider:
    """A named credential/configuration bundle for one client application."""

    id: str
    name: str
    settings_config: Dict[str, Any]
    website_url: Optional[str] = None
    category: Optional[str] = None
    created_at: Optional[int] = None
    alternative_urls: Optional[List[str]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not _ID_PATTERN.match(self.id):
            raise ValidationError(f"Provider id '{self.id}' must be 1-128 chars of letters, digits, '.', '_' or '-'")
        if not self.name.strip():
            raise ValidationError("Provider name must be a non-empty string")
        if not isinstance(self.settings_config, dict):
            raise ValidationError(f"Provider '{self.id}' settingsConfig must be an object")
        if self.alternative_urls is not None:
            urls = [str(url).strip() for url in self.alternative_urls if str(url).strip()]
            object.__setattr__(self, "alternative_urls", urls)

    def with_settings(self, settings_config: Dict[str, Any]) -> "Provider":
        return replace(self, settings_config=copy.deepcopy(settings_config))

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.extra)
        payload.update(
            {
                "id": self.id,
                "name": self.name,
                "settingsConfig": copy.deepcopy(self.settings_config),
            }
        )
        if self.website_url:
            payload["websiteUrl"] = self.website_url
        if self.category:
            payload["category"] = self.category
        if self.created_at is not None:
            payload["createdAt"] = self.created_at
        if self.alternative_urls is not None:
            payload["alternativeUrls"] = list(self.alternative_urls)
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, fallback_id: str | None = None) -> "Provider":
        if not isinstance(data, dict):
            raise ValidationError("Provider entry must be an object")
        provider_id = str(data.get("id") or fallback_id or "")
        alt = data.get("alternativeUrls")
        if alt is not None and not isinstance(alt, list):
            raise ValidationError(f"Provider '{provider_id}' alternativeUrls must be a list")
        created = data.get("createdAt")
        return cls(
            id=provider_id,
            name=str(data.get("name") or provider_id),
            settings_config=copy.deepcopy(data.get("settingsConfig") or {}),
            website_url=data.get("websiteUrl") or None,
            category=data.get("category") or None,
            created_at=int(created) if isinstance(created, (int, float)) else None,
            alternative_urls=list(alt) if alt is not None else None,
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in _KNOWN_KEYS},
        )

    @classmethod
    def create(
        cls,
        name: str,
        settings_config: Dict[str, Any],
        *,
        provider_id: str | None = None,
        website_url: str | None = None,
        category: str | None = None,
        alternative_urls: List[str] | None = None,
    ) -> "Provider":
        return cls(
            id=provider_id or new_provider_id(),
            name=name,
            settings_config=copy.deepcopy(settings_config),
            website_url=website_url,
            category=category,
            created_at=int(time.time() * 1000),
            alternative_urls=alternative_urls,
        )


@dataclass
class ProviderManager:
    """Providers of one app type plus the id of the active one."""

    providers: Dict[str, Provider] = field(default_factory=dict)
    current: str = ""

    def get(self, provider_id: str) -> Provider:
        try:
            return self.providers[provider_id]
        except KeyError:
            raise NotFoundError(f"Provider not found: {provider_id}") from None

    def current_provider(self) -> Provider | None:
        if not self.current:
            return None
        return self.providers.get(self.current)

    def find_by_name(self, name: str) -> Provider | None:
        wanted = name.strip().casefold()
        for provider in self.providers.values():
            if provider.name.strip().casefold() == wanted:
                return provider
        return None

    def put(self, provider: Provider) -> None:
        self.providers[provider.id] = provider

    def remove(self, provider_id: str) -> Provider:
        if provider_id == self.current:
            raise ValidationError("Cannot delete the provider that is currently in use")
        provider = self.get(provider_id)
        del self.providers[provider_id]
        return provider

    def activate(self, provider_id: str) -> None:
        if provider_id and provider_id not in self.providers:
            raise NotFoundError(f"Provider not found: {provider_id}")
        self.current = provider_id

    def copy(self) -> "ProviderManager":
        return ProviderManager(providers=dict(self.providers), current=self.current)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "providers": {pid: provider.to_dict() for pid, provider in self.providers.items()},
            "current": self.current,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "ProviderManager":
        data = data or {}
        raw = data.get("providers") or {}
        if not isinstance(raw, dict):
            raise ValidationError("'providers' must be an object keyed by provider id")
        providers = {str(pid): Provider.from_dict(item, fallback_id=str(pid)) for pid, item in raw.items()}
        current = str(data.get("current") or "")
        if current and current not in providers:
            # dangling pointer from a hand-edited file; treat as no active provider
            current = ""
        return cls(providers=providers, current=current)


__all__ = ["Provider", "ProviderManager", "new_provider_id"]
