"""Provider domain exports."""

from .value_objects import Provider, ProviderManager, new_provider_id

__all__ = ["Provider", "ProviderManager", "new_provider_id"]
