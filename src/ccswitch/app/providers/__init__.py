from .service import DEFAULT_PROVIDER_ID, ProviderService, legacy_copy_paths, parse_api_keys

__all__ = ["DEFAULT_PROVIDER_ID", "ProviderService", "legacy_copy_paths", "parse_api_keys"]
