"""Config aggregate exports."""

from .aggregate import CONFIG_VERSION, MultiAppConfig

__all__ = ["CONFIG_VERSION", "MultiAppConfig"]
