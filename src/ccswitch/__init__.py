"""ccswitch: keep provider profiles in sync with client application configs."""

__version__ = "0.4.0"

__all__ = ["__version__"]
