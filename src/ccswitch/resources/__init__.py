"""Packaged data files (JSON schemas)."""
