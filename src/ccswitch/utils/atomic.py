"""Atomic file replacement helpers."""

from __future__ import annotations

import json
import os
import stat
import tempfile
from pathlib import Path
from typing import Any

from ccswitch.domain.errors import IOFailure, ValidationError


def atomic_write(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` so readers see old or new content only."""

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise IOFailure(f"Failed to create directory {path.parent}: {exc}", path.parent) from exc

    mode = _existing_mode(path)
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    except OSError as exc:
        raise IOFailure(f"Failed to create temporary file next to {path}: {exc}", path) from exc
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except OSError as exc:
        raise IOFailure(f"Failed to write {path}: {exc}", path) from exc
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def write_text_atomic(path: Path, text: str) -> None:
    atomic_write(path, text.encode("utf-8"))


def write_json_atomic(path: Path, payload: Any) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    write_text_atomic(path, text + "\n")


def read_json(path: Path, default: Any = None) -> Any:
    """Load JSON from ``path``; a missing file yields ``default``."""

    if not path.exists():
        return default
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise IOFailure(f"Failed to read {path}: {exc}", path) from exc
    if not text.strip():
        return default
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Failed to parse JSON in {path}: {exc}") from exc


def read_text(path: Path) -> str | None:
    if not path.exists():
        return None
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise IOFailure(f"Failed to read {path}: {exc}", path) from exc


def _existing_mode(path: Path) -> int | None:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except OSError:
        return None


__all__ = ["atomic_write", "read_json", "read_text", "write_json_atomic", "write_text_atomic"]
