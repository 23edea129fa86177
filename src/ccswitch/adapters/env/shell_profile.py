"""Environment variables persisted as a managed block in shell profiles."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ccswitch.domain.errors import ValidationError
from ccswitch.ports.env_store import EnvironmentStore
from ccswitch.utils.atomic import read_text, write_text_atomic

START_MARKER = "# CC-Switch Droid Config Start"
END_MARKER = "# CC-Switch Droid Config End"
_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_EXPORT_PATTERN = re.compile(r"^export\s+([A-Za-z_][A-Za-z0-9_]*)=(.*)$")


class ManagedBlockCorruptionError(ValidationError):
    """Raised when start/end markers are unbalanced or duplicated."""

    def __init__(self, path: Path, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Managed block in {path} is corrupted: {reason}")


class ShellProfileEnvironmentStore(EnvironmentStore):
    """Writes ``export NAME="value"`` lines between sentinel comments.

    Every existing profile file receives the same block so login and
    interactive shells agree. When none of the candidate files exist the last
    candidate is created. Reapplying the same value leaves files untouched.
    """

    def __init__(self, profiles: Iterable[Path]) -> None:
        self._profiles: List[Path] = list(profiles)
        if not self._profiles:
            raise ValueError("at least one shell profile path is required")

    @property
    def profiles(self) -> List[Path]:
        return list(self._profiles)

    def get(self, name: str) -> str | None:
        _check_name(name)
        managed = False
        for path in self._existing():
            values = self._read_block(path)
            if values is None:
                continue
            managed = True
            if name in values:
                return values[name]
        # without any managed block the process environment is the only source
        return None if managed else os.environ.get(name)

    def set(self, name: str, value: str) -> None:
        _check_name(name)
        if value and value.splitlines() != [value]:
            raise ValidationError(f"Value for {name} must be a single line")
        targets = self._existing() or [self._profiles[-1]]
        for path in targets:
            values = self._read_block(path) or {}
            values[name] = value
            self._write_block(path, values)

    def unset(self, name: str) -> None:
        _check_name(name)
        for path in self._existing():
            values = self._read_block(path)
            if values is None or name not in values:
                continue
            values.pop(name)
            self._write_block(path, values)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _existing(self) -> List[Path]:
        return [path for path in self._profiles if path.exists()]

    def _read_block(self, path: Path) -> Optional[Dict[str, str]]:
        text = read_text(path) or ""
        match = _locate(path, text)
        if match is None:
            return None
        values: Dict[str, str] = {}
        for line in match.group(1).splitlines():
            parsed = _EXPORT_PATTERN.match(line.strip())
            if parsed is None:
                continue
            values[parsed.group(1)] = _unquote(parsed.group(2).strip())
        return values

    def _write_block(self, path: Path, values: Dict[str, str]) -> None:
        text = read_text(path) or ""
        match = _locate(path, text)
        if values:
            block = render_block(values)
            if match is None:
                body = text.rstrip("\n")
                new_text = f"{body}\n\n{block}\n" if body else f"{block}\n"
            else:
                new_text = text[: match.start()] + block + text[match.end():]
        else:
            if match is None:
                return
            head = text[: match.start()].rstrip("\n")
            tail = text[match.end():].lstrip("\n")
            new_text = "\n\n".join(part for part in (head, tail) if part)
            new_text = new_text + "\n" if new_text else ""
        if new_text != text:
            write_text_atomic(path, new_text)


def render_block(values: Dict[str, str]) -> str:
    lines = [START_MARKER]
    for name in sorted(values):
        lines.append(f"export {name}={_quote(values[name])}")
    lines.append(END_MARKER)
    return "\n".join(lines)


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$").replace("`", "\\`")
    return f'"{escaped}"'


def _unquote(raw: str) -> str:
    if len(raw) >= 2 and raw[0] == raw[-1] == "'":
        return raw[1:-1]
    if not (len(raw) >= 2 and raw[0] == raw[-1] == '"'):
        return raw
    return re.sub(r'\\([\\"$`])', r"\1", raw[1:-1])


def _locate(path: Path, text: str) -> Optional[re.Match[str]]:
    start_count = text.count(START_MARKER)
    end_count = text.count(END_MARKER)
    if start_count != end_count:
        raise ManagedBlockCorruptionError(path, "unbalanced start/end markers")
    if start_count > 1:
        raise ManagedBlockCorruptionError(path, "duplicate marker blocks found")
    if start_count == 0:
        return None
    pattern = re.compile(rf"{re.escape(START_MARKER)}(.*?){re.escape(END_MARKER)}", re.DOTALL)
    match = pattern.search(text)
    if match is None:
        raise ManagedBlockCorruptionError(path, "end marker precedes start marker")
    return match


def _check_name(name: str) -> None:
    if not _NAME_PATTERN.match(name or ""):
        raise ValidationError(f"Invalid environment variable name: {name!r}")


__all__ = [
    "END_MARKER",
    "ManagedBlockCorruptionError",
    "START_MARKER",
    "ShellProfileEnvironmentStore",
    "render_block",
]
