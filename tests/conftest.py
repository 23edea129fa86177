from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
SANDBOX_HOME = ROOT / ".test_place" / "global-home"
os.environ.setdefault("CCSWITCH_HOME", str(SANDBOX_HOME))
SANDBOX_HOME.mkdir(parents=True, exist_ok=True)
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from ccswitch import __version__  # noqa: E402
from ccswitch.settings import RuntimeSettings  # noqa: E402


@pytest.fixture()
def runtime_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> RuntimeSettings:
    user_home = tmp_path / "user"
    user_home.mkdir(parents=True, exist_ok=True)
    monkeypatch.delenv("CCSWITCH_TELEMETRY", raising=False)
    return RuntimeSettings(
        home_dir=user_home / ".cc-switch",
        claude_dir=user_home / ".claude",
        codex_dir=user_home / ".codex",
        user_home=user_home,
        droid_env_backend="memory",
        lock_timeout=0.5,
        cli_version=__version__,
    )
