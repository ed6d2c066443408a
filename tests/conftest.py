# ruff: noqa: E402

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import track.log as track_log


@pytest.fixture(autouse=True)
def _isolated_track_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TRACK_HOME", str(tmp_path / "track-home"))
    monkeypatch.delenv("TRACK_LOG_LEVEL", raising=False)
    track_log.set_level("info")
    track_log.set_no_color(True)
