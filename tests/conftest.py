"""Shared test fixtures."""

import sys
import textwrap
from pathlib import Path

import pytest


@pytest.fixture
def make_tool(tmp_path: Path):
    """Write an executable Python script standing in for ffmpeg/ffprobe.

    The body runs with ``sys`` imported; ``sys.argv[-1]`` is the last argument
    the tool was called with.
    """

    def _make(name: str, body: str) -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        path = bin_dir / name
        path.write_text(f"#!{sys.executable}\nimport sys\n" + textwrap.dedent(body))
        path.chmod(0o755)
        return path

    return _make


@pytest.fixture
def video(tmp_path: Path) -> Path:
    path = tmp_path / "input.mp4"
    path.write_bytes(b"not really a video")
    return path


class Recorder:
    """Notification sink that records everything it receives."""

    def __init__(self):
        self.events: list[tuple[str, str]] = []

    def emit(self, event: str, payload: str) -> None:
        self.events.append((event, payload))

    def of(self, event: str) -> list[str]:
        return [p for e, p in self.events if e == event]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
