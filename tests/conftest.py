"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from cmdorc_daemon.models import WatchSession  # noqa: E402
from cmdorc_daemon.watchers import ChangeWatcher  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def workdir(tmp_path):
    """Working directory with a temp mirror inside it."""
    root = tmp_path / "job"
    root.mkdir()
    (root / ".cmdorc-tmp" / "main").mkdir(parents=True)
    return root.resolve()


@pytest.fixture
def watch_session(workdir, clock):
    return WatchSession(
        job="main",
        root=workdir,
        tmpdir=workdir / ".cmdorc-tmp" / "main",
        latency=0.5,
        clock=clock,
    )


@pytest.fixture
def change_watcher(watch_session):
    """ChangeWatcher whose handler is driven by hand (no observer thread)."""
    return ChangeWatcher(watch_session, prefix="cmdorc")
