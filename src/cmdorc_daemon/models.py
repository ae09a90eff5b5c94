"""Shared data models for cmdorc_daemon."""

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ChangeKind(str, Enum):
    """Kind of a filesystem change as seen by the watchers."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class WaitOutcome(str, Enum):
    """Resolution of a wait cycle or of the interactive prompt."""

    RERUN = "rerun"
    QUIT = "quit"


@dataclass(frozen=True)
class ChangeEvent:
    """A single filesystem change, already normalised from watchdog."""

    kind: ChangeKind
    path: Path
    is_directory: bool = False
    timestamp: float = field(default_factory=time.monotonic)


@dataclass
class WatchSession:
    """Mutable state shared between the watchers and the wait loop.

    Written by watcher callbacks (observer threads), read by the
    WaitController. ``last_change`` is only ever replaced and
    ``vanished`` only appended to / popped from, so no lock is taken.
    """

    job: str
    root: Path
    tmpdir: Path
    latency: float = 0.5

    ignore: tuple[str, ...] = ()
    """Effective exclusion set. Replaced wholesale, never mutated in place."""

    last_change: float = 0.0
    paused: bool = False
    vanished: deque[Path] = field(default_factory=deque)

    clock: Callable[[], float] = time.monotonic
    """Time source for ``last_change`` and settle checks."""

    def touch(self) -> None:
        """Record that a relevant change happened now."""
        self.last_change = self.clock()

    def is_settled(self, wait_started: float) -> bool:
        """Check whether a change after ``wait_started`` has gone quiet for 2x latency."""
        if self.last_change <= wait_started:
            return False
        return self.clock() - self.last_change >= 2 * self.latency
