"""Lifecycle of one daemon-mode watch session."""

import logging
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from cmdorc_daemon.ignore import DEFAULT_TOOL_PREFIX, IgnoreRegistry
from cmdorc_daemon.models import WaitOutcome, WatchSession
from cmdorc_daemon.notifier import DaemonNotifier
from cmdorc_daemon.wait import DaemonPrompt, StdinInput, WaitController, purge_vanished

logger = logging.getLogger(__name__)

# Optional: Only import if watchdog is available
try:
    import watchdog.observers  # noqa: F401

    _WATCHDOG_AVAILABLE = True
except ImportError:
    _WATCHDOG_AVAILABLE = False
    logger.debug("watchdog not available - daemon mode disabled")


class MissingCapabilityError(RuntimeError):
    """Filesystem notification is not available, so daemon mode cannot run."""


def watchdog_available() -> bool:
    return _WATCHDOG_AVAILABLE


class Session:
    """Owns the ignore registry, both watchers and the wait controller.

    Usage:
        with Session(root, "main", tmpdir, ignore=["out.pdf"]) as session:
            while True:
                build()
                await session.wait_for_changes()
    """

    def __init__(
        self,
        root: str | Path,
        job: str,
        tmpdir: str | Path,
        latency: float = 0.5,
        prefix: str = DEFAULT_TOOL_PREFIX,
        sibling_latency: float = 0.1,
        ignore: Iterable[str] = (),
        capability: Callable[[], bool] = watchdog_available,
        prompt: DaemonPrompt | None = None,
        input_source: StdinInput | None = None,
        notifier: DaemonNotifier | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if latency <= 0:
            raise ValueError(f"latency must be positive, got {latency}")
        self.root = Path(root).resolve()
        self.tmpdir = Path(tmpdir).resolve()
        self.latency = latency
        self.sibling_latency = sibling_latency
        self.capability = capability
        self.registry = IgnoreRegistry(job, prefix)
        for pattern in ignore:
            self.registry.register(pattern)

        self.state: WatchSession | None = None
        self.change_watcher = None
        self.sibling_watcher = None
        self.waiter: WaitController | None = None
        self._prompt = prompt
        self._input = input_source
        self._notifier = notifier
        self._clock = clock

    @property
    def job(self) -> str:
        return self.registry.job

    @property
    def ignore_file(self) -> Path:
        return self.root / self.registry.file_name

    @property
    def is_started(self) -> bool:
        return self.state is not None

    def register(self, pattern: str) -> None:
        """Add an ignore pattern. Only allowed before start()."""
        if self.is_started:
            raise RuntimeError("Ignore patterns must be registered before start()")
        self.registry.register(pattern)

    def start(self) -> None:
        """Persist this job's ignore file and begin watching.

        Raises:
            MissingCapabilityError: If filesystem notification is unavailable;
                nothing has been written or subscribed at that point
            RuntimeError: If already started
        """
        if self.is_started:
            raise RuntimeError("Session already started")
        if not self.capability():
            raise MissingCapabilityError("Daemon mode requires the watchdog package (pip install watchdog)")

        from cmdorc_daemon.watchers import ChangeWatcher, SiblingWatcher

        self.registry.register(self.registry.file_name)
        self.registry.persist(self.root)

        self.state = WatchSession(
            job=self.job,
            root=self.root,
            tmpdir=self.tmpdir,
            latency=self.latency,
            clock=self._clock,
        )
        self.change_watcher = ChangeWatcher(self.state, self.registry.prefix)
        self.sibling_watcher = SiblingWatcher(self.registry, self.change_watcher, self.sibling_latency)
        self.waiter = WaitController(self.state, self._prompt, self._input, self._notifier)

        try:
            # Sibling watcher first so a job starting during discovery is not missed
            self.sibling_watcher.start(self.root)
            added = self.registry.merge(self.registry.discover_siblings(self.root))
            if added:
                logger.info(f"Ignoring {len(added)} path(s) declared by sibling jobs")
            self.state.touch()
            self.change_watcher.start(self.root, self.latency, self.registry.patterns)
        except Exception:
            self.stop()
            self.cleanup()
            self.state = None
            self.change_watcher = None
            self.sibling_watcher = None
            self.waiter = None
            raise
        logger.info(f"Daemon session '{self.job}' started in {self.root}")

    def pause(self) -> None:
        """Hold change events until resume()."""
        if self.change_watcher is not None:
            self.change_watcher.pause()

    def resume(self) -> None:
        """Release held events against the current ignore set."""
        if self.change_watcher is not None:
            self.change_watcher.resume()

    def set_latency(self, latency: float) -> None:
        """Change the settle interval; takes effect from the next wait."""
        if latency <= 0:
            raise ValueError(f"latency must be positive, got {latency}")
        self.latency = latency
        if self.state is not None:
            self.state.latency = latency

    async def wait_for_changes(self) -> WaitOutcome:
        if self.waiter is None:
            raise RuntimeError("Session not started - call start() first")
        return await self.waiter.wait_for_changes()

    def stop(self) -> None:
        """Stop both watchers and drop mirrored copies of vanished files.

        Teardown errors are swallowed; calling stop() again is a no-op.
        """
        for watcher in (self.change_watcher, self.sibling_watcher):
            if watcher is not None:
                try:
                    watcher.stop()
                except Exception as e:
                    logger.debug(f"Ignoring error while stopping watcher: {e}")
        if self.state is not None:
            purge_vanished(self.state.vanished, self.tmpdir)

    def cleanup(self) -> None:
        """Remove this job's ignore file."""
        try:
            self.ignore_file.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove ignore file {self.ignore_file}: {e}")

    def __enter__(self) -> "Session":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
        self.cleanup()
