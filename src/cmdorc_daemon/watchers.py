"""Filesystem watchers for daemon mode, built on watchdog.

ChangeWatcher stamps the session whenever a relevant file changes.
SiblingWatcher spots ignore files written by other jobs in the same
directory and folds their patterns into the ChangeWatcher.
"""

import logging
import os
from collections import deque
from collections.abc import Iterable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from cmdorc_daemon.ignore import IgnoreRegistry, is_ignore_file, matches, read_ignore_file, relative_posix
from cmdorc_daemon.models import ChangeEvent, ChangeKind, WatchSession

logger = logging.getLogger(__name__)

DEFAULT_SIBLING_LATENCY = 0.1


def _stop_observer(observer) -> None:
    """Stop and join an observer, swallowing whatever watchdog raises."""
    try:
        observer.stop()
        observer.join(timeout=2.0)
    except Exception as e:
        logger.debug(f"Ignoring error while stopping observer: {e}")


class _ChangeHandler(FileSystemEventHandler):
    """Translates watchdog callbacks into ChangeEvents for a ChangeWatcher."""

    def __init__(self, watcher: "ChangeWatcher"):
        super().__init__()
        self.watcher = watcher

    def _emit(self, kind: ChangeKind, path, is_directory: bool) -> None:
        self.watcher.deliver(ChangeEvent(kind, Path(os.fsdecode(path)), is_directory))

    def on_created(self, event: FileSystemEvent) -> None:
        self._emit(ChangeKind.ADDED, event.src_path, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        # Directory mtimes change whenever a child does; the child event is enough
        if not event.is_directory:
            self._emit(ChangeKind.MODIFIED, event.src_path, False)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._emit(ChangeKind.REMOVED, event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._emit(ChangeKind.REMOVED, event.src_path, event.is_directory)
        self._emit(ChangeKind.ADDED, event.dest_path, event.is_directory)


class ChangeWatcher:
    """Primary subscription on the working directory.

    Events for paths outside the ignore set update ``session.last_change``;
    removed files are additionally queued as vanished files, mapped from the
    working directory into the temp directory.
    """

    def __init__(self, session: WatchSession, prefix: str):
        self.session = session
        self.prefix = prefix
        self.handler = _ChangeHandler(self)
        self._observer = None
        self._held: deque[ChangeEvent] = deque()

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self, root: Path, latency: float, ignore: Iterable[str]) -> None:
        """Begin watching ``root`` recursively, excluding ``ignore``."""
        self.session.root = Path(root)
        self.session.latency = latency
        self.set_ignore(ignore)

        observer = Observer(timeout=latency)
        observer.schedule(self.handler, str(root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info(f"Watching {root} (latency: {latency}s, {len(self.session.ignore)} ignore pattern(s))")

    def set_ignore(self, patterns: Iterable[str]) -> None:
        """Swap in a new ignore set in a single assignment."""
        self.session.ignore = tuple(patterns)

    def is_ignored(self, path: Path) -> bool:
        """Check whether an absolute path should never trigger a rebuild."""
        rel = relative_posix(path, self.session.root)
        if rel is None:
            return True
        if "/" not in rel and is_ignore_file(rel, self.prefix):
            return True
        return matches(rel, self.session.ignore)

    def deliver(self, event: ChangeEvent) -> None:
        """Entry point for events; held back while the watcher is paused."""
        if self.session.paused:
            self._held.append(event)
            # resume() may have drained between the check and the append
            if not self.session.paused:
                self._drain()
            return
        self._evaluate(event)

    def _drain(self) -> None:
        while not self.session.paused:
            try:
                event = self._held.popleft()
            except IndexError:
                return
            self._evaluate(event)

    def _evaluate(self, event: ChangeEvent) -> None:
        if self.is_ignored(event.path):
            return
        logger.debug(f"File {event.kind.value}: {event.path}")
        self.session.touch()
        if event.kind is ChangeKind.REMOVED and not event.is_directory:
            rel = relative_posix(event.path, self.session.root)
            self.session.vanished.append(self.session.tmpdir / rel)

    def pause(self) -> None:
        """Hold incoming events without tearing down the subscription."""
        self.session.paused = True

    def resume(self) -> None:
        """Release held events, evaluated against the current ignore set."""
        self.session.paused = False
        self._drain()

    def stop(self) -> None:
        """Unsubscribe. Safe to call more than once."""
        observer, self._observer = self._observer, None
        if observer is not None:
            _stop_observer(observer)
            logger.info("Stopped change watcher")


class _SiblingHandler(FileSystemEventHandler):
    """Reacts only to ignore files of other jobs appearing at the top level."""

    def __init__(self, watcher: "SiblingWatcher"):
        super().__init__()
        self.watcher = watcher

    def _consider(self, path, is_directory: bool) -> None:
        if is_directory:
            return
        path = Path(os.fsdecode(path))
        if path.parent != self.watcher.root:
            return
        if self.watcher.registry.is_sibling_file(path.name):
            self.watcher.absorb(path)

    def on_created(self, event: FileSystemEvent) -> None:
        self._consider(event.src_path, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._consider(event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._consider(event.dest_path, event.is_directory)


class SiblingWatcher:
    """Secondary subscription that merges sibling ignore files as they appear."""

    def __init__(
        self,
        registry: IgnoreRegistry,
        change_watcher: ChangeWatcher,
        latency: float = DEFAULT_SIBLING_LATENCY,
    ):
        self.registry = registry
        self.change_watcher = change_watcher
        self.latency = latency
        self.root: Path | None = None
        self.handler = _SiblingHandler(self)
        self._observer = None

    def start(self, root: Path) -> None:
        """Begin watching the top level of ``root`` for sibling ignore files."""
        self.root = Path(root)
        observer = Observer(timeout=self.latency)
        observer.schedule(self.handler, str(root), recursive=False)
        observer.start()
        self._observer = observer
        logger.debug(f"Watching {root} for sibling ignore files (latency: {self.latency}s)")

    def absorb(self, path: Path) -> list[str]:
        """Merge one sibling ignore file into the change watcher's ignore set.

        The change watcher is paused for the duration so no event is judged
        against a half-updated set.
        """
        self.change_watcher.pause()
        try:
            added = self.registry.merge(read_ignore_file(path))
            if added:
                self.change_watcher.set_ignore(self.registry.patterns)
                logger.info(f"Ignoring {len(added)} path(s) from sibling job file {path.name}")
        finally:
            self.change_watcher.resume()
        return added

    def stop(self) -> None:
        """Unsubscribe. Safe to call more than once."""
        observer, self._observer = self._observer, None
        if observer is not None:
            _stop_observer(observer)
