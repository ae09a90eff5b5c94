"""The interactive wait between build cycles.

WaitController races two things: a timer task that fires once file
activity has settled, and the user pressing Enter. Whichever completes
first decides the cycle; the loser is cancelled at its next await point.
"""

import asyncio
import inspect
import logging
import os
import shutil
import sys
from collections import deque
from pathlib import Path
from typing import Protocol, TextIO

from cmdorc_daemon.models import WaitOutcome, WatchSession
from cmdorc_daemon.notifier import DaemonNotifier, NoOpNotifier

logger = logging.getLogger(__name__)


class DaemonPrompt(Protocol):
    """Interactive prompt shown when the user interrupts a wait.

    ``run`` may be a coroutine function. Returning QUIT (or raising
    SystemExit) ends the process; returning RERUN starts the next build.
    """

    def run(self) -> WaitOutcome:
        ...


class ConsolePrompt:
    """Minimal prompt: Enter or ``r`` reruns, ``q`` quits."""

    def __init__(self, input_fn=input, out: TextIO | None = None):
        self.input_fn = input_fn
        self.out = out or sys.stderr

    def run(self) -> WaitOutcome:
        while True:
            try:
                answer = self.input_fn("[r]erun, [q]uit: ").strip().lower()
            except EOFError:
                return WaitOutcome.QUIT
            if answer in ("", "r", "rerun"):
                return WaitOutcome.RERUN
            if answer in ("q", "quit", "exit"):
                return WaitOutcome.QUIT
            print(f"Unknown command: {answer}", file=self.out)


class StdinInput:
    """Cancellable "a line is ready" signal for a console stream.

    Uses ``loop.add_reader`` where the event loop supports it. Otherwise
    (Windows proactor loop) a worker thread performs the read; that read
    cannot be interrupted, so it is shielded and carried over to the next
    wait instead of being lost.
    """

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdin
        self.closed = False
        self._pending: asyncio.Future | None = None

    def _fileno(self) -> int | None:
        try:
            return self.stream.fileno()
        except (AttributeError, OSError, ValueError):
            return None

    async def wait_ready(self) -> None:
        loop = asyncio.get_running_loop()
        fd = self._fileno()
        if fd is not None and self._pending is None:
            ready = loop.create_future()

            def on_readable():
                if not ready.done():
                    ready.set_result(None)

            try:
                loop.add_reader(fd, on_readable)
            except NotImplementedError:
                pass
            else:
                try:
                    await ready
                finally:
                    loop.remove_reader(fd)
                return

        if self._pending is None:
            self._pending = loop.run_in_executor(None, self.stream.readline)
        await asyncio.shield(self._pending)

    def read_line(self) -> str:
        """Consume the line that made ``wait_ready`` return."""
        if self._pending is not None:
            pending, self._pending = self._pending, None
            return pending.result()
        return self.stream.readline()


def is_within(path: str | Path, directory: str | Path) -> bool:
    """Check that ``path`` lies strictly inside ``directory`` after normalisation."""
    target = os.path.normpath(os.path.abspath(path))
    base = os.path.normpath(os.path.abspath(directory))
    return target.startswith(base.rstrip(os.sep) + os.sep)


def purge_vanished(vanished: deque, tmpdir: str | Path) -> list[Path]:
    """Delete mirrored copies of files that disappeared from the working directory.

    Only paths inside ``tmpdir`` are ever touched; anything else is skipped.
    Returns the paths that were removed.
    """
    removed: list[Path] = []
    while vanished:
        path = Path(vanished.popleft())
        if not is_within(path, tmpdir):
            logger.debug(f"Refusing to delete {path}: outside {tmpdir}")
            continue
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()
            else:
                continue
        except OSError as e:
            logger.warning(f"Could not remove vanished file {path}: {e}")
            continue
        logger.debug(f"Removed vanished file {path}")
        removed.append(path)
    return removed


class WaitController:
    """Blocks between build cycles until files settle or the user steps in."""

    def __init__(
        self,
        session: WatchSession,
        prompt: DaemonPrompt | None = None,
        input_source: StdinInput | None = None,
        notifier: DaemonNotifier | None = None,
    ):
        self.session = session
        self.prompt = prompt or ConsolePrompt()
        self.input = input_source or StdinInput()
        self.notifier = notifier or NoOpNotifier()

    async def _settle_timer(self, started: float, registered: asyncio.Event) -> None:
        await registered.wait()
        while not self.session.is_settled(started):
            await asyncio.sleep(self.session.latency)

    async def wait_for_changes(self) -> WaitOutcome:
        """Wait for settled changes or a user interrupt.

        Returns:
            WaitOutcome.RERUN

        Raises:
            SystemExit: If the user chose to quit at the prompt
        """
        self.notifier.info("Waiting for file changes")
        started = self.session.clock()
        registered = asyncio.Event()
        timer = asyncio.create_task(self._settle_timer(started, registered))
        try:
            outcome = await self._race(timer, registered)
        finally:
            timer.cancel()

        if outcome is WaitOutcome.QUIT:
            raise SystemExit(0)

        purge_vanished(self.session.vanished, self.session.tmpdir)
        return WaitOutcome.RERUN

    async def _race(self, timer: asyncio.Task, registered: asyncio.Event) -> WaitOutcome:
        while True:
            reader = None if self.input.closed else asyncio.create_task(self.input.wait_ready())
            registered.set()
            waiters = {timer} if reader is None else {timer, reader}
            try:
                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            finally:
                if reader is not None and not reader.done():
                    reader.cancel()

            if timer in done:
                timer.result()
                self.notifier.info("Files changed")
                return WaitOutcome.RERUN

            reader.result()
            if self.input.read_line() == "":
                logger.debug("Console input closed; waiting on file changes only")
                self.input.closed = True
                continue

            timer.cancel()
            self.notifier.info("Paused by user")
            return await self._ask()

    async def _ask(self) -> WaitOutcome:
        if inspect.iscoroutinefunction(self.prompt.run):
            result = await self.prompt.run()
        else:
            # Blocking prompts read the console off the event loop
            result = await asyncio.to_thread(self.prompt.run)
        return WaitOutcome.QUIT if result is WaitOutcome.QUIT else WaitOutcome.RERUN
