"""Pluggable status messages for the daemon loop.

The wait loop and controller report progress through this protocol so the
host decides where it goes: nowhere, the log, or the terminal.
"""

import logging
import sys
from typing import Protocol, TextIO

logger = logging.getLogger(__name__)


class DaemonNotifier(Protocol):
    """Protocol for notifications - host can provide custom implementation."""

    def info(self, message: str) -> None:
        ...

    def warning(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class NoOpNotifier:
    """Silent notifier, the default when embedded."""

    def info(self, msg: str) -> None:
        pass

    def warning(self, msg: str) -> None:
        pass

    def error(self, msg: str) -> None:
        pass


class LoggingNotifier:
    """Forwards messages to this module's logger."""

    def info(self, msg: str) -> None:
        logger.info(msg)

    def warning(self, msg: str) -> None:
        logger.warning(msg)

    def error(self, msg: str) -> None:
        logger.error(msg)


class ConsoleNotifier:
    """Writes short status lines to a terminal stream (stderr by default)."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stderr

    def _write(self, prefix: str, msg: str) -> None:
        print(f"{prefix}{msg}", file=self.stream, flush=True)

    def info(self, msg: str) -> None:
        self._write("", msg)

    def warning(self, msg: str) -> None:
        self._write("Warning: ", msg)

    def error(self, msg: str) -> None:
        self._write("Error: ", msg)
