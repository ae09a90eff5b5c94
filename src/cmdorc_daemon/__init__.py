"""cmdorc-daemon: rebuild-on-change daemon mode for cmdorc document builds."""

__version__ = "0.1.0"

# Public API
from cmdorc_daemon.ignore import IgnoreRegistry, ignore_file_name
from cmdorc_daemon.models import ChangeEvent, ChangeKind, WaitOutcome, WatchSession
from cmdorc_daemon.session import MissingCapabilityError, Session
from cmdorc_daemon.wait import ConsolePrompt, StdinInput, WaitController

__all__ = [
    "__version__",
    # Session and components
    "Session",
    "IgnoreRegistry",
    "WaitController",
    "ConsolePrompt",
    "StdinInput",
    # Models
    "ChangeEvent",
    "ChangeKind",
    "WaitOutcome",
    "WatchSession",
    # Helpers and errors
    "ignore_file_name",
    "MissingCapabilityError",
]
