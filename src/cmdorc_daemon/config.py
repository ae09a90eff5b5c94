"""Configuration parsing for daemon mode.

Daemon settings live in a ``[daemon]`` table of the same TOML file that
holds cmdorc's ``[[command]]`` definitions.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from cmdorc_daemon.ignore import DEFAULT_TOOL_PREFIX, ignore_file_name

logger = logging.getLogger(__name__)


@dataclass
class DaemonConfig:
    """Settings for one daemon-mode job."""

    root: Path
    """Working directory to watch (the config file's directory)."""

    job: str
    """Job identifier; names this job's ignore file."""

    daemon: bool = False
    """Re-run the build automatically when files change."""

    listen_interval: float = 0.5
    """Seconds between change checks; changes settle after twice this."""

    sibling_interval: float = 0.1
    """Latency of the sibling ignore file watcher."""

    tool_prefix: str = DEFAULT_TOOL_PREFIX
    tmpdir: Path | None = None
    ignore: list[str] = field(default_factory=list)

    build_command: str | None = None
    """cmdorc command to run each cycle (defaults to the first one)."""

    def __post_init__(self) -> None:
        if self.listen_interval <= 0:
            raise ValueError(f"listen-interval must be positive, got {self.listen_interval}")
        if self.sibling_interval <= 0:
            raise ValueError(f"sibling-interval must be positive, got {self.sibling_interval}")
        # Validates the job id
        ignore_file_name(self.job, self.tool_prefix)
        if self.tmpdir is None:
            self.tmpdir = self.root / f".{self.tool_prefix}-tmp" / self.job


def _typed(raw: dict, key: str, kind: type | tuple[type, ...], default):
    value = raw.get(key, default)
    if value is default:
        return value
    # bool is an int subclass; reject it for numeric keys
    if not isinstance(value, kind) or (isinstance(value, bool) and kind is not bool):
        raise ValueError(f"'{key}' has invalid value {value!r}")
    return value


def load_daemon_config(path: str | Path, job: str | None = None) -> DaemonConfig:
    """Load the ``[daemon]`` table of a config file.

    Args:
        path: Path to TOML config file
        job: Job id overriding the file's ``job`` key. An unset ``tmpdir``
            then defaults under this job's name.

    Returns:
        DaemonConfig with defaults filled in

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file cannot be parsed or a value is invalid
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\nRun 'cmdorc-daemon' without arguments to auto-create a default config."
        )

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except Exception as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e

    section = raw.get("daemon", {})
    root = path.resolve().parent
    try:
        ignore = _typed(section, "ignore", list, [])
        if not all(isinstance(p, str) for p in ignore):
            raise ValueError(f"'ignore' must be a list of strings, got {ignore!r}")
        tmpdir = _typed(section, "tmpdir", str, None)
        config = DaemonConfig(
            root=root,
            job=job or _typed(section, "job", str, path.stem),
            daemon=_typed(section, "enabled", bool, False),
            listen_interval=float(_typed(section, "listen-interval", (int, float), 0.5)),
            sibling_interval=float(_typed(section, "sibling-interval", (int, float), 0.1)),
            tool_prefix=_typed(section, "tool-prefix", str, DEFAULT_TOOL_PREFIX),
            tmpdir=root / tmpdir if tmpdir else None,
            ignore=list(ignore),
            build_command=_typed(section, "build-command", str, None),
        )
    except ValueError as e:
        raise ValueError(f"Invalid [daemon] settings in {path}: {e}") from e

    logger.debug(f"Loaded daemon config for job '{config.job}' from {path}")
    return config
