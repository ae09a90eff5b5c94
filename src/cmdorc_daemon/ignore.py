"""Ignore patterns and the sentinel ignore files shared between sibling jobs.

Each job running in a directory writes ``.<prefix>ignore_<job>`` listing
the paths it generates. Other jobs read these files and stop reacting to
those paths, so one job's output never triggers another job's rebuild.
"""

import logging
import os
from collections.abc import Iterable
from fnmatch import fnmatchcase
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TOOL_PREFIX = "cmdorc"

_GLOB_CHARS = frozenset("*?[")


def ignore_file_name(job: str, prefix: str = DEFAULT_TOOL_PREFIX) -> str:
    """Return the ignore file name for ``job``.

    Raises:
        ValueError: If the job id is empty or contains a path separator
    """
    if not job or "/" in job or (os.altsep and os.altsep in job) or os.sep in job:
        raise ValueError(f"Invalid job id: {job!r}")
    return f".{prefix}ignore_{job}"


def is_ignore_file(name: str, prefix: str = DEFAULT_TOOL_PREFIX) -> bool:
    """Check whether a basename follows the ignore file naming convention."""
    stem = f".{prefix}ignore_"
    return name.startswith(stem) and len(name) > len(stem)


def relative_posix(path: str | Path, root: Path) -> str | None:
    """Express ``path`` relative to ``root`` in POSIX form, or None if outside."""
    try:
        rel = Path(os.path.abspath(path)).relative_to(root)
    except ValueError:
        return None
    return rel.as_posix()


def matches(rel_path: str, patterns: Iterable[str]) -> bool:
    """Check a root-relative POSIX path against ignore patterns.

    Plain patterns are anchored prefixes (``out`` covers ``out.pdf`` and
    ``out/x``); patterns containing glob characters use fnmatch.
    """
    if rel_path.startswith("./"):
        rel_path = rel_path[2:]
    for pattern in patterns:
        if pattern.startswith("./"):
            pattern = pattern[2:]
        if not pattern:
            continue
        if _GLOB_CHARS.intersection(pattern):
            if fnmatchcase(rel_path, pattern):
                return True
        elif rel_path.startswith(pattern):
            return True
    return False


def read_ignore_file(path: str | Path) -> list[str]:
    """Read one ignore file, tolerating it having vanished already."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug(f"Ignore file vanished before it could be read: {path}")
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


class IgnoreRegistry:
    """Owns the ignore patterns of one job.

    The pattern list only ever grows. Patterns contributed by a sibling job
    stay in place after that sibling exits.
    """

    def __init__(self, job: str, prefix: str = DEFAULT_TOOL_PREFIX):
        self.job = job
        self.prefix = prefix
        self.file_name = ignore_file_name(job, prefix)
        self._patterns: list[str] = []

    @property
    def patterns(self) -> tuple[str, ...]:
        """Snapshot of the current patterns in insertion order."""
        return tuple(self._patterns)

    def register(self, pattern: str) -> None:
        """Add an exclusion. Registering the same pattern twice is a no-op."""
        pattern = pattern.strip()
        if pattern and pattern not in self._patterns:
            self._patterns.append(pattern)

    def merge(self, patterns: Iterable[str]) -> list[str]:
        """Add several patterns, returning only the ones that were new."""
        added = []
        for pattern in patterns:
            if pattern and pattern not in self._patterns:
                self._patterns.append(pattern)
                added.append(pattern)
        return added

    def persist(self, directory: str | Path) -> Path:
        """Write the patterns to this job's ignore file, replacing any earlier one."""
        path = Path(directory) / self.file_name
        path.write_text("\n".join(self._patterns), encoding="utf-8")
        logger.debug(f"Wrote {len(self._patterns)} ignore pattern(s) to {path}")
        return path

    def is_sibling_file(self, name: str) -> bool:
        """Check whether a basename is another job's ignore file."""
        return name != self.file_name and is_ignore_file(name, self.prefix)

    def discover_siblings(self, directory: str | Path) -> list[str]:
        """Read the ignore files of all other jobs in ``directory``.

        Only the top level of ``directory`` is scanned. Files removed by an
        exiting sibling between listing and reading are skipped.
        """
        found: list[str] = []
        with os.scandir(directory) as entries:
            names = sorted(e.name for e in entries if self.is_sibling_file(e.name))
        for name in names:
            patterns = read_ignore_file(Path(directory) / name)
            logger.debug(f"Sibling ignore file {name}: {len(patterns)} pattern(s)")
            found.extend(patterns)
        return found

    def is_ignored(self, rel_path: str) -> bool:
        """Check a root-relative path against the registered patterns."""
        return matches(rel_path, self._patterns)
