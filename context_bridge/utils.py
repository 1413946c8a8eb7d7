"""
Utility functions for context_bridge.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Iterable, Iterator

logger = logging.getLogger(__name__)


def should_exclude(path: Path, exclude_patterns: list[str]) -> bool:
    """
    Check if path should be excluded based on patterns.

    Args:
        path: Path to check.
        exclude_patterns: List of patterns. Patterns starting with '*'
            match suffixes, others match directory names.

    Returns:
        True if the path should be excluded.
    """
    path_str = str(path)
    for pattern in exclude_patterns:
        if pattern.startswith("*"):
            # Suffix match (e.g., "*.min.js")
            if path_str.endswith(pattern[1:]):
                return True
        elif pattern in path_str.split(os.sep):
            # Directory name match
            return True
    return False


def walk_files(root: Path, exclude: list[str]) -> Iterator[Path]:
    """
    Walk a directory tree and yield files that are not excluded.

    Excluded directories are pruned, so their contents are never visited.
    Patterns are matched against paths relative to root, so the directories
    that contain root never exclude it.
    """
    for dirpath, dirs, files in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root)
        dirs[:] = sorted(
            d for d in dirs
            if not should_exclude(rel_dir / d, exclude)
        )
        for filename in sorted(files):
            if not should_exclude(rel_dir / filename, exclude):
                yield Path(dirpath) / filename


def matches_file_filter(
    path: Path,
    extensions: Iterable[str] = (),
    filenames: Iterable[str] = (),
    name_patterns: Iterable[str] = (),
) -> bool:
    """Check a file against extension, exact-name and glob-name allow-lists."""
    if path.suffix.lower() in extensions:
        return True
    if path.name in filenames:
        return True
    return any(fnmatch.fnmatch(path.name, pattern) for pattern in name_patterns)


def read_text(filepath: Path) -> str | None:
    """
    Read a UTF-8 text file.

    Returns:
        File contents, or None if the file can't be read or decoded.
    """
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read %s: %s", filepath, e)
        return None


def relative_path(path: Path, root: Path | None) -> str:
    """Path relative to root as a POSIX string, or the path itself when outside root."""
    if root is None:
        return path.as_posix()
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def utc_now() -> datetime:
    """Current time, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """ISO-8601 timestamp with a trailing Z, like the persisted context uses."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime | None:
    """
    Parse an ISO-8601 timestamp (with or without trailing Z).

    Returns:
        Timezone-aware datetime, or None if the value can't be parsed.
    """
    if not value:
        return None
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        logger.debug("Unparseable timestamp: %r", value)
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def env_var_name(identifier: str) -> str:
    """
    Convert an identifier to an environment variable name.

    Examples:
        apiKey -> API_KEY, secret-key -> SECRET_KEY, access_token -> ACCESS_TOKEN
    """
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", identifier)
    name = re.sub(r"[^A-Za-z0-9]+", "_", name)
    return name.strip("_").upper()
