"""
Line rewriters for the security rules that can be fixed mechanically.

A fixer takes one source line and returns the rewritten line, or None when
the line no longer contains anything to fix. That makes a second pass over
the same issues a no-op.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from context_bridge.utils import env_var_name

if TYPE_CHECKING:
    from typing import Callable, Mapping

    from context_bridge.models import Issue

logger = logging.getLogger(__name__)


JS_EXTENSIONS = frozenset({".js", ".ts", ".jsx", ".tsx", ".vue", ".mjs", ".cjs"})
PYTHON_EXTENSIONS = frozenset({".py"})

INSECURE_HTTP_RE = re.compile(r"http://(?!localhost|127\.0\.0\.1|0\.0\.0\.0)", re.IGNORECASE)

# Identifier ending in a key-like name, then a quoted literal
API_KEY_ASSIGNMENT_RE = re.compile(
    r"""(?P<name>(?<![\w$])[\w$]*?(?:api[_-]?key|secret[_-]?key|access[_-]?token))"""
    r"""(?P<sep>["']?\s*[=:]\s*)"""
    r"""(?P<quote>["'])(?P<value>[A-Za-z0-9_\-]{10,})(?P=quote)""",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class FixOutcome:
    """
    A rewritten line plus an optional ``NAME=value`` to add to ``.env``.

    ``render`` rebuilds the line for another variable name when ``NAME`` is
    already taken by a different value.
    """

    line: str
    env_entry: tuple[str, str] | None = None
    render: Callable[[str], str] | None = None


def fix_insecure_http(line: str, filepath: Path) -> FixOutcome | None:
    """Turn every non-local ``http://`` on the line into ``https://``."""
    if not INSECURE_HTTP_RE.search(line):
        return None
    return FixOutcome(INSECURE_HTTP_RE.sub("https://", line))


def fix_hardcoded_api_key(line: str, filepath: Path) -> FixOutcome | None:
    """
    Replace a quoted key literal with an environment lookup.

    JS/TS/Vue files get ``process.env.NAME``, Python files get
    ``os.environ.get("NAME")``. Other languages are left alone.
    """
    suffix = filepath.suffix.lower()
    if suffix in JS_EXTENSIONS:
        lookup = "process.env.{}"
    elif suffix in PYTHON_EXTENSIONS:
        lookup = 'os.environ.get("{}")'
    else:
        return None

    match = API_KEY_ASSIGNMENT_RE.search(line)
    if not match:
        return None

    def render(name: str) -> str:
        return line[: match.start("quote")] + lookup.format(name) + line[match.end():]

    name = env_var_name(match.group("name"))
    return FixOutcome(render(name), (name, match.group("value")), render)


class AutoFixer:
    """
    Apply rule fixers to the files named by a list of issues.

    Args:
        root: Project root; issue files are resolved against it.
        fixers: Rule name to fixer function.
        patterns: Rule name to compiled pattern. When present, the current
            line must still match before its fixer runs.
    """

    def __init__(
        self,
        root: Path,
        fixers: Mapping[str, Callable[[str, Path], FixOutcome | None]],
        patterns: Mapping[str, re.Pattern[str]] | None = None,
    ) -> None:
        self.root = root
        self.fixers = fixers
        self.patterns = patterns or {}
        self._env_values: dict[str, str] = {}

    def apply(self, issues: list[Issue]) -> list[Issue]:
        """
        Fix what can be fixed.

        Returns:
            The issues that were actually fixed, in input order.
        """
        self._env_values = read_env_file(self.root / ".env")
        fixed: list[Issue] = []
        by_file: dict[str, list[Issue]] = {}
        for issue in issues:
            if issue.rule not in self.fixers or issue.line is None:
                logger.debug("No automatic fix for %s at %s", issue.rule, issue.file)
                continue
            by_file.setdefault(issue.file, []).append(issue)

        fixed_ids: set[int] = set()
        for file, file_issues in by_file.items():
            for issue in self._fix_file(self.root / file, file_issues):
                fixed_ids.add(id(issue))

        for issue in issues:
            if id(issue) in fixed_ids:
                fixed.append(issue)
        return fixed

    def _fix_file(self, filepath: Path, issues: list[Issue]) -> list[Issue]:
        try:
            with open(filepath, "r", encoding="utf-8", newline="") as f:
                lines = f.read().splitlines(keepends=True)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read %s for fixing: %s", filepath, e)
            return []

        fixed: list[Issue] = []
        env_entries: list[tuple[str, str]] = []
        for issue in issues:
            index = issue.line - 1
            if index < 0 or index >= len(lines):
                logger.debug("Line %s out of range in %s", issue.line, filepath)
                continue

            line = lines[index]
            pattern = self.patterns.get(issue.rule)
            if pattern is not None and not pattern.search(line):
                continue

            outcome = self.fixers[issue.rule](line, filepath)
            if outcome is None or outcome.line == line:
                continue

            if outcome.env_entry:
                outcome = self._claim_env_name(outcome)
                env_entries.append(outcome.env_entry)
            lines[index] = outcome.line
            fixed.append(issue)

        if not fixed:
            return []

        if env_entries and filepath.suffix.lower() in PYTHON_EXTENSIONS:
            _ensure_python_import(lines, "os")

        with open(filepath, "w", encoding="utf-8", newline="") as f:
            f.write("".join(lines))
        logger.info("Fixed %d issue(s) in %s", len(fixed), filepath)

        for name, value in env_entries:
            append_env_entry(self.root / ".env", name, value)
        return fixed

    def _claim_env_name(self, outcome: FixOutcome) -> FixOutcome:
        """Keep the variable name unless .env already holds a different value for it."""
        name, value = outcome.env_entry
        candidate = name
        n = 2
        while self._env_values.get(candidate, value) != value:
            candidate = f"{name}_{n}"
            n += 1
        self._env_values[candidate] = value
        if candidate == name or outcome.render is None:
            return outcome
        logger.info("%s already holds another value, using %s", name, candidate)
        return FixOutcome(outcome.render(candidate), (candidate, value), outcome.render)


def _ensure_python_import(lines: list[str], module: str) -> None:
    """Insert ``import <module>`` before the first top-level import when it is missing."""
    statement = f"import {module}"
    if any(line.strip() == statement for line in lines):
        return

    newline = "\r\n" if lines and lines[0].endswith("\r\n") else "\n"

    insert_at = None
    after_future = 0
    for i, line in enumerate(lines):
        if line.startswith("from __future__"):
            after_future = i + 1
        elif line.startswith(("import ", "from ")):
            insert_at = i
            break

    if insert_at is None:
        insert_at = after_future
        while insert_at < len(lines) and lines[insert_at].startswith("#"):
            insert_at += 1
    lines.insert(insert_at, statement + newline)


def read_env_file(env_path: Path) -> dict[str, str]:
    """Variables defined in an env file, or an empty mapping if there is none."""
    values: dict[str, str] = {}
    if not env_path.exists():
        return values
    with open(env_path, "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            name, value = line.split("=", 1)
            values[name.strip()] = value.strip().strip("\"'")
    return values


def append_env_entry(env_path: Path, name: str, value: str) -> bool:
    """
    Append ``NAME=value`` to an env file unless NAME is already defined.

    Returns:
        True if the entry was written.
    """
    existing = ""
    if env_path.exists():
        with open(env_path, "r", encoding="utf-8", errors="replace") as f:
            existing = f.read()
        for line in existing.splitlines():
            if line.split("=", 1)[0].strip() == name:
                return False

    with open(env_path, "a", encoding="utf-8") as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        f.write(f"{name}={value}\n")
    logger.info("Added %s to %s", name, env_path)
    return True
