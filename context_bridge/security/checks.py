"""
Built-in security checks that run regardless of the declared patterns.

Line checks are plain substring tests, not regexes; each one is independent,
so a single line may trigger several of them.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from context_bridge.models import Issue

if TYPE_CHECKING:
    from typing import Callable

logger = logging.getLogger(__name__)


VULNERABLE_PACKAGES = ("lodash", "moment", "request", "underscore")
ENV_SECRET_MARKERS = ("key", "secret", "token")


@dataclass(frozen=True)
class LineCheck:
    rule: str
    severity: str
    message: str
    suggestion: str
    test: Callable[[str], bool]


def _has_any(line: str, *needles: str) -> bool:
    return any(n in line for n in needles)


LINE_CHECKS: tuple[LineCheck, ...] = (
    LineCheck(
        "eval-usage", "error",
        "Use of eval() detected. This is a serious security risk.",
        "Avoid eval(). Use JSON.parse() for JSON data or proper function calls",
        lambda line: "eval(" in line,
    ),
    LineCheck(
        "document-write", "warning",
        "document.write() usage detected. This can lead to XSS vulnerabilities.",
        "Use DOM manipulation methods like createElement() and appendChild()",
        lambda line: "document.write(" in line,
    ),
    LineCheck(
        "console-log-sensitive", "warning",
        "Console.log with potentially sensitive data detected.",
        "Remove console.log statements with sensitive data before production",
        lambda line: "console.log" in line and _has_any(line, "password", "token", "secret"),
    ),
    LineCheck(
        "auth-bypass-pattern", "error",
        "Potential authentication bypass pattern detected.",
        "Review authentication logic to ensure no unintended bypass conditions",
        lambda line: "if (" in line and "||" in line and _has_any(line, "admin", "bypass"),
    ),
    LineCheck(
        "hardcoded-admin", "error",
        "Hardcoded admin credentials detected.",
        "Use environment variables and secure credential management",
        lambda line: _has_any(line, "admin", "root") and "password" in line,
    ),
    LineCheck(
        "data-exposure", "error",
        "Potential sensitive data exposure in API response.",
        "Filter sensitive fields before sending API responses",
        lambda line: "res.json" in line and "user" in line and _has_any(line, "password", "secret"),
    ),
    LineCheck(
        "sql-data-exposure", "warning",
        "SELECT * query on user table may expose sensitive data.",
        "Specify only the columns needed instead of using SELECT *",
        lambda line: "SELECT *" in line and "user" in line,
    ),
)


def check_lines(file: str, lines: list[str]) -> list[Issue]:
    """Run every line check over every line."""
    issues: list[Issue] = []
    for i, line in enumerate(lines, 1):
        for check in LINE_CHECKS:
            if check.test(line):
                issues.append(Issue(
                    file=file,
                    line=i,
                    rule=check.rule,
                    severity=check.severity,
                    message=check.message,
                    suggestion=check.suggestion,
                ))
    return issues


def is_env_file(path: Path) -> bool:
    return ".env" in path.name


def check_env_file(file: str, lines: list[str]) -> list[Issue]:
    """
    Flag ``KEY=value`` lines in env files that look like real credentials.

    A value counts as real when it is longer than 10 characters and is not a
    ``${...}`` reference or a ``your_...`` placeholder.
    """
    issues: list[Issue] = []
    for i, line in enumerate(lines, 1):
        if "=" not in line or line.lstrip().startswith("#"):
            continue
        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) <= 10 or "${" in value or "your_" in value:
            continue
        if any(marker in key.lower() for marker in ENV_SECRET_MARKERS):
            issues.append(Issue(
                file=file,
                line=i,
                rule="env-file-security",
                severity="warning",
                message=(
                    "Environment file contains what appears to be real credentials. "
                    "Ensure this file is not committed to version control."
                ),
                suggestion="Add .env files to .gitignore and use placeholder values in committed examples",
            ))
    return issues


def check_package_json(file: str, content: str) -> list[Issue]:
    """
    Flag dependencies with a history of known vulnerabilities.

    Invalid JSON is not a security finding; the check is skipped.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.debug("Skipping dependency check for %s: %s", file, e)
        return []
    if not isinstance(data, dict):
        return []

    dependencies: dict[str, object] = {}
    for section in ("dependencies", "devDependencies"):
        deps = data.get(section)
        if isinstance(deps, dict):
            dependencies.update(deps)

    lines = content.splitlines()
    issues: list[Issue] = []
    for pkg in dependencies:
        if pkg not in VULNERABLE_PACKAGES:
            continue
        issues.append(Issue(
            file=file,
            line=_find_key_line(lines, pkg),
            rule="vulnerable-dependency",
            severity="warning",
            message=f"Package {pkg} may have known vulnerabilities. Consider updating or replacing.",
            suggestion=f"Run 'npm audit' to check for vulnerabilities and update {pkg} to the latest version",
        ))
    return issues


def _find_key_line(lines: list[str], key: str) -> int | None:
    needle = f'"{key}"'
    for i, line in enumerate(lines, 1):
        if needle in line:
            return i
    return None


def check_gitignore(root: Path) -> list[Issue]:
    """
    Project-level check: a .gitignore must exist and must ignore .env files.

    Raises:
        OSError: If .gitignore exists but cannot be read.
    """
    gitignore = root / ".gitignore"
    if not gitignore.exists():
        return [Issue(
            file=".gitignore",
            rule="missing-gitignore",
            severity="warning",
            message="Missing .gitignore file. Sensitive files may be accidentally committed.",
            suggestion="Create .gitignore file with appropriate patterns for your project type",
        )]

    with open(gitignore, "r", encoding="utf-8", errors="replace") as f:
        content = f.read()

    if ".env" not in content:
        return [Issue(
            file=".gitignore",
            rule="gitignore-env-missing",
            severity="error",
            message=".env files not ignored in .gitignore. Environment variables may be exposed.",
            suggestion="Add .env* to your .gitignore file",
        )]
    return []
