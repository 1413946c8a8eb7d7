"""
Pattern-based security scanner for context_bridge.

Applies the project's declared security patterns plus the built-in checks
to every source file under a root, then runs the project-level checks.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING

from context_bridge.config import (
    DEFAULT_CONFIG,
    DEFAULT_EXCLUDE,
    SECURITY_SCAN_EXTENSIONS,
    SECURITY_SCAN_FILENAMES,
    SECURITY_SCAN_NAME_PATTERNS,
)
from context_bridge.models import Issue, SecurityPattern
from context_bridge.security import checks
from context_bridge.security.autofix import AutoFixer
from context_bridge.security.rules import (
    DEFAULT_PATTERNS,
    fixers,
    generate_security_config,
    suggestion_for,
)
from context_bridge.utils import matches_file_filter, read_text, relative_path, walk_files

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class SecurityScanner:
    """
    Scan a project for security issues.

    The scanner holds no state between scans; every call re-reads the
    filesystem, so running ``scan_project`` twice on an unchanged tree gives
    the same issues.
    """

    def __init__(
        self,
        context: dict[str, Any] | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize the scanner.

        Args:
            context: Project context. Its ``security.patterns`` replace the
                default pattern set when the key is present.
            config: Configuration dictionary (see ``DEFAULT_CONFIG``).
        """
        self.context = context or {}
        self.config = config or DEFAULT_CONFIG

        scan_config = self.config.get("scan", {})
        self.workers = max(1, int(scan_config.get("workers", 4)))
        self.exclude = DEFAULT_EXCLUDE + list(scan_config.get("exclude") or [])

        self.patterns = self._compile_patterns(self._declared_patterns())

    def _declared_patterns(self) -> list[SecurityPattern]:
        security = self.context.get("security") or {}
        if "patterns" in security:
            return [
                SecurityPattern.from_dict(p)
                for p in security.get("patterns") or []
                if isinstance(p, dict)
            ]
        return list(DEFAULT_PATTERNS)

    def _compile_patterns(
        self,
        patterns: list[SecurityPattern],
    ) -> list[tuple[SecurityPattern, re.Pattern[str]]]:
        """Compile patterns case-insensitively, skipping invalid ones."""
        compiled: list[tuple[SecurityPattern, re.Pattern[str]]] = []
        for pattern in patterns:
            try:
                compiled.append((pattern, re.compile(pattern.pattern, re.IGNORECASE)))
            except re.error as e:
                logger.warning("Invalid security pattern %r (%s): %s", pattern.name, pattern.pattern, e)
        logger.debug("Security scanner using %d pattern(s)", len(compiled))
        return compiled

    def collect_files(self, root: Path) -> list[Path]:
        """
        Find every file the scanner reads under root.

        Returns:
            Sorted list of file paths.
        """
        files = {
            path
            for path in walk_files(root, self.exclude)
            if matches_file_filter(
                path,
                SECURITY_SCAN_EXTENSIONS,
                SECURITY_SCAN_FILENAMES,
                SECURITY_SCAN_NAME_PATTERNS,
            )
        }
        return sorted(files)

    def scan_project(self, root: Path) -> list[Issue]:
        """
        Scan every relevant file under root, then run project-level checks.

        Args:
            root: Project root directory.

        Returns:
            Issues in sorted file order, followed by project-level issues.
            File paths are relative to root.
        """
        root = Path(root)
        files = self.collect_files(root)
        logger.debug("Scanning %d file(s) under %s", len(files), root)

        issues: list[Issue] = []
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            for file_issues in executor.map(lambda p: self.scan_file(p, root), files):
                issues.extend(file_issues)

        issues.extend(checks.check_gitignore(root))
        return issues

    def scan_file(self, filepath: Path, root: Path | None = None) -> list[Issue]:
        """
        Scan one file with the declared patterns and the built-in checks.

        Args:
            filepath: File to scan.
            root: When given, the reported file path is relative to it.

        Returns:
            Issues found in the file; empty if it could not be read.
        """
        filepath = Path(filepath)
        content = read_text(filepath)
        if content is None:
            return []

        file = relative_path(filepath, root)
        lines = content.splitlines()
        issues: list[Issue] = []

        for pattern, regex in self.patterns:
            for i, line in enumerate(lines, 1):
                if regex.search(line):
                    issues.append(Issue(
                        file=file,
                        line=i,
                        rule=pattern.name,
                        severity=pattern.severity,
                        message=pattern.message,
                        suggestion=suggestion_for(pattern.name),
                    ))

        if checks.is_env_file(filepath):
            issues.extend(checks.check_env_file(file, lines))
        if filepath.name == "package.json":
            issues.extend(checks.check_package_json(file, content))
        issues.extend(checks.check_lines(file, lines))
        return issues

    def auto_fix(self, root: Path, issues: list[Issue]) -> list[Issue]:
        """
        Rewrite the lines behind fixable issues.

        Each line is re-checked against its rule's pattern first, so fixing
        the same issues twice reports nothing the second time.

        Args:
            root: Project root the issue paths are relative to.
            issues: Issues from a previous scan.

        Returns:
            The issues that were fixed.
        """
        patterns = {pattern.name: regex for pattern, regex in self.patterns}
        fixer = AutoFixer(Path(root), fixers(), patterns)
        fixed = fixer.apply(issues)
        logger.info("Auto-fixed %d of %d issue(s)", len(fixed), len(issues))
        return fixed

    @staticmethod
    def generate_security_config(app_type: str) -> dict[str, Any]:
        """Preset security sections for an application type."""
        return generate_security_config(app_type)
