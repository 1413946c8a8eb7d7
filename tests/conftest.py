"""Pytest configuration and fixtures."""

from __future__ import annotations

import textwrap
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


class FakeClock:
    """Controllable clock returning timezone-aware UTC datetimes."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    """Clock fixed at 2024-03-01 12:00 UTC."""
    return FakeClock(datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def make_project(tmp_path):
    """
    Write a project tree under tmp_path.

    Takes a mapping of relative path to file content; contents are dedented
    so tests can use indented triple-quoted strings.
    """
    def _make(files: dict[str, str], gitignore: bool = True) -> Path:
        if gitignore:
            (tmp_path / ".gitignore").write_text("node_modules\n.env*\n", encoding="utf-8")
        for rel, content in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return tmp_path

    return _make


@pytest.fixture
def base_context():
    """Minimal valid project context."""
    return {
        "project": {"name": "shop", "type": "web-app"},
        "security": {"rules": {"enforceHttps": False, "inputSanitization": True}},
    }
