"""Tests for the change watcher's event handling."""

from pathlib import Path
from types import SimpleNamespace

import pytest

from context_bridge.watcher import ScanOnChangeHandler


class FakeMonotonic:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def event(path, is_directory=False):
    return SimpleNamespace(src_path=str(path), is_directory=is_directory)


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def scanned():
    return []


@pytest.fixture
def handler(scanned, monotonic):
    return ScanOnChangeHandler(scanned.append, debounce_seconds=1.0, clock=monotonic)


class TestScanOnChangeHandler:
    def test_modified_and_created(self, handler, scanned, capsys):
        handler.on_modified(event("/proj/src/app.js"))
        handler.on_created(event("/proj/api/main.py"))

        assert scanned == [Path("/proj/src/app.js"), Path("/proj/api/main.py")]
        assert "[watch] File changed: /proj/src/app.js" in capsys.readouterr().out

    def test_debounce_per_path(self, handler, scanned, monotonic):
        handler.on_modified(event("/proj/a.js"))
        monotonic.now += 0.5
        handler.on_modified(event("/proj/a.js"))
        handler.on_modified(event("/proj/b.js"))
        monotonic.now += 1.0
        handler.on_modified(event("/proj/a.js"))

        assert scanned == [Path("/proj/a.js"), Path("/proj/b.js"), Path("/proj/a.js")]

    def test_ignored_events(self, handler, scanned):
        handler.on_modified(event("/proj/src", is_directory=True))
        handler.on_modified(event("/proj/README.md"))
        handler.on_modified(event("/proj/node_modules/lib/index.js"))
        handler.on_modified(event("/proj/dist/bundle.min.js"))

        assert scanned == []

    def test_custom_extensions(self, scanned, monotonic):
        handler = ScanOnChangeHandler(scanned.append, extensions={".SQL"}, clock=monotonic)

        handler.on_modified(event("/proj/schema.sql"))
        handler.on_modified(event("/proj/app.js"))

        assert scanned == [Path("/proj/schema.sql")]

    def test_callback_error_reported(self, monotonic, capsys):
        def fail(path):
            raise ValueError("boom")

        handler = ScanOnChangeHandler(fail, clock=monotonic)

        handler.on_modified(event("/proj/app.js"))

        assert "[watch] Error: boom" in capsys.readouterr().out

    def test_env_and_manifest_files(self, handler, scanned):
        handler.on_modified(event("/proj/.env"))
        handler.on_modified(event("/proj/.env.local"))
        handler.on_modified(event("/proj/package.json"))
        handler.on_modified(event("/proj/config.json"))
        handler.on_modified(event("/proj/tsconfig.json"))

        assert scanned == [
            Path("/proj/.env"),
            Path("/proj/.env.local"),
            Path("/proj/package.json"),
            Path("/proj/config.json"),
        ]

    def test_exclusion_relative_to_root(self, scanned, monotonic):
        handler = ScanOnChangeHandler(scanned.append, clock=monotonic, root=Path("/work/build/proj"))

        handler.on_modified(event("/work/build/proj/src/app.js"))
        handler.on_modified(event("/work/build/proj/build/out.js"))

        assert scanned == [Path("/work/build/proj/src/app.js")]
