"""
File watcher that re-scans source files as they change.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from context_bridge.config import (
    DEFAULT_EXCLUDE,
    SECURITY_SCAN_EXTENSIONS,
    SECURITY_SCAN_FILENAMES,
    SECURITY_SCAN_NAME_PATTERNS,
)
from context_bridge.utils import matches_file_filter, should_exclude

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class ScanOnChangeHandler(FileSystemEventHandler):
    """Handler for file system events that re-scans the changed file."""

    def __init__(
        self,
        callback: Callable[[Path], None],
        extensions: set[str] | frozenset[str] | None = None,
        debounce_seconds: float = 1.0,
        exclude: list[str] | None = None,
        clock: Callable[[], float] = time.monotonic,
        root: Path | None = None,
    ) -> None:
        """
        Initialize the handler.

        Args:
            callback: Called with the path of each changed file.
            extensions: File extensions to watch (e.g., {".js", ".py"}). Defaults
                to every file the security scanner reads, including
                ``.env*``, ``package.json`` and ``config.json``.
            debounce_seconds: Minimum time between two scans of the same file.
            exclude: Path patterns to ignore (see ``should_exclude``).
            clock: Monotonic time source.
            root: Watched root; exclusion patterns are matched below it.
        """
        self.callback = callback
        if extensions is None:
            self.extensions = set(SECURITY_SCAN_EXTENSIONS)
            self.filenames = SECURITY_SCAN_FILENAMES
            self.name_patterns = SECURITY_SCAN_NAME_PATTERNS
        else:
            self.extensions = {e.lower() for e in extensions}
            self.filenames = frozenset()
            self.name_patterns = []
        self.debounce_seconds = debounce_seconds
        self.exclude = exclude if exclude is not None else DEFAULT_EXCLUDE
        self.clock = clock
        self.root = Path(root) if root is not None else None
        self._last_trigger: dict[Path, float] = {}

    def on_modified(self, event: Any) -> None:
        """Handle file modification events."""
        self._handle(event)

    def on_created(self, event: Any) -> None:
        """Handle file creation events."""
        self._handle(event)

    def _handle(self, event: Any) -> None:
        if event.is_directory:
            return

        path = Path(event.src_path)
        if not matches_file_filter(path, self.extensions, self.filenames, self.name_patterns):
            return
        if should_exclude(self._relative(path), self.exclude):
            return

        # Debounce per path
        now = self.clock()
        last = self._last_trigger.get(path)
        if last is not None and now - last < self.debounce_seconds:
            return
        self._last_trigger[path] = now

        self._trigger_scan(path)

    def _relative(self, path: Path) -> Path:
        if self.root is None:
            return path
        try:
            return path.relative_to(self.root)
        except ValueError:
            return path

    def _trigger_scan(self, path: Path) -> None:
        logger.info("File changed: %s", path)
        print(f"\n[watch] File changed: {path}", flush=True)

        try:
            self.callback(path)
        except Exception as e:
            logger.debug("Scan of %s failed", path, exc_info=True)
            print(f"[watch] Error: {e}", flush=True)


def watch_and_scan(
    root: Path,
    callback: Callable[[Path], None],
    extensions: set[str] | frozenset[str] | None = None,
    debounce_seconds: float = 1.0,
    exclude: list[str] | None = None,
) -> None:
    """
    Watch a project and call back for every modified or created source file.

    Blocks until interrupted with Ctrl+C.

    Args:
        root: Directory to watch, recursively.
        callback: Called with the path of each changed file.
        extensions: File extensions to watch.
        debounce_seconds: Minimum time between two scans of the same file.
        exclude: Path patterns to ignore.
    """
    handler = ScanOnChangeHandler(
        callback=callback,
        extensions=extensions,
        debounce_seconds=debounce_seconds,
        exclude=exclude,
        root=root,
    )

    observer = Observer()
    observer.schedule(handler, str(root), recursive=True)
    observer.start()

    print(f"[watch] Watching {root} for changes...", flush=True)
    print("[watch] Press Ctrl+C to stop", flush=True)

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n[watch] Stopping...", flush=True)
        observer.stop()

    observer.join()
