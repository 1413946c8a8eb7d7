"""
Loading, saving and initializing the project context file.
"""

from __future__ import annotations

import copy
import datetime as dt
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from context_bridge.config import CONTEXT_FILENAME, CONTEXT_FILENAME_JSON
from context_bridge.memory import DEFAULT_PREFERENCES
from context_bridge.security.rules import ALL_RULES_ON, DATA_HANDLING_PATTERNS, DEFAULT_PATTERNS
from context_bridge.utils import to_iso, utc_now

if TYPE_CHECKING:
    from typing import Any, Callable

logger = logging.getLogger(__name__)


FRONTEND_FRAMEWORKS = (("react", "React"), ("vue", "Vue"), ("angular", "Angular"), ("svelte", "Svelte"))
BACKEND_FRAMEWORKS = (("express", "Express"), ("fastify", "Fastify"), ("koa", "Koa"), ("next", "Next.js"))
DATABASES = (("mongoose", "MongoDB"), ("pg", "PostgreSQL"), ("mysql2", "MySQL"), ("sqlite3", "SQLite"))
KNOWN_DIRECTORIES = ("src", "components", "pages", "api", "models", "utils", "styles", "assets")

DEFAULT_DESCRIPTION = "AI-assisted project built with Context Bridge"
DEFAULT_PROJECT_TYPE = "web-app"


class ContextError(Exception):
    """Base error for project context handling."""


class ContextNotFoundError(ContextError):
    """Raised when a project has no context file."""


class ContextFormatError(ContextError):
    """Raised when a context file cannot be parsed."""


def default_context(name: str) -> dict[str, Any]:
    """
    Context written for a project that has none yet.

    Security rules are all on, authentication is JWT with refresh tokens.
    """
    return {
        "project": {
            "name": name,
            "description": DEFAULT_DESCRIPTION,
            "type": DEFAULT_PROJECT_TYPE,
            "framework": {},
        },
        "security": {
            "rules": dict(ALL_RULES_ON),
            "patterns": [p.to_dict() for p in DEFAULT_PATTERNS + DATA_HANDLING_PATTERNS],
        },
        "architecture": {"structure": {}},
        "authentication": {
            "type": "jwt",
            "config": {"expiry": "24h", "refreshToken": True},
            "routes": {
                "login": "/auth/login",
                "logout": "/auth/logout",
                "register": "/auth/register",
                "refresh": "/auth/refresh",
                "profile": "/auth/profile",
            },
        },
        "contextMemory": {
            "aiInteractions": [],
            "codeGeneration": {"preferences": dict(DEFAULT_PREFERENCES)},
        },
    }


def merge_context(
    default: dict[str, Any],
    detected: dict[str, Any],
    supplied: dict[str, Any] | None,
) -> dict[str, Any]:
    """
    Merge context layers with precedence supplied > detected > default.

    Mappings are merged recursively; any other value from a higher layer
    replaces the lower one.
    """
    merged = copy.deepcopy(default)
    for layer in (detected, supplied or {}):
        _deep_merge(merged, layer)
    return merged


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)


def _plain(value: Any) -> Any:
    """Turn YAML timestamps back into the ISO strings they were written as."""
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dt.datetime):
        return to_iso(value)
    if isinstance(value, dt.date):
        return value.isoformat()
    return value


class ContextStore:
    """
    Read and write ``.project-context.yaml`` (or ``.project-context.json``)
    in a project root.
    """

    def __init__(self, root: Path, clock: Callable[[], dt.datetime] = utc_now) -> None:
        self.root = Path(root)
        self.clock = clock

    @property
    def yaml_path(self) -> Path:
        return self.root / CONTEXT_FILENAME

    @property
    def json_path(self) -> Path:
        return self.root / CONTEXT_FILENAME_JSON

    def path(self) -> Path | None:
        """The context file in use, YAML first; None if there is none."""
        if self.yaml_path.exists():
            return self.yaml_path
        if self.json_path.exists():
            return self.json_path
        return None

    def exists(self) -> bool:
        return self.path() is not None

    def load(self) -> dict[str, Any]:
        """
        Load the project context.

        Returns:
            The parsed context.

        Raises:
            ContextNotFoundError: If neither context file exists.
            ContextFormatError: If the file cannot be parsed or is not a mapping.
        """
        path = self.path()
        if path is None:
            raise ContextNotFoundError(f"No project context found in {self.root}")

        with open(path, "r", encoding="utf-8") as f:
            try:
                if path.suffix == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
            except (yaml.YAMLError, json.JSONDecodeError) as e:
                raise ContextFormatError(f"Could not parse {path}: {e}") from e

        if not isinstance(data, dict):
            raise ContextFormatError(f"{path} must contain a mapping")

        logger.debug("Loaded project context from %s", path)
        return _plain(data)

    def save(self, context: dict[str, Any]) -> Path:
        """
        Write the context, refreshing ``contextMemory.lastUpdated``.

        YAML is written unless the project only has a JSON context file.

        Returns:
            Path of the written file.
        """
        memory = context.get("contextMemory")
        if not isinstance(memory, dict):
            memory = {}
            context["contextMemory"] = memory
        memory["lastUpdated"] = to_iso(self.clock())

        use_json = self.json_path.exists() and not self.yaml_path.exists()
        path = self.json_path if use_json else self.yaml_path
        with open(path, "w", encoding="utf-8") as f:
            if use_json:
                json.dump(context, f, indent=2, default=str)
                f.write("\n")
            else:
                yaml.safe_dump(context, f, sort_keys=False, allow_unicode=True, width=100)

        logger.debug("Saved project context to %s", path)
        return path

    def initialize(self, project_info: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Create a context with detected defaults, or return the existing one.

        Args:
            project_info: Caller-supplied values, e.g. ``{"project": {"name": ...}}``.
                They win over detected values, which win over defaults.

        Returns:
            The loaded or newly created context.
        """
        if self.exists():
            logger.info("Project context already exists at %s", self.path())
            return self.load()

        context = merge_context(
            default_context(self.root.resolve().name),
            self.detect_structure(),
            project_info,
        )
        context["contextMemory"]["lastUpdated"] = to_iso(self.clock())
        self.save(context)
        logger.info("Created project context at %s", self.yaml_path)
        return context

    def detect_structure(self) -> dict[str, Any]:
        """
        Detect frameworks from package.json and well-known directories.

        Returns:
            Partial context with ``project.framework`` and
            ``architecture.structure`` for whatever was found.
        """
        framework: dict[str, str] = {}
        package_json = self.root / "package.json"
        if package_json.exists():
            try:
                with open(package_json, "r", encoding="utf-8") as f:
                    package_data = json.load(f)
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
                logger.warning("Could not parse %s: %s", package_json, e)
                package_data = {}

            dependencies: dict[str, Any] = {}
            if isinstance(package_data, dict):
                for section in ("dependencies", "devDependencies"):
                    if isinstance(package_data.get(section), dict):
                        dependencies.update(package_data[section])

            for key, table in (
                ("frontend", FRONTEND_FRAMEWORKS),
                ("backend", BACKEND_FRAMEWORKS),
                ("database", DATABASES),
            ):
                for package, label in table:
                    if package in dependencies:
                        framework[key] = label
                        break

        structure = {
            name: name
            for name in KNOWN_DIRECTORIES
            if (self.root / name).is_dir()
        }

        detected: dict[str, Any] = {"project": {"framework": framework}}
        if structure:
            detected["architecture"] = {"structure": structure}
        return detected
