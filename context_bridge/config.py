"""
Configuration constants and loading utilities for context_bridge.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


CONTEXT_FILENAME = ".project-context.yaml"
CONTEXT_FILENAME_JSON = ".project-context.json"


DEFAULT_EXCLUDE = [
    "node_modules",
    "__pycache__",
    ".git",
    ".venv",
    "venv",
    "dist",
    "build",
    ".next",
    "coverage",
    ".pytest_cache",
    ".mypy_cache",
    "*.pyc",
    "*.pyo",
    ".DS_Store",
    "*.log",
    "*.egg-info",
    "*.min.js",
    "*.bundle.js",
]


# Files the security scanner reads
SECURITY_SCAN_EXTENSIONS = frozenset({
    ".js", ".ts", ".jsx", ".tsx", ".vue",
    ".py", ".php", ".java", ".cs", ".rb", ".go", ".rs",
    ".sql",
})
SECURITY_SCAN_FILENAMES = frozenset({"package.json", "config.json"})
SECURITY_SCAN_NAME_PATTERNS = ["*.env*"]

# Files the continuity analyzer reads
FRONTEND_EXTENSIONS = frozenset({".js", ".ts", ".jsx", ".tsx", ".vue"})
ROUTE_EXTENSIONS = frozenset({".js", ".ts", ".jsx", ".tsx"})
BACKEND_EXTENSIONS = frozenset({".js", ".ts", ".py", ".php", ".java", ".cs", ".rb", ".go"})
BACKEND_EXCLUDE = ["frontend", "client"]

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD")
SEVERITIES = ("error", "warning", "info")


DEFAULT_CONFIG: dict[str, Any] = {
    # Security scanner
    "scan": {
        "workers": 4,
        "exclude": [],  # extra directory names, e.g. ["vendor", "fixtures"]
    },

    # Interaction memory
    "memory": {
        "max_interactions": 100,
        "session_gap_minutes": 30,
    },

    # Frontend/backend continuity
    "continuity": {
        # JSX tags that are provided by the framework, never defined locally
        "ignore_components": ["Fragment", "Suspense", "StrictMode"],
        # Directories skipped when discovering backend routes
        "backend_exclude": list(BACKEND_EXCLUDE),
    },
}


class ConfigError(Exception):
    """Raised when a config file cannot be parsed."""


def load_config(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from YAML file, merged with defaults.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Configuration dictionary with user values merged over defaults.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    with open(config_path, "r", encoding="utf-8") as f:
        try:
            user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(user_config, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    return merge_config(user_config)


def merge_config(user_config: dict[str, Any]) -> dict[str, Any]:
    """Merge a user config over DEFAULT_CONFIG, one section at a time."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    for key, value in user_config.items():
        if isinstance(value, dict) and key in config and isinstance(config[key], dict):
            config[key] = {**config[key], **value}
        else:
            config[key] = value
    logger.debug("Config sections: %s", sorted(config))
    return config


def get_config_template() -> str:
    """Generate a documented YAML config template."""
    return '''# =============================================================================
# Context Bridge Configuration
# =============================================================================
# Pass with: context-bridge --config this_file.yaml <command> ...
#
# The project description itself lives in .project-context.yaml; this file
# only tunes how the scanners behave.
# =============================================================================

# =============================================================================
# SECURITY SCANNER
# =============================================================================
scan:
  # Parallel file readers
  workers: 4
  # Extra directory names to skip (node_modules, dist, build, .git and
  # coverage are always skipped)
  exclude:
    # - vendor
    # - fixtures

# =============================================================================
# INTERACTION MEMORY
# =============================================================================
memory:
  # Oldest interactions are dropped beyond this many
  max_interactions: 100
  # Interactions closer than this belong to the same session
  session_gap_minutes: 30

# =============================================================================
# FRONTEND / BACKEND CONTINUITY
# =============================================================================
# Discovery is lexical (regex), not a real parser. It MAY:
#
#   MISS: dynamically built URLs, routes registered in loops, components
#         re-exported under another name
#
#   FALSE POSITIVE: string literals that look like calls, components that
#                   come from a library
#
continuity:
  # JSX tags that come from the framework and are never defined locally
  ignore_components:
    - Fragment
    - Suspense
    - StrictMode
  # Directories skipped when discovering backend routes
  backend_exclude:
    - frontend
    - client
'''
