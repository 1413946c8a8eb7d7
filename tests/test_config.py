"""Tests for configuration loading and shared utilities."""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import yaml

from context_bridge.config import (
    DEFAULT_CONFIG,
    ConfigError,
    get_config_template,
    load_config,
    merge_config,
)
from context_bridge.utils import (
    env_var_name,
    matches_file_filter,
    parse_iso,
    relative_path,
    should_exclude,
    to_iso,
    walk_files,
)


class TestLoadConfig:
    def test_merges_sections(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("memory:\n  max_interactions: 5\nscan:\n  exclude: [vendor]\n")

        config = load_config(path)

        assert config["memory"] == {"max_interactions": 5, "session_gap_minutes": 30}
        assert config["scan"]["exclude"] == ["vendor"]
        assert config["continuity"] == DEFAULT_CONFIG["continuity"]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(path) == DEFAULT_CONFIG

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("memory: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_defaults_not_mutated(self):
        config = merge_config({"memory": {"max_interactions": 1}})
        config["continuity"]["ignore_components"].append("Link")

        assert DEFAULT_CONFIG["memory"]["max_interactions"] == 100
        assert "Link" not in DEFAULT_CONFIG["continuity"]["ignore_components"]

    def test_template_matches_defaults(self):
        template = yaml.safe_load(get_config_template())

        assert template["memory"] == DEFAULT_CONFIG["memory"]
        assert template["continuity"] == DEFAULT_CONFIG["continuity"]
        assert template["scan"]["workers"] == DEFAULT_CONFIG["scan"]["workers"]


class TestExclusion:
    @pytest.mark.parametrize("path, excluded", [
        (Path("proj") / "node_modules" / "x.js", True),
        (Path("proj") / "src" / "app.min.js", True),
        (Path("proj") / "src" / "app.js", False),
        (Path("proj") / "node_modules_backup" / "x.js", False),
    ])
    def test_should_exclude(self, path, excluded):
        assert should_exclude(path, ["node_modules", "*.min.js"]) is excluded

    def test_walk_files_prunes_and_sorts(self, tmp_path):
        for rel in ("b.js", "a.js", "node_modules/dep.js", "src/z.py"):
            (tmp_path / rel).parent.mkdir(parents=True, exist_ok=True)
            (tmp_path / rel).write_text("")

        found = [p.relative_to(tmp_path).as_posix() for p in walk_files(tmp_path, ["node_modules"])]

        assert found == ["a.js", "b.js", "src/z.py"]

    def test_walk_files_ignores_directories_above_root(self, tmp_path):
        root = tmp_path / "build" / "proj"
        (root / "dist").mkdir(parents=True)
        (root / "app.js").write_text("")
        (root / "dist" / "out.js").write_text("")

        found = [p.relative_to(root).as_posix() for p in walk_files(root, ["build", "dist"])]

        assert found == ["app.js"]

    def test_matches_file_filter(self):
        assert matches_file_filter(Path("App.JSX"), extensions={".jsx"})
        assert matches_file_filter(Path("package.json"), filenames={"package.json"})
        assert matches_file_filter(Path(".env.local"), name_patterns=["*.env*"])
        assert not matches_file_filter(Path("notes.txt"), {".js"}, {"package.json"}, ["*.env*"])

    def test_relative_path(self, tmp_path):
        assert relative_path(tmp_path / "src" / "a.js", tmp_path) == "src/a.js"
        assert relative_path(Path("/elsewhere/a.js"), tmp_path) == "/elsewhere/a.js"


class TestTimestamps:
    def test_to_iso(self):
        moment = datetime(2024, 3, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)

        assert to_iso(moment) == "2024-03-01T12:00:00.123Z"

    def test_to_iso_converts_offset(self):
        moment = datetime(2024, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

        assert to_iso(moment) == "2024-03-01T12:00:00.000Z"

    def test_parse_iso(self):
        parsed = parse_iso("2024-03-01T12:00:00.000Z")

        assert parsed == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
        assert parse_iso("2024-03-01T12:00:00").tzinfo is timezone.utc

    @pytest.mark.parametrize("value", ["", "yesterday", "2024-13-01"])
    def test_parse_iso_invalid(self, value):
        assert parse_iso(value) is None


class TestEnvVarName:
    @pytest.mark.parametrize("identifier, expected", [
        ("apiKey", "API_KEY"),
        ("secret-key", "SECRET_KEY"),
        ("access_token", "ACCESS_TOKEN"),
        ("stripeSecretKey", "STRIPE_SECRET_KEY"),
        ("$apiKey", "API_KEY"),
    ])
    def test_env_var_name(self, identifier, expected):
        assert env_var_name(identifier) == expected


def test_exclusion_uses_os_separator():
    path = Path(os.sep.join(["proj", "dist", "bundle.js"]))

    assert should_exclude(path, ["dist"])
