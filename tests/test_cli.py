"""Tests for the command-line interface."""

import json
import sys

import pytest
import yaml

from context_bridge import __version__
from context_bridge.cli import create_parser, main


@pytest.fixture
def run(monkeypatch):
    """Run the CLI with the given arguments."""
    def _run(*args):
        monkeypatch.setattr(sys, "argv", ["context-bridge", *map(str, args)])
        main()

    return _run


def exit_code(run, *args):
    with pytest.raises(SystemExit) as exc:
        run(*args)
    return exc.value.code


def read_context(root):
    with open(root / ".project-context.yaml", encoding="utf-8") as f:
        return yaml.safe_load(f)


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])

    def test_defaults(self):
        args = create_parser().parse_args(["scan"])

        assert args.path == "."
        assert args.format == "json"
        assert args.strict is False

    def test_version(self, run, capsys):
        assert exit_code(run, "--version") == 0
        assert __version__ in capsys.readouterr().out


class TestConfigCommand:
    def test_prints_yaml_template(self, run, capsys):
        run("config")

        template = yaml.safe_load(capsys.readouterr().out)
        assert template["memory"]["max_interactions"] == 100

    def test_invalid_config_file(self, run, tmp_path, capsys):
        bad = tmp_path / "bad.yaml"
        bad.write_text("- just\n- a list\n")

        assert exit_code(run, "--config", bad, "scan", tmp_path) == 1
        assert "must contain a mapping" in capsys.readouterr().err


class TestInit:
    def test_creates_context(self, run, tmp_path, capsys):
        run("init", tmp_path, "--name", "shop", "--type", "api")

        context = read_context(tmp_path)
        assert context["project"]["name"] == "shop"
        assert context["project"]["type"] == "api"
        assert "created" in capsys.readouterr().err

    def test_second_init_reports_existing(self, run, tmp_path, capsys):
        run("init", tmp_path, "--name", "shop")
        run("init", tmp_path, "--name", "other")

        assert read_context(tmp_path)["project"]["name"] == "shop"
        assert "exists" in capsys.readouterr().err

    def test_app_type_preset(self, run, tmp_path):
        run("init", tmp_path, "--app-type", "healthcare")

        names = [p["name"] for p in read_context(tmp_path)["security"]["patterns"]]
        assert "hipaa-compliance" in names

    def test_unknown_app_type(self, run, tmp_path, capsys):
        assert exit_code(run, "init", tmp_path, "--app-type", "gaming") == 1
        assert "Unknown app type" in capsys.readouterr().err
        assert not (tmp_path / ".project-context.yaml").exists()

    def test_missing_path(self, run, tmp_path, capsys):
        assert exit_code(run, "init", tmp_path / "nope") == 1
        assert "does not exist" in capsys.readouterr().err


class TestScanAndFix:
    def test_scan_json(self, run, make_project, capsys):
        root = make_project({"app.js": 'const base = "http://api.example.com";\n'})

        run("scan", root)

        issues = json.loads(capsys.readouterr().out)
        assert [(i["file"], i["line"], i["rule"]) for i in issues] == [("app.js", 1, "insecure-http")]

    def test_scan_strict_fails_on_errors(self, run, make_project):
        root = make_project({"app.js": 'const apiKey = "sk_live_abcdef1234567890";\n'})

        assert exit_code(run, "scan", root, "--strict") == 1

    def test_scan_strict_passes_on_warnings(self, run, make_project):
        root = make_project({"app.js": 'const base = "http://api.example.com";\n'})

        run("scan", root, "--strict")

    def test_scan_markdown_to_file(self, run, make_project):
        root = make_project({"app.js": "const ok = 1;\n"})
        out = root / "SECURITY.md"

        run("scan", root, "--format", "markdown", "-o", out)

        assert "No security issues found." in out.read_text()

    def test_fix(self, run, make_project, capsys):
        root = make_project({"app.js": 'const base = "http://api.example.com";\n'})

        run("fix", root)

        captured = capsys.readouterr()
        assert "Fixed 1 of 1 issue(s)" in captured.err
        assert json.loads(captured.out)[0]["rule"] == "insecure-http"
        assert (root / "app.js").read_text() == 'const base = "https://api.example.com";\n'


class TestContextCommands:
    @pytest.fixture
    def project(self, run, make_project, capsys):
        root = make_project({
            "server/routes.js": "app.get('/api/products', listProducts);\n",
            "src/App.jsx": "fetch('/api/products')\n",
        })
        run("init", root, "--name", "shop")
        capsys.readouterr()
        return root

    def test_continuity_requires_context(self, run, tmp_path, capsys):
        assert exit_code(run, "continuity", tmp_path) == 1
        assert "context-bridge init" in capsys.readouterr().err

    def test_continuity(self, run, project, capsys):
        run("continuity", project)

        issues = json.loads(capsys.readouterr().out)
        assert [i["type"] for i in issues] == ["api-mismatch"]
        assert issues[0]["frontend"] == "src/App.jsx:1 - GET /api/products"

    def test_continuity_generate(self, run, project, capsys):
        run("continuity", project, "--generate")

        result = json.loads(capsys.readouterr().out)
        assert [e["path"] for e in result["missing_endpoints"]] == ["/api/products"]

    def test_update_dry_run(self, run, project, capsys):
        before = (project / ".project-context.yaml").read_text()

        run("update", project, "--dry-run")

        patch = json.loads(capsys.readouterr().out)
        assert patch["api"]["endpoints"][0]["path"] == "/api/products"
        assert (project / ".project-context.yaml").read_text() == before

    def test_update_then_continuity_clean(self, run, project, capsys):
        run("update", project)
        capsys.readouterr()

        run("continuity", project)

        assert json.loads(capsys.readouterr().out) == []

    def test_validate(self, run, project, capsys):
        run("validate", project, "--strict")

        assert json.loads(capsys.readouterr().out)["valid"] is True

    def test_validate_strict_fails(self, run, tmp_path, capsys):
        (tmp_path / ".project-context.yaml").write_text("project:\n  name: shop\n")

        assert exit_code(run, "validate", tmp_path, "--strict") == 1
        result = json.loads(capsys.readouterr().out)
        assert [e["path"] for e in result["errors"]] == ["project.type", "security"]

    def test_memory_record_and_summary(self, run, project, capsys):
        run("memory", "record", project, "--action", "security-fix", "--context", "api key", "--result", "moved")
        recorded = json.loads(capsys.readouterr().out)

        run("memory", "summary", project)

        assert recorded["action"] == "security-fix"
        assert read_context(project)["contextMemory"]["aiInteractions"][0]["action"] == "security-fix"
        assert "- security-fix: api key -> moved" in capsys.readouterr().out

    def test_memory_record_requires_action(self, run, project):
        assert exit_code(run, "memory", "record", project) == 1

    def test_report(self, run, project):
        out = project / "REPORT.md"

        run("report", project, "-o", out)

        text = out.read_text()
        assert text.startswith("# shop context report")
        assert "## Security" in text
        assert "## Continuity" in text
        assert "## Next steps" in text

    def test_init_templates(self, run, tmp_path):
        run("report", "--init-templates", tmp_path / "tpl")

        assert (tmp_path / "tpl" / "report.md.j2").exists()
