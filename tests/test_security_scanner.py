"""Tests for the security scanner."""

import logging

import pytest

from context_bridge.security import SecurityScanner, generate_security_config
from context_bridge.security.rules import FALLBACK_SUGGESTION


def rules_of(issues):
    return [i.rule for i in issues]


class TestPatternRules:
    """Declared and default regex patterns."""

    def test_hardcoded_api_key_single_issue(self, make_project):
        root = make_project({"app.js": 'const apiKey = "sk_live_abcdef1234567890";\n'})

        issues = SecurityScanner().scan_project(root)

        assert len(issues) == 1
        issue = issues[0]
        assert issue.rule == "hardcoded-api-key"
        assert issue.severity == "error"
        assert issue.file == "app.js"
        assert issue.line == 1
        assert issue.suggestion == "Move to environment variable: process.env.API_KEY"

    def test_every_matching_line_reported_once(self, make_project):
        root = make_project({
            "client.js": """
                const a = "http://example.com/a";
                const b = "https://example.com/b";
                const c = "http://example.com/c";
            """,
        })

        issues = SecurityScanner().scan_project(root)

        assert [(i.rule, i.line) for i in issues] == [("insecure-http", 1), ("insecure-http", 3)]
        assert all(i.severity == "warning" for i in issues)

    def test_localhost_http_allowed(self, make_project):
        root = make_project({"dev.js": 'const url = "http://localhost:3000/api";\n'})

        assert SecurityScanner().scan_project(root) == []

    def test_patterns_are_case_insensitive(self, make_project):
        root = make_project({"config.py": 'PASSWORD = "hunter22"\n'})

        issues = SecurityScanner().scan_project(root)

        assert rules_of(issues) == ["hardcoded-password"]

    def test_declared_patterns_replace_defaults(self, make_project):
        context = {
            "security": {
                "patterns": [{
                    "name": "todo-marker",
                    "pattern": r"TODO",
                    "severity": "info",
                    "message": "Unfinished work",
                }],
            },
        }
        root = make_project({
            "app.js": """
                const apiKey = "sk_live_abcdef1234567890";
                // todo: rotate
            """,
        })

        issues = SecurityScanner(context).scan_project(root)

        assert rules_of(issues) == ["todo-marker"]
        assert issues[0].line == 2
        assert issues[0].suggestion == FALLBACK_SUGGESTION

    def test_empty_declared_patterns_disable_pattern_rules(self, make_project):
        root = make_project({"app.js": 'const apiKey = "sk_live_abcdef1234567890";\n'})

        assert SecurityScanner({"security": {"patterns": []}}).scan_project(root) == []

    def test_invalid_pattern_skipped(self, make_project, caplog):
        context = {
            "security": {
                "patterns": [
                    {"name": "broken", "pattern": "(", "severity": "error", "message": "x"},
                    {"name": "eval-marker", "pattern": "danger", "severity": "error", "message": "y"},
                ],
            },
        }
        root = make_project({"a.js": "danger\n"})

        with caplog.at_level(logging.WARNING):
            scanner = SecurityScanner(context)

        assert "broken" in caplog.text
        assert rules_of(scanner.scan_project(root)) == ["eval-marker"]


class TestBuiltinChecks:
    """Checks that run regardless of declared patterns."""

    def test_missing_gitignore(self, make_project):
        root = make_project({}, gitignore=False)

        issues = SecurityScanner().scan_project(root)

        assert len(issues) == 1
        assert issues[0].rule == "missing-gitignore"
        assert issues[0].severity == "warning"
        assert issues[0].line is None
        assert "line" not in issues[0].to_dict()

    def test_gitignore_without_env(self, make_project):
        root = make_project({".gitignore": "node_modules\n"}, gitignore=False)

        issues = SecurityScanner().scan_project(root)

        assert rules_of(issues) == ["gitignore-env-missing"]
        assert issues[0].severity == "error"

    def test_gitignore_with_non_utf8_bytes(self, make_project):
        root = make_project({"app.js": "eval(x)\n"}, gitignore=False)
        (root / ".gitignore").write_bytes(b"# caf\xe9\n.env\n")

        issues = SecurityScanner().scan_project(root)

        assert [(i.file, i.rule) for i in issues] == [("app.js", "eval-usage")]

    def test_env_file_with_real_credentials(self, make_project):
        root = make_project({
            ".env": """
                # local settings
                API_SECRET=abcdefghijklmnop
                STRIPE_TOKEN=your_token_here_please
                DB_HOST=db.internal.example
                PORT=3000
            """,
        })

        issues = SecurityScanner().scan_project(root)

        assert [(i.rule, i.line) for i in issues] == [("env-file-security", 2)]

    def test_vulnerable_dependency(self, make_project):
        root = make_project({
            "package.json": """
                {
                  "name": "shop",
                  "dependencies": {
                    "react": "^18.0.0",
                    "lodash": "^4.17.0"
                  }
                }
            """,
        })

        issues = SecurityScanner().scan_project(root)

        assert [(i.rule, i.line) for i in issues] == [("vulnerable-dependency", 5)]
        assert "lodash" in issues[0].message

    def test_invalid_package_json_is_not_an_issue(self, make_project):
        root = make_project({"package.json": "{ not json"})

        assert SecurityScanner().scan_project(root) == []

    @pytest.mark.parametrize("line, rule", [
        ("const x = eval(input);", "eval-usage"),
        ("document.write(html);", "document-write"),
        ("console.log('token', token);", "console-log-sensitive"),
        ("if (user.isAdmin || bypass) {", "auth-bypass-pattern"),
        ("res.json({ user, secret: user.secret });", "data-exposure"),
        ("db.query('SELECT * FROM users');", "sql-data-exposure"),
    ])
    def test_line_checks(self, make_project, line, rule):
        root = make_project({"server.js": line + "\n"})

        assert rule in rules_of(SecurityScanner().scan_project(root))

    def test_hardcoded_admin(self, make_project):
        root = make_project({"seed.js": "createUser('admin', { password })\n"})

        assert rules_of(SecurityScanner().scan_project(root)) == ["hardcoded-admin"]


class TestProjectScan:
    """Whole-project behavior."""

    def test_scan_is_idempotent(self, make_project):
        root = make_project({
            "app.js": 'const apiKey = "sk_live_abcdef1234567890";\n',
            "lib/net.ts": 'fetch("http://example.com")\n',
            "server.py": "eval(data)\n",
        })
        scanner = SecurityScanner()

        first = scanner.scan_project(root)
        second = scanner.scan_project(root)

        assert set(first) == set(second)
        assert len(first) == len(second) == 3

    def test_excluded_directories_skipped(self, make_project):
        root = make_project({
            "node_modules/pkg/index.js": 'const apiKey = "sk_live_abcdef1234567890";\n',
            "dist/bundle.js": "eval(x)\n",
            "app.min.js": "eval(x)\n",
        })

        assert SecurityScanner().scan_project(root) == []

    def test_root_inside_excluded_directory_name(self, tmp_path):
        root = tmp_path / "build" / "proj"
        root.mkdir(parents=True)
        (root / ".gitignore").write_text(".env\n")
        (root / "app.js").write_text('const apiKey = "sk_live_abcdef1234567890";\n')
        (root / "dist").mkdir()
        (root / "dist" / "out.js").write_text("eval(x)\n")

        issues = SecurityScanner().scan_project(root)

        assert [(i.file, i.rule) for i in issues] == [("app.js", "hardcoded-api-key")]

    def test_config_exclude_adds_directories(self, make_project):
        root = make_project({"vendor/lib.js": "eval(x)\n"})
        config = {"scan": {"workers": 2, "exclude": ["vendor"]}}

        assert SecurityScanner(config=config).scan_project(root) == []

    def test_only_relevant_files_scanned(self, make_project):
        root = make_project({
            "README.md": "eval(x)\n",
            "notes.txt": 'apiKey = "sk_live_abcdef1234567890"\n',
        })

        assert SecurityScanner().scan_project(root) == []

    def test_undecodable_file_skipped(self, make_project, caplog):
        root = make_project({"ok.js": "eval(x)\n"})
        (root / "bad.js").write_bytes(b"\xff\xfe\xfa eval(")

        with caplog.at_level(logging.WARNING):
            issues = SecurityScanner().scan_project(root)

        assert [(i.file, i.rule) for i in issues] == [("ok.js", "eval-usage")]
        assert "bad.js" in caplog.text

    def test_nested_paths_are_relative_posix(self, make_project):
        root = make_project({"src/api/client.js": "eval(x)\n"})

        issues = SecurityScanner().scan_project(root)

        assert issues[0].file == "src/api/client.js"

    def test_scan_file_without_root(self, make_project):
        root = make_project({"a.js": "eval(x)\n"})

        issues = SecurityScanner().scan_file(root / "a.js")

        assert issues[0].file == (root / "a.js").as_posix()


class TestSecurityPresets:
    def test_ecommerce(self):
        config = generate_security_config("e-commerce")

        names = [p["name"] for p in config["security"]["patterns"]]
        assert "pci-compliance-check" in names
        assert "hardcoded-api-key" in names
        assert config["security"]["rules"]["enforceHttps"] is True
        assert config["authentication"]["config"]["expiry"] == "15m"

    def test_healthcare_has_no_authentication_preset(self):
        config = generate_security_config("healthcare")

        assert "hipaa-compliance" in [p["name"] for p in config["security"]["patterns"]]
        assert "authentication" not in config

    def test_unknown_type(self):
        assert generate_security_config("game") == {}

    def test_static_method_on_scanner(self):
        assert SecurityScanner.generate_security_config("financial") == generate_security_config("financial")

    def test_preset_patterns_are_used_by_scanner(self, make_project):
        root = make_project({"bank.js": "const routing_number = input;\n"})
        context = generate_security_config("financial")

        issues = SecurityScanner(context).scan_project(root)

        assert "financial-data" in rules_of(issues)
