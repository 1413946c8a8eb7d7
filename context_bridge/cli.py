"""
CLI interface for context_bridge.

Provides the command-line interface for scanning and maintaining a project
context.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from context_bridge import __version__
from context_bridge.config import (
    DEFAULT_CONFIG,
    ConfigError,
    get_config_template,
    load_config,
)
from context_bridge.context import ContextError, ContextStore
from context_bridge.continuity import ContinuityAnalyzer, apply_patch
from context_bridge.memory import ContextMemory
from context_bridge.report import ReportRenderer, create_template_dir
from context_bridge.security import SecurityScanner, generate_security_config
from context_bridge.validator import ContextValidator
from context_bridge.watcher import watch_and_scan

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


MEMORY_ACTIONS = ("summary", "insights", "record", "cleanup")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="context-bridge",
        description="Keep a project context in sync with the code it describes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
QUICK START
  context-bridge init .                  # Create .project-context.yaml
  context-bridge scan . -o issues.json   # Security scan
  context-bridge continuity .            # Frontend/backend consistency
  context-bridge report . -o REPORT.md   # Markdown report

WORKFLOW
1. Init:     context-bridge init . --app-type e-commerce
2. Check:    context-bridge scan . --strict && context-bridge validate . --strict
3. Fix:      context-bridge fix .
4. Sync:     context-bridge update .
5. Remember: context-bridge memory record . --action scan --result "3 issues"
        """,
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"context_bridge {__version__}",
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="Path to YAML config file (use 'context-bridge config' to generate a template)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    def add_path(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "path",
            nargs="?",
            default=".",
            help="Project root (default: current directory)",
        )

    def add_output(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "-o", "--output",
            help="Output file (default: stdout)",
        )

    # init
    init = subparsers.add_parser("init", help="Create the project context file")
    add_path(init)
    init.add_argument("--name", help="Project name (default: directory name)")
    init.add_argument("--type", dest="project_type", help="Project type, e.g. web-app or api")
    init.add_argument("--description", help="Project description")
    init.add_argument(
        "--app-type",
        help="Security preset: e-commerce, healthcare or financial",
    )

    # scan
    scan = subparsers.add_parser("scan", help="Scan the project for security issues")
    add_path(scan)
    add_output(scan)
    scan.add_argument(
        "--format",
        choices=("json", "markdown"),
        default="json",
        help="Output format (default: json)",
    )
    scan.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 when any error-severity issue is found",
    )

    # fix
    fix = subparsers.add_parser("fix", help="Auto-fix insecure URLs and hardcoded API keys")
    add_path(fix)
    add_output(fix)

    # continuity
    continuity = subparsers.add_parser(
        "continuity",
        help="Check frontend and backend against the project context",
    )
    add_path(continuity)
    add_output(continuity)
    continuity.add_argument(
        "--format",
        choices=("json", "markdown"),
        default="json",
        help="Output format (default: json)",
    )
    continuity.add_argument(
        "--generate",
        action="store_true",
        help="Also propose endpoints for frontend calls with no declared endpoint",
    )

    # update
    update = subparsers.add_parser("update", help="Update the context from discovered code")
    add_path(update)
    update.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the patch without saving it",
    )

    # validate
    validate = subparsers.add_parser("validate", help="Validate the project context")
    add_path(validate)
    add_output(validate)
    validate.add_argument(
        "--schema",
        metavar="FILE",
        help="JSON schema to validate against (default: bundled schema)",
    )
    validate.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 when the context is invalid",
    )

    # memory
    memory = subparsers.add_parser("memory", help="Query or record interaction memory")
    memory.add_argument("memory_action", choices=MEMORY_ACTIONS, help="What to do")
    add_path(memory)
    add_output(memory)
    memory.add_argument("--action", dest="interaction", help="Interaction name (record)")
    memory.add_argument("--context", dest="interaction_context", default="", help="What was asked (record)")
    memory.add_argument("--result", dest="interaction_result", default="", help="What came out (record)")
    memory.add_argument(
        "--days",
        type=int,
        default=30,
        help="Days of interactions to keep (cleanup, default: 30)",
    )

    # report
    report = subparsers.add_parser("report", help="Render a Markdown report")
    add_path(report)
    add_output(report)
    report.add_argument(
        "--templates",
        metavar="DIR",
        help="Directory with custom templates overriding the built-in ones",
    )
    report.add_argument(
        "--init-templates",
        metavar="DIR",
        help="Write the built-in templates to DIR and exit",
    )

    # watch
    watch = subparsers.add_parser("watch", help="Re-scan files as they change")
    add_path(watch)
    watch.add_argument(
        "--debounce",
        type=float,
        default=1.0,
        help="Seconds between two scans of the same file (default: 1.0)",
    )

    # config
    subparsers.add_parser("config", help="Print a configuration template")

    return parser


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def main() -> None:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args()

    setup_logging(args.verbose)

    if args.command == "config":
        print(get_config_template())
        return

    config = load_cli_config(args.config, args.verbose)

    if args.command == "report" and args.init_templates:
        create_template_dir(Path(args.init_templates))
        print(f"Templates written to: {args.init_templates}", file=sys.stderr)
        return

    root = resolve_root(args.path)
    store = ContextStore(root)

    handlers = {
        "init": cmd_init,
        "scan": cmd_scan,
        "fix": cmd_fix,
        "continuity": cmd_continuity,
        "update": cmd_update,
        "validate": cmd_validate,
        "memory": cmd_memory,
        "report": cmd_report,
        "watch": cmd_watch,
    }
    handlers[args.command](args, root, store, config)


def load_cli_config(config_path: str | None, verbose: bool) -> dict[str, Any]:
    """Load the --config file, or the defaults when none is given."""
    if not config_path:
        return DEFAULT_CONFIG

    path = Path(config_path)
    if not path.exists():
        print(f"Error: Config file '{path}' does not exist", file=sys.stderr)
        sys.exit(1)
    try:
        config = load_config(path)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if verbose:
        print(f"Loaded config: {path}", file=sys.stderr)
    return config


def resolve_root(path: str) -> Path:
    root = Path(path).resolve()
    if not root.is_dir():
        print(f"Error: Path '{root}' does not exist", file=sys.stderr)
        sys.exit(1)
    return root


def load_context(store: ContextStore) -> dict[str, Any]:
    """Load the project context, exiting with status 1 when it is unusable."""
    try:
        return store.load()
    except ContextError as e:
        print(f"Error: {e}", file=sys.stderr)
        if not store.exists():
            print("Run 'context-bridge init' first", file=sys.stderr)
        sys.exit(1)


def load_context_if_present(store: ContextStore) -> dict[str, Any] | None:
    if not store.exists():
        return None
    return load_context(store)


def write_output(data: Any, output: str | None, verbose: bool = False) -> None:
    """Print data (JSON unless it is already a string) or write it to a file."""
    text = data if isinstance(data, str) else json.dumps(data, indent=2, default=str)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
            if not text.endswith("\n"):
                f.write("\n")
        if verbose:
            print(f"Output written to: {output}", file=sys.stderr)
    else:
        print(text)


def cmd_init(args: argparse.Namespace, root: Path, store: ContextStore, config: dict[str, Any]) -> None:
    project: dict[str, Any] = {}
    if args.name:
        project["name"] = args.name
    if args.project_type:
        project["type"] = args.project_type
    if args.description:
        project["description"] = args.description

    project_info: dict[str, Any] = {"project": project} if project else {}
    if args.app_type:
        preset = generate_security_config(args.app_type)
        if not preset:
            print(f"Error: Unknown app type '{args.app_type}'", file=sys.stderr)
            sys.exit(1)
        project_info.update(preset)

    existed = store.exists()
    context = store.initialize(project_info or None)
    status = "exists" if existed else "created"
    print(f"Project context {status}: {store.path()}", file=sys.stderr)
    if args.verbose:
        write_output(context, None)


def cmd_scan(args: argparse.Namespace, root: Path, store: ContextStore, config: dict[str, Any]) -> None:
    context = load_context_if_present(store)
    scanner = SecurityScanner(context, config)
    issues = scanner.scan_project(root)

    if args.verbose:
        print(f"Scanned: {root} ({len(issues)} issue(s))", file=sys.stderr)

    if args.format == "markdown":
        write_output(ReportRenderer().render_security(issues), args.output, args.verbose)
    else:
        write_output([i.to_dict() for i in issues], args.output, args.verbose)

    if args.strict and any(i.severity == "error" for i in issues):
        sys.exit(1)


def cmd_fix(args: argparse.Namespace, root: Path, store: ContextStore, config: dict[str, Any]) -> None:
    context = load_context_if_present(store)
    scanner = SecurityScanner(context, config)
    issues = scanner.scan_project(root)
    fixed = scanner.auto_fix(root, issues)

    print(f"Fixed {len(fixed)} of {len(issues)} issue(s)", file=sys.stderr)
    write_output([i.to_dict() for i in fixed], args.output, args.verbose)


def cmd_continuity(args: argparse.Namespace, root: Path, store: ContextStore, config: dict[str, Any]) -> None:
    context = load_context(store)
    analyzer = ContinuityAnalyzer(context, config)
    issues = analyzer.check_continuity(root)

    if args.format == "markdown":
        write_output(ReportRenderer().render_continuity(issues), args.output, args.verbose)
        return

    result: Any = [i.to_dict() for i in issues]
    if args.generate:
        missing = analyzer.generate_missing_endpoints(analyzer.discover_frontend_calls(root))
        result = {
            "issues": result,
            "missing_endpoints": [e.to_dict() for e in missing],
        }
    write_output(result, args.output, args.verbose)


def cmd_update(args: argparse.Namespace, root: Path, store: ContextStore, config: dict[str, Any]) -> None:
    context = load_context(store)
    patch = ContinuityAnalyzer(context, config).update_context_from_code(root)

    if patch.is_empty():
        print("Nothing discovered, context unchanged", file=sys.stderr)
        return

    if args.dry_run:
        write_output(patch.to_dict(), None)
        return

    updated = apply_patch(context, patch)
    path = store.save(updated)
    print(f"Updated {', '.join(patch.sections())} in {path}", file=sys.stderr)


def cmd_validate(args: argparse.Namespace, root: Path, store: ContextStore, config: dict[str, Any]) -> None:
    context = load_context(store)
    if args.schema:
        schema_path = Path(args.schema)
        if not schema_path.exists():
            print(f"Error: Schema file '{schema_path}' does not exist", file=sys.stderr)
            sys.exit(1)
        validator = ContextValidator.from_schema_file(schema_path)
    else:
        validator = ContextValidator.from_schema_file()

    result = validator.validate(context)
    write_output(result.to_dict(), args.output, args.verbose)

    if args.strict and not result.valid:
        sys.exit(1)


def cmd_memory(args: argparse.Namespace, root: Path, store: ContextStore, config: dict[str, Any]) -> None:
    context = load_context(store)
    memory = ContextMemory.from_config(context, config)

    if args.memory_action == "summary":
        write_output(memory.get_context_summary(), args.output, args.verbose)
    elif args.memory_action == "insights":
        write_output(memory.get_learning_insights(), args.output, args.verbose)
    elif args.memory_action == "record":
        if not args.interaction:
            print("Error: memory record requires --action", file=sys.stderr)
            sys.exit(1)
        interaction = memory.record_interaction(
            args.interaction,
            args.interaction_context,
            args.interaction_result,
        )
        store.save(context)
        write_output(interaction.to_dict(), args.output, args.verbose)
    else:
        removed = memory.cleanup_old_interactions(args.days)
        store.save(context)
        print(f"Removed {removed} interaction(s) older than {args.days} day(s)", file=sys.stderr)


def cmd_report(args: argparse.Namespace, root: Path, store: ContextStore, config: dict[str, Any]) -> None:
    context = load_context_if_present(store)
    security = SecurityScanner(context, config).scan_project(root)

    continuity = None
    insights = None
    if context is not None:
        continuity = ContinuityAnalyzer(context, config).check_continuity(root)
        insights = ContextMemory.from_config(context, config).get_learning_insights()

    template_dir = Path(args.templates) if args.templates else None
    renderer = ReportRenderer(template_dir)
    markdown = renderer.render_report(
        context or {"project": {"name": root.name}},
        security=security,
        continuity=continuity,
        insights=insights,
    )
    write_output(markdown, args.output, args.verbose)


def cmd_watch(args: argparse.Namespace, root: Path, store: ContextStore, config: dict[str, Any]) -> None:
    scanner = SecurityScanner(load_context_if_present(store), config)

    def rescan(path: Path) -> None:
        issues = scanner.scan_file(path, root)
        if not issues:
            print("[watch] No issues", flush=True)
            return
        for issue in issues:
            print(
                f"[watch] {issue.severity}: {issue.file}:{issue.line or '-'} "
                f"{issue.rule} - {issue.message}",
                flush=True,
            )

    watch_and_scan(
        root,
        rescan,
        debounce_seconds=args.debounce,
        exclude=scanner.exclude,
    )
