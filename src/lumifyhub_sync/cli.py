"""Command line entry point for lumifyhub-sync.

Reports go to stdout; log records and error messages go to stderr.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import requests
from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import (
    discover_config_files,
    ensure_config,
    load_hierarchical_config,
)
from .config_schema import UnifiedConfig, build_config, to_fallbacks
from .core.client import ApiError, LumifyClient
from .file_handler import read_file_with_encoding
from .logger import setup_logging
from .snapshot import GitSnapshotter
from .sync import (
    DatabaseStore,
    PageStore,
    SyncEngine,
    SyncReport,
    format_status_report,
    format_sync_report,
    report_to_json,
    status_to_json,
)
from .sync.models import SyncStatus
from .sync.reconcile import classify_database

logger = logging.getLogger(__name__)

REMOTE_COMMANDS = {
    "pull",
    "push",
    "new",
    "add",
    "whoami",
    "workspaces",
    "db pull",
    "db push",
}

NOTE_TITLE_WORDS = 5
NOTE_TITLE_LENGTH = 30


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lumifyhub-sync",
        description="Keep a local, editable mirror of LumifyHub pages and databases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Fetch everything into ~/.lumifyhub
  lumifyhub-sync pull

  # Show what was edited locally
  lumifyhub-sync status

  # Send local edits for one workspace
  lumifyhub-sync push --workspace acme

  # Overwrite local edits to one database with the remote version
  lumifyhub-sync db pull tasks --force

  # Capture a quick note in the only workspace
  lumifyhub-sync add Call the printer vendor about the lease
        """,
    )
    parser.add_argument("--api-url", help="Override the service URL")
    parser.add_argument(
        "--token",
        help="Override the access token (prefer LUMIFYHUB_TOKEN; visible in process list)",
    )
    parser.add_argument("--pages-dir", help="Override the page mirror root")
    parser.add_argument(
        "--databases-dir", help="Override the database mirror root"
    )
    parser.add_argument(
        "--no-git",
        action="store_true",
        help="Do not commit the mirror after changes",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"lumifyhub-sync version {__version__}",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    def add_common(sub: argparse.ArgumentParser, force: bool) -> None:
        sub.add_argument("-w", "--workspace", help="Limit to one workspace")
        sub.add_argument(
            "--json", action="store_true", help="Print a JSON document"
        )
        if force:
            sub.add_argument(
                "-f",
                "--force",
                action="store_true",
                help="Overwrite conflicting changes",
            )

    add_common(commands.add_parser("status", help="Show local changes"), False)
    add_common(commands.add_parser("pull", help="Pull pages and databases"), True)
    add_common(commands.add_parser("push", help="Push pages and databases"), True)

    new = commands.add_parser("new", help="Create a page remotely and locally")
    new.add_argument("title")
    new.add_argument("-w", "--workspace", help="Target workspace slug")
    source = new.add_mutually_exclusive_group()
    source.add_argument("--content", default="", help="Page body")
    source.add_argument("--from-file", help="Read the page body from a file")
    new.add_argument("--parent-id", help="Nest the page under this page")

    add = commands.add_parser("add", help="Capture a quick note as a new page")
    add.add_argument("text", nargs="+", help="Note text")
    add.add_argument("-w", "--workspace", help="Target workspace slug")

    search = commands.add_parser("search", help="Search local pages")
    search.add_argument("query")
    add_common(search, False)

    commands.add_parser("whoami", help="Show the account behind the token")
    commands.add_parser("workspaces", help="List remote workspaces")
    commands.add_parser("init-config", help="Create a starter config file")

    db = commands.add_parser("db", help="Database commands")
    db_commands = db.add_subparsers(dest="db_command", required=True)
    add_common(db_commands.add_parser("list", help="List local databases"), False)
    add_common(
        db_commands.add_parser("status", help="Show database changes"), False
    )
    for name, help_text in (
        ("pull", "Pull databases"),
        ("push", "Push database row changes"),
    ):
        sub = db_commands.add_parser(name, help=help_text)
        sub.add_argument(
            "slug", nargs="?", help="Database slug or slug prefix"
        )
        add_common(sub, name == "pull")

    return parser


def _command_name(args: argparse.Namespace) -> str:
    if args.command == "db":
        return f"db {args.db_command}"
    return args.command


# ---------------------------------------------------------------------------
# Runtime setup
# ---------------------------------------------------------------------------


def load_runtime(args: argparse.Namespace) -> tuple[Config, UnifiedConfig]:
    """Resolve configuration: CLI > env vars (.env) > YAML > defaults."""
    load_dotenv()

    unified = UnifiedConfig()
    if discover_config_files():
        unified = build_config(load_hierarchical_config())

    config = load_config(
        api_url=args.api_url,
        token=args.token,
        pages_dir=args.pages_dir,
        databases_dir=args.databases_dir,
        no_git=args.no_git,
        debug=args.debug,
        yaml_fallbacks=to_fallbacks(unified),
    )
    return config, unified


def build_engine(config: Config, client: Any = None) -> SyncEngine:
    return SyncEngine(
        client=client if client is not None else LumifyClient(config),
        database_store=DatabaseStore(config.databases_dir),
        page_store=PageStore(config.pages_dir),
    )


def snapshot(config: Config, report: SyncReport) -> None:
    """Commit the mirror roots after a pass that wrote files."""
    if not config.git_commit or not report.changed:
        return
    message = (
        "Pull from LumifyHub"
        if report.operation == "pull"
        else "Push to LumifyHub"
    )
    for root in (config.pages_dir, config.databases_dir):
        if root.is_dir():
            GitSnapshotter(root, timeout=config.timeout).commit_all(message)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _finish_report(
    args: argparse.Namespace, config: Config, report: SyncReport
) -> int:
    snapshot(config, report)
    if args.json:
        _print_json(report_to_json(report))
    else:
        print(format_sync_report(report))
    return 1 if report.errors else 0


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_status(args, config, engine) -> int:
    entries = engine.status(args.workspace)
    if args.command == "db":
        entries = [e for e in entries if e.row_count is not None]
    if args.json:
        _print_json(status_to_json(entries))
    else:
        print(format_status_report(entries))
    return 0


def cmd_pull(args, config, engine) -> int:
    if args.command == "db":
        report = engine.pull_databases(args.workspace, args.slug, args.force)
    else:
        report = engine.pull(args.workspace, args.force)
    return _finish_report(args, config, report)


def cmd_push(args, config, engine) -> int:
    if args.command == "db":
        report = engine.push_databases(args.workspace, args.slug)
    else:
        report = engine.push(args.workspace, args.force)
    return _finish_report(args, config, report)


def cmd_db_list(args, config, engine) -> int:
    databases = [
        db
        for db in engine.database_store.list_all()
        if args.workspace is None or db.workspace_slug == args.workspace
    ]
    summaries = [
        {
            "workspace": db.workspace_slug,
            "slug": db.slug,
            "title": db.schema_doc.title,
            "rows": len(db.rows),
            "properties": len(db.schema_doc.properties),
            "data_sources": len(db.schema_doc.data_sources),
            "modified": classify_database(db) == SyncStatus.MODIFIED,
        }
        for db in databases
    ]
    if args.json:
        _print_json(summaries)
        return 0
    if not summaries:
        print("No local databases found. Run 'lumifyhub-sync db pull' first.")
        return 0
    for s in summaries:
        marker = " *" if s["modified"] else ""
        print(f"{s['workspace']}/{s['slug']}: {s['title']}{marker}")
        print(f"  Rows: {s['rows']}  Properties: {s['properties']}")
        if s["data_sources"] > 1:
            print(f"  Data sources: {s['data_sources']}")
    return 0


def cmd_search(args, config, engine) -> int:
    hits = engine.page_store.search(args.query, args.workspace)
    if args.json:
        _print_json([hit.model_dump(mode="json") for hit in hits])
        return 0
    if not hits:
        print(f'No results found for "{args.query}"')
        return 0
    print(f'Found {len(hits)} result(s) for "{args.query}":')
    for hit in hits:
        print(f"  {hit.workspace_slug}/{hit.title}")
        print(f"    {hit.path}")
        for match in hit.matches:
            print(f"    ... {match}")
    return 0


def cmd_new(args, config, engine) -> int:
    content = args.content
    if args.from_file:
        try:
            content, _ = read_file_with_encoding(Path(args.from_file))
        except OSError as exc:
            print(f"Cannot read {args.from_file}: {exc}", file=sys.stderr)
            return 1

    workspace = _target_workspace(engine, args.workspace)
    if workspace is None:
        return 1

    local = engine.create_page(args.title, content, workspace, args.parent_id)
    print(f"Created: {args.title}")
    print(f"  Workspace: {workspace}")
    print(f"  Path: {local.path}")
    if config.git_commit:
        GitSnapshotter(config.pages_dir, timeout=config.timeout).commit_all(
            f"New page: {args.title}"
        )
    return 0


def note_title(text: str) -> str:
    """Title for a quick note: its first few words, shortened if long."""
    words = " ".join(text.split()[:NOTE_TITLE_WORDS])
    if len(words) > NOTE_TITLE_LENGTH:
        return words[:NOTE_TITLE_LENGTH] + "..."
    return words


def cmd_add(args, config, engine) -> int:
    text = " ".join(args.text).strip()
    if not text:
        print("Nothing to add.", file=sys.stderr)
        return 1

    workspace = _target_workspace(engine, args.workspace)
    if workspace is None:
        return 1

    title = note_title(text)
    local = engine.create_page(title, text, workspace)
    print(f"Added: {title}")
    print(f"  {local.path}")
    if config.git_commit:
        GitSnapshotter(config.pages_dir, timeout=config.timeout).commit_all(
            f"Quick note: {title}"
        )
    return 0


def _target_workspace(engine: SyncEngine, workspace: str | None) -> str | None:
    """Return *workspace*, or the only remote workspace when none is given."""
    if workspace:
        return workspace
    workspaces = engine.client.get_workspaces()
    if not workspaces:
        print("No workspaces found.", file=sys.stderr)
        return None
    if len(workspaces) > 1:
        print(
            "Several workspaces available; choose one with --workspace.",
            file=sys.stderr,
        )
        return None
    return workspaces[0]["slug"]


def cmd_whoami(args, config, engine) -> int:
    info = engine.client.validate_token()
    if not info.get("valid"):
        print(
            "Token rejected. Set a valid LUMIFYHUB_TOKEN or pass --token.",
            file=sys.stderr,
        )
        return 1
    print(f"Logged in as: {info.get('email') or 'unknown'}")
    print(f"  API: {config.api_url}")
    print(f"  Pages: {config.pages_dir}")
    print(f"  Databases: {config.databases_dir}")
    return 0


def cmd_workspaces(args, config, engine) -> int:
    workspaces = engine.client.get_workspaces()
    if not workspaces:
        print("No workspaces found.")
        return 0
    for ws in workspaces:
        slug = ws.get("slug") or "-".join(ws["name"].lower().split())
        print(f"  {ws['name']}")
        print(f"    -w {slug}")
    return 0


def cmd_init_config(args, config, engine) -> int:
    path = ensure_config()
    print(f"Config file: {path}")
    return 0


COMMANDS = {
    "status": cmd_status,
    "pull": cmd_pull,
    "push": cmd_push,
    "search": cmd_search,
    "new": cmd_new,
    "add": cmd_add,
    "whoami": cmd_whoami,
    "workspaces": cmd_workspaces,
    "init-config": cmd_init_config,
    "db list": cmd_db_list,
    "db status": cmd_status,
    "db pull": cmd_pull,
    "db push": cmd_push,
}


def main(argv: list[str] | None = None, client: Any = None) -> int:
    """Parse arguments, run one command and return the exit code.

    Args:
        argv: Arguments without the program name (default: ``sys.argv``).
        client: Remote client to use instead of a ``LumifyClient``.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    command = _command_name(args)

    try:
        config, unified = load_runtime(args)
    except ValueError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        debug=config.debug,
        log_file=args.log_file or unified.logging.file,
        debug_format=args.log_format,
        level=unified.logging.level,
    )

    if command in REMOTE_COMMANDS and client is None and not config.token:
        print(
            "Not authenticated. Set LUMIFYHUB_TOKEN or pass --token.",
            file=sys.stderr,
        )
        return 1

    engine = build_engine(config, client)
    try:
        return COMMANDS[command](args, config, engine)
    except (ApiError, requests.RequestException) as exc:
        logger.debug("Command %s failed", command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
