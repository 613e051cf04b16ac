"""OpenCat CLI — main entry point.

Commands:
  init      Create the knowledge base and a project .opencat/ directory
  save      Save a code pattern
  list      List saved patterns
  search    Search saved patterns
  show      Show a saved pattern
  delete    Delete a saved pattern
  stats     Show knowledge base statistics
  context   Print the enriched prompt for a request
  config    View and update project settings
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from opencat.errors import OpenCatError


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="opencat",
        description="OpenCat — local code pattern knowledge base and prompt builder",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    # init
    init_parser = subparsers.add_parser("init", help="Initialize the knowledge base")
    init_parser.add_argument("path", nargs="?", default=".", help="Project directory")

    # save
    save_parser = subparsers.add_parser("save", help="Save a code pattern")
    save_parser.add_argument("name", help="Pattern name")
    save_parser.add_argument("--language", default="unknown", help="Language tag")
    save_parser.add_argument(
        "--kind",
        default="component",
        choices=["controller", "service", "repository", "component"],
        help="Architectural role",
    )
    save_parser.add_argument("--file", help="Read code from this file (default: stdin)")
    save_parser.add_argument("--description", default="", help="Free-text description")
    save_parser.add_argument("--tag", action="append", default=[], help="Tag (repeatable)")
    save_parser.add_argument("--query", default="", help="Query that produced this pattern")

    # list
    subparsers.add_parser("list", help="List saved patterns")

    # search
    search_parser = subparsers.add_parser("search", help="Search saved patterns")
    search_parser.add_argument("query", help="Case-insensitive substring")

    # show
    show_parser = subparsers.add_parser("show", help="Show a saved pattern")
    show_parser.add_argument("id", help="Pattern id")

    # delete
    delete_parser = subparsers.add_parser("delete", help="Delete a saved pattern")
    delete_parser.add_argument("id", help="Pattern id")

    # stats
    subparsers.add_parser("stats", help="Show knowledge base statistics")

    # context
    context_parser = subparsers.add_parser("context", help="Print the enriched prompt for a request")
    context_parser.add_argument("query", help="Free-text request")
    context_parser.add_argument(
        "--no-workspace", action="store_true", help="Use saved patterns only"
    )

    # config
    config_parser = subparsers.add_parser("config", help="View and update project settings")
    config_parser.add_argument(
        "action", choices=["show", "get", "set"], help="Action to perform"
    )
    config_parser.add_argument("key", nargs="?", help="Setting key (for get/set)")
    config_parser.add_argument("value", nargs="?", help="Setting value (for set)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "init": cmd_init,
        "save": cmd_save,
        "list": cmd_list,
        "search": cmd_search,
        "show": cmd_show,
        "delete": cmd_delete,
        "stats": cmd_stats,
        "context": cmd_context,
        "config": cmd_config,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except OpenCatError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _project_root() -> Path:
    from opencat.utils.paths import find_project_root

    return find_project_root() or Path.cwd()


def _open_store(project_root: Path):
    from opencat.config import load_settings
    from opencat.kb.store import PatternStore

    settings = load_settings(project_root)
    store = PatternStore(settings.storage_path)
    store.initialize()
    return store


def _summary_line(pattern) -> str:
    tags = f" [{', '.join(pattern.tags)}]" if pattern.tags else ""
    return f"{pattern.id}  {pattern.name} ({pattern.kind.value}, {pattern.language}){tags}"


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize the knowledge base and the project directory."""
    from opencat.config import OpenCatSettings, save_settings
    from opencat.utils.paths import get_opencat_dir, get_project_settings_path

    project_dir = Path(args.path).resolve()
    project_dir.mkdir(parents=True, exist_ok=True)
    get_opencat_dir(project_dir)

    settings_path = get_project_settings_path(project_dir)
    if not settings_path.exists():
        save_settings(OpenCatSettings(), settings_path)

    store = _open_store(project_dir)
    print(f"OpenCat KB ready at {store.path}")
    return 0


def cmd_save(args: argparse.Namespace) -> int:
    """Save a pattern from a file or stdin."""
    from pydantic import ValidationError

    from opencat.kb.models import PatternDraft

    if args.file:
        try:
            code = Path(args.file).read_text(encoding="utf-8")
        except OSError as e:
            print(f"Cannot read {args.file}: {e}", file=sys.stderr)
            return 1
    else:
        code = sys.stdin.read()

    try:
        draft = PatternDraft(
            name=args.name,
            language=args.language,
            kind=args.kind,
            code=code,
            description=args.description,
            origin_query=args.query,
            tags=args.tag,
        )
    except ValidationError as e:
        print(f"Invalid pattern: {e}", file=sys.stderr)
        return 1

    store = _open_store(_project_root())
    pattern = store.save(draft)
    print(f"Saved {pattern.name} as {pattern.id}")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """List all saved patterns in insertion order."""
    store = _open_store(_project_root())
    patterns = store.get_all()
    if not patterns:
        print("No saved patterns.")
        return 0
    for pattern in patterns:
        print(_summary_line(pattern))
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    """Search saved patterns."""
    store = _open_store(_project_root())
    patterns = store.search(args.query)
    if not patterns:
        print(f"No patterns match '{args.query}'.")
        return 0
    for pattern in patterns:
        print(_summary_line(pattern))
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """Print one pattern as JSON."""
    from opencat.errors import PatternNotFound

    store = _open_store(_project_root())
    pattern = store.get(args.id)
    if pattern is None:
        raise PatternNotFound(args.id)
    print(pattern.to_json(), end="")
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete a pattern. Unknown ids are not an error."""
    store = _open_store(_project_root())
    if store.delete(args.id):
        print(f"Deleted {args.id}")
    else:
        print(f"No pattern {args.id}; nothing to delete")
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    """Show pattern count and storage path."""
    store = _open_store(_project_root())
    stats = store.get_stats()
    print(f"Patterns:     {stats.pattern_count}")
    print(f"Storage:      {stats.path}")
    print(f"Last updated: {stats.last_updated}")
    return 0


def cmd_context(args: argparse.Namespace) -> int:
    """Print the enriched prompt for a request against the current workspace."""
    from opencat.config import load_settings
    from opencat.context.assembler import ContextAssembler
    from opencat.kb.store import PatternStore
    from opencat.source.workspace import FileSystemWorkspace

    project_root = _project_root()
    settings = load_settings(project_root)

    workspace = None
    if not args.no_workspace:
        workspace = FileSystemWorkspace(
            project_root,
            patterns=settings.include_patterns,
            exclude_globs=settings.exclude_globs,
            max_files=settings.max_files,
        )

    assembler = ContextAssembler(
        store=PatternStore(settings.storage_path),
        workspace=workspace,
        pattern_limit=settings.pattern_limit,
        structural_limit=settings.structural_limit,
    )
    print(assembler.build_context(args.query))
    return 0


ALLOWED_CONFIG_KEYS = {
    "storage_dir",
    "max_files",
    "pattern_limit",
    "structural_limit",
}

INT_CONFIG_KEYS = {"max_files", "pattern_limit", "structural_limit"}


def _is_config_key(key: str) -> bool:
    if key in ALLOWED_CONFIG_KEYS:
        return True
    allowed = ", ".join(sorted(ALLOWED_CONFIG_KEYS))
    print(f"Unknown key: {key}. Allowed keys: {allowed}", file=sys.stderr)
    return False


def _coerce_config_value(key: str, raw: str) -> str | int:
    """Parse raw as the type key expects. Raises ValueError."""
    if key in INT_CONFIG_KEYS:
        try:
            return int(raw)
        except ValueError:
            raise ValueError(f"{key} must be an integer") from None
    return raw


def _config_set(project_root: Path, key: str, raw: str) -> int:
    from opencat.config import load_json_file, load_settings, validate_settings
    from opencat.utils.paths import get_project_settings_path

    try:
        value = _coerce_config_value(key, raw)
    except ValueError as e:
        print(e, file=sys.stderr)
        return 1

    # check the merged result before touching the project file
    candidate = load_settings(project_root)
    setattr(candidate, key, value)
    errors = validate_settings(candidate)
    for err in errors:
        print(f"Validation error: {err}", file=sys.stderr)
    if errors:
        return 1

    # only the project-level overrides are written back
    settings_path = get_project_settings_path(project_root)
    overrides = load_json_file(settings_path)
    overrides[key] = value
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings_path.write_text(json.dumps(overrides, indent=2) + "\n", encoding="utf-8")
    print(f"{key} = {value}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """View and update project settings."""
    from opencat.config import load_settings

    project_root = _project_root()

    if args.action == "show":
        print(json.dumps(load_settings(project_root).to_dict(), indent=2))
        return 0

    if args.action == "get":
        if not args.key:
            print("Usage: opencat config get <key>", file=sys.stderr)
            return 1
        if not _is_config_key(args.key):
            return 1
        value = getattr(load_settings(project_root), args.key)
        print("" if value is None else value)
        return 0

    if args.action == "set":
        if not args.key or args.value is None:
            print("Usage: opencat config set <key> <value>", file=sys.stderr)
            return 1
        if not _is_config_key(args.key):
            return 1
        return _config_set(project_root, args.key, args.value)

    return 1


if __name__ == "__main__":
    sys.exit(main())
