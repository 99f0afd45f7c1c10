"""
snipstore command line

Builds a SnippetStore from configuration and runs one operation on it.

Usage:
    snipstore list [--query Q] [--language L] [--tag T]
    snipstore add --title T --language L --code-file main.py [--tags "a, b"]
    snipstore update <id> --title "New title"
    snipstore export --output backup.json
    snipstore import backup.json --yes
    snipstore --help
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from uuid import uuid4

from snipstore.config import StoreConfig
from snipstore.observability import LogContext, configure_logging
from snipstore.schemas import Snippet
from snipstore.store import SnippetStore, export_filename, parse_tags
from snipstore.vocabulary import BackendKind, LogFormat


def format_snippet_line(snippet: Snippet) -> str:
    """One-line summary used by list-style commands."""
    tags = " ".join(f"#{tag}" for tag in snippet.tags)
    line = f"{snippet.id}  [{snippet.language}] {snippet.title}"
    return f"{line}  {tags}" if tags else line


def print_snippets(snippets: tuple[Snippet, ...]) -> None:
    if not snippets:
        print("No snippets found.")
        return
    for snippet in snippets:
        print(format_snippet_line(snippet))


def read_code(args: argparse.Namespace) -> str | None:
    if args.code_file is not None:
        return Path(args.code_file).read_text(encoding="utf-8")
    return args.code


def cmd_list(store: SnippetStore, args: argparse.Namespace) -> bool:
    print_snippets(store.filter(args.query or "", args.language, args.tag))
    return True


def cmd_search(store: SnippetStore, args: argparse.Namespace) -> bool:
    print_snippets(store.search(args.query))
    return True


def cmd_show(store: SnippetStore, args: argparse.Namespace) -> bool:
    snippet = store.get_by_id(args.id)
    if snippet is None:
        print(f"[FAIL] - No snippet with id {args.id}")
        return False
    print(json.dumps(snippet.to_record(), ensure_ascii=False, indent=2))
    return True


def cmd_add(store: SnippetStore, args: argparse.Namespace) -> bool:
    fields = {
        "title": args.title,
        "language": args.language,
        "tags": parse_tags(args.tags),
        "description": args.description or "",
        "code": read_code(args),
    }
    if not store.add(fields):
        print("[FAIL] - Failed to save snippet")
        return False
    print(f"[OK] - Saved {format_snippet_line(store.list()[-1])}")
    return True


def cmd_update(store: SnippetStore, args: argparse.Namespace) -> bool:
    fields = {}
    for name in ("title", "language", "description"):
        value = getattr(args, name)
        if value is not None:
            fields[name] = value
    if args.tags is not None:
        fields["tags"] = parse_tags(args.tags)
    code = read_code(args)
    if code is not None:
        fields["code"] = code

    if not store.update(args.id, fields):
        print(f"[FAIL] - Failed to update snippet {args.id}")
        return False
    print(f"[OK] - Updated {format_snippet_line(store.get_by_id(args.id))}")
    return True


def cmd_delete(store: SnippetStore, args: argparse.Namespace) -> bool:
    if not store.delete(args.id):
        print(f"[FAIL] - Failed to delete snippet {args.id}")
        return False
    print(f"[OK] - Deleted {args.id}")
    return True


def cmd_tags(store: SnippetStore, args: argparse.Namespace) -> bool:
    for tag in store.get_all_tags():
        print(tag)
    return True


def cmd_languages(store: SnippetStore, args: argparse.Namespace) -> bool:
    for language in store.get_all_languages():
        print(language)
    return True


def cmd_export(store: SnippetStore, args: argparse.Namespace) -> bool:
    data = store.export_data()
    if args.output is None:
        print(data)
        return True
    output = Path(args.output)
    if output.is_dir():
        output = output / export_filename()
    output.write_text(data + "\n", encoding="utf-8")
    print(f"[OK] - Exported {store.count()} snippet(s) to {output}")
    return True


def cmd_import(store: SnippetStore, args: argparse.Namespace) -> bool:
    filepath = Path(args.file)
    if not filepath.exists():
        print(f"[ERROR] File not found: {filepath}")
        return False
    if not args.yes and store.count():
        print(
            f"[FAIL] - Import replaces all {store.count()} existing snippet(s); "
            "pass --yes to confirm"
        )
        return False
    if not store.import_data(filepath.read_text(encoding="utf-8")):
        print("[FAIL] - Failed to import snippets. Please check the file format.")
        return False
    print(f"[OK] - Imported {store.count()} snippet(s)")
    return True


def cmd_seed(store: SnippetStore, args: argparse.Namespace) -> bool:
    if not store.seed_samples():
        print("[FAIL] - Sample snippets are only added to an empty collection")
        return False
    print(f"[OK] - Added {store.count()} sample snippet(s)")
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snipstore",
        description="snipstore - Local code snippet manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Add a snippet from a file
  snipstore add --title "List comprehension" --language python --code-file sq.py

  # Filter by language and tag
  snipstore list --language python --tag list

  # Back up and restore
  snipstore export --output .
  snipstore import code-snippets-2026-10-17.json --yes
        """
    )
    parser.add_argument(
        "--backend",
        choices=[kind.value for kind in BackendKind],
        help="Persistence backend (default: $SNIPSTORE_BACKEND or file)"
    )
    parser.add_argument(
        "--path",
        type=Path,
        help="Slot directory or database file (default: $SNIPSTORE_PATH or ~/.snipstore)"
    )
    parser.add_argument(
        "--key",
        help="Slot name (default: $SNIPSTORE_KEY or codeSnippets)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log store activity to stderr"
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p = subparsers.add_parser("list", help="List snippets, optionally filtered")
    p.add_argument("--query", "-q", help="Free-text search")
    p.add_argument("--language", "-l", help="Exact language")
    p.add_argument("--tag", "-t", help="Required tag")
    p.set_defaults(handler=cmd_list)

    p = subparsers.add_parser("search", help="Search title, description, code and tags")
    p.add_argument("query")
    p.set_defaults(handler=cmd_search)

    p = subparsers.add_parser("show", help="Print one snippet as JSON")
    p.add_argument("id")
    p.set_defaults(handler=cmd_show)

    for name, help_text in (("add", "Create a snippet"), ("update", "Change fields of a snippet")):
        p = subparsers.add_parser(name, help=help_text)
        if name == "update":
            p.add_argument("id")
        p.add_argument("--title", required=name == "add")
        p.add_argument("--language", required=name == "add")
        p.add_argument("--tags", help="Comma-separated tags")
        p.add_argument("--description")
        code = p.add_mutually_exclusive_group(required=name == "add")
        code.add_argument("--code", help="Snippet body")
        code.add_argument("--code-file", type=Path, help="Read the snippet body from a file")
        p.set_defaults(handler=cmd_add if name == "add" else cmd_update)

    p = subparsers.add_parser("delete", help="Delete a snippet")
    p.add_argument("id")
    p.set_defaults(handler=cmd_delete)

    p = subparsers.add_parser("tags", help="List all tags")
    p.set_defaults(handler=cmd_tags)

    p = subparsers.add_parser("languages", help="List all languages")
    p.set_defaults(handler=cmd_languages)

    p = subparsers.add_parser("export", help="Export all snippets as JSON")
    p.add_argument(
        "--output", "-o",
        help="File or directory to write (default: stdout)"
    )
    p.set_defaults(handler=cmd_export)

    p = subparsers.add_parser("import", help="Replace all snippets with a JSON export")
    p.add_argument("file")
    p.add_argument("--yes", "-y", action="store_true", help="Confirm replacing existing snippets")
    p.set_defaults(handler=cmd_import)

    p = subparsers.add_parser("seed", help="Add demo snippets to an empty collection")
    p.set_defaults(handler=cmd_seed)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = StoreConfig.from_env(
            backend=args.backend,
            path=args.path,
            storage_key=args.key,
        )
    except ValueError as e:
        print(f"[ERROR] Invalid configuration: {e}")
        return 1

    if args.verbose:
        config.log_level = min(config.log_level, logging.INFO)
    if args.json_logs:
        config.log_format = LogFormat.JSON
    configure_logging(
        level=config.log_level,
        json_format=config.log_format is LogFormat.JSON,
    )

    try:
        with LogContext(request_id=uuid4()):
            store = SnippetStore(config.create_backend(), config.storage_key)
            success = args.handler(store, args)
    except KeyboardInterrupt:
        print("\n\n[WARNING] Interrupted by user")
        return 130
    except UnicodeDecodeError as e:
        print(f"[ERROR] Input file is not UTF-8 text: {e}")
        return 1
    except OSError as e:
        print(f"[ERROR] {e}")
        return 1

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
