#!/usr/bin/env python
"""Command line entry point for NoteGraph maintenance and search."""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from notegraph import __version__
from notegraph.app import NoteGraph
from notegraph.config import LOG_LEVELS, config
from notegraph.exceptions import NotegraphError
from notegraph.observability import configure_logging, metrics, timed_operation

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="notegraph", description="NoteGraph note store and search index"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--database-path",
        help="SQLite database file path",
        type=str,
        default=os.environ.get("NOTEGRAPH_DATABASE_PATH")
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=LOG_LEVELS,
        default=os.environ.get("NOTEGRAPH_LOG_LEVEL", "WARNING").upper()
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("stats", help="Show note count and search mode")

    search = commands.add_parser("search", help="Run a ranked full-text query")
    search.add_argument("query", help="Search query; a single word matches as a prefix")
    search.add_argument(
        "--field", choices=("title", "content"), help="Restrict matching to one field"
    )
    search.add_argument(
        "--highlight", action="store_true", help="Show highlighted title and snippet"
    )
    search.add_argument("--limit", type=int, default=None, help="Maximum results")

    commands.add_parser("rebuild", help="Rebuild the search index and all links")
    return parser.parse_args(argv)


def update_config(args: argparse.Namespace) -> None:
    """Update the global config with command line arguments."""
    if args.database_path:
        config.database_path = Path(args.database_path)
    config.log_level = args.log_level


def _cmd_stats(graph: NoteGraph, args: argparse.Namespace) -> None:
    with timed_operation("stats"):
        count = graph.notes.get_notes_count()
    print(f"notes: {count}")
    print(f"search: {'fts5' if graph.search.has_fts else 'fallback'}")

    # Operations recorded by this process
    summary = metrics.get_summary()
    print(f"operations: {summary['total_operations']} ({summary['total_errors']} errors)")
    for name, stats in sorted(metrics.get_metrics().items()):
        print(f"  {name}: {stats['count']} calls, avg {stats['avg_duration_ms']} ms")


def _cmd_search(graph: NoteGraph, args: argparse.Namespace) -> None:
    if args.highlight:
        hits = graph.search.search_with_highlight(
            args.query, column=args.field, limit=args.limit
        )
        for hit in hits:
            print(f"{hit.note.id}\t{hit.score:.4f}\t{hit.highlighted_title}")
            if hit.highlighted_snippet:
                print(f"\t{hit.highlighted_snippet}")
        return

    if args.field == "title":
        notes = graph.search.search_by_title(args.query, limit=args.limit)
    elif args.field == "content":
        notes = graph.search.search_by_content(args.query, limit=args.limit)
    else:
        notes = graph.search.search(args.query, limit=args.limit)
    for note in notes:
        print(f"{note.id}\t{note.title}")


def _cmd_rebuild(graph: NoteGraph, args: argparse.Namespace) -> None:
    indexed = graph.search.rebuild_index()
    stats = graph.notes.rebuild_links()
    print(f"indexed: {indexed}")
    print(
        f"links: {stats['notes']} notes, "
        f"{stats['created']} created, {stats['deleted']} deleted"
    )


COMMANDS = {
    "stats": _cmd_stats,
    "search": _cmd_search,
    "rebuild": _cmd_rebuild,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Run a NoteGraph command and return the process exit code."""
    args = parse_args(argv)
    update_config(args)
    configure_logging(level=args.log_level, log_dir=config.log_dir, console=True)

    try:
        with NoteGraph() as graph:
            COMMANDS[args.command](graph, args)
    except NotegraphError as e:
        logger.error(f"Command '{args.command}' failed: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
