#!/usr/bin/env python3
"""Search and sync prior coding-assistant sessions.

Usage:
  session-recall search --query "email system" --days 7
  session-recall search --tools Edit,Bash --limit 10 --source opencode
  session-recall sync                 # incremental sync (new/changed)
  session-recall sync --days 7 --force

Search results are printed as a JSON array on stdout; progress and
diagnostics go to stderr.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from recall import config
from recall.date_utils import parse_timestamp
from recall.db import connection, migrations
from recall.db.sync_engine import SyncEngine
from recall.models import SearchOptions, SyncOptions
from recall.search.pipeline import format_results, search
from recall.search.sources import build_source

logger = logging.getLogger("recall.cli")


def _date_arg(value: str) -> datetime:
    parsed = parse_timestamp(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"invalid date: {value!r} (expected YYYY-MM-DD or ISO-8601)")
    return parsed


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return parsed


def _non_negative_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from exc
    if parsed < 0:
        raise argparse.ArgumentTypeError("must not be negative")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="session-recall", description=__doc__.split("\n\n")[0])
    parser.add_argument("-v", "--verbose", action="store_true", help="Log per-session progress")
    subparsers = parser.add_subparsers(dest="command", required=True)

    search_cmd = subparsers.add_parser("search", help="Rank sessions against a query")
    search_cmd.add_argument("-q", "--query", default=None, help="Search sessions by text")
    search_cmd.add_argument("-d", "--days", type=_non_negative_float, default=None, help="Limit to last N days")
    search_cmd.add_argument("--since", type=_date_arg, default=None, help="Sessions ending on/after this date")
    search_cmd.add_argument("--until", type=_date_arg, default=None, help="Sessions ending on/before this date")
    search_cmd.add_argument("-t", "--tools", default=None, help="Filter by tools (comma-separated)")
    search_cmd.add_argument("-f", "--file-pattern", default=None, help="Filter by file path substring")
    search_cmd.add_argument("-l", "--limit", type=_positive_int, default=config.DEFAULT_LIMIT, help="Max results")
    search_cmd.add_argument("--source", choices=["claude-code", "opencode"], default="claude-code")
    search_cmd.add_argument("--dir", default=None, help="Claude Code sessions directory")

    sync_cmd = subparsers.add_parser("sync", help="Sync sessions into the database")
    sync_cmd.add_argument("-a", "--all", action="store_true", help="Sync all sessions (ignore --days)")
    sync_cmd.add_argument("-d", "--days", type=_non_negative_float, default=None, help="Only sync last N days")
    sync_cmd.add_argument("-f", "--force", action="store_true", help="Re-sync even if unchanged")
    sync_cmd.add_argument("-l", "--limit", type=_positive_int, default=None, help="Max sessions to process")
    sync_cmd.add_argument("--source", choices=["claude-code", "opencode"], default="claude-code")
    sync_cmd.add_argument("--dir", default=None, help="Claude Code sessions directory")

    return parser


def _run_search(args: argparse.Namespace) -> int:
    tools = [token.strip() for token in (args.tools or "").split(",") if token.strip()]
    options = SearchOptions(
        query=args.query,
        days=args.days,
        since=args.since,
        until=args.until,
        tools=tools or None,
        filePattern=args.file_pattern,
        limit=args.limit,
    )
    source = build_source(args.source, base_dir=Path(args.dir) if args.dir else None)
    results = search(source, options)
    print(json.dumps(format_results(results), indent=2, ensure_ascii=False))
    return 0


async def _run_sync(args: argparse.Namespace) -> int:
    days = None if args.all else args.days
    source = build_source(
        args.source,
        base_dir=Path(args.dir) if args.dir else None,
        days=days,
        limit=args.limit,
    )
    try:
        db = await connection.get_connection()
        await migrations.run_migrations(db)
        stats = await SyncEngine(db).sync(source, SyncOptions(days=days, force=args.force, limit=args.limit))
    except Exception as exc:  # noqa: BLE001
        logger.error("Sync failed: %s", exc)
        return 1
    finally:
        await connection.close_connection()

    print("Sync complete:")
    print(f"  Created: {stats.created}")
    print(f"  Updated: {stats.updated}")
    print(f"  Skipped: {stats.skipped}")
    print(f"  Errors:  {stats.errors}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.command == "search":
        return _run_search(args)
    return asyncio.run(_run_sync(args))


if __name__ == "__main__":
    raise SystemExit(main())
