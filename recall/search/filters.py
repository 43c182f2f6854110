"""Session inclusion filters for search."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from recall.date_utils import ensure_utc
from recall.models import ParsedSession, SearchOptions


def _matches_date_range(session: ParsedSession, options: SearchOptions, now: datetime) -> bool:
    ended = ensure_utc(session.endedAt)
    if options.since is not None and ended < ensure_utc(options.since):
        return False
    if options.until is not None and ended > ensure_utc(options.until):
        return False
    if options.days:
        cutoff = ensure_utc(now) - timedelta(days=options.days)
        if ended < cutoff:
            return False
    return True


def _matches_tools(session: ParsedSession, tools: list[str]) -> bool:
    wanted = [tool.lower() for tool in tools if tool]
    if not wanted:
        return True
    used = [tool.lower() for tool in session.toolsUsed]
    return any(want in tool for want in wanted for tool in used)


def _matches_file_pattern(session: ParsedSession, pattern: str) -> bool:
    needle = pattern.lower()
    return any(needle in path.lower() for path in session.filesFromToolCalls)


def matches_filters(
    session: ParsedSession,
    options: SearchOptions,
    now: Optional[datetime] = None,
) -> bool:
    """Return True when *session* passes every filter present in *options*."""
    if not _matches_date_range(session, options, now or datetime.now(timezone.utc)):
        return False
    if options.tools and not _matches_tools(session, options.tools):
        return False
    if options.filePattern and not _matches_file_pattern(session, options.filePattern):
        return False
    return True
