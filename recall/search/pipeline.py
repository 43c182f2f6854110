"""Ranking pipeline: fetch, parse, filter, score, sort and truncate sessions."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from recall.date_utils import ensure_utc, format_datetime_utc
from recall.models import ParsedSession, RankedSession, SearchOptions
from recall.observability import record_search, start_span
from recall.parsers.platforms.registry import parse_session_content
from recall.search.filters import matches_filters
from recall.search.scoring import explain_relevance, query_terms
from recall.search.sources import SessionSource

logger = logging.getLogger("recall.search")


def _rank_one(
    source: SessionSource,
    session_ref: str,
    options: SearchOptions,
    has_query: bool,
    now: datetime,
) -> RankedSession | None:
    raw = source.fetch(session_ref)
    if raw is None:
        raise LookupError("source returned no transcript")

    session = parse_session_content(raw, session_ref)
    if session is None or not session.userMessages:
        return None
    if not matches_filters(session, options, now):
        return None

    relevance, matched_on = explain_relevance(session, options.query)
    if has_query and relevance == 0:
        return None
    return to_ranked(session, relevance, matched_on)


def to_ranked(session: ParsedSession, relevance: int, matched_on: list[str] | None = None) -> RankedSession:
    payload = session.model_dump()
    payload["relevance"] = relevance
    payload["matchedOn"] = list(matched_on or [])
    return RankedSession.model_validate(payload)


def sort_ranked(results: list[RankedSession]) -> list[RankedSession]:
    """Order by relevance then most recent end time, both descending."""
    return sorted(
        results,
        key=lambda item: (item.relevance, ensure_utc(item.endedAt)),
        reverse=True,
    )


def search(
    source: SessionSource,
    options: SearchOptions | None = None,
    now: Optional[datetime] = None,
) -> list[RankedSession]:
    """Rank every session the source yields against *options*.

    No single session can fail the search: fetch and parse errors are logged
    and the session is skipped. A failed enumeration returns an empty list.
    """
    options = options or SearchOptions()
    now = now or datetime.now(timezone.utc)
    has_query = bool(query_terms(options.query))

    with start_span("recall.search", {"source": getattr(source, "name", "unknown"), "has_query": has_query}):
        try:
            session_refs = source.enumerate()
        except Exception as exc:  # noqa: BLE001
            logger.error("Session enumeration failed: %s", exc)
            record_search(has_query, 0)
            return []

        logger.info("Found %d sessions", len(session_refs))
        results: list[RankedSession] = []
        failures = 0
        for index, session_ref in enumerate(session_refs, start=1):
            logger.debug("Processing %d/%d: %s", index, len(session_refs), session_ref)
            try:
                ranked = _rank_one(source, session_ref, options, has_query, now)
            except Exception as exc:  # noqa: BLE001
                failures += 1
                logger.warning("Skipping session %s: %s", session_ref, exc)
                continue
            if ranked is not None:
                results.append(ranked)

        if failures:
            logger.warning("%d of %d sessions could not be fetched or parsed", failures, len(session_refs))

        ranked_results = sort_ranked(results)[: options.limit]
        record_search(has_query, len(ranked_results))
        return ranked_results


def format_result(result: RankedSession) -> dict[str, Any]:
    return {
        "id": result.id,
        "title": result.title,
        "directory": result.cwd,
        "startedAt": format_datetime_utc(result.startedAt),
        "endedAt": format_datetime_utc(result.endedAt),
        "messageCount": result.messageCount,
        "toolsUsed": list(result.toolsUsed),
        "filesFromToolCalls": list(result.filesFromToolCalls),
        "userMessages": list(result.userMessages),
        "modelsUsed": list(result.modelsUsed),
        "relevance": result.relevance,
    }


def format_results(results: list[RankedSession]) -> list[dict[str, Any]]:
    return [format_result(result) for result in results]
