"""Weighted substring relevance scoring for parsed sessions."""
from __future__ import annotations

from typing import Optional

from recall.models import ParsedSession

# Points per query term found in each field. Multi-valued fields score once
# per entry containing the term.
FIELD_WEIGHTS: dict[str, int] = {
    "title": 15,
    "userMessages": 10,
    "cwd": 5,
    "toolsUsed": 3,
    "filesFromToolCalls": 3,
}

# Score for every session when no query is given: keeps recency ordering.
UNRANKED_SCORE = 1


def query_terms(query: Optional[str]) -> list[str]:
    """Lowercased, de-duplicated whitespace-separated terms in query order."""
    if not query:
        return []
    return list(dict.fromkeys(query.lower().split()))


def _field_values(session: ParsedSession, field: str) -> list[str]:
    if field == "title":
        return [session.title] if session.title else []
    if field == "cwd":
        return [session.cwd] if session.cwd else []
    return list(getattr(session, field))


def explain_relevance(session: ParsedSession, query: Optional[str]) -> tuple[int, list[str]]:
    """Return the relevance score and the names of the fields that matched."""
    terms = query_terms(query)
    if not terms:
        return UNRANKED_SCORE, []

    score = 0
    matched_on: list[str] = []
    for field, weight in FIELD_WEIGHTS.items():
        values = [value.lower() for value in _field_values(session, field)]
        hits = sum(1 for term in terms for value in values if term in value)
        if hits:
            score += hits * weight
            matched_on.append(field)
    return score, matched_on


def score_relevance(session: ParsedSession, query: Optional[str]) -> int:
    return explain_relevance(session, query)[0]
