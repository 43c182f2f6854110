"""Finalize a filled accumulator into a ParsedSession."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from recall.date_utils import EPOCH
from recall.models import ParsedSession, SessionType
from recall.parsers.accumulator import SessionAccumulator


def normalize(
    acc: SessionAccumulator,
    *,
    session_id: str,
    session_type: SessionType,
    started_at: Optional[datetime],
    ended_at: Optional[datetime],
    cwd: str = "",
    git_branch: str = "",
    version: str = "",
    title: Optional[str] = None,
    transcript_path: Optional[str] = None,
) -> ParsedSession | None:
    """Build the immutable session record, or None for a session with no user text."""
    if acc.message_count == 0 or not acc.user_messages:
        return None

    started = started_at or ended_at or EPOCH
    ended = ended_at or started

    return ParsedSession(
        id=session_id or "unknown",
        startedAt=started,
        endedAt=ended,
        gitBranch=git_branch,
        cwd=cwd,
        version=version,
        messageCount=acc.message_count,
        inputTokens=acc.totals.input,
        outputTokens=acc.totals.output,
        cacheCreationTokens=acc.totals.cacheCreation,
        cacheReadTokens=acc.totals.cacheRead,
        userMessages=list(acc.user_messages),
        toolsUsed=list(acc.tools),
        filesFromToolCalls=list(acc.files),
        modelsUsed=list(acc.models),
        modelTokens={model: counters.to_model() for model, counters in acc.model_tokens.items()},
        title=title,
        sessionType=session_type,
        transcriptPath=transcript_path,
    )
