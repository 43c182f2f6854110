"""Incremental source → DB sync engine.

Fetches raw transcripts from a session source, parses them with the
platform parsers and upserts the results. A transcript whose content hash
matches the stored hash is skipped unless the sync is forced.
"""
from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Literal, Optional, Union

from recall.date_utils import ensure_utc
from recall.db.factory import get_session_repository
from recall.models import SyncOptions, SyncStats
from recall.observability import record_ingestion, record_token_usage, start_span
from recall.parsers.platforms.registry import parse_session_content
from recall.search.sources import SessionSource

logger = logging.getLogger("recall.sync")

SyncResult = Literal["created", "updated", "skipped", "errors"]


def transcript_hash(raw: Union[str, bytes]) -> str:
    """MD5 of the raw transcript, used only for change detection."""
    data = raw.encode("utf-8") if isinstance(raw, str) else raw
    return hashlib.md5(data).hexdigest()


class SyncEngine:
    def __init__(self, db: Any):  # db is Union[aiosqlite.Connection, asyncpg.Pool]
        self.db = db
        self.session_repo = get_session_repository(db)

    async def sync(
        self,
        source: SessionSource,
        options: SyncOptions | None = None,
        now: Optional[datetime] = None,
    ) -> SyncStats:
        options = options or SyncOptions()
        stats = SyncStats()
        source_name = getattr(source, "name", "unknown")
        cutoff = None
        if options.days:
            cutoff = ensure_utc(now or datetime.now(timezone.utc)) - timedelta(days=options.days)

        with start_span("recall.sync", {"source": source_name, "force": options.force}):
            existing_hashes = await self.session_repo.get_hashes()
            logger.info("Found %d existing sessions in database", len(existing_hashes))

            try:
                session_refs = await asyncio.to_thread(source.enumerate)
            except Exception as exc:  # noqa: BLE001
                logger.error("Session enumeration failed for %s: %s", source_name, exc)
                return stats

            if options.limit:
                session_refs = session_refs[: options.limit]
            logger.info("Found %d sessions to process", len(session_refs))

            for session_ref in session_refs:
                t0 = time.monotonic()
                result = await self._sync_single_session(source, session_ref, existing_hashes, options, cutoff)
                record_ingestion(source_name, result, (time.monotonic() - t0) * 1000)
                setattr(stats, result, getattr(stats, result) + 1)
                if result != "skipped":
                    logger.info("  %s: %s", result, session_ref)

        return stats

    async def _sync_single_session(
        self,
        source: SessionSource,
        session_ref: str,
        existing_hashes: dict[str, str],
        options: SyncOptions,
        cutoff: Optional[datetime],
    ) -> SyncResult:
        """Parse and upsert one session. Errors never escape this boundary."""
        try:
            raw = await asyncio.to_thread(source.fetch, session_ref)
            if raw is None:
                logger.warning("Skipping session %s: source returned no transcript", session_ref)
                return "errors"

            session = parse_session_content(raw, session_ref)
            if session is None or not session.userMessages:
                return "skipped"
            if cutoff is not None and ensure_utc(session.endedAt) < cutoff:
                return "skipped"

            content_hash = transcript_hash(raw)
            previous_hash = existing_hashes.get(session.id)
            if previous_hash == content_hash and not options.force:
                return "skipped"

            await self.session_repo.upsert(session.model_dump(), content_hash)
            existing_hashes[session.id] = content_hash

            for model, usage in session.modelTokens.items():
                record_token_usage(model=model, token_input=usage.input, token_output=usage.output)
            return "updated" if previous_hash else "created"
        except Exception as exc:  # noqa: BLE001
            logger.error("Error syncing %s: %s", session_ref, exc)
            return "errors"
