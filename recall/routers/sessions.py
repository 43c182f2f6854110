"""Session search, lookup and sync API."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Literal, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from recall import config
from recall.db import connection
from recall.db.factory import get_session_repository
from recall.db.sync_engine import SyncEngine
from recall.models import SearchOptions, SyncOptions, SyncStats
from recall.search.pipeline import format_results, search
from recall.search.sources import build_source

logger = logging.getLogger("recall.api")

sessions_router = APIRouter(prefix="/api/sessions", tags=["sessions"])

SourceKind = Literal["claude-code", "opencode"]


class SyncRequest(BaseModel):
    source: SourceKind = "claude-code"
    days: Optional[float] = Field(default=None, ge=0)
    force: bool = False
    limit: Optional[int] = Field(default=None, ge=1)
    sessionsDir: Optional[str] = None


def _split_tools(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    tools = [token.strip() for token in raw.split(",") if token.strip()]
    return tools or None


@sessions_router.get("/search")
async def search_sessions(
    q: Optional[str] = Query(default=None, description="Free-text query"),
    days: Optional[float] = Query(default=None, ge=0),
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    tools: Optional[str] = Query(default=None, description="Comma-separated tool names"),
    file_pattern: Optional[str] = None,
    limit: int = Query(default=config.DEFAULT_LIMIT, ge=1, le=500),
    source: SourceKind = "claude-code",
):
    """Rank sessions from a live source against the query and filters."""
    options = SearchOptions(
        query=q,
        days=days,
        since=since,
        until=until,
        tools=_split_tools(tools),
        filePattern=file_pattern,
        limit=limit,
    )
    session_source = build_source(source)
    results = await asyncio.to_thread(search, session_source, options)
    return format_results(results)


@sessions_router.post("/sync", response_model=SyncStats)
async def sync_sessions(req: SyncRequest):
    db = await connection.get_connection()
    base_dir = Path(req.sessionsDir) if req.sessionsDir else None
    session_source = build_source(req.source, base_dir=base_dir)
    engine = SyncEngine(db)
    stats = await engine.sync(
        session_source,
        SyncOptions(days=req.days, force=req.force, limit=req.limit),
    )
    logger.info(
        "Sync complete (source=%s created=%d updated=%d skipped=%d errors=%d)",
        req.source, stats.created, stats.updated, stats.skipped, stats.errors,
    )
    return stats


@sessions_router.get("/recent")
async def list_recent_sessions(limit: int = Query(default=config.DEFAULT_LIMIT, ge=1, le=500)):
    db = await connection.get_connection()
    repo = get_session_repository(db)
    return await repo.list_recent(limit)


@sessions_router.get("/{session_id}")
async def get_session(session_id: str):
    db = await connection.get_connection()
    repo = get_session_repository(db)
    session = await repo.get_by_id(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session
