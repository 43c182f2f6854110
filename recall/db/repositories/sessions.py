"""SQLite implementation of SessionRepository."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from recall.date_utils import format_datetime_utc

_JSON_COLUMNS = {
    "user_messages_json": ("userMessages", list),
    "tools_used_json": ("toolsUsed", list),
    "files_touched_json": ("filesFromToolCalls", list),
    "models_used_json": ("modelsUsed", list),
    "model_tokens_json": ("modelTokens", dict),
}


def _iso(value: Any) -> str:
    if isinstance(value, datetime):
        return format_datetime_utc(value)
    return str(value or "")


def _safe_json(raw: str | None, expected: type) -> Any:
    if not raw:
        return expected()
    try:
        parsed = json.loads(raw)
    except ValueError:
        return expected()
    return parsed if isinstance(parsed, expected) else expected()


class SqliteSessionRepository:
    """SQLite-backed storage of parsed sessions keyed by session id."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def upsert(self, session_data: dict, transcript_hash: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        user_messages = session_data.get("userMessages", [])
        await self.db.execute(
            """INSERT INTO sessions (
                id, session_type, title, started_at, ended_at,
                git_branch, cwd, version, message_count,
                input_tokens, output_tokens, cache_creation_tokens, cache_read_tokens,
                user_messages_json, tools_used_json, files_touched_json,
                models_used_json, model_tokens_json,
                search_text, transcript_path, transcript_hash, synced_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                session_type=excluded.session_type, title=excluded.title,
                started_at=excluded.started_at, ended_at=excluded.ended_at,
                git_branch=excluded.git_branch, cwd=excluded.cwd, version=excluded.version,
                message_count=excluded.message_count,
                input_tokens=excluded.input_tokens, output_tokens=excluded.output_tokens,
                cache_creation_tokens=excluded.cache_creation_tokens,
                cache_read_tokens=excluded.cache_read_tokens,
                user_messages_json=excluded.user_messages_json,
                tools_used_json=excluded.tools_used_json,
                files_touched_json=excluded.files_touched_json,
                models_used_json=excluded.models_used_json,
                model_tokens_json=excluded.model_tokens_json,
                search_text=excluded.search_text,
                transcript_path=excluded.transcript_path,
                transcript_hash=excluded.transcript_hash,
                synced_at=excluded.synced_at
            """,
            (
                session_data["id"],
                session_data.get("sessionType", "claude-code"),
                session_data.get("title"),
                _iso(session_data.get("startedAt")),
                _iso(session_data.get("endedAt")),
                session_data.get("gitBranch", ""),
                session_data.get("cwd", ""),
                session_data.get("version", ""),
                session_data.get("messageCount", 0),
                session_data.get("inputTokens", 0),
                session_data.get("outputTokens", 0),
                session_data.get("cacheCreationTokens", 0),
                session_data.get("cacheReadTokens", 0),
                json.dumps(user_messages),
                json.dumps(session_data.get("toolsUsed", [])),
                json.dumps(session_data.get("filesFromToolCalls", [])),
                json.dumps(session_data.get("modelsUsed", [])),
                json.dumps(session_data.get("modelTokens", {})),
                " ".join(user_messages),
                session_data.get("transcriptPath"),
                transcript_hash,
                now,
            ),
        )
        await self.db.commit()

    async def get_hashes(self) -> dict[str, str]:
        async with self.db.execute(
            "SELECT id, transcript_hash FROM sessions WHERE transcript_hash IS NOT NULL"
        ) as cur:
            rows = await cur.fetchall()
        return {row[0]: row[1] for row in rows}

    async def get_by_id(self, session_id: str) -> dict | None:
        async with self.db.execute(
            "SELECT * FROM sessions WHERE id = ?", (session_id,)
        ) as cur:
            row = await cur.fetchone()
            if not row:
                return None
            return self._row_to_dict(row)

    async def list_recent(self, limit: int = 20) -> list[dict]:
        async with self.db.execute(
            "SELECT * FROM sessions ORDER BY ended_at DESC LIMIT ?", (limit,)
        ) as cur:
            rows = await cur.fetchall()
        return [self._row_to_dict(row) for row in rows]

    @staticmethod
    def _row_to_dict(row: Any) -> dict:
        raw = dict(row)
        result = {
            "id": raw["id"],
            "sessionType": raw["session_type"],
            "title": raw["title"],
            "startedAt": raw["started_at"],
            "endedAt": raw["ended_at"],
            "gitBranch": raw["git_branch"] or "",
            "cwd": raw["cwd"] or "",
            "version": raw["version"] or "",
            "messageCount": raw["message_count"] or 0,
            "inputTokens": raw["input_tokens"] or 0,
            "outputTokens": raw["output_tokens"] or 0,
            "cacheCreationTokens": raw["cache_creation_tokens"] or 0,
            "cacheReadTokens": raw["cache_read_tokens"] or 0,
            "transcriptPath": raw["transcript_path"],
            "transcriptHash": raw["transcript_hash"],
            "syncedAt": raw["synced_at"],
        }
        for column, (key, expected) in _JSON_COLUMNS.items():
            result[key] = _safe_json(raw[column], expected)
        return result
