"""PostgreSQL implementation of SessionRepository."""
from __future__ import annotations

import json
from typing import Any

import asyncpg

from recall.date_utils import format_datetime_utc, parse_timestamp

_JSON_COLUMNS = {
    "user_messages": ("userMessages", list),
    "tools_used": ("toolsUsed", list),
    "files_touched": ("filesFromToolCalls", list),
    "models_used": ("modelsUsed", list),
    "model_tokens": ("modelTokens", dict),
}


def _decode_json(raw: Any, expected: type) -> Any:
    if isinstance(raw, expected):
        return raw
    if not raw:
        return expected()
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return expected()
    return parsed if isinstance(parsed, expected) else expected()


class PostgresSessionRepository:
    """PostgreSQL-backed session storage."""

    def __init__(self, db: asyncpg.Pool):
        self.db = db

    async def upsert(self, session_data: dict, transcript_hash: str) -> None:
        user_messages = session_data.get("userMessages", [])
        query = """
            INSERT INTO sessions (
                id, session_type, title, started_at, ended_at,
                git_branch, cwd, version, message_count,
                input_tokens, output_tokens, cache_creation_tokens, cache_read_tokens,
                user_messages, tools_used, files_touched, models_used, model_tokens,
                search_text, transcript_path, transcript_hash, synced_at
            ) VALUES (
                $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13,
                $14::jsonb, $15::jsonb, $16::jsonb, $17::jsonb, $18::jsonb,
                $19, $20, $21, NOW()
            )
            ON CONFLICT(id) DO UPDATE SET
                session_type=EXCLUDED.session_type, title=EXCLUDED.title,
                started_at=EXCLUDED.started_at, ended_at=EXCLUDED.ended_at,
                git_branch=EXCLUDED.git_branch, cwd=EXCLUDED.cwd, version=EXCLUDED.version,
                message_count=EXCLUDED.message_count,
                input_tokens=EXCLUDED.input_tokens, output_tokens=EXCLUDED.output_tokens,
                cache_creation_tokens=EXCLUDED.cache_creation_tokens,
                cache_read_tokens=EXCLUDED.cache_read_tokens,
                user_messages=EXCLUDED.user_messages, tools_used=EXCLUDED.tools_used,
                files_touched=EXCLUDED.files_touched, models_used=EXCLUDED.models_used,
                model_tokens=EXCLUDED.model_tokens,
                search_text=EXCLUDED.search_text,
                transcript_path=EXCLUDED.transcript_path,
                transcript_hash=EXCLUDED.transcript_hash,
                synced_at=NOW()
        """
        await self.db.execute(
            query,
            session_data["id"],
            session_data.get("sessionType", "claude-code"),
            session_data.get("title"),
            parse_timestamp(session_data.get("startedAt")),
            parse_timestamp(session_data.get("endedAt")),
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
        )

    async def get_hashes(self) -> dict[str, str]:
        rows = await self.db.fetch(
            "SELECT id, transcript_hash FROM sessions WHERE transcript_hash IS NOT NULL"
        )
        return {row["id"]: row["transcript_hash"] for row in rows}

    async def get_by_id(self, session_id: str) -> dict | None:
        row = await self.db.fetchrow("SELECT * FROM sessions WHERE id = $1", session_id)
        return self._row_to_dict(row) if row else None

    async def list_recent(self, limit: int = 20) -> list[dict]:
        rows = await self.db.fetch(
            "SELECT * FROM sessions ORDER BY ended_at DESC NULLS LAST LIMIT $1", limit
        )
        return [self._row_to_dict(row) for row in rows]

    @staticmethod
    def _row_to_dict(row: Any) -> dict:
        raw = dict(row)
        result = {
            "id": raw["id"],
            "sessionType": raw["session_type"],
            "title": raw["title"],
            "startedAt": format_datetime_utc(raw["started_at"]) if raw["started_at"] else "",
            "endedAt": format_datetime_utc(raw["ended_at"]) if raw["ended_at"] else "",
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
            "syncedAt": format_datetime_utc(raw["synced_at"]) if raw["synced_at"] else "",
        }
        for column, (key, expected) in _JSON_COLUMNS.items():
            result[key] = _decode_json(raw[column], expected)
        return result
