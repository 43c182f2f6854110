"""SQLite schema creation and versioning.

Uses IF NOT EXISTS for idempotent runs.
"""
from __future__ import annotations

import logging

import aiosqlite

logger = logging.getLogger("recall.db")

SCHEMA_VERSION = 1

_TABLES = """
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS sessions (
    id                    TEXT PRIMARY KEY,
    session_type          TEXT NOT NULL DEFAULT 'claude-code',
    title                 TEXT,
    started_at            TEXT,
    ended_at              TEXT,
    git_branch            TEXT DEFAULT '',
    cwd                   TEXT DEFAULT '',
    version               TEXT DEFAULT '',
    message_count         INTEGER DEFAULT 0,
    input_tokens          INTEGER DEFAULT 0,
    output_tokens         INTEGER DEFAULT 0,
    cache_creation_tokens INTEGER DEFAULT 0,
    cache_read_tokens     INTEGER DEFAULT 0,
    user_messages_json    TEXT DEFAULT '[]',
    tools_used_json       TEXT DEFAULT '[]',
    files_touched_json    TEXT DEFAULT '[]',
    models_used_json      TEXT DEFAULT '[]',
    model_tokens_json     TEXT DEFAULT '{}',
    search_text           TEXT DEFAULT '',
    transcript_path       TEXT,
    transcript_hash       TEXT,
    synced_at             TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_ended_at ON sessions(ended_at DESC);
CREATE INDEX IF NOT EXISTS idx_sessions_started_at ON sessions(started_at DESC);
"""


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Create all tables. Idempotent."""
    try:
        async with db.execute("SELECT MAX(version) FROM schema_version") as cur:
            row = await cur.fetchone()
            current_version = row[0] if row and row[0] else 0
    except aiosqlite.OperationalError:
        current_version = 0

    if current_version >= SCHEMA_VERSION:
        logger.info("Schema is up to date (version %s)", current_version)
        return

    logger.info("Running migrations: %s → %s", current_version, SCHEMA_VERSION)
    await db.executescript(_TABLES)
    await db.execute(
        "INSERT INTO schema_version (version) VALUES (?)",
        (SCHEMA_VERSION,),
    )
    await db.commit()
    logger.info("Migrations complete, schema version %s", SCHEMA_VERSION)
