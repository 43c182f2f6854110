"""PostgreSQL schema creation and versioning."""
from __future__ import annotations

import logging

import asyncpg

logger = logging.getLogger("recall.db")

SCHEMA_VERSION = 1

_TABLES = """
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS sessions (
    id                    VARCHAR(255) PRIMARY KEY,
    session_type          VARCHAR(32) NOT NULL DEFAULT 'claude-code',
    title                 TEXT,
    started_at            TIMESTAMP WITH TIME ZONE,
    ended_at              TIMESTAMP WITH TIME ZONE,
    git_branch            VARCHAR(255) DEFAULT '',
    cwd                   TEXT DEFAULT '',
    version               VARCHAR(50) DEFAULT '',
    message_count         INTEGER DEFAULT 0,
    input_tokens          BIGINT DEFAULT 0,
    output_tokens         BIGINT DEFAULT 0,
    cache_creation_tokens BIGINT DEFAULT 0,
    cache_read_tokens     BIGINT DEFAULT 0,
    user_messages         JSONB DEFAULT '[]'::jsonb,
    tools_used            JSONB DEFAULT '[]'::jsonb,
    files_touched         JSONB DEFAULT '[]'::jsonb,
    models_used           JSONB DEFAULT '[]'::jsonb,
    model_tokens          JSONB DEFAULT '{}'::jsonb,
    search_text           TEXT DEFAULT '',
    transcript_path       TEXT,
    transcript_hash       VARCHAR(32),
    synced_at             TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_sessions_ended_at ON sessions(ended_at DESC);
CREATE INDEX IF NOT EXISTS idx_sessions_started_at ON sessions(started_at DESC);
"""


async def run_migrations(pool: asyncpg.Pool) -> None:
    """Create all tables. Idempotent."""
    async with pool.acquire() as conn:
        await conn.execute(_TABLES)
        current_version = await conn.fetchval("SELECT MAX(version) FROM schema_version") or 0
        if current_version >= SCHEMA_VERSION:
            logger.info("Schema is up to date (version %s)", current_version)
            return
        await conn.execute("INSERT INTO schema_version (version) VALUES ($1)", SCHEMA_VERSION)
    logger.info("Migrations complete, schema version %s", SCHEMA_VERSION)
