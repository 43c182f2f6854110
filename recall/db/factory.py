"""Repository factory to abstract DB backend (SQLite vs Postgres)."""
from __future__ import annotations

from typing import Any

import aiosqlite

from recall.db.repositories.sessions import SqliteSessionRepository


def get_session_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteSessionRepository(db)
    from recall.db.repositories.postgres.sessions import PostgresSessionRepository
    return PostgresSessionRepository(db)
