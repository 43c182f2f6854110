"""Session Recall configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default

# Project root (one level up from recall/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Session sources
SESSIONS_DIR = Path(
    os.getenv("RECALL_SESSIONS_DIR")
    or os.getenv("CLAUDE_SESSIONS_DIR")
    or str(Path.home() / ".claude" / "projects")
)
OPENCODE_BIN = os.getenv("RECALL_OPENCODE_BIN", "opencode")
OPENCODE_TIMEOUT_SECONDS = _env_int("RECALL_OPENCODE_TIMEOUT_SECONDS", 60)
OPENCODE_MAX_EXPORT_BYTES = _env_int("RECALL_OPENCODE_MAX_EXPORT_BYTES", 10 * 1024 * 1024)

# Search
DEFAULT_LIMIT = _env_int("RECALL_DEFAULT_LIMIT", 20)

# Database
DB_BACKEND = os.getenv("RECALL_DB_BACKEND", "sqlite")
DB_PATH = Path(os.getenv("RECALL_DB_PATH", str(PROJECT_ROOT / "data" / "recall_sessions.db")))
DATABASE_URL = (
    os.getenv("RECALL_DATABASE_URL")
    or os.getenv("DATABASE_URL")
    or "postgresql://localhost/claude_sessions"
)

# Observability
OTEL_ENABLED = _env_bool("RECALL_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("RECALL_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("RECALL_OTEL_SERVICE_NAME", "session-recall")
PROM_PORT = _env_int("RECALL_PROM_PORT", 9464)

# Server settings
HOST = os.getenv("RECALL_HOST", "127.0.0.1")
PORT = _env_int("RECALL_PORT", 8000)

# CORS
FRONTEND_ORIGIN = os.getenv("RECALL_FRONTEND_ORIGIN", "http://localhost:3000")
