"""Session parser registry for platform-specific transcript formats."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

from recall.models import ParsedSession, SessionType
from recall.observability import record_parser_failure
from recall.parsers.platforms.claude_code import parser as claude_code_parser
from recall.parsers.platforms.opencode import parser as opencode_parser

logger = logging.getLogger("recall.parsers")

RawSessionBlob = Union[str, bytes]


def _as_text(blob: RawSessionBlob) -> str:
    if isinstance(blob, bytes):
        return blob.decode("utf-8", errors="replace")
    return blob


def _sniff(content: str) -> tuple[SessionType, dict[str, Any] | None]:
    trimmed = content.strip()
    if not trimmed.startswith("{"):
        return claude_code_parser.SESSION_FORMAT, None
    try:
        payload = json.loads(trimmed)
    except (ValueError, RecursionError):
        return claude_code_parser.SESSION_FORMAT, None
    if isinstance(payload, dict) and "info" in payload and "messages" in payload:
        return opencode_parser.SESSION_FORMAT, payload
    return claude_code_parser.SESSION_FORMAT, None


def detect_format(blob: RawSessionBlob) -> SessionType:
    """Classify a raw transcript as an OpenCode export or a Claude Code JSONL log."""
    session_format, _ = _sniff(_as_text(blob))
    return session_format


def parse_session_content(blob: RawSessionBlob, source: Optional[str] = None) -> ParsedSession | None:
    """Parse a raw transcript of either supported format.

    A structured export that its parser rejects is retried as JSONL. Any
    failure beyond that yields None rather than an exception.
    """
    content = _as_text(blob)
    session_format, payload = _sniff(content)

    if payload is not None:
        try:
            return opencode_parser.parse_export(payload, source)
        except Exception as exc:  # noqa: BLE001
            logger.debug("OpenCode export parse failed for %s, retrying as JSONL: %s", source, exc)

    try:
        return claude_code_parser.parse_session_content(content, source)
    except Exception as exc:  # noqa: BLE001
        logger.debug("Transcript parse failed for %s (%s): %s", source, session_format, exc)
        record_parser_failure(session_format)
        return None


def parse_session_file(path: Path) -> ParsedSession | None:
    """Read and parse one transcript file; unreadable files yield None."""
    try:
        content = path.read_bytes()
    except OSError as exc:
        logger.warning("Unable to read transcript %s: %s", path, exc)
        return None
    return parse_session_content(content, str(path))
