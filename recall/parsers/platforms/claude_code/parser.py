"""Claude Code JSONL transcript parser.

Each line of a Claude Code transcript is one JSON event. Only ``user`` and
``assistant`` events are conversational; summaries, system notices and
snapshots are skipped, as is any line that fails to decode.
"""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from pathlib import PurePath
from typing import Any, Optional

from recall.date_utils import parse_timestamp
from recall.models import ParsedSession
from recall.parsers.accumulator import SessionAccumulator
from recall.parsers.normalizer import normalize

logger = logging.getLogger("recall.parsers")

SESSION_FORMAT = "claude-code"

_CONVERSATION_TYPES = {"user", "assistant"}
_SESSION_ID_PATTERN = re.compile(
    r"([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})(?:\.jsonl)?$",
    re.IGNORECASE,
)

# Tool input keys whose string values name a file.
FILE_PATH_KEYS: frozenset[str] = frozenset({"file_path", "path", "file", "filename", "filePath"})


def _decode_events(content: str) -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = []
    for line in content.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except (ValueError, RecursionError):
            continue
        if isinstance(entry, dict) and entry.get("type") in _CONVERSATION_TYPES:
            events.append(entry)
    return events


def extract_file_paths(
    payload: dict[str, Any],
    acc: SessionAccumulator,
    keys: Iterable[str] = FILE_PATH_KEYS,
) -> None:
    """Collect path-like values under *keys*, descending into nested dicts only."""
    key_set = keys if isinstance(keys, (set, frozenset)) else frozenset(keys)
    for key, value in payload.items():
        if key in key_set:
            acc.add_file(value)
        if isinstance(value, dict):
            extract_file_paths(value, acc, key_set)


def _message_body(event: dict[str, Any]) -> dict[str, Any]:
    body = event.get("message")
    return body if isinstance(body, dict) else {}


def _collect_user_text(body: dict[str, Any], acc: SessionAccumulator) -> None:
    content = body.get("content")
    if isinstance(content, str):
        acc.add_user_message(content)
        return
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text":
                acc.add_user_message(block.get("text"))


def _collect_assistant(
    body: dict[str, Any],
    acc: SessionAccumulator,
    file_keys: Iterable[str],
) -> None:
    model = body.get("model")
    acc.add_model(model)
    if "usage" in body:
        acc.add_usage(model, body.get("usage"))

    content = body.get("content")
    if not isinstance(content, list):
        return
    for block in content:
        if not isinstance(block, dict) or block.get("type") != "tool_use":
            continue
        name = block.get("name")
        if not name:
            continue
        acc.add_tool(name)
        tool_input = block.get("input")
        if isinstance(tool_input, dict):
            extract_file_paths(tool_input, acc, file_keys)


def derive_session_id(source: Optional[str], first_event: dict[str, Any]) -> str:
    """Prefer the id embedded in the transcript name over the event's sessionId."""
    if source:
        match = _SESSION_ID_PATTERN.search(PurePath(source).name)
        if match:
            return match.group(1)
    raw = first_event.get("sessionId")
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return "unknown"


def _first_timestamp(events: Iterable[dict[str, Any]]):
    for event in events:
        parsed = parse_timestamp(event.get("timestamp"))
        if parsed is not None:
            return parsed
    return None


def parse_session_content(
    content: str,
    source: Optional[str] = None,
    *,
    file_keys: Iterable[str] = FILE_PATH_KEYS,
) -> ParsedSession | None:
    """Parse JSONL transcript text into a ParsedSession.

    Returns None when no conversational event survives or when the session
    carries no user text.
    """
    events = _decode_events(content)
    if not events:
        return None

    acc = SessionAccumulator(message_count=len(events))
    for event in events:
        body = _message_body(event)
        if event["type"] == "user":
            _collect_user_text(body, acc)
        else:
            _collect_assistant(body, acc, file_keys)

    first = events[0]
    return normalize(
        acc,
        session_id=derive_session_id(source, first),
        session_type=SESSION_FORMAT,
        started_at=_first_timestamp(events),
        ended_at=_first_timestamp(reversed(events)),
        cwd=str(first.get("cwd") or ""),
        git_branch=str(first.get("gitBranch") or "unknown"),
        version=str(first.get("version") or ""),
        transcript_path=source,
    )
