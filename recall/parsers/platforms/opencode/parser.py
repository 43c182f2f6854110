"""OpenCode ``opencode export`` JSON parser."""
from __future__ import annotations

from typing import Any, Optional

from recall.date_utils import parse_timestamp
from recall.models import ParsedSession
from recall.parsers.accumulator import SessionAccumulator
from recall.parsers.normalizer import normalize

SESSION_FORMAT = "opencode"

# Tool-call parameters that carry a file path in OpenCode exports.
TOOL_FILE_PARAMS: tuple[str, ...] = ("filePath", "path", "file")


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _model_id(info: dict[str, Any]) -> Any:
    model = info.get("model")
    if isinstance(model, dict):
        return model.get("modelID")
    return model


def parse_export(
    export: dict[str, Any],
    source: Optional[str] = None,
    *,
    file_params: tuple[str, ...] = TOOL_FILE_PARAMS,
) -> ParsedSession | None:
    """Parse one decoded OpenCode export object.

    Exports carry no token usage, so counters stay at zero and ``modelTokens``
    is empty unless a message envelope happens to include a ``usage`` block.
    """
    info = _as_dict(export.get("info"))
    messages = export.get("messages")
    if not isinstance(messages, list):
        raise TypeError("OpenCode export 'messages' must be a list")

    acc = SessionAccumulator(message_count=len(messages))
    for envelope in messages:
        envelope = _as_dict(envelope)
        message_info = _as_dict(envelope.get("info"))

        if message_info.get("role") == "user":
            for part in envelope.get("parts") or []:
                part = _as_dict(part)
                if part.get("type") == "text":
                    acc.add_user_message(part.get("text"))

        for tool_call in envelope.get("toolCalls") or []:
            tool_call = _as_dict(tool_call)
            acc.add_tool(tool_call.get("name"))
            params = _as_dict(tool_call.get("parameters"))
            for key in file_params:
                acc.add_file(params.get(key))

        model = _model_id(message_info)
        acc.add_model(model)
        if "usage" in message_info:
            acc.add_usage(model, message_info.get("usage"))

    times = _as_dict(info.get("time"))
    created = parse_timestamp(times.get("created"))
    updated = parse_timestamp(times.get("updated"))
    title = info.get("title")

    return normalize(
        acc,
        session_id=str(info.get("id") or source or "unknown"),
        session_type=SESSION_FORMAT,
        started_at=created,
        ended_at=updated or created,
        cwd=str(info.get("directory") or ""),
        title=title if isinstance(title, str) and title.strip() else None,
    )
