"""Intermediate record filled by the per-format event extractors."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from recall.models import ModelTokenUsage

# Usage records on events that declare no model land here so per-model
# buckets always add up to the session totals.
UNATTRIBUTED_MODEL = "unknown"

PATH_SEPARATORS = ("/", "\\")

_USAGE_FIELDS: dict[str, str] = {
    "input_tokens": "input",
    "output_tokens": "output",
    "cache_creation_input_tokens": "cacheCreation",
    "cache_read_input_tokens": "cacheRead",
}


def _coerce_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 0 else default


def looks_like_path(value: Any) -> bool:
    return isinstance(value, str) and any(sep in value for sep in PATH_SEPARATORS)


@dataclass
class TokenCounters:
    input: int = 0
    output: int = 0
    cacheCreation: int = 0
    cacheRead: int = 0

    def add(self, other: "TokenCounters") -> None:
        self.input += other.input
        self.output += other.output
        self.cacheCreation += other.cacheCreation
        self.cacheRead += other.cacheRead

    @classmethod
    def from_usage(cls, usage: dict[str, Any]) -> "TokenCounters":
        counters = cls()
        for raw_key, attr in _USAGE_FIELDS.items():
            setattr(counters, attr, _coerce_int(usage.get(raw_key)))
        return counters

    def to_model(self) -> ModelTokenUsage:
        return ModelTokenUsage(
            input=self.input,
            output=self.output,
            cacheCreation=self.cacheCreation,
            cacheRead=self.cacheRead,
        )


@dataclass
class SessionAccumulator:
    """Running state for one session's event stream.

    Sets are kept as insertion-ordered dicts so the normalized record lists
    tools, files and models in first-seen order.
    """

    user_messages: list[str] = field(default_factory=list)
    tools: dict[str, None] = field(default_factory=dict)
    files: dict[str, None] = field(default_factory=dict)
    models: dict[str, None] = field(default_factory=dict)
    totals: TokenCounters = field(default_factory=TokenCounters)
    model_tokens: dict[str, TokenCounters] = field(default_factory=dict)
    message_count: int = 0

    def add_user_message(self, text: Any) -> None:
        if isinstance(text, str) and text.strip():
            self.user_messages.append(text)

    def add_tool(self, name: Any) -> None:
        if isinstance(name, str) and name:
            self.tools.setdefault(name, None)

    def add_file(self, value: Any) -> None:
        if looks_like_path(value):
            self.files.setdefault(value, None)

    def add_model(self, model: Any) -> None:
        if isinstance(model, str) and model:
            self.models.setdefault(model, None)

    def add_usage(self, model: Any, usage: Any) -> None:
        if not isinstance(usage, dict):
            return
        counters = TokenCounters.from_usage(usage)
        self.totals.add(counters)
        bucket_key = model if isinstance(model, str) and model else UNATTRIBUTED_MODEL
        self.model_tokens.setdefault(bucket_key, TokenCounters()).add(counters)
