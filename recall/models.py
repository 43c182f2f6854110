"""Pydantic models for parsed sessions, search and sync."""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from recall import config

SessionType = Literal["claude-code", "opencode"]


# ── Session-related models ──────────────────────────────────────────

class ModelTokenUsage(BaseModel):
    input: int = 0
    output: int = 0
    cacheCreation: int = 0
    cacheRead: int = 0


class ParsedSession(BaseModel):
    """Normalized session record shared by every transcript format."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    startedAt: datetime
    endedAt: datetime
    gitBranch: str = ""
    cwd: str = ""
    version: str = ""
    messageCount: int = 0

    # Token totals
    inputTokens: int = 0
    outputTokens: int = 0
    cacheCreationTokens: int = 0
    cacheReadTokens: int = 0

    userMessages: list[str] = Field(default_factory=list)
    toolsUsed: list[str] = Field(default_factory=list)
    filesFromToolCalls: list[str] = Field(default_factory=list)
    modelsUsed: list[str] = Field(default_factory=list)
    modelTokens: dict[str, ModelTokenUsage] = Field(default_factory=dict)

    title: Optional[str] = None
    sessionType: SessionType = "claude-code"
    transcriptPath: Optional[str] = None

    @property
    def tokenTotals(self) -> tuple[int, int, int, int]:
        return (
            self.inputTokens,
            self.outputTokens,
            self.cacheCreationTokens,
            self.cacheReadTokens,
        )


class RankedSession(ParsedSession):
    relevance: int = 0
    matchedOn: list[str] = Field(default_factory=list)


# ── Search / sync models ────────────────────────────────────────────

class SearchOptions(BaseModel):
    query: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    days: Optional[float] = Field(default=None, ge=0)
    tools: Optional[list[str]] = None
    filePattern: Optional[str] = None
    limit: int = Field(default=config.DEFAULT_LIMIT, ge=1)


class SyncOptions(BaseModel):
    days: Optional[float] = Field(default=None, ge=0)
    force: bool = False
    limit: Optional[int] = Field(default=None, ge=1)


class SyncStats(BaseModel):
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
