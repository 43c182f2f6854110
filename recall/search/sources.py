"""Session sources: enumerate identifiers and fetch raw transcripts.

Sources are the only place the search and sync pipelines touch the file
system or external processes. Both operations are fallible; failures are
logged and reported as an empty listing or a missing blob.
"""
from __future__ import annotations

import logging
import re
import subprocess
import time
from pathlib import Path
from typing import Mapping, Optional, Protocol, Union

from recall import config

logger = logging.getLogger("recall.sources")

_OPENCODE_SESSION_ID_PATTERN = re.compile(r"ses_[A-Za-z0-9]+")


class SessionSource(Protocol):
    """Collaborator interface consumed by the ranking and sync pipelines."""

    name: str

    def enumerate(self) -> list[str]:
        ...

    def fetch(self, session_ref: str) -> Optional[Union[str, bytes]]:
        ...


class DirectorySessionSource:
    """Claude Code transcripts stored as ``<base>/<project>/<uuid>.jsonl``."""

    name = "claude-code"

    def __init__(self, base_dir: Path | None = None, days: float | None = None, limit: int | None = None):
        self.base_dir = Path(base_dir) if base_dir else config.SESSIONS_DIR
        self.days = days
        self.limit = limit

    def _project_dirs(self) -> list[Path]:
        try:
            return [path for path in self.base_dir.iterdir() if path.is_dir()]
        except OSError as exc:
            logger.warning("Unable to list sessions directory %s: %s", self.base_dir, exc)
            return []

    def enumerate(self) -> list[str]:
        cutoff = time.time() - self.days * 86400 if self.days else None
        found: list[tuple[float, str]] = []
        for project_dir in self._project_dirs():
            try:
                candidates = list(project_dir.glob("*.jsonl"))
            except OSError as exc:
                logger.warning("Unable to list %s: %s", project_dir, exc)
                continue
            for path in candidates:
                try:
                    mtime = path.stat().st_mtime
                except OSError:
                    continue
                if cutoff is not None and mtime < cutoff:
                    continue
                found.append((mtime, str(path)))

        found.sort(key=lambda item: item[0], reverse=True)
        paths = [path for _, path in found]
        return paths[: self.limit] if self.limit else paths

    def fetch(self, session_ref: str) -> Optional[bytes]:
        try:
            return Path(session_ref).read_bytes()
        except OSError as exc:
            logger.warning("Unable to read transcript %s: %s", session_ref, exc)
            return None


class OpenCodeCliSource:
    """Sessions listed and exported through the ``opencode`` CLI."""

    name = "opencode"

    def __init__(
        self,
        binary: str | None = None,
        timeout: float | None = None,
        limit: int | None = None,
        max_bytes: int | None = None,
    ):
        self.binary = binary or config.OPENCODE_BIN
        self.timeout = timeout if timeout is not None else config.OPENCODE_TIMEOUT_SECONDS
        self.limit = limit
        self.max_bytes = max_bytes if max_bytes is not None else config.OPENCODE_MAX_EXPORT_BYTES

    def enumerate(self) -> list[str]:
        cmd = [self.binary, "session", "list", "--format", "json"]
        if self.limit:
            cmd.extend(["--max-count", str(self.limit)])
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.error("Error listing OpenCode sessions: %s", exc)
            return []

        return list(dict.fromkeys(_OPENCODE_SESSION_ID_PATTERN.findall(result.stdout)))

    def fetch(self, session_ref: str) -> Optional[bytes]:
        try:
            result = subprocess.run(
                [self.binary, "export", session_ref],
                capture_output=True,
                check=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning("OpenCode export failed for %s: %s", session_ref, exc)
            return None
        if len(result.stdout) > self.max_bytes:
            logger.warning(
                "OpenCode export for %s exceeds %d bytes, skipping", session_ref, self.max_bytes
            )
            return None
        return result.stdout


class StaticSessionSource:
    """In-memory source over a fixed ``{ref: blob}`` mapping."""

    name = "static"

    def __init__(self, blobs: Mapping[str, Union[str, bytes]]):
        self.blobs = dict(blobs)

    def enumerate(self) -> list[str]:
        return list(self.blobs)

    def fetch(self, session_ref: str) -> Optional[Union[str, bytes]]:
        return self.blobs.get(session_ref)


def build_source(
    kind: str,
    *,
    base_dir: Path | None = None,
    days: float | None = None,
    limit: int | None = None,
) -> SessionSource:
    if kind == "opencode":
        return OpenCodeCliSource(limit=limit)
    if kind == "claude-code":
        return DirectorySessionSource(base_dir, days=days, limit=limit)
    raise ValueError(f"Unknown session source: {kind}")
