"""Shared timestamp normalization helpers."""
from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_datetime_utc(value: datetime) -> str:
    dt = ensure_utc(value)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_datetime_token(token: str) -> datetime | None:
    cleaned = token.strip()
    if not cleaned:
        return None
    try:
        return datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in ("%Y/%m/%d", "%m/%d/%Y", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
    return None


def parse_timestamp(value: Any) -> datetime | None:
    """Convert mixed timestamp inputs into aware UTC datetimes.

    Accepts datetimes, dates, ISO-8601 strings (with or without ``Z``) and
    numeric epoch values. Numbers above ``1e11`` are read as milliseconds,
    which is how structured exports store ``time.created``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        token = value.strip()
        if not token:
            return None
        if _DATE_ONLY_RE.match(token):
            try:
                parsed = date.fromisoformat(token)
            except ValueError:
                return None
            return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)
        if re.fullmatch(r"-?\d+(?:\.\d+)?", token):
            return parse_timestamp(float(token))
        parsed_dt = _parse_datetime_token(token)
        if parsed_dt:
            return ensure_utc(parsed_dt)
    return None
