"""Datetime helpers shared across the project."""
from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime


def ensure_utc(ts: datetime) -> datetime:
    """Force a naive datetime into UTC."""

    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_http_date(value: str) -> datetime:
    """Parse an HTTP date (``Expires`` style) and return a timezone-aware datetime in UTC."""

    normalized = value.strip()
    try:
        parsed = parsedate_to_datetime(normalized)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid HTTP date: {value}") from exc
    if parsed is None:  # older interpreters return None instead of raising
        raise ValueError(f"Invalid HTTP date: {value}")

    return ensure_utc(parsed)
