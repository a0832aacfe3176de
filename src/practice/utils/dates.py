"""Date helpers.

All timestamps are stored as ISO 8601 strings in UTC. Calendar-day
comparisons (due dates, POTD retention) use the UTC date.
"""

from __future__ import annotations

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialize a datetime as ISO 8601 in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_iso(value: str) -> datetime:
    """Parse an ISO 8601 string into an aware UTC datetime.

    Accepts a trailing "Z" and bare dates ("2024-05-01").

    Raises:
        ValueError: If the string is not a valid timestamp.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def utc_date(value: datetime) -> date:
    """Calendar day of a datetime in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).date()


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole calendar days from earlier to later (negative if reversed)."""
    return (utc_date(later) - utc_date(earlier)).days
