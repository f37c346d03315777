"""
Time handling.

Two clocks live in this codebase:
- UTC for our own bookkeeping (session creation/expiry).
- Wall clock for everything exchanged with Syndata. The backend stores
  naive local timestamps ("2024-03-10T14:05:00") and we keep them naive,
  with no timezone normalization.
"""

from datetime import date, datetime, time, timezone

WALLCLOCK_FORMAT = "%Y-%m-%dT%H:%M:%S"


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this for session bookkeeping, never for values sent to Syndata.
    """
    return datetime.now(timezone.utc)


def now_wallclock() -> datetime:
    """Current local wall-clock time, naive, truncated to the second."""
    return datetime.now().replace(microsecond=0)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Raises ValueError if string has no timezone info.
    """
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)


def parse_wallclock(value) -> datetime | None:
    """
    Parse a Syndata timestamp into a naive wall-clock datetime.

    Accepts datetime objects, "YYYY-MM-DDTHH:MM[:SS[.fff]]" and the
    space-separated variant. An offset, when present, is dropped without
    conversion: the digits are what the technician's device recorded.

    Returns None for None/empty input.

    Raises:
        ValueError: If the string is not a timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)

    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1]
    dt = datetime.fromisoformat(text.replace(" ", "T", 1))
    return dt.replace(tzinfo=None)


def format_wallclock(dt: datetime) -> str:
    """Format a wall-clock datetime the way Syndata expects it."""
    return dt.replace(tzinfo=None, microsecond=0).strftime(WALLCLOCK_FORMAT)


def combine_wallclock(day: date, at: time) -> datetime:
    """Join a calendar day and a wall-clock time into a naive datetime."""
    return datetime.combine(day, at.replace(tzinfo=None, microsecond=0))


def minutes_between(start: datetime | None, end: datetime | None) -> int | None:
    """
    Whole minutes from start to end, truncated.

    Returns None unless both ends are known.
    """
    if start is None or end is None:
        return None
    return int((end - start).total_seconds() // 60)


def format_ymd(day: date) -> str:
    """Format a calendar day as YYYY-MM-DD (query parameter format)."""
    return day.strftime("%Y-%m-%d")
