from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime.

    SQLite hands stored timestamps back without tzinfo, so compare loaded
    values in SQL rather than against this in Python.
    """
    return datetime.now(timezone.utc)


def is_integer_like(value: object) -> bool:
    """``True`` for ints (not bools) and strings of ASCII digits."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, str):
        value = value.strip()
        return value.isascii() and value.isdigit()
    return False
