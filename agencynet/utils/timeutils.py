"""Time helpers shared by invitation expiry and license re-validation."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes coming back from the store as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def calendar_months_between(start: datetime, end: datetime) -> int:
    """
    Whole calendar months from ``start`` to ``end``, ignoring the day of month.

    2024-01-31 -> 2024-02-01 counts as one month.
    """
    return (end.year - start.year) * 12 + (end.month - start.month)
