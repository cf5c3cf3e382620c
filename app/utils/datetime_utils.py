"""
Timezone-aware datetime helpers.
Timestamps are stored and compared in UTC; calendar logic works on plain dates.
"""
import calendar
from datetime import date, datetime, timezone
from typing import Optional

UTC = timezone.utc


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware)."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive (SQLite drops tzinfo), treat as UTC; if aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def iso_utc(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with a trailing Z, for API responses."""
    if dt is None:
        return None
    s = ensure_utc(dt).isoformat()
    if s.endswith("+00:00"):
        s = s[:-6] + "Z"
    return s


def add_months(d: date, months: int) -> date:
    """Add months to a date, clamping the day to the target month's length."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365
