import calendar
from datetime import date, datetime, time, timezone
from typing import Any, Optional


def to_utc(value: Any) -> Optional[datetime]:
    """Normalize the date shapes found in stored and remote records to an aware UTC datetime.

    Accepts ISO-8601 strings (a trailing ``Z`` included), ``date`` and
    ``datetime`` objects (naive values are taken as UTC) and epoch seconds.
    Empty or unparseable input yields ``None``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_naive_utc(value: Any) -> Optional[datetime]:
    """UTC datetime without tzinfo, the shape stored in DateTime columns."""
    dt = to_utc(value)
    return dt.replace(tzinfo=None) if dt is not None else None


def add_months(day: date, months: int) -> date:
    """Same day `months` later, clamped to the end of shorter months."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))
