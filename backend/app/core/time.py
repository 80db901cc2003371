import calendar
from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    # Columns are naive UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def month_start(value: datetime) -> datetime:
    return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def shift_months(value: datetime, months: int) -> datetime:
    """First instant of the month `months` away from `value` (negative goes back)."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    return datetime(year, month, 1)


def month_end(value: datetime) -> datetime:
    """Last millisecond of the month containing `value`."""
    last_day = calendar.monthrange(value.year, value.month)[1]
    return value.replace(day=last_day, hour=23, minute=59, second=59, microsecond=999000)


def period_bounds(year: int, month: int | None = None) -> tuple[datetime, datetime]:
    if month is None:
        return datetime(year, 1, 1), datetime(year, 12, 31, 23, 59, 59, 999999)
    start = datetime(year, month, 1)
    end = shift_months(start, 1) - timedelta(microseconds=1)
    return start, end
