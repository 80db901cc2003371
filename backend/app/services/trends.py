from collections.abc import Iterable
from datetime import datetime

from app.core.time import month_end, shift_months
from app.models.inquiry import CONVERTED_STAGES, InquiryStage
from app.schemas.report import MonthlyTrend

TREND_MONTHS = 6
MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def trend_window_start(now: datetime, months: int = TREND_MONTHS) -> datetime:
    """First instant of the oldest bucket; bounds the single fetch that feeds the builder."""
    return shift_months(now, -(months - 1))


def build_monthly_trends(
    records: Iterable[tuple[datetime, InquiryStage]],
    now: datetime,
    months: int = TREND_MONTHS,
) -> list[MonthlyTrend]:
    """Bucket (created_at, stage) pairs into the trailing calendar months, oldest first.

    The last bucket is always the month containing `now`. Records outside the
    window are ignored, so callers may pass an unbounded iterable.
    """
    records = list(records)
    trends: list[MonthlyTrend] = []
    for offset in range(months - 1, -1, -1):
        start = shift_months(now, -offset)
        end = month_end(start)
        in_month = [stage for created_at, stage in records if start <= created_at <= end]
        conversions = sum(1 for stage in in_month if stage in CONVERTED_STAGES)
        name = MONTH_NAMES[start.month - 1]
        trends.append(
            MonthlyTrend(
                month=name,
                month_year=f"{name} {start.year}",
                new_inquiries=len(in_month),
                conversions=conversions,
            )
        )
    return trends
