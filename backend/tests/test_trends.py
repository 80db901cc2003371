from datetime import datetime

from app.models.inquiry import InquiryStage
from app.services.trends import build_monthly_trends, trend_window_start


def test_six_buckets_oldest_first_ending_this_month():
    now = datetime(2026, 10, 19, 14, 30)

    trends = build_monthly_trends([], now)

    assert [row.month for row in trends] == ["May", "Jun", "Jul", "Aug", "Sep", "Oct"]
    assert trends[-1].month_year == "Oct 2026"
    assert all(row.new_inquiries == 0 and row.conversions == 0 for row in trends)


def test_labels_span_year_boundary():
    trends = build_monthly_trends([], datetime(2026, 2, 3))

    assert [row.month_year for row in trends] == [
        "Sep 2025",
        "Oct 2025",
        "Nov 2025",
        "Dec 2025",
        "Jan 2026",
        "Feb 2026",
    ]


def test_window_start_is_first_day_five_months_back():
    assert trend_window_start(datetime(2026, 3, 31, 23, 0)) == datetime(2025, 10, 1)


def test_counts_use_inclusive_month_bounds():
    now = datetime(2026, 10, 19)
    records = [
        (datetime(2026, 9, 1, 0, 0, 0), InquiryStage.new),
        (datetime(2026, 9, 30, 23, 59, 59, 999000), InquiryStage.qualified),
        (datetime(2026, 10, 1, 0, 0, 0), InquiryStage.ready_to_register),
        (datetime(2026, 10, 5), InquiryStage.lost),
    ]

    by_month = {row.month: row for row in build_monthly_trends(records, now)}

    assert by_month["Sep"].new_inquiries == 2
    assert by_month["Sep"].conversions == 1
    assert by_month["Oct"].new_inquiries == 2
    assert by_month["Oct"].conversions == 1


def test_records_outside_window_are_ignored():
    now = datetime(2026, 10, 19)
    records = [
        (datetime(2026, 4, 30, 23, 59), InquiryStage.qualified),
        (datetime(2026, 11, 1), InquiryStage.qualified),
        (datetime(2026, 5, 1), InquiryStage.counseling_scheduled),
    ]

    trends = build_monthly_trends(records, now)

    assert sum(row.new_inquiries for row in trends) == 1
    assert trends[0].conversions == 1
