from datetime import datetime

import pytest

from app.core.config import get_settings
from app.models import InquiryStage, InteractionOutcome, UserRole
from app.services.analytics import ReportScope, build_report_snapshot, converted_by_source
from factories import make_inquiry, make_interaction, make_user

NOW = datetime(2026, 10, 19, 9, 0)


@pytest.fixture
def admin(db_session):
    return make_user(db_session, "Ada Admin", role=UserRole.admin)


def test_stage_scenario_counts_and_conversion(db_session, admin):
    for stage in [
        InquiryStage.qualified,
        InquiryStage.qualified,
        InquiryStage.lost,
        InquiryStage.new,
        InquiryStage.new,
    ]:
        make_inquiry(db_session, admin, stage=stage, created_at=datetime(2026, 9, 2))

    snapshot = build_report_snapshot(db_session, ReportScope.for_user(admin), now=NOW)

    assert snapshot.total_inquiries == 5
    assert snapshot.converted_inquiries == 2
    assert snapshot.lost_inquiries == 1
    assert snapshot.ready_to_register == 0
    assert sum(row.count for row in snapshot.stage_distribution) == snapshot.total_inquiries
    assert snapshot.contact_metrics.conversion_rate == 40
    assert [row.stage for row in snapshot.stage_distribution] == ["NEW", "QUALIFIED", "LOST"]


def test_source_performance_labels_and_rates(db_session, admin):
    for index in range(10):
        stage = InquiryStage.counseling_scheduled if index < 4 else InquiryStage.attempting_contact
        make_inquiry(db_session, admin, stage=stage, source="FACEBOOK_ADS")
    make_inquiry(db_session, admin, source="WALK_IN", stage=InquiryStage.ready_to_register)
    make_inquiry(db_session, admin, source=None)
    make_inquiry(db_session, admin, source="")

    snapshot = build_report_snapshot(db_session, ReportScope.for_user(admin), now=NOW)

    assert [row.model_dump() for row in snapshot.source_performance] == [
        {"source": "FACEBOOK ADS", "count": 10, "conversion_rate": 40},
        {"source": "WALK IN", "count": 1, "conversion_rate": 100},
    ]
    assert snapshot.total_inquiries == 13
    for row in snapshot.source_performance:
        assert 0 <= row.conversion_rate <= 100


def test_converted_by_source_is_one_grouped_map(db_session, admin):
    make_inquiry(db_session, admin, source="REFERRAL", stage=InquiryStage.qualified)
    make_inquiry(db_session, admin, source="REFERRAL", stage=InquiryStage.new)
    make_inquiry(db_session, admin, source="WEBSITE", stage=InquiryStage.lost)

    assert converted_by_source(db_session, ReportScope.for_user(admin)) == {"REFERRAL": 1}


def test_equal_source_counts_order_by_label(db_session, admin):
    make_inquiry(db_session, admin, source="WEBSITE")
    make_inquiry(db_session, admin, source="EMAIL")
    make_inquiry(db_session, admin, source="PHONE")

    snapshot = build_report_snapshot(db_session, ReportScope.for_user(admin), now=NOW)

    assert [row.source for row in snapshot.source_performance] == ["EMAIL", "PHONE", "WEBSITE"]


def test_zero_interactions_give_zero_rates(db_session, admin):
    snapshot = build_report_snapshot(db_session, ReportScope.for_user(admin), now=NOW)

    assert snapshot.contact_metrics.total_calls == 0
    assert snapshot.contact_metrics.contact_rate == 0
    assert snapshot.contact_metrics.appointment_rate == 0
    assert snapshot.contact_metrics.conversion_rate == 0
    assert snapshot.interaction_breakdown == []
    assert len(snapshot.monthly_trends) == 6


def test_contact_metrics_and_breakdown(db_session, admin):
    inquiry = make_inquiry(db_session, admin)
    for outcome in [
        InteractionOutcome.connected_interested,
        InteractionOutcome.appointment_booked,
        InteractionOutcome.no_answer,
        InteractionOutcome.no_answer,
    ]:
        make_interaction(db_session, admin, inquiry, outcome)

    snapshot = build_report_snapshot(db_session, ReportScope.for_user(admin), now=NOW)

    assert snapshot.contact_metrics.total_calls == 4
    assert snapshot.contact_metrics.contact_rate == 50
    assert snapshot.contact_metrics.appointment_rate == 25
    assert [row.model_dump() for row in snapshot.interaction_breakdown] == [
        {"outcome": "NO ANSWER", "count": 2},
        {"outcome": "CONNECTED INTERESTED", "count": 1},
        {"outcome": "APPOINTMENT BOOKED", "count": 1},
    ]


def test_new_this_month_and_trends(db_session, admin):
    make_inquiry(db_session, admin, stage=InquiryStage.qualified, created_at=datetime(2026, 10, 1))
    make_inquiry(db_session, admin, created_at=datetime(2026, 10, 18))
    make_inquiry(db_session, admin, created_at=datetime(2026, 9, 30, 23, 0))
    make_inquiry(db_session, admin, created_at=datetime(2025, 1, 1))

    snapshot = build_report_snapshot(db_session, ReportScope.for_user(admin), now=NOW)

    assert snapshot.new_this_month == 2
    assert snapshot.new_this_month <= snapshot.total_inquiries
    assert snapshot.monthly_trends[-1].month_year == "Oct 2026"
    assert snapshot.monthly_trends[-1].new_inquiries == 2
    assert snapshot.monthly_trends[-1].conversions == 1
    assert snapshot.monthly_trends[-2].new_inquiries == 1
    assert sum(row.new_inquiries for row in snapshot.monthly_trends) == 3


def test_non_admin_scope_sees_only_own_records(db_session, admin):
    coordinator = make_user(db_session, "Cora Coordinator")
    other = make_user(db_session, "Omar Other")
    mine = make_inquiry(db_session, coordinator, stage=InquiryStage.qualified, source="WEBSITE")
    make_inquiry(db_session, coordinator, stage=InquiryStage.new, source="WEBSITE")
    theirs = make_inquiry(db_session, other, stage=InquiryStage.lost, source="REFERRAL")
    make_interaction(db_session, coordinator, mine, InteractionOutcome.appointment_booked)
    make_interaction(db_session, other, theirs, InteractionOutcome.no_answer)

    snapshot = build_report_snapshot(db_session, ReportScope.for_user(coordinator), now=NOW)

    assert snapshot.total_inquiries == 2
    assert snapshot.lost_inquiries == 0
    assert [row.source for row in snapshot.source_performance] == ["WEBSITE"]
    assert snapshot.contact_metrics.total_calls == 1
    assert snapshot.contact_metrics.appointment_rate == 100
    assert [row.name for row in snapshot.user_performance] == ["Cora Coordinator"]

    everything = build_report_snapshot(db_session, ReportScope.for_user(admin), now=NOW)
    assert everything.total_inquiries == 3
    assert sum(row.count for row in everything.stage_distribution) == 3


def test_user_performance_roster_and_counts(db_session, admin):
    coordinator = make_user(db_session, "Cora Coordinator")
    make_user(db_session, "Ivy Inactive", is_active=False)
    make_inquiry(db_session, coordinator, stage=InquiryStage.qualified, created_at=datetime(2026, 10, 2))
    make_inquiry(db_session, coordinator, stage=InquiryStage.new, created_at=datetime(2026, 8, 2))
    make_inquiry(db_session, coordinator, stage=InquiryStage.new, created_at=datetime(2026, 8, 3))
    inquiry = make_inquiry(db_session, admin, stage=InquiryStage.lost, created_at=datetime(2026, 8, 3))
    make_interaction(db_session, coordinator, inquiry, InteractionOutcome.no_answer)

    snapshot = build_report_snapshot(db_session, ReportScope.for_user(admin), now=NOW)

    rows = {row.name: row for row in snapshot.user_performance}
    assert list(rows) == ["Cora Coordinator", "Ada Admin"]
    cora = rows["Cora Coordinator"]
    assert (cora.inquiries, cora.converted, cora.conversion_rate) == (3, 1, 33)
    assert (cora.interactions, cora.this_month) == (1, 1)
    assert cora.role == "COORDINATOR"
    assert rows["Ada Admin"].conversion_rate == 0

    # The roster is scoped, the per-owner counts are not.
    own = build_report_snapshot(db_session, ReportScope.for_user(coordinator), now=NOW)
    assert own.total_inquiries == 3
    assert own.user_performance[0].interactions == 1


def test_diagnostics_are_opt_in(db_session, admin, monkeypatch):
    make_inquiry(db_session, admin)
    scope = ReportScope.for_user(admin)

    assert build_report_snapshot(db_session, scope, now=NOW).debug is None

    monkeypatch.setattr(get_settings(), "REPORT_DIAGNOSTICS", True)
    debug = build_report_snapshot(db_session, scope, now=NOW).debug

    assert debug.is_consistent is True
    assert debug.total_from_stages == debug.total_from_count == 1
    assert debug.user == admin.email
    assert debug.is_admin is True
