import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.time import month_start, utcnow
from app.models.inquiry import CONVERTED_STAGES, Inquiry, InquiryStage
from app.models.interaction import CONNECTED_OUTCOMES, Interaction, InteractionOutcome
from app.models.user import User
from app.schemas.report import (
    ContactMetrics,
    OutcomeCount,
    ReportDiagnostics,
    ReportSnapshot,
    SourcePerformance,
    StageCount,
    UserPerformance,
)
from app.services.performance import build_user_performance, display_label, percentage
from app.services.trends import build_monthly_trends, trend_window_start

logger = logging.getLogger(__name__)

STAGE_ORDER = list(InquiryStage)
OUTCOME_ORDER = list(InteractionOutcome)


@dataclass(frozen=True)
class ReportScope:
    """Which records a report may see. Built once per request and passed to every query."""

    user_id: int
    email: str
    is_admin: bool

    @classmethod
    def for_user(cls, user: User) -> "ReportScope":
        return cls(user_id=user.id, email=user.email, is_admin=user.role.is_privileged)

    def inquiries(self) -> list:
        return [] if self.is_admin else [Inquiry.created_by_id == self.user_id]

    def interactions(self) -> list:
        return [] if self.is_admin else [Interaction.user_id == self.user_id]

    def roster(self) -> list:
        criteria = [User.is_active.is_(True)]
        if not self.is_admin:
            criteria.append(User.id == self.user_id)
        return criteria


@dataclass
class StageTotals:
    distribution: list[StageCount]
    total: int
    converted: int
    lost: int
    ready: int


def count_inquiries(db: Session, scope: ReportScope, *criteria) -> int:
    return db.query(func.count(Inquiry.id)).filter(*scope.inquiries(), *criteria).scalar() or 0


def count_interactions(db: Session, scope: ReportScope, *criteria) -> int:
    return db.query(func.count(Interaction.id)).filter(*scope.interactions(), *criteria).scalar() or 0


def source_performance(db: Session, scope: ReportScope) -> list[SourcePerformance]:
    totals = (
        db.query(Inquiry.marketing_source, func.count(Inquiry.id))
        .filter(*scope.inquiries())
        .group_by(Inquiry.marketing_source)
        .order_by(Inquiry.marketing_source)
        .all()
    )
    converted = converted_by_source(db, scope)

    rows = [
        SourcePerformance(
            source=display_label(source),
            count=int(count),
            conversion_rate=percentage(converted.get(source, 0), int(count)),
        )
        for source, count in totals
        if source
    ]
    rows.sort(key=lambda row: row.count, reverse=True)
    return rows


def converted_by_source(db: Session, scope: ReportScope) -> dict[str, int]:
    rows = (
        db.query(Inquiry.marketing_source, func.count(Inquiry.id))
        .filter(*scope.inquiries(), Inquiry.stage.in_(CONVERTED_STAGES))
        .group_by(Inquiry.marketing_source)
        .all()
    )
    return {source: int(count) for source, count in rows if source}


def stage_totals(db: Session, scope: ReportScope) -> StageTotals:
    rows = (
        db.query(Inquiry.stage, func.count(Inquiry.id))
        .filter(*scope.inquiries())
        .group_by(Inquiry.stage)
        .all()
    )
    by_stage = {stage: int(count) for stage, count in rows}
    ordered = sorted(by_stage.items(), key=lambda item: (-item[1], STAGE_ORDER.index(item[0])))
    return StageTotals(
        distribution=[StageCount(stage=display_label(stage.value), count=count) for stage, count in ordered],
        total=sum(by_stage.values()),
        converted=sum(count for stage, count in by_stage.items() if stage in CONVERTED_STAGES),
        lost=by_stage.get(InquiryStage.lost, 0),
        ready=by_stage.get(InquiryStage.ready_to_register, 0),
    )


def interaction_breakdown(db: Session, scope: ReportScope) -> list[OutcomeCount]:
    rows = (
        db.query(Interaction.outcome, func.count(Interaction.id))
        .filter(*scope.interactions())
        .group_by(Interaction.outcome)
        .all()
    )
    ordered = sorted(rows, key=lambda row: (-int(row[1]), OUTCOME_ORDER.index(row[0])))
    return [OutcomeCount(outcome=display_label(outcome.value), count=int(count)) for outcome, count in ordered]


def contact_metrics(db: Session, scope: ReportScope, total_inquiries: int, converted: int) -> ContactMetrics:
    total = count_interactions(db, scope)
    connected = count_interactions(db, scope, Interaction.outcome.in_(CONNECTED_OUTCOMES))
    appointments = count_interactions(db, scope, Interaction.outcome == InteractionOutcome.appointment_booked)
    return ContactMetrics(
        total_calls=total,
        contact_rate=percentage(connected, total),
        appointment_rate=percentage(appointments, total),
        conversion_rate=percentage(converted, total_inquiries),
    )


def trend_records(db: Session, scope: ReportScope, since: datetime) -> list[tuple[datetime, InquiryStage]]:
    rows = (
        db.query(Inquiry.created_at, Inquiry.stage)
        .filter(*scope.inquiries(), Inquiry.created_at >= since)
        .all()
    )
    return [(created_at, stage) for created_at, stage in rows]


def _count_by(db: Session, column, *criteria) -> dict[int, int]:
    rows = db.query(column, func.count()).filter(column.isnot(None), *criteria).group_by(column).all()
    return {int(key): int(count) for key, count in rows}


def user_performance(db: Session, scope: ReportScope, since_month_start: datetime) -> list[UserPerformance]:
    roster = db.query(User).filter(*scope.roster()).order_by(User.full_name.asc()).all()
    # Per-owner counts span every owner; only the roster is scoped.
    return build_user_performance(
        roster,
        inquiries_by_user=_count_by(db, Inquiry.created_by_id),
        converted_by_user=_count_by(db, Inquiry.created_by_id, Inquiry.stage.in_(CONVERTED_STAGES)),
        interactions_by_user=_count_by(db, Interaction.user_id),
        this_month_by_user=_count_by(db, Inquiry.created_by_id, Inquiry.created_at >= since_month_start),
    )


def build_report_snapshot(db: Session, scope: ReportScope, now: datetime | None = None) -> ReportSnapshot:
    now = now or utcnow()
    this_month = month_start(now)

    total = count_inquiries(db, scope)
    stages = stage_totals(db, scope)
    if stages.total != total:
        logger.warning(
            "stage distribution total %s does not match inquiry count %s (user=%s)",
            stages.total,
            total,
            scope.email,
        )

    snapshot = ReportSnapshot(
        total_inquiries=total,
        converted_inquiries=stages.converted,
        lost_inquiries=stages.lost,
        ready_to_register=stages.ready,
        new_this_month=count_inquiries(db, scope, Inquiry.created_at >= this_month),
        source_performance=source_performance(db, scope),
        stage_distribution=stages.distribution,
        monthly_trends=build_monthly_trends(trend_records(db, scope, trend_window_start(now)), now),
        contact_metrics=contact_metrics(db, scope, total, stages.converted),
        user_performance=user_performance(db, scope, this_month),
        interaction_breakdown=interaction_breakdown(db, scope),
    )

    if get_settings().REPORT_DIAGNOSTICS:
        snapshot.debug = ReportDiagnostics(
            total_from_stages=stages.total,
            total_from_count=total,
            is_consistent=stages.total == total,
            user=scope.email,
            is_admin=scope.is_admin,
        )
    logger.info(
        "report snapshot built user=%s admin=%s inquiries=%s sources=%s",
        scope.email,
        scope.is_admin,
        total,
        len(snapshot.source_performance),
    )
    return snapshot
