import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.deps import get_current_user, require_admin
from app.core.errors import BadRequestError, ReportAggregationError
from app.core.rate_limit import limiter
from app.core.time import utcnow
from app.models.activity import ActivityType
from app.models.user import User
from app.schemas.activity import AnnualActivityReport
from app.schemas.report import ReportSnapshot
from app.services.activity import (
    activity_csv,
    activity_filename,
    activity_logs_for_period,
    build_annual_report,
    log_activity,
)
from app.services.activity_report import activity_pdf
from app.services.analytics import ReportScope, build_report_snapshot
from app.services.client_info import describe_request
from app.services.reports import analytics_pdf, inquiries_csv, report_filename

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])

ACTIVITY_EXPORT_FORMATS = ("csv", "pdf")


def report_rate_limit() -> str:
    return get_settings().REPORT_RATE_LIMIT


@router.get("", response_model=ReportSnapshot)
@limiter.limit(report_rate_limit)
def get_report(
    request: Request,
    format: str | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    scope = ReportScope.for_user(current_user)
    generated_at = utcnow()
    try:
        snapshot = build_report_snapshot(db, scope, now=generated_at)
        if format != "pdf":
            return snapshot
        pdf = analytics_pdf(snapshot, current_user.full_name, generated_at)
        log_activity(db, current_user.id, ActivityType.report_export, **describe_request(request))
    except Exception as exc:
        db.rollback()
        logger.exception("report generation failed user=%s format=%s", current_user.email, format or "json")
        raise ReportAggregationError() from exc

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{report_filename(generated_at.date())}"'},
    )


@router.get("/inquiries.csv")
def export_inquiries_csv(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    csv_data = inquiries_csv(db, ReportScope.for_user(current_user))
    return Response(
        content=csv_data,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=inquiries.csv"},
    )


@router.get("/annual", response_model=AnnualActivityReport)
def annual_activity_report(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    year = year or utcnow().year
    return build_annual_report(activity_logs_for_period(db, year, month), year, month)


@router.get("/annual/export")
def export_annual_activity(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    format: str = Query(default="csv"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    if format not in ACTIVITY_EXPORT_FORMATS:
        raise BadRequestError(f"Unsupported export format: {format}")
    generated_at = utcnow()
    year = year or generated_at.year
    logs = activity_logs_for_period(db, year, month)
    filename = activity_filename(year, month, format)

    if format == "csv":
        return Response(
            content=activity_csv(logs),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    try:
        pdf = activity_pdf(logs, year, month, generated_at)
    except Exception as exc:
        logger.exception("activity report failed user=%s year=%s month=%s", current_user.email, year, month)
        raise ReportAggregationError() from exc
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
