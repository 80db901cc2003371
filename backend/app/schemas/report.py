from datetime import datetime

from pydantic import BaseModel


class SourcePerformance(BaseModel):
    source: str
    count: int
    conversion_rate: int


class StageCount(BaseModel):
    stage: str
    count: int


class MonthlyTrend(BaseModel):
    month: str
    month_year: str
    new_inquiries: int
    conversions: int


class ContactMetrics(BaseModel):
    total_calls: int
    contact_rate: int
    appointment_rate: int
    conversion_rate: int


class UserPerformance(BaseModel):
    id: int
    name: str
    email: str
    role: str
    inquiries: int
    converted: int
    conversion_rate: int
    interactions: int
    this_month: int
    joined_at: datetime


class OutcomeCount(BaseModel):
    outcome: str
    count: int


class ReportDiagnostics(BaseModel):
    total_from_stages: int
    total_from_count: int
    is_consistent: bool
    user: str
    is_admin: bool


class ReportSnapshot(BaseModel):
    total_inquiries: int
    converted_inquiries: int
    lost_inquiries: int
    ready_to_register: int
    new_this_month: int
    source_performance: list[SourcePerformance]
    stage_distribution: list[StageCount]
    monthly_trends: list[MonthlyTrend]
    contact_metrics: ContactMetrics
    user_performance: list[UserPerformance]
    interaction_breakdown: list[OutcomeCount]
    # Only populated when REPORT_DIAGNOSTICS is enabled.
    debug: ReportDiagnostics | None = None
