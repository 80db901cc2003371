from datetime import datetime

from pydantic import BaseModel

from app.models.activity import ActivityType


class ActivityLogResponse(BaseModel):
    id: int
    user_id: int
    activity_type: ActivityType
    ip_address: str | None
    user_agent: str | None = None
    is_successful: bool
    failure_reason: str | None
    session_id: str | None
    timestamp: datetime

    class Config:
        from_attributes = True


class RankedCount(BaseModel):
    name: str
    count: int


class DailyLoginTrend(BaseModel):
    date: str
    logins: int
    logouts: int


class UserActivitySummary(BaseModel):
    user_id: int
    user_name: str
    user_email: str
    user_role: str
    total_logins: int
    total_logouts: int
    last_login: datetime | None = None
    last_logout: datetime | None = None
    average_session_duration: float


class AnnualActivityReport(BaseModel):
    year: int
    month: int | None = None
    total_logins: int
    total_logouts: int
    unique_users: int
    average_session_duration: int
    top_countries: list[RankedCount]
    top_devices: list[RankedCount]
    top_browsers: list[RankedCount]
    login_trends: list[DailyLoginTrend]
    user_activity: list[UserActivitySummary]
