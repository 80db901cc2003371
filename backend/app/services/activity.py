from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from io import StringIO
import csv
import json
import logging

from sqlalchemy.orm import Session, joinedload

from app.core.time import period_bounds
from app.models.activity import ActivityType, UserActivityLog
from app.schemas.activity import AnnualActivityReport, DailyLoginTrend, RankedCount, UserActivitySummary

logger = logging.getLogger(__name__)

TOP_LIMIT = 10


def log_activity(
    db: Session,
    user_id: int,
    activity_type: ActivityType,
    ip_address: str | None = None,
    user_agent: str | None = None,
    is_successful: bool = True,
    failure_reason: str | None = None,
    session_id: str | None = None,
    location: dict | None = None,
    device_info: dict | None = None,
) -> UserActivityLog:
    entry = UserActivityLog(
        user_id=user_id,
        activity_type=activity_type,
        ip_address=ip_address,
        user_agent=user_agent,
        is_successful=is_successful,
        failure_reason=failure_reason,
        session_id=session_id,
        location=json.dumps(location) if location else None,
        device_info=json.dumps(device_info) if device_info else None,
    )
    db.add(entry)
    db.commit()
    return entry


def decode_metadata(raw: str | None) -> dict:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("ignoring malformed activity metadata: %r", raw[:80])
        return {}
    return value if isinstance(value, dict) else {}


def activity_logs_for_period(db: Session, year: int, month: int | None = None) -> list[UserActivityLog]:
    start, end = period_bounds(year, month)
    return (
        db.query(UserActivityLog)
        .options(joinedload(UserActivityLog.user))
        .filter(UserActivityLog.timestamp >= start, UserActivityLog.timestamp <= end)
        .order_by(UserActivityLog.timestamp.asc(), UserActivityLog.id.asc())
        .all()
    )


def _is_login(log: UserActivityLog) -> bool:
    return log.activity_type == ActivityType.login and log.is_successful


def _ranked(counter: Counter) -> list[RankedCount]:
    ordered = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return [RankedCount(name=name, count=count) for name, count in ordered[:TOP_LIMIT]]


@dataclass
class _UserSessions:
    logins: int = 0
    logouts: int = 0
    last_login: datetime | None = None
    last_logout: datetime | None = None
    # [login, logout-or-None]
    sessions: list[list] = field(default_factory=list)

    def minutes(self) -> list[float]:
        return [(end - start).total_seconds() / 60 for start, end in self.sessions if end is not None]


def build_annual_report(logs: list[UserActivityLog], year: int, month: int | None = None) -> AnnualActivityReport:
    """Summarise login activity for a period. `logs` must be in timestamp order.

    A session is a successful LOGIN closed by the same user's next LOGOUT; logins
    without a logout do not contribute to durations.
    """
    countries: Counter = Counter()
    devices: Counter = Counter()
    browsers: Counter = Counter()
    daily: dict[str, list[int]] = {}
    per_user: dict[int, _UserSessions] = {}
    users = {}

    for log in logs:
        location = decode_metadata(log.location)
        device = decode_metadata(log.device_info)
        if location.get("country"):
            countries[str(location["country"])] += 1
        if device.get("device"):
            devices[str(device["device"])] += 1
        if device.get("browser"):
            browsers[str(device["browser"])] += 1

        day = daily.setdefault(log.timestamp.date().isoformat(), [0, 0])
        stats = per_user.setdefault(log.user_id, _UserSessions())
        users[log.user_id] = log.user

        if _is_login(log):
            day[0] += 1
            stats.logins += 1
            stats.last_login = log.timestamp
            stats.sessions.append([log.timestamp, None])
        elif log.activity_type == ActivityType.logout:
            day[1] += 1
            stats.logouts += 1
            stats.last_logout = log.timestamp
            if stats.sessions and stats.sessions[-1][1] is None:
                stats.sessions[-1][1] = log.timestamp

    all_minutes = [value for stats in per_user.values() for value in stats.minutes()]
    user_activity = []
    for user_id, stats in per_user.items():
        user = users[user_id]
        minutes = stats.minutes()
        user_activity.append(
            UserActivitySummary(
                user_id=user_id,
                user_name=user.full_name if user else "",
                user_email=user.email if user else "",
                user_role=user.role.value if user else "",
                total_logins=stats.logins,
                total_logouts=stats.logouts,
                last_login=stats.last_login,
                last_logout=stats.last_logout,
                average_session_duration=round(sum(minutes) / len(minutes), 2) if minutes else 0.0,
            )
        )

    return AnnualActivityReport(
        year=year,
        month=month,
        total_logins=sum(1 for log in logs if _is_login(log)),
        total_logouts=sum(1 for log in logs if log.activity_type == ActivityType.logout),
        unique_users=len({log.user_id for log in logs if _is_login(log)}),
        average_session_duration=int(sum(all_minutes) / len(all_minutes) + 0.5) if all_minutes else 0,
        top_countries=_ranked(countries),
        top_devices=_ranked(devices),
        top_browsers=_ranked(browsers),
        login_trends=[
            DailyLoginTrend(date=day, logins=counts[0], logouts=counts[1]) for day, counts in sorted(daily.items())
        ],
        user_activity=user_activity,
    )


def activity_csv(logs: list[UserActivityLog]) -> str:
    out = StringIO()
    writer = csv.writer(out)
    writer.writerow([
        "Timestamp",
        "Date",
        "Time",
        "User Name",
        "User Email",
        "User Role",
        "Activity Type",
        "IP Address",
        "Country",
        "City",
        "Region",
        "Browser",
        "OS",
        "Device",
        "Platform",
        "Status",
        "Failure Reason",
        "Session ID",
    ])

    for log in logs:
        location = decode_metadata(log.location)
        device = decode_metadata(log.device_info)
        user = log.user
        writer.writerow([
            log.timestamp.isoformat(),
            log.timestamp.date().isoformat(),
            log.timestamp.strftime("%H:%M:%S"),
            user.full_name if user else "",
            user.email if user else "",
            user.role.value if user else "",
            log.activity_type.value,
            log.ip_address or "",
            location.get("country", ""),
            location.get("city", ""),
            location.get("region", ""),
            device.get("browser", ""),
            device.get("os", ""),
            device.get("device", ""),
            device.get("platform", ""),
            "Success" if log.is_successful else "Failed",
            log.failure_reason or "",
            log.session_id or "",
        ])

    return out.getvalue()


def activity_filename(year: int, month: int | None = None, extension: str = "csv") -> str:
    suffix = f"-{month}" if month else ""
    return f"annual-report-{year}{suffix}.{extension}"
