from datetime import datetime
import json

from app.core.security import get_password_hash
from app.models import ActivityType, UserActivityLog, UserRole
from app.services.activity import activity_filename, activity_logs_for_period, build_annual_report
from app.services.activity_report import activity_pdf, build_activity_pages
from factories import make_user


def _log(db, user, activity_type, timestamp, country=None, browser=None, device=None, is_successful=True):
    entry = UserActivityLog(
        user_id=user.id,
        activity_type=activity_type,
        is_successful=is_successful,
        location=json.dumps({"country": country}) if country else None,
        device_info=json.dumps({"browser": browser, "device": device}) if browser or device else None,
        timestamp=timestamp,
    )
    db.add(entry)
    db.commit()
    return entry


def test_annual_report_pairs_sessions_and_ranks_metadata(db_session):
    ada = make_user(db_session, "Ada Admin", role=UserRole.admin)
    cora = make_user(db_session, "Cora Coordinator")
    _log(db_session, ada, ActivityType.login, datetime(2026, 3, 2, 9, 0), country="Kenya", browser="Firefox", device="Desktop")
    _log(db_session, ada, ActivityType.logout, datetime(2026, 3, 2, 9, 30))
    _log(db_session, ada, ActivityType.login, datetime(2026, 3, 3, 9, 0), country="Kenya", browser="Chrome", device="Desktop")
    _log(db_session, ada, ActivityType.logout, datetime(2026, 3, 3, 10, 0))
    _log(db_session, cora, ActivityType.login, datetime(2026, 3, 3, 11, 0), country="Uganda", browser="Chrome", device="Mobile")
    _log(db_session, cora, ActivityType.login, datetime(2026, 3, 4, 8, 0), is_successful=False)
    _log(db_session, cora, ActivityType.login, datetime(2025, 12, 31, 23, 0))

    logs = activity_logs_for_period(db_session, 2026)
    report = build_annual_report(logs, 2026)

    assert report.total_logins == 3
    assert report.total_logouts == 2
    assert report.unique_users == 2
    assert report.average_session_duration == 45
    assert [(row.name, row.count) for row in report.top_countries] == [("Kenya", 2), ("Uganda", 1)]
    assert [(row.name, row.count) for row in report.top_browsers] == [("Chrome", 2), ("Firefox", 1)]
    assert [(row.name, row.count) for row in report.top_devices] == [("Desktop", 2), ("Mobile", 1)]
    assert [(row.date, row.logins, row.logouts) for row in report.login_trends] == [
        ("2026-03-02", 1, 1),
        ("2026-03-03", 2, 1),
        ("2026-03-04", 0, 0),
    ]

    summaries = {row.user_name: row for row in report.user_activity}
    assert summaries["Ada Admin"].average_session_duration == 45.0
    assert summaries["Ada Admin"].last_logout == datetime(2026, 3, 3, 10, 0)
    assert summaries["Cora Coordinator"].total_logins == 1
    assert summaries["Cora Coordinator"].average_session_duration == 0.0


def test_monthly_period_filters_logs(db_session):
    ada = make_user(db_session, "Ada Admin", role=UserRole.admin)
    _log(db_session, ada, ActivityType.login, datetime(2026, 2, 28, 23, 59))
    _log(db_session, ada, ActivityType.login, datetime(2026, 3, 1, 0, 0))
    _log(db_session, ada, ActivityType.login, datetime(2026, 3, 31, 23, 59, 59))

    logs = activity_logs_for_period(db_session, 2026, 3)

    assert len(logs) == 2
    assert build_annual_report(logs, 2026, 3).month == 3


def test_malformed_metadata_is_ignored(db_session):
    ada = make_user(db_session, "Ada Admin", role=UserRole.admin)
    entry = _log(db_session, ada, ActivityType.login, datetime(2026, 5, 1, 8, 0))
    entry.location = "{not json"
    db_session.commit()

    report = build_annual_report(activity_logs_for_period(db_session, 2026), 2026)

    assert report.top_countries == []
    assert report.total_logins == 1


def test_activity_filename():
    assert activity_filename(2026) == "annual-report-2026.csv"
    assert activity_filename(2026, 4) == "annual-report-2026-4.csv"
    assert activity_filename(2026, 4, "pdf") == "annual-report-2026-4.pdf"


def test_activity_routes_are_admin_only(client, db_session, login_as):
    login_as(make_user(db_session, "Cora Coordinator"))

    assert client.get("/api/v1/user-activity").status_code == 403
    assert client.get("/api/v1/reports/annual").status_code == 403
    assert client.get("/api/v1/reports/annual/export").status_code == 403


def test_annual_export_csv(client, db_session, login_as):
    ada = make_user(db_session, "Ada Admin", role=UserRole.admin)
    _log(db_session, ada, ActivityType.login, datetime(2026, 4, 2, 9, 0), country="Kenya", browser="Chrome")
    login_as(ada)

    response = client.get("/api/v1/reports/annual/export", params={"year": 2026, "month": 4})

    assert response.status_code == 200
    assert response.headers["content-disposition"] == 'attachment; filename="annual-report-2026-4.csv"'
    header, row = response.text.strip().splitlines()
    assert header.startswith("Timestamp,Date,Time,User Name")
    assert "Kenya" in row
    assert "Success" in row


def test_annual_export_rejects_other_formats(client, db_session, login_as):
    login_as(make_user(db_session, "Ada Admin", role=UserRole.admin))

    response = client.get("/api/v1/reports/annual/export", params={"format": "xlsx"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "bad_request"


def test_annual_report_validates_month(client, db_session, login_as):
    login_as(make_user(db_session, "Ada Admin", role=UserRole.admin))

    response = client.get("/api/v1/reports/annual", params={"year": 2026, "month": 13})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


def test_login_records_activity_and_issues_token(client, db_session):
    user = make_user(
        db_session,
        "Cora Coordinator",
        email="cora@example.com",
        hashed_password=get_password_hash("s3cret-pass"),
    )

    bad = client.post("/api/v1/auth/login", data={"username": "cora@example.com", "password": "nope"})
    assert bad.status_code == 400

    good = client.post("/api/v1/auth/login", data={"username": "cora@example.com", "password": "s3cret-pass"})
    assert good.status_code == 200
    token = good.json()["access_token"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == "cora@example.com"

    logout = client.post("/api/v1/auth/logout", headers={"Authorization": f"Bearer {token}"})
    assert logout.status_code == 200

    entries = db_session.query(UserActivityLog).order_by(UserActivityLog.id).all()
    assert [(entry.activity_type, entry.is_successful) for entry in entries] == [
        (ActivityType.login, False),
        (ActivityType.login, True),
        (ActivityType.logout, True),
    ]
    assert entries[0].failure_reason == "Invalid password"
    assert entries[1].session_id == entries[2].session_id
    assert all(entry.user_id == user.id for entry in entries)


def test_user_activity_lists_recent_entries(client, db_session, login_as):
    ada = make_user(db_session, "Ada Admin", role=UserRole.admin)
    _log(db_session, ada, ActivityType.login, datetime(2026, 4, 2, 9, 0))
    _log(db_session, ada, ActivityType.logout, datetime(2026, 4, 2, 10, 0))
    login_as(ada)

    body = client.get("/api/v1/user-activity", params={"limit": 1}).json()

    assert [row["activity_type"] for row in body] == ["LOGOUT"]


CHROME_ON_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


def test_login_captures_device_and_location(client, db_session):
    make_user(
        db_session,
        "Cora Coordinator",
        email="cora@example.com",
        hashed_password=get_password_hash("s3cret-pass"),
    )

    response = client.post(
        "/api/v1/auth/login",
        data={"username": "cora@example.com", "password": "s3cret-pass"},
        headers={"user-agent": CHROME_ON_WINDOWS, "cf-ipcountry": "KE", "cf-ipcity": "Nairobi"},
    )
    assert response.status_code == 200

    entry = db_session.query(UserActivityLog).one()
    assert entry.user_agent == CHROME_ON_WINDOWS
    assert json.loads(entry.device_info) == {
        "browser": "Chrome",
        "os": "Windows",
        "device": "Desktop",
        "platform": "Windows Desktop",
    }

    year = entry.timestamp.year
    report = build_annual_report(activity_logs_for_period(db_session, year), year)
    assert [(row.name, row.count) for row in report.top_browsers] == [("Chrome", 1)]
    assert [(row.name, row.count) for row in report.top_devices] == [("Desktop", 1)]
    assert [(row.name, row.count) for row in report.top_countries] == [("KE", 1)]


def test_activity_pdf_pages(db_session):
    ada = make_user(db_session, "Ada Admin", role=UserRole.admin)
    _log(db_session, ada, ActivityType.login, datetime(2026, 4, 2, 9, 0), country="Kenya", browser="Chrome", device="Desktop")
    _log(db_session, ada, ActivityType.login, datetime(2026, 4, 2, 9, 5), is_successful=False)
    logs = activity_logs_for_period(db_session, 2026, 4)

    pages = build_activity_pages(logs, 2026, 4, datetime(2026, 5, 1, 8, 0))

    assert [page.header.title for page in pages[1:]] == [
        "Executive Summary",
        "User Activity Analysis",
        "Geographic Activity Analysis",
        "Technology Usage Analysis",
        "Time-based Activity Analysis",
        "Recent Activities Detail",
    ]
    tiles = pages[0].blocks[1].tiles
    assert [(tile.label, tile.value) for tile in tiles] == [
        ("Total Activities", "2"),
        ("Successful", "1"),
        ("Failed", "1"),
        ("Success Rate", "50.0%"),
    ]
    summary = pages[1].blocks[0]
    assert summary.rows[2] == ["Failed Activities", "1", "50.0%"]
    hourly = pages[5].blocks[1]
    assert len(hourly.rows) == 24
    assert hourly.rows[9] == ["09:00", "2", "100.0%"]


def test_activity_pdf_without_logs_skips_detail_pages():
    pages = build_activity_pages([], 2026, None, datetime(2026, 5, 1, 8, 0))

    assert [page.header.title for page in pages[1:]] == [
        "Executive Summary",
        "User Activity Analysis",
        "Technology Usage Analysis",
        "Time-based Activity Analysis",
    ]
    assert activity_pdf([], 2026, None, datetime(2026, 5, 1, 8, 0)).startswith(b"%PDF")


def test_annual_export_pdf(client, db_session, login_as):
    ada = make_user(db_session, "Ada Admin", role=UserRole.admin)
    _log(db_session, ada, ActivityType.login, datetime(2026, 4, 2, 9, 0), country="Kenya", browser="Chrome")
    _log(db_session, ada, ActivityType.logout, datetime(2026, 4, 2, 9, 45))
    login_as(ada)

    response = client.get("/api/v1/reports/annual/export", params={"year": 2026, "month": 4, "format": "pdf"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'attachment; filename="annual-report-2026-4.pdf"'
    assert response.content.startswith(b"%PDF")
