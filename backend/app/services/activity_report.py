from collections import Counter
from datetime import datetime

from app.core.config import get_settings
from app.models.activity import UserActivityLog
from app.services.activity import decode_metadata
from app.services.pdf_layout import (
    CoverBand,
    HeaderBand,
    InfoBox,
    Page,
    StatTile,
    StatTiles,
    Table,
    TextLine,
    render_pdf,
)
from app.services.trends import MONTH_NAMES

NAVY = (44, 62, 80)
BLUE = (41, 128, 185)
SKY = (52, 152, 219)
GREEN = (46, 204, 113)
DARK_GREEN = (39, 174, 96)
PURPLE = (155, 89, 182)
VIOLET = (142, 68, 173)
ORANGE = (230, 126, 34)
RED = (231, 76, 60)

TOP_USERS = 15
TOP_TECHNOLOGY = 10
RECENT_LIMIT = 100


def share(count: int, total: int) -> str:
    return f"{count / total * 100:.1f}%" if total else "0.0%"


def period_label(year: int, month: int | None = None) -> str:
    return f"{MONTH_NAMES[month - 1]} {year}" if month else str(year)


def _ranked(counter: Counter, limit: int | None = None) -> list[tuple[str, int]]:
    ordered = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return ordered[:limit] if limit else ordered


def _user_fields(log: UserActivityLog) -> tuple[str, str]:
    user = log.user
    return (user.full_name, user.role.value) if user else ("Unknown", "")


def _heading(text: str) -> TextLine:
    return TextLine(text, size=13, bold=True, space_after=6)


def _count_table(head: list[str], counts: list[tuple[str, int]], total: int, color) -> Table:
    return Table(
        head=head,
        rows=[[name, str(count), share(count, total)] for name, count in counts],
        widths=[80, 45, 45],
        align=["left", "center", "center"],
        header_color=color,
    )


def _cover_page(logs: list[UserActivityLog], year: int, month: int | None, generated_at: datetime) -> Page:
    total = len(logs)
    successful = sum(1 for log in logs if log.is_successful)
    return Page(
        header=CoverBand(
            title="Activity Report",
            subtitle=f"User Activity - {period_label(year, month)}",
            badge=get_settings().REPORT_PRODUCT_NAME,
            color=NAVY,
        ),
        blocks=[
            InfoBox(
                title="Report Details",
                rows=[
                    [f"Report Period: {period_label(year, month)}"],
                    [f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M')} UTC"],
                    [f"Total Records: {total}"],
                ],
            ),
            StatTiles(
                tiles=[
                    StatTile("Total Activities", str(total), BLUE),
                    StatTile("Successful", str(successful), GREEN),
                    StatTile("Failed", str(total - successful), RED),
                    StatTile("Success Rate", share(successful, total), PURPLE),
                ]
            ),
        ],
    )


def _summary_page(logs: list[UserActivityLog]) -> Page:
    total = len(logs)
    successful = sum(1 for log in logs if log.is_successful)
    by_type = Counter(log.activity_type.value for log in logs)
    return Page(
        header=HeaderBand("Executive Summary", BLUE),
        blocks=[
            Table(
                head=["Metric", "Count", "Percentage"],
                rows=[
                    ["Total Activities", str(total), "100%" if total else "0.0%"],
                    ["Successful Activities", str(successful), share(successful, total)],
                    ["Failed Activities", str(total - successful), share(total - successful, total)],
                ],
                widths=[80, 45, 45],
                align=["left", "center", "center"],
                header_color=BLUE,
            ),
            _heading("Activity Breakdown by Type"),
            _count_table(["Activity Type", "Count", "Percentage"], _ranked(by_type), total, GREEN),
        ],
    )


def _user_page(logs: list[UserActivityLog]) -> Page:
    total = len(logs)
    activity: Counter = Counter()
    last_seen: dict[int, datetime] = {}
    details: dict[int, tuple[str, str]] = {}
    role_counts: Counter = Counter()
    role_users: dict[str, set[int]] = {}
    for log in logs:
        name, role = _user_fields(log)
        activity[log.user_id] += 1
        details[log.user_id] = (name, role)
        if log.user_id not in last_seen or log.timestamp > last_seen[log.user_id]:
            last_seen[log.user_id] = log.timestamp
        role_counts[role] += 1
        role_users.setdefault(role, set()).add(log.user_id)

    top_users = sorted(activity.items(), key=lambda item: (-item[1], details[item[0]][0]))[:TOP_USERS]
    user_rows = [
        [str(rank), details[user_id][0], details[user_id][1], str(count), last_seen[user_id].date().isoformat()]
        for rank, (user_id, count) in enumerate(top_users, start=1)
    ]
    role_rows = [
        [role, str(count), share(count, total), str(len(role_users[role]))]
        for role, count in _ranked(role_counts)
    ]
    blocks: list = [
        Table(
            head=["Rank", "User Name", "Role", "Activities", "Last Activity"],
            rows=user_rows,
            widths=[15, 60, 35, 25, 35],
            align=["center", "left", "left", "center", "center"],
            header_color=PURPLE,
        ),
        _heading("Role-based Activity"),
        Table(
            head=["Role", "Activities", "Percentage", "Unique Users"],
            rows=role_rows,
            widths=[55, 35, 40, 40],
            align=["left", "center", "center", "center"],
            header_color=ORANGE,
        ),
    ]
    if not logs:
        blocks = [TextLine("No activity recorded for this period")]
    return Page(header=HeaderBand("User Activity Analysis", PURPLE), blocks=blocks)


def _geography_page(logs: list[UserActivityLog]) -> Page | None:
    countries: Counter = Counter()
    cities: dict[str, set[str]] = {}
    for log in logs:
        location = decode_metadata(log.location)
        country = str(location.get("country") or "Unknown")
        countries[country] += 1
        cities.setdefault(country, set())
        if location.get("city"):
            cities[country].add(str(location["city"]))
    if set(countries) <= {"Unknown"}:
        return None

    total = len(logs)
    return Page(
        header=HeaderBand("Geographic Activity Analysis", SKY),
        blocks=[
            Table(
                head=["Country", "Activities", "Percentage", "Cities"],
                rows=[
                    [country, str(count), share(count, total), str(len(cities[country]))]
                    for country, count in _ranked(countries)
                ],
                widths=[70, 35, 35, 30],
                align=["left", "center", "center", "center"],
                header_color=SKY,
            )
        ],
    )


def _technology_page(logs: list[UserActivityLog]) -> Page:
    browsers: Counter = Counter()
    systems: Counter = Counter()
    devices: Counter = Counter()
    for log in logs:
        device = decode_metadata(log.device_info)
        browsers[str(device.get("browser") or "Unknown")] += 1
        systems[str(device.get("os") or "Unknown")] += 1
        devices[str(device.get("device") or "Unknown")] += 1

    total = len(logs)
    return Page(
        header=HeaderBand("Technology Usage Analysis", RED),
        blocks=[
            _count_table(["Browser", "Count", "Percentage"], _ranked(browsers, TOP_TECHNOLOGY), total, RED),
            _count_table(["Operating System", "Count", "Percentage"], _ranked(systems, TOP_TECHNOLOGY), total, DARK_GREEN),
            _count_table(["Device", "Count", "Percentage"], _ranked(devices, TOP_TECHNOLOGY), total, SKY),
        ],
    )


def _hourly_page(logs: list[UserActivityLog]) -> Page:
    hours = Counter(log.timestamp.hour for log in logs)
    total = len(logs)
    return Page(
        header=HeaderBand("Time-based Activity Analysis", VIOLET),
        blocks=[
            TextLine("Activities per hour of day (UTC)", space_after=8),
            Table(
                head=["Hour", "Activities", "Percentage"],
                rows=[[f"{hour:02d}:00", str(hours[hour]), share(hours[hour], total)] for hour in range(24)],
                widths=[50, 60, 60],
                align=["center"] * 3,
                header_color=VIOLET,
                row_height=7.0,
            ),
        ],
    )


def _recent_page(logs: list[UserActivityLog]) -> Page:
    rows = []
    for log in logs[-RECENT_LIMIT:]:
        name, role = _user_fields(log)
        location = decode_metadata(log.location)
        device = decode_metadata(log.device_info)
        rows.append(
            [
                log.timestamp.strftime("%Y-%m-%d %H:%M"),
                name,
                role,
                log.activity_type.value,
                "Success" if log.is_successful else "Failed",
                str(location.get("country") or "Unknown"),
                str(device.get("browser") or "Unknown"),
            ]
        )
    return Page(
        header=HeaderBand("Recent Activities Detail", NAVY),
        blocks=[
            Table(
                head=["Timestamp", "User", "Role", "Activity", "Status", "Country", "Browser"],
                rows=rows,
                widths=[30, 32, 24, 28, 16, 20, 20],
                header_color=NAVY,
                font_size=8,
                row_height=6.0,
                header_height=8.0,
            )
        ],
    )


def build_activity_pages(
    logs: list[UserActivityLog], year: int, month: int | None, generated_at: datetime
) -> list[Page]:
    """Logical pages of the activity report; `logs` must be in timestamp order."""
    pages = [
        _cover_page(logs, year, month, generated_at),
        _summary_page(logs),
        _user_page(logs),
    ]
    geography = _geography_page(logs)
    if geography is not None:
        pages.append(geography)
    pages.append(_technology_page(logs))
    pages.append(_hourly_page(logs))
    if logs:
        pages.append(_recent_page(logs))
    return pages


def activity_pdf(logs: list[UserActivityLog], year: int, month: int | None, generated_at: datetime) -> bytes:
    settings = get_settings()
    return render_pdf(
        build_activity_pages(logs, year, month, generated_at),
        footer=f"{settings.REPORT_ORGANIZATION} - Confidential Activity Report",
        title=f"{settings.REPORT_PRODUCT_NAME} Activity Report {period_label(year, month)}",
    )
