from datetime import date, datetime, timezone
from io import StringIO
import csv

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models.inquiry import Inquiry
from app.schemas.report import ReportSnapshot
from app.services.analytics import ReportScope
from app.services.pdf_layout import (
    Bar,
    BarGroup,
    BulletList,
    Cell,
    ClosingNote,
    CoverBand,
    GroupedBars,
    HeaderBand,
    HorizontalBars,
    InfoBox,
    Page,
    Series,
    StatTile,
    StatTiles,
    SummaryBox,
    Table,
    TextLine,
    render_pdf,
)

BLUE = (59, 130, 246)
GREEN = (16, 185, 129)
AMBER = (245, 158, 11)
PURPLE = (139, 92, 246)
RED = (239, 68, 68)
FUNNEL_COLORS = [
    BLUE,
    GREEN,
    AMBER,
    PURPLE,
    (236, 72, 153),
    (6, 182, 212),
    (132, 204, 22),
    RED,
]
FUNNEL_LIMIT = 6

TIER_COLORS = {"High": GREEN, "Medium": AMBER, "Low": RED}


def performance_tier(conversion_rate: int) -> str:
    if conversion_rate >= 30:
        return "High"
    if conversion_rate >= 15:
        return "Medium"
    return "Low"


def recommendations(snapshot: ReportSnapshot) -> list[str]:
    metrics = snapshot.contact_metrics
    items = []
    if metrics.contact_rate < 50:
        items.append("Contact rate is below 50%. Consider improving outreach timing and methods.")
    if metrics.conversion_rate < 20:
        items.append("Conversion rate could be improved. Review qualification criteria and follow-up processes.")
    weak_sources = [row for row in snapshot.source_performance if row.conversion_rate < 10]
    if weak_sources:
        items.append(
            f"{len(weak_sources)} source(s) have conversion rates below 10%. Consider reallocating budget."
        )
    if snapshot.lost_inquiries > snapshot.converted_inquiries:
        items.append("Lost inquiries exceed conversions. Review the sales process for improvement areas.")
    if not items:
        items.append("Performance metrics are healthy. Continue current strategies.")
        items.append("Consider A/B testing to further optimize conversion rates.")
    items.append("Regularly review and update pipeline stages to reflect the actual student journey.")
    items.append("Ensure all team members are logging interactions consistently.")
    return items


def format_generated_at(value: datetime) -> str:
    return value.strftime("%A, %B %d, %Y at %I:%M %p")


def report_id(value: datetime) -> str:
    # generated_at is naive UTC.
    return f"RPT-{int(value.replace(tzinfo=timezone.utc).timestamp() * 1000)}"


def _cover_page(snapshot: ReportSnapshot, operator_name: str, generated_at: datetime) -> Page:
    rate = snapshot.contact_metrics.conversion_rate
    return Page(
        header=CoverBand(
            title="Analytics Report",
            subtitle="Performance & Insights Dashboard",
            badge=get_settings().REPORT_PRODUCT_NAME,
            color=BLUE,
        ),
        blocks=[
            InfoBox(
                title="Report Details",
                rows=[
                    [f"Generated: {format_generated_at(generated_at)}"],
                    [f"Generated by: {operator_name}"],
                    [f"Total Inquiries: {snapshot.total_inquiries}", f"Overall Conversion Rate: {rate}%"],
                ],
            ),
            StatTiles(
                tiles=[
                    StatTile("Total Inquiries", str(snapshot.total_inquiries), BLUE),
                    StatTile("Converted", str(snapshot.converted_inquiries), GREEN),
                    StatTile("New This Month", str(snapshot.new_this_month), AMBER),
                    StatTile("Conversion Rate", f"{rate}%", PURPLE),
                ]
            ),
        ],
    )


def _source_page(snapshot: ReportSnapshot) -> Page:
    blocks: list = [TextLine("Breakdown of inquiries by marketing source with conversion rates", space_after=8)]
    sources = snapshot.source_performance
    if not sources:
        blocks.append(TextLine("No source data available"))
        return Page(header=HeaderBand("Source Performance Analysis", BLUE), blocks=blocks)

    rows = []
    for index, row in enumerate(sources, start=1):
        tier = performance_tier(row.conversion_rate)
        rows.append(
            [
                str(index),
                row.source,
                str(row.count),
                f"{row.conversion_rate}%",
                Cell(tier, color=TIER_COLORS[tier], bold=tier == "High"),
            ]
        )
    top = sources[0]
    blocks.append(
        Table(
            head=["#", "Marketing Source", "Inquiries", "Conversion Rate", "Performance"],
            rows=rows,
            widths=[15, 60, 30, 35, 30],
            align=["center", "left", "center", "center", "center"],
            header_color=BLUE,
        )
    )
    blocks.append(
        SummaryBox(
            title="Summary",
            columns=[f"Top Source: {top.source} with {top.count} inquiries", f"Total Sources: {len(sources)}"],
            fill=(240, 253, 244),
            border=GREEN,
            title_color=GREEN,
        )
    )
    return Page(header=HeaderBand("Source Performance Analysis", BLUE), blocks=blocks)


def _stage_page(snapshot: ReportSnapshot) -> Page:
    stages = snapshot.stage_distribution
    blocks: list = [
        TextLine(
            f"Current distribution of {snapshot.total_inquiries} inquiries across pipeline stages",
            space_after=8,
        )
    ]
    if not stages:
        blocks.append(TextLine("No pipeline data available"))
        return Page(header=HeaderBand("Pipeline Stage Distribution", GREEN), blocks=blocks)

    in_pipeline = sum(row.count for row in stages)
    rows = [
        [
            str(index),
            row.stage,
            str(row.count),
            f"{row.count / in_pipeline * 100:.1f}%" if in_pipeline else "0%",
        ]
        for index, row in enumerate(stages, start=1)
    ]
    blocks.append(
        Table(
            head=["#", "Pipeline Stage", "Count", "Percentage"],
            rows=rows,
            widths=[15, 80, 40, 35],
            align=["center", "left", "center", "center"],
            header_color=GREEN,
            stripe_color=(240, 253, 244),
        )
    )
    blocks.append(
        HorizontalBars(
            title="Pipeline Funnel",
            bars=[
                Bar(f"{row.stage}: {row.count}", row.count, FUNNEL_COLORS[index % len(FUNNEL_COLORS)])
                for index, row in enumerate(stages[:FUNNEL_LIMIT])
            ],
        )
    )
    return Page(header=HeaderBand("Pipeline Stage Distribution", GREEN), blocks=blocks)


def _trend_page(snapshot: ReportSnapshot) -> Page:
    trends = snapshot.monthly_trends
    rows = [
        [
            row.month_year,
            str(row.new_inquiries),
            str(row.conversions),
            f"{row.conversions / row.new_inquiries * 100:.1f}%" if row.new_inquiries else "0%",
        ]
        for row in trends
    ]
    total_new = sum(row.new_inquiries for row in trends)
    total_converted = sum(row.conversions for row in trends)
    average = int(total_new / max(len(trends), 1) + 0.5)
    return Page(
        header=HeaderBand("Monthly Trends Analysis", PURPLE),
        blocks=[
            TextLine("6-month performance trend showing new inquiries and conversions", space_after=8),
            Table(
                head=["Month", "New Inquiries", "Conversions", "Conversion Rate"],
                rows=rows,
                widths=[40, 40, 40, 40],
                align=["center"] * 4,
                header_color=PURPLE,
                stripe_color=(245, 243, 255),
            ),
            GroupedBars(
                title="Visual Trend",
                series=[Series("New Inquiries", BLUE), Series("Conversions", GREEN)],
                groups=[BarGroup(row.month, [row.new_inquiries, row.conversions]) for row in trends],
            ),
            SummaryBox(
                title=f"Period Summary (Last {len(trends)} Months)",
                columns=[
                    f"Total Inquiries: {total_new}",
                    f"Total Conversions: {total_converted}",
                    f"Avg Monthly: {average}",
                ],
                fill=(248, 250, 252),
                box_height=35,
            ),
        ],
    )


def _summary_page(snapshot: ReportSnapshot, generated_at: datetime) -> Page:
    metrics = snapshot.contact_metrics
    overview = [
        f"Total Inquiries in System: {snapshot.total_inquiries}",
        f"Total Converted: {snapshot.converted_inquiries} ({metrics.conversion_rate}%)",
        f"New Inquiries This Month: {snapshot.new_this_month}",
        f"Ready to Register: {snapshot.ready_to_register}",
        f"Lost Inquiries: {snapshot.lost_inquiries}",
        f"Total Interactions Logged: {metrics.total_calls}",
        f"Contact Success Rate: {metrics.contact_rate}%",
        f"Appointment Booking Rate: {metrics.appointment_rate}%",
        f"Number of Marketing Sources: {len(snapshot.source_performance)}",
        f"Active Pipeline Stages: {len(snapshot.stage_distribution)}",
    ]
    organization = get_settings().REPORT_ORGANIZATION
    return Page(
        header=HeaderBand("Summary & Key Insights", AMBER),
        blocks=[
            BulletList("Performance Overview", overview),
            BulletList("Recommendations", recommendations(snapshot)),
            ClosingNote(
                [
                    f"This report was automatically generated by the {organization}.",
                    f"Report ID: {report_id(generated_at)}",
                ]
            ),
        ],
    )


def build_report_pages(snapshot: ReportSnapshot, operator_name: str, generated_at: datetime) -> list[Page]:
    return [
        _cover_page(snapshot, operator_name, generated_at),
        _source_page(snapshot),
        _stage_page(snapshot),
        _trend_page(snapshot),
        _summary_page(snapshot, generated_at),
    ]


def analytics_pdf(snapshot: ReportSnapshot, operator_name: str, generated_at: datetime) -> bytes:
    settings = get_settings()
    pages = build_report_pages(snapshot, operator_name, generated_at)
    return render_pdf(
        pages,
        footer=f"{settings.REPORT_ORGANIZATION} - Confidential Report",
        title=f"{settings.REPORT_PRODUCT_NAME} Analytics Report",
        author=operator_name,
    )


def report_filename(day: date) -> str:
    return f"{get_settings().REPORT_PRODUCT_NAME}-Analytics-Report-{day.isoformat()}.pdf"


def inquiries_csv(db: Session, scope: ReportScope) -> str:
    rows = db.query(Inquiry).filter(*scope.inquiries()).order_by(Inquiry.created_at.desc()).all()
    out = StringIO()
    writer = csv.writer(out)
    writer.writerow([
        "id",
        "full_name",
        "email",
        "phone",
        "marketing_source",
        "stage",
        "created_by_id",
        "created_at",
    ])

    for inquiry in rows:
        writer.writerow([
            inquiry.id,
            inquiry.full_name,
            inquiry.email or "",
            inquiry.phone or "",
            inquiry.marketing_source or "",
            inquiry.stage.value,
            inquiry.created_by_id or "",
            inquiry.created_at.isoformat(),
        ])

    return out.getvalue()
