from collections.abc import Iterable, Mapping

from app.models.user import User
from app.schemas.report import UserPerformance


def percentage(part: int, whole: int) -> int:
    """Whole-number percentage rounded half up; 0 when there is nothing to divide by."""
    if not whole:
        return 0
    return int(part * 100 / whole + 0.5)


def display_label(value: str) -> str:
    return value.replace("_", " ")


def build_user_performance(
    roster: Iterable[User],
    inquiries_by_user: Mapping[int, int],
    converted_by_user: Mapping[int, int],
    interactions_by_user: Mapping[int, int],
    this_month_by_user: Mapping[int, int],
) -> list[UserPerformance]:
    """Join per-owner counts onto the roster; one row per roster user, busiest first.

    Users missing from an aggregate get 0. The sort is stable, so users with the
    same inquiry count keep roster order.
    """
    rows = []
    for user in roster:
        inquiries = int(inquiries_by_user.get(user.id, 0))
        converted = int(converted_by_user.get(user.id, 0))
        rows.append(
            UserPerformance(
                id=user.id,
                name=user.full_name,
                email=user.email,
                role=display_label(user.role.value),
                inquiries=inquiries,
                converted=converted,
                conversion_rate=percentage(converted, inquiries),
                interactions=int(interactions_by_user.get(user.id, 0)),
                this_month=int(this_month_by_user.get(user.id, 0)),
                joined_at=user.created_at,
            )
        )
    rows.sort(key=lambda row: row.inquiries, reverse=True)
    return rows
