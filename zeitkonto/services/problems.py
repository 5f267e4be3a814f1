from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zeitkonto.models import ReviewedDay, TimeEntry
from zeitkonto.schemas import (
    ProblemDay,
    ProblemFilters,
    ProblemReport,
    ProblemStats,
    ProblemSuggestion,
    ProblemType,
    TimeEntryRead,
)
from zeitkonto.services.entries import find_entries
from zeitkonto.services.holidays import list_holiday_dates
from zeitkonto.services.schedule import Schedule, is_weekend, iter_dates, resolve_schedule, to_decimal

DEFAULT_LOOKBACK_DAYS = 30


def default_date_range(today: date) -> tuple[date, date]:
    return today - timedelta(days=DEFAULT_LOOKBACK_DAYS), today


def classify_day(
    entries: list[TimeEntry],
    *,
    daily_hours: Decimal,
    weekend: bool,
    holiday: bool,
) -> ProblemType | None:
    if not entries:
        return "missing"
    total_hours = sum((to_decimal(entry.duration) for entry in entries), Decimal("0"))
    if total_hours == 0:
        return "zero_hours"
    if total_hours < daily_hours and not weekend and not holiday:
        return "incomplete"
    return None


def suggest_action(
    problem_type: ProblemType,
    *,
    entry_count: int,
    weekend: bool,
    holiday: bool,
) -> ProblemSuggestion:
    if problem_type == "missing" and (weekend or holiday):
        return "review"
    if problem_type == "missing" and entry_count == 0:
        return "add_entry"
    if problem_type == "incomplete":
        return "add_entry"
    return "bulk_fill"


def _sort_problems(problems: list[ProblemDay], sort_by: str | None) -> list[ProblemDay]:
    if sort_by == "date_asc":
        return sorted(problems, key=lambda item: item.day_date)
    if sort_by == "date_desc":
        return sorted(problems, key=lambda item: item.day_date, reverse=True)
    if sort_by == "type":
        return sorted(problems, key=lambda item: item.type)
    return problems


def find_problematic_days(
    db: Session,
    user_id: str,
    filters: ProblemFilters | None = None,
    *,
    schedule: Schedule | None = None,
) -> ProblemReport:
    filters = filters or ProblemFilters()
    schedule = schedule or resolve_schedule(db, user_id)
    if filters.start_date is not None and filters.end_date is not None:
        start_date, end_date = filters.start_date, filters.end_date
    else:
        start_date, end_date = default_date_range(schedule.today())

    entries_by_day: dict[date, list[TimeEntry]] = defaultdict(list)
    for entry in find_entries(db, user_id, start_date=start_date, end_date=end_date):
        entries_by_day[entry.day_date].append(entry)
    holiday_dates = list_holiday_dates(db, user_id, start_date, end_date)
    reviewed_dates = {item.day_date for item in list_reviewed_days(db, user_id, start_date, end_date)}

    problems: list[ProblemDay] = []
    stats = ProblemStats()
    for day in iter_dates(start_date, end_date):
        reviewed = day in reviewed_dates
        if reviewed and filters.review_status == "unreviewed":
            continue
        if not reviewed and filters.review_status == "reviewed":
            continue

        day_entries = entries_by_day.get(day, [])
        weekend = is_weekend(day)
        holiday = day in holiday_dates
        if (weekend or holiday) and not day_entries:
            continue

        problem_type = classify_day(day_entries, daily_hours=schedule.daily_hours, weekend=weekend, holiday=holiday)
        if problem_type is None:
            continue

        stats.total_problems += 1
        if problem_type == "missing":
            stats.missing_days += 1
        elif problem_type == "zero_hours":
            stats.zero_hours_days += 1
        else:
            stats.incomplete_days += 1

        if filters.problem_type not in ("all", problem_type):
            continue

        problems.append(
            ProblemDay(
                day_date=day,
                type=problem_type,
                current_hours=float(sum((to_decimal(item.duration) for item in day_entries), Decimal("0"))),
                expected_hours=0.0 if weekend or holiday else float(schedule.daily_hours),
                entries=[TimeEntryRead.model_validate(item) for item in day_entries],
                is_weekend=weekend,
                is_holiday=holiday,
                suggestion=suggest_action(
                    problem_type,
                    entry_count=len(day_entries),
                    weekend=weekend,
                    holiday=holiday,
                ),
            )
        )

    return ProblemReport(problems=_sort_problems(problems, filters.sort_by), stats=stats)


def list_reviewed_days(
    db: Session,
    user_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[ReviewedDay]:
    stmt = select(ReviewedDay).where(ReviewedDay.user_id == user_id).order_by(ReviewedDay.day_date.desc())
    if start_date is not None:
        stmt = stmt.where(ReviewedDay.day_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(ReviewedDay.day_date <= end_date)
    return list(db.scalars(stmt).all())


def mark_as_reviewed(db: Session, user_id: str, day_date: date, reason: str | None = None) -> ReviewedDay:
    reviewed = db.scalar(
        select(ReviewedDay).where(
            ReviewedDay.user_id == user_id,
            ReviewedDay.day_date == day_date,
        )
    )
    if reviewed is None:
        reviewed = ReviewedDay(user_id=user_id, day_date=day_date)
        db.add(reviewed)
    reviewed.reason = reason
    reviewed.reviewed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(reviewed)
    return reviewed


def mark_multiple_as_reviewed(
    db: Session,
    user_id: str,
    dates: list[date],
    reason: str | None = None,
) -> int:
    """Review every date once; dates already reviewed are left untouched."""
    already_reviewed: set[date] = set()
    if dates:
        already_reviewed = {item.day_date for item in list_reviewed_days(db, user_id, min(dates), max(dates))}

    created = 0
    reviewed_at = datetime.now(timezone.utc)
    for day in sorted(set(dates) - already_reviewed):
        try:
            with db.begin_nested():
                db.add(ReviewedDay(user_id=user_id, day_date=day, reason=reason, reviewed_at=reviewed_at))
        except IntegrityError:
            continue
        created += 1
    db.commit()
    return created


def unreview_day(db: Session, user_id: str, day_date: date) -> None:
    db.execute(
        delete(ReviewedDay).where(
            ReviewedDay.user_id == user_id,
            ReviewedDay.day_date == day_date,
        )
    )
    db.commit()
