from __future__ import annotations

from calendar import monthrange
from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from zeitkonto.errors import ValidationError
from zeitkonto.models import EntryType, UserSettings
from zeitkonto.schemas import DayData, TimeEntryRead, WeekData, WeekSummary
from zeitkonto.services.entries import find_entries, is_adjustment_entry
from zeitkonto.services.schedule import (
    expected_hours_for_day,
    is_weekend,
    iter_dates,
    schedule_from_settings,
    should_notify_overtime,
    to_decimal,
)

if TYPE_CHECKING:
    from zeitkonto.services.overtime import OvertimeService

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

_WORKED_TYPES = frozenset({EntryType.WORK, EntryType.OVERTIME})


def iso_week_bounds(year: int, week: int) -> tuple[date, date]:
    try:
        monday = date.fromisocalendar(year, week, 1)
    except ValueError as exc:
        raise ValidationError("INVALID_ISO_WEEK", f"{year}-W{week:02d} is not a valid ISO week.") from exc
    return monday, monday + timedelta(days=6)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    if month < 1 or month > 12:
        raise ValidationError("INVALID_MONTH", "month must be between 1 and 12.")
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def iso_weeks_overlapping_month(year: int, month: int) -> list[tuple[int, int]]:
    first_day, last_day = month_bounds(year, month)
    monday = first_day - timedelta(days=first_day.weekday())
    weeks: list[tuple[int, int]] = []
    while monday <= last_day:
        iso_year, iso_week, _ = monday.isocalendar()
        weeks.append((iso_year, iso_week))
        monday += timedelta(days=7)
    return weeks


def get_week_data(
    db: Session,
    service: OvertimeService,
    *,
    user_id: str,
    year: int,
    week: int,
) -> WeekData:
    week_start, week_end = iso_week_bounds(year, week)
    settings_row = db.scalar(select(UserSettings).where(UserSettings.user_id == user_id))
    schedule = schedule_from_settings(settings_row)
    notify_enabled = settings_row.overtime_notification if settings_row is not None else True

    entries = [
        entry
        for entry in find_entries(db, user_id, start_date=week_start, end_date=week_end)
        if not is_adjustment_entry(entry)
    ]

    days: list[DayData] = []
    total_worked = Decimal("0")
    total_target = Decimal("0")
    for day in iter_dates(week_start, week_end):
        day_entries = [entry for entry in entries if entry.day_date == day]
        holiday = any(entry.type == EntryType.HOLIDAY for entry in day_entries)
        worked = sum(
            (to_decimal(entry.duration) for entry in day_entries if entry.type in _WORKED_TYPES),
            Decimal("0"),
        )
        target = Decimal("0") if holiday else expected_hours_for_day(schedule, day)
        total_worked += worked
        total_target += target
        days.append(
            DayData(
                day_date=day,
                day_of_week=DAY_NAMES[day.weekday()],
                entries=[TimeEntryRead.model_validate(entry) for entry in day_entries],
                total_hours=float(worked),
                target_hours=float(target),
                difference=float(worked - target),
                is_weekend=is_weekend(day),
                is_holiday=holiday,
                notify_overtime=should_notify_overtime(notify_enabled, schedule, worked, day),
            )
        )

    cumulative = service.calculate_balance(
        db,
        user_id,
        start_date=date(year, 1, 1),
        end_date=week_end,
        include_details=False,
    )
    return WeekData(
        year=year,
        week=week,
        week_start_date=week_start,
        week_end_date=week_end,
        days=days,
        summary=WeekSummary(
            total_work_hours=float(total_worked),
            target_hours=float(total_target),
            week_balance=float(total_worked - total_target),
            cumulative_balance=cumulative.balance,
        ),
    )
