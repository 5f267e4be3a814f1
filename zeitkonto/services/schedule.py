from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.orm import Session

from zeitkonto.models import UserSettings
from zeitkonto.settings import get_settings

DEFAULT_WEEKLY_HOURS = Decimal("40")
DEFAULT_WORK_DAYS: tuple[int, ...] = (1, 2, 3, 4, 5)

_QUARTERS = Decimal("4")


@dataclass(frozen=True)
class Schedule:
    weekly_hours: Decimal
    daily_hours: Decimal
    work_days: frozenset[int]
    timezone: str

    @property
    def tzinfo(self) -> ZoneInfo:
        return _zone(self.timezone)

    def today(self) -> date:
        return datetime.now(self.tzinfo).date()


@lru_cache
def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(get_settings().default_timezone)


def to_decimal(value: Decimal | float | int | str | None) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as 0.1 instead of its binary expansion.
    return Decimal(str(value))


def round_to_quarter_hour(hours: Decimal | float | int) -> Decimal:
    """Round to the nearest 0.25 h, halves away from zero."""
    quarters = (to_decimal(hours) * _QUARTERS).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return quarters / _QUARTERS


def default_schedule() -> Schedule:
    return Schedule(
        weekly_hours=DEFAULT_WEEKLY_HOURS,
        daily_hours=DEFAULT_WEEKLY_HOURS / len(DEFAULT_WORK_DAYS),
        work_days=frozenset(DEFAULT_WORK_DAYS),
        timezone=get_settings().default_timezone,
    )


def schedule_from_settings(row: UserSettings | None) -> Schedule:
    if row is None:
        return default_schedule()
    work_days = frozenset(int(day) for day in (row.work_days or []))
    if not work_days:
        return default_schedule()
    weekly_hours = to_decimal(row.weekly_work_hours)
    return Schedule(
        weekly_hours=weekly_hours,
        daily_hours=weekly_hours / max(1, len(work_days)),
        work_days=work_days,
        timezone=row.timezone or get_settings().default_timezone,
    )


def resolve_schedule(db: Session, user_id: str) -> Schedule:
    """Effective schedule for ``user_id``; never writes default settings."""
    row = db.scalar(select(UserSettings).where(UserSettings.user_id == user_id))
    return schedule_from_settings(row)


def weekday_index(day: date) -> int:
    # 0=Sunday ... 6=Saturday
    return day.isoweekday() % 7


def is_work_day(day: date, schedule: Schedule) -> bool:
    return weekday_index(day) in schedule.work_days


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def iter_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def expected_hours_for_day(schedule: Schedule, day: date) -> Decimal:
    if not is_work_day(day, schedule):
        return Decimal("0")
    return schedule.daily_hours


def total_expected_hours(schedule: Schedule, start: date, end: date) -> Decimal:
    return sum((expected_hours_for_day(schedule, day) for day in iter_dates(start, end)), Decimal("0"))


def should_notify_overtime(
    notify_enabled: bool,
    schedule: Schedule,
    actual_hours: Decimal | float,
    day: date,
) -> bool:
    if not notify_enabled:
        return False
    return to_decimal(actual_hours) > expected_hours_for_day(schedule, day)
