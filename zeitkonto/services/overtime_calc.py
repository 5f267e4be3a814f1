from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from zeitkonto.models import EntryType, TimeEntry
from zeitkonto.services.entries import is_adjustment_entry
from zeitkonto.services.schedule import (
    Schedule,
    is_work_day,
    iter_dates,
    round_to_quarter_hour,
    to_decimal,
)

ZERO = Decimal("0")

_ABSENCE_TYPES = frozenset({EntryType.VACATION, EntryType.SICK})
_PRIMARY_TYPE_ORDER = (
    EntryType.HOLIDAY,
    EntryType.SICK,
    EntryType.VACATION,
    EntryType.OVERTIME,
    EntryType.WORK,
)


@dataclass(frozen=True)
class CalculationWindow:
    start: date
    end: date
    entries_from: date
    initial_balance: Decimal

    @property
    def is_empty(self) -> bool:
        return self.start > self.end


@dataclass(frozen=True)
class BalanceComputation:
    initial_balance: Decimal
    actual_hours: Decimal
    target_hours: Decimal
    overtime_hours: Decimal


@dataclass(frozen=True)
class DayBreakdown:
    day_date: date
    actual_hours: Decimal
    target_hours: Decimal
    entry_type: EntryType
    type_hours: dict[EntryType, Decimal] = field(default_factory=dict)

    @property
    def overtime_hours(self) -> Decimal:
        return self.actual_hours - self.target_hours


def resolve_window(
    *,
    today: date,
    start_date: date | None,
    end_date: date | None,
    adjustment: TimeEntry | None,
) -> CalculationWindow:
    end = end_date or today
    if adjustment is None:
        start = start_date or date(today.year, 1, 1)
        return CalculationWindow(start=start, end=end, entries_from=start, initial_balance=ZERO)

    # Target accrual starts the day after the adjustment, whatever the caller asked for.
    first_day = adjustment.day_date + timedelta(days=1)
    start = max(start_date, first_day) if start_date is not None else first_day
    return CalculationWindow(
        start=start,
        end=end,
        entries_from=adjustment.day_date,
        initial_balance=to_decimal(adjustment.duration),
    )


def calculate_target_hours(
    schedule: Schedule,
    start: date,
    end: date,
    holiday_dates: Iterable[date] = (),
) -> Decimal:
    target = ZERO
    for day in iter_dates(start, end):
        if is_work_day(day, schedule):
            target += schedule.daily_hours

    for day in set(holiday_dates):
        if start <= day <= end and is_work_day(day, schedule):
            target -= schedule.daily_hours
    return target


def entry_actual_hours(entry: TimeEntry, schedule: Schedule) -> Decimal:
    if entry.type == EntryType.HOLIDAY:
        return ZERO
    if entry.type in _ABSENCE_TYPES:
        return schedule.daily_hours if is_work_day(entry.day_date, schedule) else ZERO
    return round_to_quarter_hour(entry.duration)


def calculate_actual_hours(entries: Iterable[TimeEntry], schedule: Schedule) -> Decimal:
    return sum((entry_actual_hours(entry, schedule) for entry in entries), ZERO)


def compute_balance(
    *,
    schedule: Schedule,
    window: CalculationWindow,
    entries: Iterable[TimeEntry],
) -> BalanceComputation:
    if window.is_empty:
        target_hours = ZERO
        actual_hours = ZERO
    else:
        counted = [
            entry
            for entry in entries
            if window.entries_from <= entry.day_date <= window.end and not is_adjustment_entry(entry)
        ]
        holiday_dates = {entry.day_date for entry in counted if entry.type == EntryType.HOLIDAY}
        target_hours = calculate_target_hours(schedule, window.start, window.end, holiday_dates)
        actual_hours = calculate_actual_hours(counted, schedule)

    overtime_hours = round_to_quarter_hour(window.initial_balance + actual_hours - target_hours)
    return BalanceComputation(
        initial_balance=window.initial_balance,
        actual_hours=actual_hours,
        target_hours=target_hours,
        overtime_hours=overtime_hours,
    )


def calculate_day_breakdown(day: date, schedule: Schedule, entries: Iterable[TimeEntry]) -> DayBreakdown:
    day_entries = [entry for entry in entries if entry.day_date == day and not is_adjustment_entry(entry)]
    work_day = is_work_day(day, schedule)
    types_present = {entry.type for entry in day_entries}

    type_hours: dict[EntryType, Decimal] = {}
    worked = ZERO
    for entry in day_entries:
        if entry.type in _ABSENCE_TYPES or entry.type == EntryType.HOLIDAY:
            continue
        hours = round_to_quarter_hour(entry.duration)
        worked += hours
        type_hours[entry.type] = type_hours.get(entry.type, ZERO) + hours

    target = schedule.daily_hours if work_day else ZERO
    actual = worked

    absence_type = next((item for item in (EntryType.SICK, EntryType.VACATION) if item in types_present), None)
    if absence_type is not None and work_day:
        actual = schedule.daily_hours
        type_hours[absence_type] = schedule.daily_hours

    if EntryType.HOLIDAY in types_present:
        if work_day:
            type_hours[EntryType.HOLIDAY] = schedule.daily_hours
        target = ZERO

    primary = next((item for item in _PRIMARY_TYPE_ORDER if item in types_present), EntryType.WORK)
    return DayBreakdown(
        day_date=day,
        actual_hours=actual,
        target_hours=target,
        entry_type=primary,
        type_hours=type_hours,
    )
