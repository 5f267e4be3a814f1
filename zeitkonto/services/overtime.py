from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from zeitkonto.models import EntryType
from zeitkonto.schemas import (
    DailyStatistics,
    EntryTypeTotals,
    MonthlyStatistics,
    OvertimeBalance,
    OvertimeDetails,
    OvertimePeriod,
    WeeklyStatistics,
)
from zeitkonto.services.cache import ResultCache, make_cache_key
from zeitkonto.services.entries import find_adjustment_entry, find_entries, is_adjustment_entry
from zeitkonto.services.overtime_calc import (
    calculate_day_breakdown,
    compute_balance,
    resolve_window,
)
from zeitkonto.services.schedule import iter_dates, resolve_schedule, round_to_quarter_hour, to_decimal
from zeitkonto.services.weeks import iso_week_bounds, iso_weeks_overlapping_month, month_bounds

logger = logging.getLogger("zeitkonto.overtime")

ZERO = Decimal("0")


def _hours(value: Decimal) -> float:
    return float(round_to_quarter_hour(value))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OvertimeService:
    """Balance and statistics engine for one process.

    Results are memoized in the injected cache. Callers that mutate entries,
    settings or the adjustment must invalidate the affected user afterwards.
    """

    def __init__(self, cache: ResultCache, *, now: Callable[[], datetime] = _utcnow) -> None:
        self.cache = cache
        self._now = now

    def invalidate_cache(self, user_id: str | None = None) -> None:
        self.cache.invalidate(user_id)

    def calculate_balance(
        self,
        db: Session,
        user_id: str,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        include_details: bool = True,
    ) -> OvertimeBalance:
        cache_key = make_cache_key(
            user_id,
            "balance",
            {"start_date": start_date, "end_date": end_date, "include_details": include_details},
        )
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached
        generation = self.cache.generation(user_id)

        schedule = resolve_schedule(db, user_id)
        adjustment = find_adjustment_entry(db, user_id)
        window = resolve_window(
            today=self._now().astimezone(schedule.tzinfo).date(),
            start_date=start_date,
            end_date=end_date,
            adjustment=adjustment,
        )

        entries = []
        if not window.is_empty:
            entries = find_entries(db, user_id, start_date=window.entries_from, end_date=window.end)
        computation = compute_balance(schedule=schedule, window=window, entries=entries)

        balance = OvertimeBalance(
            user_id=user_id,
            balance=float(computation.overtime_hours),
            last_updated=self._now(),
        )
        if include_details:
            balance.details = OvertimeDetails(
                actual_hours=_hours(computation.actual_hours + computation.initial_balance),
                target_hours=_hours(computation.target_hours),
                overtime_hours=float(computation.overtime_hours),
            )
        if start_date is not None and end_date is not None:
            balance.period = OvertimePeriod(start_date=start_date, end_date=end_date)

        self.cache.set(cache_key, balance, generation=generation)
        return balance

    def calculate_weekly_statistics(self, db: Session, user_id: str, year: int, week: int) -> WeeklyStatistics:
        cache_key = make_cache_key(user_id, "weekly", {"year": year, "week": week})
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached
        generation = self.cache.generation(user_id)

        week_start, week_end = iso_week_bounds(year, week)
        schedule = resolve_schedule(db, user_id)
        entries = find_entries(db, user_id, start_date=week_start, end_date=week_end)

        totals = {item: ZERO for item in EntryType}
        daily_breakdown: list[DailyStatistics] = []
        total_hours = ZERO
        target_hours = ZERO
        for day in iter_dates(week_start, week_end):
            breakdown = calculate_day_breakdown(day, schedule, entries)
            total_hours += breakdown.actual_hours
            target_hours += breakdown.target_hours
            for entry_type, hours in breakdown.type_hours.items():
                totals[entry_type] += hours
            daily_breakdown.append(
                DailyStatistics(
                    day_date=day,
                    actual_hours=_hours(breakdown.actual_hours),
                    target_hours=float(breakdown.target_hours),
                    overtime_hours=_hours(breakdown.overtime_hours),
                    entry_type=breakdown.entry_type,
                )
            )

        statistics = WeeklyStatistics(
            user_id=user_id,
            year=year,
            week=week,
            week_start=week_start,
            week_end=week_end,
            total_hours=_hours(total_hours),
            target_hours=_hours(target_hours),
            overtime_hours=_hours(total_hours - target_hours),
            daily_breakdown=daily_breakdown,
            entry_types=EntryTypeTotals(
                work=_hours(totals[EntryType.WORK]),
                overtime=_hours(totals[EntryType.OVERTIME]),
                vacation=_hours(totals[EntryType.VACATION]),
                sick=_hours(totals[EntryType.SICK]),
                holiday=_hours(totals[EntryType.HOLIDAY]),
            ),
        )
        self.cache.set(cache_key, statistics, generation=generation)
        return statistics

    def calculate_monthly_statistics(self, db: Session, user_id: str, year: int, month: int) -> MonthlyStatistics:
        cache_key = make_cache_key(user_id, "monthly", {"year": year, "month": month})
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached
        generation = self.cache.generation(user_id)

        month_start, month_end = month_bounds(year, month)
        weekly_breakdown = [
            self.calculate_weekly_statistics(db, user_id, iso_year, iso_week)
            for iso_year, iso_week in iso_weeks_overlapping_month(year, month)
        ]

        # Weeks straddle month borders; only days inside the month count.
        total_hours = ZERO
        target_hours = ZERO
        for weekly in weekly_breakdown:
            for day in weekly.daily_breakdown:
                if month_start <= day.day_date <= month_end:
                    total_hours += to_decimal(day.actual_hours)
                    target_hours += to_decimal(day.target_hours)

        billable_hours = ZERO
        non_billable_hours = ZERO
        for entry in find_entries(db, user_id, start_date=month_start, end_date=month_end):
            if is_adjustment_entry(entry):
                continue
            hours = round_to_quarter_hour(entry.duration)
            if entry.type == EntryType.WORK:
                billable_hours += hours
            else:
                non_billable_hours += hours

        statistics = MonthlyStatistics(
            user_id=user_id,
            year=year,
            month=month,
            total_hours=_hours(total_hours),
            target_hours=_hours(target_hours),
            overtime_hours=_hours(total_hours - target_hours),
            weekly_breakdown=weekly_breakdown,
            billable_hours=_hours(billable_hours),
            non_billable_hours=_hours(non_billable_hours),
        )
        self.cache.set(cache_key, statistics, generation=generation)
        return statistics

    def recalculate_historical_data(
        self,
        db: Session,
        user_id: str,
        start_date: date,
        end_date: date,
    ) -> OvertimeBalance:
        self.invalidate_cache(user_id)
        logger.info(
            "overtime_recalculated",
            extra={"user_id": user_id, "start_date": start_date, "end_date": end_date},
        )
        return self.calculate_balance(db, user_id, start_date=start_date, end_date=end_date)
