from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zeitkonto.models import EntryType, TimeEntry
from zeitkonto.schemas import HolidayImportItem, HolidayImportResponse
from zeitkonto.services.cache import ResultCache
from zeitkonto.services.entries import is_duplicate_entry_error
from zeitkonto.services.schedule import Schedule, is_weekend, resolve_schedule

logger = logging.getLogger("zeitkonto.holidays")

HOLIDAY_START = time(9, 0)


def list_holiday_dates(db: Session, user_id: str, start_date: date, end_date: date) -> set[date]:
    if start_date > end_date:
        return set()
    rows = db.scalars(
        select(TimeEntry.day_date).where(
            TimeEntry.user_id == user_id,
            TimeEntry.type == EntryType.HOLIDAY,
            TimeEntry.day_date >= start_date,
            TimeEntry.day_date <= end_date,
        )
    ).all()
    return set(rows)


def is_holiday(db: Session, user_id: str, day: date) -> bool:
    return day in list_holiday_dates(db, user_id, day, day)


def holiday_work_times(day: date, schedule: Schedule) -> tuple[datetime, datetime]:
    start = datetime.combine(day, HOLIDAY_START, tzinfo=schedule.tzinfo)
    end = start + timedelta(hours=float(schedule.daily_hours))
    return start, end


def import_holidays(
    db: Session,
    cache: ResultCache,
    user_id: str,
    items: list[HolidayImportItem],
) -> HolidayImportResponse:
    """Store public holidays as HOLIDAY entries; weekends and known dates are skipped."""
    schedule = resolve_schedule(db, user_id)
    result = HolidayImportResponse(created=0, skipped_weekend=0, skipped_existing=0)
    if not items:
        return result

    first_day = min(item.day_date for item in items)
    last_day = max(item.day_date for item in items)
    known_dates = list_holiday_dates(db, user_id, first_day, last_day)

    for item in sorted(items, key=lambda value: value.day_date):
        if is_weekend(item.day_date):
            result.skipped_weekend += 1
            continue
        if item.day_date in known_dates:
            result.skipped_existing += 1
            continue
        start, end = holiday_work_times(item.day_date, schedule)
        known_dates.add(item.day_date)
        entry = TimeEntry(
            user_id=user_id,
            day_date=item.day_date,
            start_time=start,
            end_time=end,
            duration=schedule.daily_hours.quantize(Decimal("0.01")),
            type=EntryType.HOLIDAY,
            description=item.name,
        )
        try:
            with db.begin_nested():
                db.add(entry)
        except IntegrityError as exc:
            if not is_duplicate_entry_error(exc):
                raise
            result.skipped_existing += 1
            continue
        result.created += 1

    db.commit()
    cache.invalidate(user_id)
    logger.info(
        "holiday_import_completed",
        extra={
            "user_id": user_id,
            "created_entries": result.created,
            "skipped_weekend": result.skipped_weekend,
            "skipped_existing": result.skipped_existing,
        },
    )
    return result
