from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zeitkonto.errors import ValidationError
from zeitkonto.models import EntryType, TimeEntry
from zeitkonto.schemas import BulkFillRequest, BulkFillResponse, SkipReasons
from zeitkonto.services.cache import ResultCache
from zeitkonto.services.entries import find_entries, is_duplicate_entry_error
from zeitkonto.services.holidays import list_holiday_dates
from zeitkonto.services.schedule import is_weekend, iter_dates, resolve_schedule, to_decimal

logger = logging.getLogger("zeitkonto.bulk_fill")

MAX_RANGE_DAYS = 366
DEFAULT_DESCRIPTION = "Bulk fill work time"


@dataclass
class _FillPlan:
    dates_to_create: list[date] = field(default_factory=list)
    skip_reasons: SkipReasons = field(default_factory=SkipReasons)

    @property
    def skipped(self) -> int:
        return self.skip_reasons.weekend + self.skip_reasons.holiday + self.skip_reasons.existing


def _parse_hhmm(value: str) -> time:
    hour_str, minute_str = value.split(":")
    return time(hour=int(hour_str), minute=int(minute_str))


def validate_request(request: BulkFillRequest) -> tuple[time, time]:
    if request.start_date > request.end_date:
        raise ValidationError("INVALID_DATE_RANGE", "start_date must not be after end_date.")
    span_days = (request.end_date - request.start_date).days + 1
    if span_days > MAX_RANGE_DAYS:
        raise ValidationError("DATE_RANGE_TOO_LONG", f"Bulk fill is limited to {MAX_RANGE_DAYS} days.")

    start_time = _parse_hhmm(request.start_time)
    end_time = _parse_hhmm(request.end_time)
    if start_time >= end_time:
        raise ValidationError("INVALID_TIME_RANGE", "start_time must be before end_time.")
    return start_time, end_time


def plan_bulk_fill(db: Session, user_id: str, request: BulkFillRequest) -> _FillPlan:
    holiday_dates = list_holiday_dates(db, user_id, request.start_date, request.end_date)
    existing_dates: set[date] = set()
    if request.skip_existing:
        existing_dates = {
            entry.day_date
            for entry in find_entries(db, user_id, start_date=request.start_date, end_date=request.end_date)
        }

    plan = _FillPlan()
    for day in iter_dates(request.start_date, request.end_date):
        if is_weekend(day):
            plan.skip_reasons.weekend += 1
        elif day in holiday_dates:
            plan.skip_reasons.holiday += 1
        elif request.skip_existing and day in existing_dates:
            plan.skip_reasons.existing += 1
        else:
            plan.dates_to_create.append(day)
    return plan


def preview_bulk_fill(db: Session, user_id: str, request: BulkFillRequest) -> BulkFillResponse:
    validate_request(request)
    plan = plan_bulk_fill(db, user_id, request)
    return BulkFillResponse(
        created=len(plan.dates_to_create),
        skipped=plan.skipped,
        skip_reasons=plan.skip_reasons,
    )


def fill_workdays(
    db: Session,
    cache: ResultCache,
    user_id: str,
    request: BulkFillRequest,
) -> BulkFillResponse:
    start_time, end_time = validate_request(request)
    schedule = resolve_schedule(db, user_id)
    plan = plan_bulk_fill(db, user_id, request)
    duration = to_decimal(request.daily_hours)
    description = request.description or DEFAULT_DESCRIPTION

    created = 0
    try:
        for day in plan.dates_to_create:
            entry = TimeEntry(
                user_id=user_id,
                day_date=day,
                start_time=datetime.combine(day, start_time, tzinfo=schedule.tzinfo),
                end_time=datetime.combine(day, end_time, tzinfo=schedule.tzinfo),
                duration=duration,
                type=EntryType.WORK,
                description=description,
            )
            # Only a same-start collision with a concurrent insert is skipped.
            try:
                with db.begin_nested():
                    db.add(entry)
            except IntegrityError as exc:
                if not is_duplicate_entry_error(exc):
                    raise
                plan.skip_reasons.existing += 1
                continue
            created += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    cache.invalidate(user_id)
    response = BulkFillResponse(created=created, skipped=plan.skipped, skip_reasons=plan.skip_reasons)
    logger.info(
        "bulk_fill_completed",
        extra={
            "user_id": user_id,
            "start_date": request.start_date,
            "end_date": request.end_date,
            "created_entries": response.created,
            "skipped": response.skipped,
            "skip_reasons": response.skip_reasons.model_dump(),
        },
    )
    return response
