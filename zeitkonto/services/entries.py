from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zeitkonto.errors import ConflictError, NotFoundError, ValidationError
from zeitkonto.models import EntryType, TimeEntry
from zeitkonto.schemas import TimeEntryCreate, TimeEntryUpdate
from zeitkonto.services.cache import ResultCache
from zeitkonto.services.schedule import resolve_schedule, to_decimal

# Substring that turns an ordinary entry into the user's starting balance.
ADJUSTMENT_MARKER = "initial overtime balance"
DUPLICATE_ENTRY_CONSTRAINT = "uq_time_entries_user_id_day_date_start_time"


def is_adjustment_entry(entry: TimeEntry) -> bool:
    return ADJUSTMENT_MARKER in (entry.description or "")


def is_duplicate_entry_error(exc: IntegrityError) -> bool:
    return DUPLICATE_ENTRY_CONSTRAINT in str(exc.orig)


def _commit_entry(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if is_duplicate_entry_error(exc):
            raise ConflictError("DUPLICATE_ENTRY", "An entry with the same date and start time already exists.") from exc
        raise


def hours_between(start: datetime, end: datetime) -> Decimal:
    seconds = Decimal(int((end - start).total_seconds()))
    return (seconds / Decimal(3600)).quantize(Decimal("0.01"))


def find_entries(
    db: Session,
    user_id: str,
    *,
    start_date: date,
    end_date: date,
    entry_type: EntryType | None = None,
) -> list[TimeEntry]:
    stmt = (
        select(TimeEntry)
        .where(
            TimeEntry.user_id == user_id,
            TimeEntry.day_date >= start_date,
            TimeEntry.day_date <= end_date,
        )
        .order_by(TimeEntry.day_date.asc(), TimeEntry.start_time.asc(), TimeEntry.id.asc())
    )
    if entry_type is not None:
        stmt = stmt.where(TimeEntry.type == entry_type)
    return list(db.scalars(stmt).all())


def get_entry(db: Session, user_id: str, entry_id: int) -> TimeEntry:
    entry = db.get(TimeEntry, entry_id)
    if entry is None or entry.user_id != user_id:
        raise NotFoundError("ENTRY_NOT_FOUND", "Time entry not found.")
    return entry


def _ensure_time_order(start_time: datetime, end_time: datetime) -> None:
    if end_time < start_time:
        raise ValidationError("INVALID_TIME_RANGE", "end_time must not be before start_time.")


def create_entry(db: Session, cache: ResultCache, user_id: str, payload: TimeEntryCreate) -> TimeEntry:
    _ensure_time_order(payload.start_time, payload.end_time)

    duplicate = db.scalar(
        select(TimeEntry).where(
            TimeEntry.user_id == user_id,
            TimeEntry.day_date == payload.day_date,
            TimeEntry.start_time == payload.start_time,
        )
    )
    if duplicate is not None:
        raise ConflictError("DUPLICATE_ENTRY", "An entry with the same date and start time already exists.")

    if payload.duration is None:
        duration = hours_between(payload.start_time, payload.end_time)
    else:
        duration = to_decimal(payload.duration)

    entry = TimeEntry(
        user_id=user_id,
        day_date=payload.day_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        duration=duration,
        type=payload.type,
        description=payload.description,
        import_batch_id=payload.import_batch_id,
    )
    db.add(entry)
    _commit_entry(db)
    db.refresh(entry)
    cache.invalidate(user_id)
    return entry


def update_entry(
    db: Session,
    cache: ResultCache,
    user_id: str,
    entry_id: int,
    payload: TimeEntryUpdate,
) -> TimeEntry:
    entry = get_entry(db, user_id, entry_id)
    changes = payload.model_dump(exclude_unset=True)

    start_time = changes.get("start_time", entry.start_time)
    end_time = changes.get("end_time", entry.end_time)
    _ensure_time_order(start_time, end_time)

    for field_name, value in changes.items():
        if field_name == "duration" and value is not None:
            value = to_decimal(value)
        setattr(entry, field_name, value)
    if changes.get("duration") is None and ("start_time" in changes or "end_time" in changes):
        entry.duration = hours_between(start_time, end_time)

    _commit_entry(db)
    db.refresh(entry)
    cache.invalidate(user_id)
    return entry


def delete_entry(db: Session, cache: ResultCache, user_id: str, entry_id: int) -> None:
    entry = get_entry(db, user_id, entry_id)
    db.delete(entry)
    db.commit()
    cache.invalidate(user_id)


def delete_entries(db: Session, cache: ResultCache, user_id: str, entry_ids: list[int]) -> int:
    entries = list(
        db.scalars(
            select(TimeEntry).where(
                TimeEntry.user_id == user_id,
                TimeEntry.id.in_(entry_ids),
            )
        ).all()
    )
    for entry in entries:
        db.delete(entry)
    db.commit()
    cache.invalidate(user_id)
    return len(entries)


def find_adjustment_entry(db: Session, user_id: str) -> TimeEntry | None:
    return db.scalar(
        select(TimeEntry)
        .where(
            TimeEntry.user_id == user_id,
            TimeEntry.description.contains(ADJUSTMENT_MARKER),
        )
        .order_by(TimeEntry.day_date.asc(), TimeEntry.id.asc())
        .limit(1)
    )


def upsert_adjustment_entry(
    db: Session,
    cache: ResultCache,
    user_id: str,
    *,
    day_date: date,
    hours: float | Decimal,
    note: str | None = None,
) -> TimeEntry:
    schedule = resolve_schedule(db, user_id)
    midnight = datetime.combine(day_date, time.min, tzinfo=schedule.tzinfo)
    description = f"{ADJUSTMENT_MARKER}: {note}" if note else ADJUSTMENT_MARKER

    entry = find_adjustment_entry(db, user_id)
    if entry is None:
        entry = TimeEntry(user_id=user_id, type=EntryType.OVERTIME)
        db.add(entry)
    entry.day_date = day_date
    entry.start_time = midnight
    entry.end_time = midnight
    entry.duration = to_decimal(hours)
    entry.description = description

    _commit_entry(db)
    db.refresh(entry)
    cache.invalidate(user_id)
    return entry


def delete_adjustment_entry(db: Session, cache: ResultCache, user_id: str) -> None:
    entry = find_adjustment_entry(db, user_id)
    if entry is None:
        raise NotFoundError("ADJUSTMENT_NOT_FOUND", "No initial overtime balance recorded.")
    db.delete(entry)
    db.commit()
    cache.invalidate(user_id)
