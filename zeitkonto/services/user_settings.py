from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from zeitkonto.errors import NotFoundError, ValidationError
from zeitkonto.models import UserSettings
from zeitkonto.schemas import UserSettingsUpdate
from zeitkonto.services.cache import ResultCache
from zeitkonto.services.schedule import DEFAULT_WEEKLY_HOURS, DEFAULT_WORK_DAYS, to_decimal
from zeitkonto.settings import get_settings

DEFAULT_START_TIME = "09:00"
DEFAULT_END_TIME = "17:00"
DEFAULT_BREAK_HOURS = Decimal("0.5")
DEFAULT_LANGUAGE = "de"
DEFAULT_THEME = "system"

_DECIMAL_FIELDS = {"weekly_work_hours", "break_duration"}


def _apply_defaults(row: UserSettings) -> UserSettings:
    row.weekly_work_hours = DEFAULT_WEEKLY_HOURS
    row.work_days = list(DEFAULT_WORK_DAYS)
    row.default_start_time = DEFAULT_START_TIME
    row.default_end_time = DEFAULT_END_TIME
    row.break_duration = DEFAULT_BREAK_HOURS
    row.timezone = get_settings().default_timezone
    row.overtime_notification = True
    row.language = DEFAULT_LANGUAGE
    row.theme = DEFAULT_THEME
    return row


def find_user_settings(db: Session, user_id: str) -> UserSettings | None:
    return db.scalar(select(UserSettings).where(UserSettings.user_id == user_id))


def get_or_create_user_settings(db: Session, user_id: str) -> UserSettings:
    row = find_user_settings(db, user_id)
    if row is not None:
        return row

    row = _apply_defaults(UserSettings(user_id=user_id))
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def update_user_settings(
    db: Session,
    cache: ResultCache,
    user_id: str,
    payload: UserSettingsUpdate,
) -> UserSettings:
    row = get_or_create_user_settings(db, user_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    start_time = changes.get("default_start_time", row.default_start_time)
    end_time = changes.get("default_end_time", row.default_end_time)
    if start_time >= end_time:
        # "HH:MM" strings order the same way as the times they encode.
        raise ValidationError("INVALID_TIME_RANGE", "default_start_time must be before default_end_time.")

    for field_name, value in changes.items():
        if field_name in _DECIMAL_FIELDS:
            value = to_decimal(value)
        setattr(row, field_name, value)

    db.commit()
    db.refresh(row)
    cache.invalidate(user_id)
    return row


def reset_user_settings(db: Session, cache: ResultCache, user_id: str) -> UserSettings:
    row = find_user_settings(db, user_id)
    if row is None:
        raise NotFoundError("SETTINGS_NOT_FOUND", "No settings stored for this user.")

    _apply_defaults(row)
    db.commit()
    db.refresh(row)
    cache.invalidate(user_id)
    return row
