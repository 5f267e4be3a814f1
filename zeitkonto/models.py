from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column

from zeitkonto.db import Base


class EntryType(str, enum.Enum):
    WORK = "WORK"
    OVERTIME = "OVERTIME"
    VACATION = "VACATION"
    SICK = "SICK"
    HOLIDAY = "HOLIDAY"


class TimeEntry(Base):
    __tablename__ = "time_entries"
    __table_args__ = (
        UniqueConstraint("user_id", "day_date", "start_time", name="uq_time_entries_user_id_day_date_start_time"),
        Index("ix_time_entries_user_id_day_date", "user_id", "day_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    day_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    type: Mapped[EntryType] = mapped_column(
        Enum(EntryType, name="entry_type"),
        nullable=False,
        default=EntryType.WORK,
        server_default=text("'WORK'"),
    )
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    import_batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class UserSettings(Base):
    __tablename__ = "user_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    weekly_work_hours: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        server_default=text("40"),
    )
    work_days: Mapped[list[int]] = mapped_column(
        ARRAY(Integer),
        nullable=False,
        server_default=text("'{1,2,3,4,5}'"),
    )
    default_start_time: Mapped[str] = mapped_column(String(5), nullable=False, server_default=text("'09:00'"))
    default_end_time: Mapped[str] = mapped_column(String(5), nullable=False, server_default=text("'17:00'"))
    break_duration: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False, server_default=text("0.5"))
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, server_default=text("'Europe/Berlin'"))
    overtime_notification: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )
    language: Mapped[str] = mapped_column(String(8), nullable=False, server_default=text("'de'"))
    theme: Mapped[str] = mapped_column(String(16), nullable=False, server_default=text("'system'"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class ReviewedDay(Base):
    __tablename__ = "reviewed_days"
    __table_args__ = (UniqueConstraint("user_id", "day_date", name="uq_reviewed_days_user_id_day_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    day_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reviewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
