from datetime import date, datetime
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from zeitkonto.models import EntryType

HHMM_PATTERN = r"^([01]\d|2[0-3]):([0-5]\d)$"

ProblemType = Literal["missing", "zero_hours", "incomplete"]
ProblemSuggestion = Literal["review", "add_entry", "bulk_fill"]


def _hhmm_minutes(value: str) -> int:
    hour_str, minute_str = value.split(":")
    return int(hour_str) * 60 + int(minute_str)


class TimeEntryCreate(BaseModel):
    day_date: date
    start_time: datetime
    end_time: datetime
    duration: float | None = Field(default=None, ge=0)
    type: EntryType = EntryType.WORK
    description: str | None = Field(default=None, max_length=1000)
    import_batch_id: str | None = Field(default=None, max_length=64)


class TimeEntryUpdate(BaseModel):
    day_date: date | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: float | None = Field(default=None, ge=0)
    type: EntryType | None = None
    description: str | None = Field(default=None, max_length=1000)


class TimeEntryRead(BaseModel):
    id: int
    user_id: str
    day_date: date
    start_time: datetime
    end_time: datetime
    duration: float
    type: EntryType
    description: str | None = None
    import_batch_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class TimeEntryBulkDeleteRequest(BaseModel):
    ids: list[int] = Field(min_length=1, max_length=1000)


class TimeEntryBulkDeleteResponse(BaseModel):
    deleted: int


class AdjustmentUpsertRequest(BaseModel):
    day_date: date
    hours: float
    note: str | None = Field(default=None, max_length=500)


class AdjustmentRead(BaseModel):
    id: int
    day_date: date
    hours: float
    description: str | None = None


class UserSettingsRead(BaseModel):
    id: int
    user_id: str
    weekly_work_hours: float
    work_days: list[int]
    default_start_time: str
    default_end_time: str
    break_duration: float
    timezone: str
    overtime_notification: bool
    language: str
    theme: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class UserSettingsUpdate(BaseModel):
    weekly_work_hours: float | None = Field(default=None, ge=1, le=168)
    work_days: list[int] | None = Field(default=None, min_length=1, max_length=7)
    default_start_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    default_end_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    break_duration: float | None = Field(default=None, ge=0, le=8)
    timezone: str | None = Field(default=None, min_length=1, max_length=64)
    overtime_notification: bool | None = None
    language: str | None = Field(default=None, min_length=2, max_length=8)
    theme: Literal["light", "dark", "system"] | None = None

    @field_validator("work_days")
    @classmethod
    def _validate_work_days(cls, value: list[int] | None) -> list[int] | None:
        if value is None:
            return value
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("work days must be between 0 (Sunday) and 6 (Saturday)")
        if len(set(value)) != len(value):
            raise ValueError("work days must not contain duplicates")
        return sorted(value)

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {value}") from exc
        return value

    @model_validator(mode="after")
    def _validate_time_order(self) -> "UserSettingsUpdate":
        if self.default_start_time is not None and self.default_end_time is not None:
            if _hhmm_minutes(self.default_start_time) >= _hhmm_minutes(self.default_end_time):
                raise ValueError("default_start_time must be before default_end_time")
        return self


class OvertimePeriod(BaseModel):
    start_date: date
    end_date: date


class OvertimeDetails(BaseModel):
    actual_hours: float
    target_hours: float
    overtime_hours: float


class OvertimeBalance(BaseModel):
    user_id: str
    balance: float
    period: OvertimePeriod | None = None
    details: OvertimeDetails | None = None
    last_updated: datetime


class DailyStatistics(BaseModel):
    day_date: date
    actual_hours: float
    target_hours: float
    overtime_hours: float
    entry_type: EntryType


class EntryTypeTotals(BaseModel):
    work: float = 0.0
    overtime: float = 0.0
    vacation: float = 0.0
    sick: float = 0.0
    holiday: float = 0.0


class WeeklyStatistics(BaseModel):
    user_id: str
    year: int
    week: int
    week_start: date
    week_end: date
    total_hours: float
    target_hours: float
    overtime_hours: float
    daily_breakdown: list[DailyStatistics]
    entry_types: EntryTypeTotals


class MonthlyStatistics(BaseModel):
    user_id: str
    year: int
    month: int
    total_hours: float
    target_hours: float
    overtime_hours: float
    weekly_breakdown: list[WeeklyStatistics]
    billable_hours: float
    non_billable_hours: float


class DayData(BaseModel):
    day_date: date
    day_of_week: str
    entries: list[TimeEntryRead]
    total_hours: float
    target_hours: float
    difference: float
    is_weekend: bool
    is_holiday: bool
    notify_overtime: bool


class WeekSummary(BaseModel):
    total_work_hours: float
    target_hours: float
    week_balance: float
    cumulative_balance: float


class WeekData(BaseModel):
    year: int
    week: int
    week_start_date: date
    week_end_date: date
    days: list[DayData]
    summary: WeekSummary


class ProblemFilters(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    problem_type: ProblemType | Literal["all"] = "all"
    review_status: Literal["reviewed", "unreviewed", "all"] = "all"
    sort_by: Literal["date_asc", "date_desc", "type"] | None = None

    @model_validator(mode="after")
    def _validate_range(self) -> "ProblemFilters":
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError("start_date and end_date must be provided together")
        return self


class ProblemDay(BaseModel):
    day_date: date
    type: ProblemType
    current_hours: float
    expected_hours: float
    entries: list[TimeEntryRead]
    is_weekend: bool
    is_holiday: bool
    suggestion: ProblemSuggestion


class ProblemStats(BaseModel):
    total_problems: int = 0
    missing_days: int = 0
    zero_hours_days: int = 0
    incomplete_days: int = 0


class ProblemReport(BaseModel):
    problems: list[ProblemDay]
    stats: ProblemStats


class ReviewRequest(BaseModel):
    day_date: date
    reason: str | None = Field(default=None, max_length=500)


class BulkReviewRequest(BaseModel):
    dates: list[date] = Field(min_length=1, max_length=366)
    reason: str | None = Field(default=None, max_length=500)


class ReviewedDayRead(BaseModel):
    id: int
    user_id: str
    day_date: date
    reason: str | None = None
    reviewed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class BulkFillRequest(BaseModel):
    start_date: date
    end_date: date
    daily_hours: float = Field(gt=0, le=24)
    start_time: str = Field(default="09:00", pattern=HHMM_PATTERN)
    end_time: str = Field(default="17:00", pattern=HHMM_PATTERN)
    description: str | None = Field(default=None, max_length=1000)
    skip_existing: bool = True


class SkipReasons(BaseModel):
    weekend: int = 0
    holiday: int = 0
    existing: int = 0


class BulkFillResponse(BaseModel):
    created: int = 0
    skipped: int = 0
    skip_reasons: SkipReasons = Field(default_factory=SkipReasons)


class HolidayImportItem(BaseModel):
    day_date: date
    name: str = Field(min_length=1, max_length=255)


class HolidayImportRequest(BaseModel):
    holidays: list[HolidayImportItem] = Field(min_length=1, max_length=100)


class HolidayImportResponse(BaseModel):
    created: int
    skipped_weekend: int
    skipped_existing: int
