from __future__ import annotations

import unittest
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError

from zeitkonto.errors import ValidationError
from zeitkonto.models import EntryType, TimeEntry
from zeitkonto.schemas import BulkFillRequest
from zeitkonto.services.bulk_fill import DEFAULT_DESCRIPTION, fill_workdays, preview_bulk_fill
from zeitkonto.services.cache import InMemoryResultCache, make_cache_key
from zeitkonto.services.entries import DUPLICATE_ENTRY_CONSTRAINT
from zeitkonto.services.schedule import Schedule

SCHEDULE = Schedule(
    weekly_hours=Decimal("40"),
    daily_hours=Decimal("8"),
    work_days=frozenset({1, 2, 3, 4, 5}),
    timezone="Europe/Berlin",
)
HOLIDAY = date(2025, 1, 8)


def _holiday_entry() -> TimeEntry:
    start = datetime(2025, 1, 8, 8, 0, tzinfo=timezone.utc)
    return TimeEntry(
        id=1,
        user_id="u1",
        day_date=HOLIDAY,
        start_time=start,
        end_time=start + timedelta(hours=8),
        duration=Decimal("8"),
        type=EntryType.HOLIDAY,
        description="Heilige Drei Koenige",
    )


class _FakeNested:
    def __init__(self, db: "_FakeDB"):
        self.db = db

    def __enter__(self):  # type: ignore[no-untyped-def]
        return self

    def __exit__(self, exc_type, exc, tb):  # type: ignore[no-untyped-def]
        pending = self.db.pending
        self.db.pending = []
        if exc_type is not None:
            return False
        for item in pending:
            if item.day_date in self.db.conflicting_dates:
                raise IntegrityError(
                    "INSERT INTO time_entries",
                    {},
                    Exception(f'duplicate key value violates unique constraint "{DUPLICATE_ENTRY_CONSTRAINT}"'),
                )
            if item.day_date in self.db.invalid_dates:
                raise IntegrityError("INSERT INTO time_entries", {}, Exception("check constraint violated"))
            self.db.added.append(item)
        return False


class _FakeDB:
    def __init__(
        self,
        *,
        conflicting_dates: set[date] | None = None,
        broken_dates: set[date] | None = None,
        invalid_dates: set[date] | None = None,
    ):
        self.conflicting_dates = conflicting_dates or set()
        self.invalid_dates = invalid_dates or set()
        self.broken_dates = broken_dates or set()
        self.pending: list[TimeEntry] = []
        self.added: list[TimeEntry] = []
        self.commits = 0
        self.rollbacks = 0

    def begin_nested(self) -> _FakeNested:
        return _FakeNested(self)

    def add(self, obj: TimeEntry) -> None:
        if obj.day_date in self.broken_dates:
            raise RuntimeError("connection lost")
        self.pending.append(obj)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1
        self.added = []


def _request(**overrides) -> BulkFillRequest:  # type: ignore[no-untyped-def]
    values = {
        "start_date": date(2025, 1, 6),
        "end_date": date(2025, 1, 12),
        "daily_hours": 8,
    }
    values.update(overrides)
    return BulkFillRequest(**values)


def _seeded_cache() -> InMemoryResultCache:
    cache = InMemoryResultCache()
    cache.set(make_cache_key("u1", "balance"), "stale")
    return cache


@patch("zeitkonto.services.bulk_fill.resolve_schedule", return_value=SCHEDULE)
@patch("zeitkonto.services.bulk_fill.list_holiday_dates", return_value={HOLIDAY})
@patch("zeitkonto.services.bulk_fill.find_entries", return_value=[_holiday_entry()])
class FillWorkdaysTests(unittest.TestCase):
    def test_week_with_weekend_and_holiday(self, _mock_entries, _mock_holidays, _mock_schedule) -> None:
        db = _FakeDB()
        cache = _seeded_cache()

        result = fill_workdays(db, cache, "u1", _request())  # type: ignore[arg-type]

        self.assertEqual(result.created, 4)
        self.assertEqual(result.skipped, 3)
        self.assertEqual(result.skip_reasons.weekend, 2)
        self.assertEqual(result.skip_reasons.holiday, 1)
        self.assertEqual(result.skip_reasons.existing, 0)
        self.assertEqual(
            [item.day_date for item in db.added],
            [date(2025, 1, 6), date(2025, 1, 7), date(2025, 1, 9), date(2025, 1, 10)],
        )
        self.assertEqual(db.commits, 1)
        self.assertIsNone(cache.get(make_cache_key("u1", "balance")))

    def test_created_entries_use_template(self, _mock_entries, _mock_holidays, _mock_schedule) -> None:
        db = _FakeDB()

        fill_workdays(  # type: ignore[arg-type]
            db,
            InMemoryResultCache(),
            "u1",
            _request(daily_hours=7.5, start_time="08:00", end_time="16:00"),
        )

        entry = db.added[0]
        self.assertEqual(entry.type, EntryType.WORK)
        self.assertEqual(entry.duration, Decimal("7.5"))
        self.assertEqual(entry.description, DEFAULT_DESCRIPTION)
        self.assertEqual(entry.start_time.timetz().replace(tzinfo=None), time(8, 0))
        self.assertEqual(entry.start_time.tzinfo, SCHEDULE.tzinfo)
        self.assertEqual(entry.end_time.hour, 16)

    def test_late_collision_is_counted_as_existing(self, _mock_entries, _mock_holidays, _mock_schedule) -> None:
        db = _FakeDB(conflicting_dates={date(2025, 1, 9)})

        result = fill_workdays(db, InMemoryResultCache(), "u1", _request())  # type: ignore[arg-type]

        self.assertEqual(result.created, 3)
        self.assertEqual(result.skipped, 4)
        self.assertEqual(result.skip_reasons.existing, 1)
        self.assertEqual(result.created + result.skipped, 7)

    def test_unexpected_error_rolls_back_batch(self, _mock_entries, _mock_holidays, _mock_schedule) -> None:
        db = _FakeDB(broken_dates={date(2025, 1, 9)})
        cache = _seeded_cache()

        with self.assertRaises(RuntimeError):
            fill_workdays(db, cache, "u1", _request())  # type: ignore[arg-type]

        self.assertEqual(db.rollbacks, 1)
        self.assertEqual(db.commits, 0)
        self.assertEqual(db.added, [])
        self.assertEqual(cache.get(make_cache_key("u1", "balance")), "stale")

    def test_non_duplicate_integrity_error_rolls_back_batch(self, _mock_entries, _mock_holidays, _mock_schedule) -> None:
        db = _FakeDB(invalid_dates={date(2025, 1, 9)})
        cache = _seeded_cache()

        with self.assertRaises(IntegrityError):
            fill_workdays(db, cache, "u1", _request())  # type: ignore[arg-type]

        self.assertEqual(db.rollbacks, 1)
        self.assertEqual(db.commits, 0)
        self.assertEqual(db.added, [])
        self.assertEqual(cache.get(make_cache_key("u1", "balance")), "stale")

    def test_counts_always_cover_every_day(self, _mock_entries, _mock_holidays, _mock_schedule) -> None:
        for days in (1, 5, 13, 40):
            request = _request(start_date=date(2025, 1, 1), end_date=date(2025, 1, 1) + timedelta(days=days - 1))

            result = fill_workdays(_FakeDB(), InMemoryResultCache(), "u1", request)  # type: ignore[arg-type]

            self.assertEqual(result.created + result.skipped, days)
            self.assertEqual(
                result.skipped,
                result.skip_reasons.weekend + result.skip_reasons.holiday + result.skip_reasons.existing,
            )


@patch("zeitkonto.services.bulk_fill.list_holiday_dates", return_value=set())
class ExistingEntriesTests(unittest.TestCase):
    @patch("zeitkonto.services.bulk_fill.find_entries")
    def test_preview_skips_days_with_entries(self, mock_entries, _mock_holidays) -> None:
        existing = _holiday_entry()
        existing.type = EntryType.WORK
        mock_entries.return_value = [existing]

        result = preview_bulk_fill(None, "u1", _request())  # type: ignore[arg-type]

        self.assertEqual(result.created, 4)
        self.assertEqual(result.skip_reasons.existing, 1)
        self.assertEqual(result.skip_reasons.weekend, 2)

    @patch("zeitkonto.services.bulk_fill.find_entries")
    def test_skip_existing_disabled_ignores_entries(self, mock_entries, _mock_holidays) -> None:
        result = preview_bulk_fill(None, "u1", _request(skip_existing=False))  # type: ignore[arg-type]

        self.assertEqual(result.created, 5)
        self.assertEqual(result.skipped, 2)
        mock_entries.assert_not_called()


class ValidationTests(unittest.TestCase):
    def test_start_after_end(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            preview_bulk_fill(None, "u1", _request(start_date=date(2025, 2, 1), end_date=date(2025, 1, 1)))  # type: ignore[arg-type]
        self.assertEqual(ctx.exception.code, "INVALID_DATE_RANGE")

    def test_range_longer_than_a_year(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            preview_bulk_fill(None, "u1", _request(start_date=date(2024, 1, 1), end_date=date(2025, 1, 1)))  # type: ignore[arg-type]
        self.assertEqual(ctx.exception.code, "DATE_RANGE_TOO_LONG")

    def test_end_time_before_start_time(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            preview_bulk_fill(None, "u1", _request(start_time="17:00", end_time="09:00"))  # type: ignore[arg-type]
        self.assertEqual(ctx.exception.code, "INVALID_TIME_RANGE")


if __name__ == "__main__":
    unittest.main()
