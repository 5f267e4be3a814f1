from __future__ import annotations

import unittest
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError

from zeitkonto.errors import NotFoundError, ValidationError
from zeitkonto.models import EntryType, TimeEntry, UserSettings
from zeitkonto.schemas import HolidayImportItem, UserSettingsUpdate
from zeitkonto.services.cache import InMemoryResultCache, make_cache_key
from zeitkonto.services.entries import DUPLICATE_ENTRY_CONSTRAINT
from zeitkonto.services.holidays import import_holidays, is_holiday
from zeitkonto.services.schedule import Schedule
from zeitkonto.services.user_settings import get_or_create_user_settings, reset_user_settings, update_user_settings


class _FakeDB:
    def __init__(self, row: UserSettings | None = None, *, colliding_dates: set[date] | None = None):
        self.row = row
        self.colliding_dates = colliding_dates or set()
        self.added: list[object] = []
        self.commits = 0

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        return self.row

    def add(self, obj) -> None:  # type: ignore[no-untyped-def]
        self.added.append(obj)
        if isinstance(obj, UserSettings):
            self.row = obj

    @contextmanager
    def begin_nested(self):  # type: ignore[no-untyped-def]
        savepoint = len(self.added)
        yield
        if any(getattr(obj, "day_date", None) in self.colliding_dates for obj in self.added[savepoint:]):
            del self.added[savepoint:]
            raise IntegrityError(
                "INSERT INTO time_entries",
                {},
                Exception(f'duplicate key value violates unique constraint "{DUPLICATE_ENTRY_CONSTRAINT}"'),
            )

    def commit(self) -> None:
        self.commits += 1

    def refresh(self, _obj):  # type: ignore[no-untyped-def]
        return


def _seeded_cache() -> InMemoryResultCache:
    cache = InMemoryResultCache()
    cache.set(make_cache_key("u1", "weekly", {"year": 2025, "week": 2}), "stale")
    return cache


class UserSettingsTests(unittest.TestCase):
    def test_first_read_persists_defaults(self) -> None:
        db = _FakeDB()

        row = get_or_create_user_settings(db, "u1")  # type: ignore[arg-type]

        self.assertEqual(db.added, [row])
        self.assertEqual(row.weekly_work_hours, Decimal("40"))
        self.assertEqual(row.work_days, [1, 2, 3, 4, 5])
        self.assertEqual(row.default_start_time, "09:00")
        self.assertTrue(row.overtime_notification)

    def test_update_converts_hours_and_invalidates(self) -> None:
        db = _FakeDB()
        cache = _seeded_cache()

        row = update_user_settings(  # type: ignore[arg-type]
            db,
            cache,
            "u1",
            UserSettingsUpdate(weekly_work_hours=32, work_days=[4, 1, 2, 3]),
        )

        self.assertEqual(row.weekly_work_hours, Decimal("32"))
        self.assertEqual(row.work_days, [1, 2, 3, 4])
        self.assertIsNone(cache.get(make_cache_key("u1", "weekly", {"year": 2025, "week": 2})))

    def test_update_rejects_start_after_stored_end(self) -> None:
        db = _FakeDB()
        get_or_create_user_settings(db, "u1")  # type: ignore[arg-type]

        with self.assertRaises(ValidationError):
            update_user_settings(db, InMemoryResultCache(), "u1", UserSettingsUpdate(default_start_time="18:00"))  # type: ignore[arg-type]

    def test_invalid_work_day_is_rejected_by_schema(self) -> None:
        with self.assertRaises(ValueError):
            UserSettingsUpdate(work_days=[1, 7])

    def test_reset_without_row_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            reset_user_settings(_FakeDB(), InMemoryResultCache(), "u1")  # type: ignore[arg-type]

    def test_reset_restores_defaults(self) -> None:
        row = UserSettings(user_id="u1", weekly_work_hours=Decimal("20"), work_days=[1], theme="dark")
        cache = _seeded_cache()

        reset_user_settings(_FakeDB(row), cache, "u1")  # type: ignore[arg-type]

        self.assertEqual(row.weekly_work_hours, Decimal("40"))
        self.assertEqual(row.theme, "system")
        self.assertEqual(len(cache), 0)


@patch(
    "zeitkonto.services.holidays.resolve_schedule",
    return_value=Schedule(
        weekly_hours=Decimal("38"),
        daily_hours=Decimal("7.6"),
        work_days=frozenset({1, 2, 3, 4, 5}),
        timezone="Europe/Berlin",
    ),
)
class HolidayImportTests(unittest.TestCase):
    @patch("zeitkonto.services.holidays.list_holiday_dates", return_value={date(2025, 12, 25)})
    def test_skips_weekend_and_known_holidays(self, _mock_known, _mock_schedule) -> None:
        db = _FakeDB()
        cache = _seeded_cache()
        items = [
            HolidayImportItem(day_date=date(2025, 12, 26), name="Zweiter Weihnachtstag"),
            HolidayImportItem(day_date=date(2025, 12, 25), name="Erster Weihnachtstag"),
            HolidayImportItem(day_date=date(2025, 11, 1), name="Allerheiligen"),
            HolidayImportItem(day_date=date(2025, 12, 26), name="Duplicate in payload"),
        ]

        result = import_holidays(db, cache, "u1", items)  # type: ignore[arg-type]

        self.assertEqual(result.created, 1)
        self.assertEqual(result.skipped_weekend, 1)
        self.assertEqual(result.skipped_existing, 2)
        entry = db.added[0]
        self.assertIsInstance(entry, TimeEntry)
        self.assertEqual(entry.type, EntryType.HOLIDAY)
        self.assertEqual(entry.duration, Decimal("7.60"))
        self.assertEqual(entry.description, "Zweiter Weihnachtstag")
        self.assertEqual(db.commits, 1)
        self.assertEqual(len(cache), 0)

    @patch("zeitkonto.services.holidays.list_holiday_dates", return_value=set())
    def test_collision_with_existing_entry_is_skipped(self, _mock_known, _mock_schedule) -> None:
        db = _FakeDB(colliding_dates={date(2025, 10, 3)})
        items = [
            HolidayImportItem(day_date=date(2025, 10, 3), name="Tag der Deutschen Einheit"),
            HolidayImportItem(day_date=date(2025, 12, 25), name="Erster Weihnachtstag"),
        ]

        result = import_holidays(db, InMemoryResultCache(), "u1", items)  # type: ignore[arg-type]

        self.assertEqual(result.created, 1)
        self.assertEqual(result.skipped_existing, 1)
        self.assertEqual([entry.day_date for entry in db.added], [date(2025, 12, 25)])
        self.assertEqual(db.commits, 1)


class HolidayLookupTests(unittest.TestCase):
    @patch("zeitkonto.services.holidays.list_holiday_dates", return_value={date(2025, 10, 3)})
    def test_is_holiday_checks_single_day(self, mock_known) -> None:
        self.assertTrue(is_holiday(None, "u1", date(2025, 10, 3)))  # type: ignore[arg-type]
        mock_known.assert_called_once_with(None, "u1", date(2025, 10, 3), date(2025, 10, 3))


if __name__ == "__main__":
    unittest.main()
