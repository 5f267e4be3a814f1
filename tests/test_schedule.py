from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal

from zeitkonto.models import UserSettings
from zeitkonto.services.schedule import (
    DEFAULT_WORK_DAYS,
    Schedule,
    expected_hours_for_day,
    is_weekend,
    is_work_day,
    round_to_quarter_hour,
    schedule_from_settings,
    should_notify_overtime,
    total_expected_hours,
    weekday_index,
)


def _schedule(weekly: str = "40", work_days: tuple[int, ...] = (1, 2, 3, 4, 5)) -> Schedule:
    return Schedule(
        weekly_hours=Decimal(weekly),
        daily_hours=Decimal(weekly) / len(work_days),
        work_days=frozenset(work_days),
        timezone="Europe/Berlin",
    )


class RoundingTests(unittest.TestCase):
    def test_rounds_to_nearest_quarter(self) -> None:
        self.assertEqual(round_to_quarter_hour(Decimal("7.1")), Decimal("7"))
        self.assertEqual(round_to_quarter_hour(Decimal("7.2")), Decimal("7.25"))
        self.assertEqual(round_to_quarter_hour(Decimal("7.4")), Decimal("7.5"))

    def test_halves_round_away_from_zero(self) -> None:
        self.assertEqual(round_to_quarter_hour(Decimal("7.125")), Decimal("7.25"))
        self.assertEqual(round_to_quarter_hour(Decimal("-7.125")), Decimal("-7.25"))

    def test_rounding_is_idempotent(self) -> None:
        for raw in ("0.13", "3.37", "-1.62", "8", "11.875"):
            once = round_to_quarter_hour(Decimal(raw))
            self.assertEqual(round_to_quarter_hour(once), once)

    def test_accepts_floats(self) -> None:
        self.assertEqual(round_to_quarter_hour(0.3), Decimal("0.25"))


class ScheduleResolutionTests(unittest.TestCase):
    def test_missing_settings_fall_back_to_defaults(self) -> None:
        schedule = schedule_from_settings(None)

        self.assertEqual(schedule.weekly_hours, Decimal("40"))
        self.assertEqual(schedule.daily_hours, Decimal("8"))
        self.assertEqual(schedule.work_days, frozenset(DEFAULT_WORK_DAYS))

    def test_daily_hours_derive_from_work_day_count(self) -> None:
        row = UserSettings(
            user_id="u1",
            weekly_work_hours=Decimal("30"),
            work_days=[1, 2, 3],
            timezone="Europe/Vienna",
        )

        schedule = schedule_from_settings(row)

        self.assertEqual(schedule.daily_hours, Decimal("10"))
        self.assertEqual(schedule.work_days, frozenset({1, 2, 3}))
        self.assertEqual(schedule.timezone, "Europe/Vienna")

    def test_empty_work_days_use_default_schedule(self) -> None:
        row = UserSettings(user_id="u1", weekly_work_hours=Decimal("20"), work_days=[], timezone="Europe/Berlin")

        schedule = schedule_from_settings(row)

        self.assertEqual(schedule.daily_hours, Decimal("8"))
        self.assertEqual(schedule.work_days, frozenset(DEFAULT_WORK_DAYS))


class DayClassifierTests(unittest.TestCase):
    def test_weekday_index_starts_on_sunday(self) -> None:
        self.assertEqual(weekday_index(date(2025, 1, 5)), 0)
        self.assertEqual(weekday_index(date(2025, 1, 6)), 1)
        self.assertEqual(weekday_index(date(2025, 1, 4)), 6)

    def test_work_day_follows_configured_days(self) -> None:
        schedule = _schedule("24", (2, 4, 6))

        self.assertFalse(is_work_day(date(2025, 1, 6), schedule))
        self.assertTrue(is_work_day(date(2025, 1, 7), schedule))
        self.assertTrue(is_work_day(date(2025, 1, 11), schedule))

    def test_weekend_is_calendar_based(self) -> None:
        self.assertTrue(is_weekend(date(2025, 1, 4)))
        self.assertTrue(is_weekend(date(2025, 1, 5)))
        self.assertFalse(is_weekend(date(2025, 1, 6)))

    def test_expected_hours_over_range(self) -> None:
        schedule = _schedule()

        self.assertEqual(expected_hours_for_day(schedule, date(2025, 1, 4)), Decimal("0"))
        self.assertEqual(total_expected_hours(schedule, date(2025, 1, 6), date(2025, 1, 12)), Decimal("40"))

    def test_overtime_notification(self) -> None:
        schedule = _schedule()
        monday = date(2025, 1, 6)
        saturday = date(2025, 1, 11)

        self.assertTrue(should_notify_overtime(True, schedule, Decimal("9"), monday))
        self.assertFalse(should_notify_overtime(True, schedule, Decimal("8"), monday))
        self.assertFalse(should_notify_overtime(False, schedule, Decimal("12"), monday))
        self.assertTrue(should_notify_overtime(True, schedule, 1.5, saturday))


if __name__ == "__main__":
    unittest.main()
