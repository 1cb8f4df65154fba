"""Tests for bonus window resolution."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from chatter_bonus.errors import InvalidRuleConfiguration, WindowResolutionFailure
from chatter_bonus.services.window_service import ShiftMatch, compute_window, make_shift_lookup, pick_shift

from conftest import COMPANY, utc


class TestCalendarWindows:
    def test_calendar_day_uses_local_midnights(self):
        window = compute_window("calendar_day", utc(2024, 3, 15, 10, 0), "Europe/Amsterdam")

        assert window.start == utc(2024, 3, 14, 23, 0)
        assert window.end == utc(2024, 3, 15, 23, 0)
        assert window.reason == "calendar"

    def test_late_utc_instant_belongs_to_next_local_day(self):
        # 23:30 UTC is already 00:30 on the 16th in Amsterdam (CET)
        window = compute_window("calendar_day", utc(2024, 3, 15, 23, 30), "Europe/Amsterdam")

        assert window.start == utc(2024, 3, 15, 23, 0)
        assert window.end == utc(2024, 3, 16, 23, 0)

    def test_calendar_week_starts_on_monday(self):
        # 2024-03-15 is a Friday
        window = compute_window("calendar_week", utc(2024, 3, 15, 10, 0), "UTC")

        assert window.start == utc(2024, 3, 11)
        assert window.end == utc(2024, 3, 18)

    def test_calendar_week_on_sunday_stays_in_same_week(self):
        window = compute_window("calendar_week", utc(2024, 3, 17, 22, 0), "UTC")

        assert window.start == utc(2024, 3, 11)

    def test_calendar_month_rolls_over_year(self):
        window = compute_window("calendar_month", utc(2024, 12, 15, 8, 0), "UTC")

        assert window.start == utc(2024, 12, 1)
        assert window.end == utc(2025, 1, 1)

    def test_calendar_month_february_leap_year(self):
        window = compute_window("calendar_month", utc(2024, 2, 10), "UTC")

        assert window.end - window.start == timedelta(days=29)

    def test_window_is_half_open(self):
        window = compute_window("calendar_day", utc(2024, 3, 15, 10, 0), "UTC")

        assert window.contains(utc(2024, 3, 15, 0, 0))
        assert not window.contains(utc(2024, 3, 16, 0, 0))
        assert compute_window("calendar_day", window.end, "UTC").start == window.end

    def test_naive_as_of_is_treated_as_utc(self):
        window = compute_window("calendar_day", utc(2024, 3, 15, 10).replace(tzinfo=None), "UTC")

        assert window.start == utc(2024, 3, 15)


class TestDaylightSaving:
    def test_spring_forward_day_is_23_hours(self):
        window = compute_window("calendar_day", utc(2024, 3, 31, 12, 0), "Europe/Amsterdam")

        assert window.start == utc(2024, 3, 30, 23, 0)
        assert window.end == utc(2024, 3, 31, 22, 0)
        assert window.end - window.start == timedelta(hours=23)

    def test_fall_back_day_is_25_hours(self):
        window = compute_window("calendar_day", utc(2024, 10, 27, 12, 0), "Europe/Amsterdam")

        assert window.end - window.start == timedelta(hours=25)

    def test_month_spanning_dst_change(self):
        window = compute_window("calendar_month", utc(2024, 3, 15), "Europe/Amsterdam")

        assert window.start == utc(2024, 2, 29, 23, 0)
        assert window.end == utc(2024, 3, 31, 22, 0)


class TestErrors:
    def test_unknown_timezone_raises(self):
        with pytest.raises(WindowResolutionFailure):
            compute_window("calendar_day", utc(2024, 3, 15), "Mars/Olympus_Mons")

    def test_unknown_window_type_raises(self):
        with pytest.raises(InvalidRuleConfiguration):
            compute_window("fortnight", utc(2024, 3, 15), "UTC")


class TestShiftWindows:
    def test_shift_replaces_calendar_day(self):
        shift = ShiftMatch(start=utc(2024, 3, 15, 18, 0), end=utc(2024, 3, 16, 2, 0))

        window = compute_window("calendar_day", utc(2024, 3, 15, 20, 0), "UTC", True, lambda *args: shift)

        assert window.start == shift.start
        assert window.end == shift.end
        assert window.reason == "shift"

    def test_missing_shift_falls_back_to_calendar_day(self):
        window = compute_window("calendar_day", utc(2024, 3, 15, 20, 0), "UTC", True, lambda *args: None)

        assert window.start == utc(2024, 3, 15)
        assert window.end == utc(2024, 3, 16)
        assert window.reason == "no_shift_found"

    def test_fallback_stops_at_next_shift(self):
        match = ShiftMatch(next_start=utc(2024, 3, 15, 18, 0))

        window = compute_window("calendar_day", utc(2024, 3, 15, 9, 0), "UTC", True, lambda *args: match)

        assert window.start == utc(2024, 3, 15)
        assert window.end == utc(2024, 3, 15, 18, 0)
        assert window.reason == "no_shift_found"

    def test_failing_lookup_falls_back_to_calendar_day(self):
        def broken(*args):
            raise OperationalError("SELECT 1", {}, Exception("connection lost"))

        window = compute_window("calendar_day", utc(2024, 3, 15, 20, 0), "UTC", True, broken)

        assert window.start == utc(2024, 3, 15)
        assert window.end == utc(2024, 3, 16)
        assert window.reason == "shift_lookup_failed"

    def test_shift_flag_ignored_for_weekly_windows(self):
        window = compute_window("calendar_week", utc(2024, 3, 15), "UTC", True, lambda *args: None)

        assert window.reason == "calendar"


class TestPickShift:
    DAY_START = utc(2024, 3, 15)
    DAY_END = utc(2024, 3, 16)

    def _pick(self, shifts, as_of):
        return pick_shift(shifts, as_of, self.DAY_START, self.DAY_END)

    def test_containing_shift_wins(self):
        shifts = [(utc(2024, 3, 15, 8), utc(2024, 3, 15, 12)), (utc(2024, 3, 15, 18), utc(2024, 3, 15, 22))]

        match = self._pick(shifts, utc(2024, 3, 15, 21))

        assert (match.start, match.end) == (utc(2024, 3, 15, 18), utc(2024, 3, 15, 22))

    def test_latest_started_shift_after_it_ended(self):
        shifts = [(utc(2024, 3, 15, 8), utc(2024, 3, 15, 12)), (utc(2024, 3, 15, 18), utc(2024, 3, 15, 22))]

        match = self._pick(shifts, utc(2024, 3, 15, 14))

        assert (match.start, match.end) == (utc(2024, 3, 15, 8), utc(2024, 3, 15, 12))

    def test_reports_next_shift_before_any_started(self):
        shifts = [(utc(2024, 3, 15, 18), utc(2024, 3, 15, 22))]

        match = self._pick(shifts, utc(2024, 3, 15, 9))

        assert match.found is False
        assert match.next_start == utc(2024, 3, 15, 18)

    def test_overnight_shift_from_previous_day_counts(self):
        shifts = [(utc(2024, 3, 14, 22), utc(2024, 3, 15, 4))]

        match = self._pick(shifts, utc(2024, 3, 15, 10))

        assert (match.start, match.end) == (utc(2024, 3, 14, 22), utc(2024, 3, 15, 4))

    def test_shifts_outside_day_and_empty_spans_ignored(self):
        shifts = [
            (utc(2024, 3, 14, 8), utc(2024, 3, 14, 12)),
            (utc(2024, 3, 15, 9), utc(2024, 3, 15, 9)),
        ]

        match = self._pick(shifts, utc(2024, 3, 15, 10))

        assert match.found is False
        assert match.next_start is None


class TestStoredShifts:
    def _window(self, db, as_of):
        lookup = make_shift_lookup(db, company_id=COMPANY, worker_id="w-1")
        return compute_window("calendar_day", as_of, "UTC", True, lookup)

    def test_shift_lookup_reads_stored_shift(self, db, worker, add_shift):
        add_shift("w-1", "s-1", utc(2024, 3, 15, 18, 0), utc(2024, 3, 16, 2, 0))

        window = self._window(db, utc(2024, 3, 15, 20, 0))

        assert window.reason == "shift"
        assert window.start == utc(2024, 3, 15, 18, 0)
        assert window.end == utc(2024, 3, 16, 2, 0)

    def test_overnight_shift_is_one_window_from_both_days(self, db, worker, add_shift):
        add_shift("w-1", "night", utc(2024, 3, 15, 22, 0), utc(2024, 3, 16, 4, 0))

        evening = self._window(db, utc(2024, 3, 15, 23, 0))
        next_morning = self._window(db, utc(2024, 3, 16, 10, 0))

        assert evening == next_morning
        assert (evening.start, evening.end) == (utc(2024, 3, 15, 22, 0), utc(2024, 3, 16, 4, 0))

    def test_split_shift_gives_one_window_per_part(self, db, worker, add_shift):
        add_shift("w-1", "morning", utc(2024, 3, 15, 8, 0), utc(2024, 3, 15, 12, 0))
        add_shift("w-1", "evening", utc(2024, 3, 15, 18, 0), utc(2024, 3, 15, 22, 0))

        morning = self._window(db, utc(2024, 3, 15, 10, 0))
        evening = self._window(db, utc(2024, 3, 15, 21, 0))

        assert (morning.start, morning.end) == (utc(2024, 3, 15, 8, 0), utc(2024, 3, 15, 12, 0))
        assert (evening.start, evening.end) == (utc(2024, 3, 15, 18, 0), utc(2024, 3, 15, 22, 0))

    def test_fallback_does_not_overlap_later_shift(self, db, worker, add_shift):
        add_shift("w-1", "evening", utc(2024, 3, 15, 18, 0), utc(2024, 3, 15, 22, 0))

        early = self._window(db, utc(2024, 3, 15, 7, 0))

        assert early.reason == "no_shift_found"
        assert early.end == utc(2024, 3, 15, 18, 0)
