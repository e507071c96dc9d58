"""Tests for ShiftCalendar, the duty filter and schedule editing helpers."""

import datetime

import pytest

from scheduling.errors import ValidationError
from scheduling.models import ShiftDay
from scheduling.shift_calendar import (
    ShiftCalendar,
    copy_day_to_all,
    default_week,
    set_all_days_active,
    validate_schedule,
)


class TestDutyWindow:
    """Tests for ShiftCalendar.duty_window."""

    def test_active_day(self, calendar, monday):
        window = calendar.duty_window("d1", monday)
        assert (window.start, window.end) == (540, 1020)
        assert (window.break_start, window.break_end) == (720, 780)

    def test_inactive_day(self, calendar, monday):
        assert calendar.duty_window("d1", monday + datetime.timedelta(days=1)) is None

    def test_unknown_doctor(self, calendar, monday):
        assert calendar.duty_window("nobody", monday) is None

    def test_missing_day_record(self, monday):
        calendar = ShiftCalendar({"d1": [ShiftDay(day_of_week="Tuesday", is_active=True)]})
        assert calendar.duty_window("d1", monday) is None

    def test_end_before_start_rejected(self, monday):
        calendar = ShiftCalendar({"d1": [
            ShiftDay(day_of_week="Monday", is_active=True, start_time="17:00", end_time="09:00"),
        ]})
        assert calendar.duty_window("d1", monday) is None

    def test_break_outside_shift_rejected(self, monday):
        calendar = ShiftCalendar({"d1": [
            ShiftDay(day_of_week="Monday", is_active=True, start_time="09:00", end_time="12:00",
                     break_start="11:30", break_end="12:30"),
        ]})
        assert calendar.duty_window("d1", monday) is None

    def test_partial_break_ignored(self, monday):
        calendar = ShiftCalendar({"d1": [
            ShiftDay(day_of_week="Monday", is_active=True, break_start="12:00"),
        ]})
        window = calendar.duty_window("d1", monday)
        assert window is not None
        assert not window.has_break

    def test_first_duplicate_day_wins(self, monday):
        calendar = ShiftCalendar({"d1": [
            ShiftDay(day_of_week="Monday", is_active=True, start_time="08:00", end_time="12:00"),
            ShiftDay(day_of_week="Monday", is_active=False),
        ]})
        assert calendar.duty_window("d1", monday).start == 480


class TestFilterOnDuty:
    """Tests for ShiftCalendar.filter_on_duty."""

    def test_fail_closed_by_default(self, calendar, doctors, monday):
        """Doctors without a schedule record are not on duty."""
        on_duty = calendar.filter_on_duty(doctors, monday)
        assert [d.id for d in on_duty] == ["d1"]
        assert on_duty[0].duty_verified is True
        assert on_duty[0].window.start == 540

    def test_no_active_day_excluded(self, calendar, doctors, monday):
        assert calendar.filter_on_duty(doctors, monday + datetime.timedelta(days=2)) == []

    def test_fail_open_includes_unknown_doctors(self, calendar, doctors, monday):
        """Opt-in fail-open adds unscheduled active doctors with an unverified default window."""
        on_duty = calendar.filter_on_duty(doctors, monday, fail_open=True)
        assert [d.id for d in on_duty] == ["d1", "d2"]
        unverified = on_duty[1]
        assert unverified.duty_verified is False
        assert (unverified.window.start, unverified.window.end) == (540, 1020)

    def test_fail_open_still_respects_day_off(self, calendar, doctors, monday):
        """A doctor whose day is inactive stays excluded even in fail-open mode."""
        tuesday = monday + datetime.timedelta(days=1)
        on_duty = calendar.filter_on_duty(doctors, tuesday, fail_open=True)
        assert [d.id for d in on_duty] == ["d2"]

    def test_inactive_doctor_excluded(self, monday_shift, doctors, monday):
        calendar = ShiftCalendar({"d3": monday_shift})
        assert calendar.filter_on_duty(doctors, monday) == []


class TestScheduleEditing:
    """Default week and schedule validation."""

    def test_default_week(self):
        week = default_week()
        assert len(week) == 7
        active = [day.day_of_week for day in week if day.is_active]
        assert active == ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
        assert all(day.break_start == "12:00" and day.break_end == "13:00" for day in week)
        validate_schedule(week)

    def test_missing_day_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_schedule(default_week()[:6])
        assert exc.value.field == "day_of_week"

    def test_duplicate_day_rejected(self):
        week = default_week()
        week[6] = week[0]
        with pytest.raises(ValidationError):
            validate_schedule(week)

    def test_no_active_day_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_schedule(set_all_days_active(default_week(), False))
        assert exc.value.field == "is_active"

    def test_start_after_end_rejected(self):
        week = default_week()
        week[0] = week[0].model_copy(update={"start_time": "18:00"})
        with pytest.raises(ValidationError):
            validate_schedule(week)

    def test_break_outside_shift_rejected(self):
        week = default_week()
        week[0] = week[0].model_copy(update={"break_start": "16:30", "break_end": "17:30"})
        with pytest.raises(ValidationError) as exc:
            validate_schedule(week)
        assert exc.value.field == "break_start"

    def test_copy_day_to_all(self):
        week = default_week()
        week[0] = week[0].model_copy(update={"start_time": "08:00", "end_time": "14:00"})
        copied = copy_day_to_all(week, "Monday")
        assert all(day.start_time == "08:00" and day.is_active for day in copied)
        assert [day.day_of_week for day in copied][-1] == "Sunday"
        assert week[6].is_active is False

    def test_set_all_days_active(self):
        assert all(day.is_active for day in set_all_days_active(default_week(), True))
