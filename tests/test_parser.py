"""Tests for scheduling service payload parsing."""

import datetime

import pytest

from scheduling.errors import InfrastructureError
from scheduling.models import AppointmentStatus
from scheduling.parser import ScheduleParser


class TestEnvelopes:
    """Every envelope the service uses is unwrapped."""

    SHIFT = {"dayOfWeek": "Monday", "isActive": True, "startTime": "09:00", "endTime": "17:00"}

    @pytest.mark.parametrize("payload", [
        [SHIFT],
        {"shifts": [SHIFT]},
        {"success": True, "data": {"shifts": [SHIFT]}},
        {"data": [SHIFT]},
    ])
    def test_shift_envelopes(self, payload):
        shifts = ScheduleParser.parse_shifts(payload)
        assert len(shifts) == 1
        assert shifts[0].day_of_week == "Monday"
        assert shifts[0].is_active is True

    def test_malformed_envelope_is_infrastructure_error(self):
        """An unexpected body shape degrades like an outage."""
        with pytest.raises(InfrastructureError):
            ScheduleParser.parse_shifts({"unexpected": "shape"})


class TestShifts:
    """Shift records."""

    def test_integer_day_and_break_aliases(self):
        shifts = ScheduleParser.parse_shifts([{
            "dayOfWeek": 0, "isActive": False, "startTime": "10:00", "endTime": "14:00",
            "breakStart": "12:00", "breakEnd": "12:30",
        }])
        assert shifts[0].day_of_week == "Sunday"
        assert shifts[0].break_start == "12:00"
        assert shifts[0].break_end == "12:30"

    def test_unknown_day_skipped(self):
        shifts = ScheduleParser.parse_shifts([
            {"dayOfWeek": "Someday", "isActive": True},
            {"dayOfWeek": "Friday", "isActive": True, "startTime": "09:00", "endTime": "13:00"},
        ])
        assert [shift.day_of_week for shift in shifts] == ["Friday"]


class TestDoctors:
    """Doctor records."""

    def test_name_from_parts(self):
        doctors = ScheduleParser.parse_doctors({"doctors": [
            {"id": 7, "firstName": "Анна", "lastName": "Петрова", "specialty": "Кардиолог",
             "shiftStart": "08:00", "shiftEnd": "14:00"},
        ]})
        assert doctors[0].id == "7"
        assert doctors[0].name == "Анна Петрова"
        assert doctors[0].shift_start == "08:00"


class TestSlots:
    """Server-computed slots."""

    def test_end_derived_from_duration_and_sorted(self):
        slots = ScheduleParser.parse_slots({"availableSlots": [
            {"startTime": "10:00", "duration": 30},
            {"startTime": "09:00:00", "endTime": "09:30:00"},
        ]})
        assert [(s.start_time, s.end_time) for s in slots] == [("09:00", "09:30"), ("10:00", "10:30")]
        assert slots[0].duration_minutes == 30

    def test_bad_slot_skipped(self):
        slots = ScheduleParser.parse_slots([{"startTime": "xx"}, {"startTime": "11:00", "duration": 30}])
        assert len(slots) == 1


class TestAppointments:
    """Appointment records and status normalisation."""

    @pytest.mark.parametrize("raw,expected", [
        ("confirmed", AppointmentStatus.CONFIRMED),
        ("Scheduled", AppointmentStatus.PENDING),
        ("in-progress", AppointmentStatus.CONFIRMED),
        ("no-show", AppointmentStatus.COMPLETED),
        ("rescheduled", AppointmentStatus.CANCELLED),
        ("mystery", AppointmentStatus.PENDING),
        (None, AppointmentStatus.PENDING),
    ])
    def test_status_aliases(self, raw, expected):
        assert ScheduleParser.parse_status(raw) == expected

    def test_staff_id_and_derived_end(self):
        appointments = ScheduleParser.parse_appointments({"appointments": [{
            "id": 1, "staffId": 5, "appointmentDate": "2026-03-02T00:00:00",
            "appointmentTime": "10:00", "duration": 45, "status": "pending",
        }]})
        appointment = appointments[0]
        assert appointment.doctor_id == "5"
        assert appointment.date == datetime.date(2026, 3, 2)
        assert appointment.start_time == "10:00"
        assert appointment.end_time == "10:45"

    def test_incomplete_appointment_skipped(self):
        appointments = ScheduleParser.parse_appointments([
            {"id": 1, "appointmentDate": "2026-03-02", "startTime": "10:00", "endTime": "10:30"},
        ])
        assert appointments == []


class TestServices:
    """Service reference data."""

    def test_duration_aliases(self):
        services = ScheduleParser.parse_services([
            {"id": 1, "name": "Консультация", "durationMinutes": 30},
            {"id": 2, "name": "УЗИ", "duration": 45, "price": 2500},
            {"id": 3, "name": "Без длительности"},
        ])
        assert [(s.id, s.duration_minutes) for s in services] == [("1", 30), ("2", 45)]
