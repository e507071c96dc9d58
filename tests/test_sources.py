"""Tests for BookingDataSources wiring through FallbackChain."""

import pytest

from book_appointment.fallback import SourceTier
from book_appointment.sources import BookingDataSources
from scheduling.errors import AuthError, InfrastructureError, NotFoundError, ValidationError
from scheduling.models import AppointmentStatus, Doctor
from scheduling.shift_calendar import default_week


@pytest.fixture
def sources(api_client):
    return BookingDataSources(api_client, timeout_seconds=1)


class TestDoctorsOnDuty:
    """Doctors for the date step."""

    @pytest.mark.asyncio
    async def test_primary(self, sources, api_client, monday):
        api_client.get_doctors_on_duty.return_value = [
            Doctor(id="d1", name="Иванов Иван", shift_start="09:00", shift_end="15:00"),
        ]
        resolved = await sources.doctors_on_duty(monday)
        assert resolved.tier == SourceTier.PRIMARY
        assert resolved.data[0].window.end == 900
        api_client.get_all_doctors.assert_not_called()

    @pytest.mark.asyncio
    async def test_server_error_uses_all_doctors_and_duty_filter(
            self, sources, api_client, monday, monday_shift, doctors):
        """Primary 500 -> all doctors + client-side duty filter, marked degraded."""
        api_client.get_doctors_on_duty.side_effect = InfrastructureError("boom", status=500)
        api_client.get_all_doctors.return_value = doctors

        async def schedule(doctor_id):
            return monday_shift if doctor_id == "d1" else []

        api_client.get_shift_schedule.side_effect = schedule

        resolved = await sources.doctors_on_duty(monday)
        assert resolved.tier == SourceTier.SECONDARY
        assert resolved.degraded
        assert [doctor.id for doctor in resolved.data] == ["d1"]
        assert resolved.data[0].window.break_start == 720

    @pytest.mark.asyncio
    async def test_schedule_load_failure_excludes_doctor(self, sources, api_client, monday, monday_shift, doctors):
        api_client.get_doctors_on_duty.side_effect = NotFoundError("no endpoint", status=404)
        api_client.get_all_doctors.return_value = doctors

        async def schedule(doctor_id):
            if doctor_id == "d2":
                raise InfrastructureError("boom")
            return monday_shift

        api_client.get_shift_schedule.side_effect = schedule

        resolved = await sources.doctors_on_duty(monday)
        assert [doctor.id for doctor in resolved.data] == ["d1"]

    @pytest.mark.asyncio
    async def test_auth_error_while_loading_schedules(self, sources, api_client, monday, doctors):
        api_client.get_doctors_on_duty.side_effect = InfrastructureError("boom", status=502)
        api_client.get_all_doctors.return_value = doctors
        api_client.get_shift_schedule.side_effect = AuthError("expired", status=401)

        with pytest.raises(AuthError):
            await sources.doctors_on_duty(monday)

    @pytest.mark.asyncio
    async def test_synthetic_roster_is_empty(self, sources, api_client, monday):
        api_client.get_doctors_on_duty.side_effect = InfrastructureError("boom")
        api_client.get_all_doctors.side_effect = InfrastructureError("boom")

        resolved = await sources.doctors_on_duty(monday)
        assert resolved.tier == SourceTier.SYNTHETIC
        assert resolved.data == []
        api_client.get_available_slots.assert_not_called()


class TestDoctorAvailability:
    """Free-slot count and fully-booked flag on each doctor on duty."""

    @pytest.mark.asyncio
    async def test_counts_and_fully_booked(self, sources, api_client, monday, doctors, half_hour_slots):
        api_client.get_doctors_on_duty.return_value = doctors[:2]

        async def slots(doctor_id, day):
            return half_hour_slots("09:00", "09:30") if doctor_id == "d1" else []

        api_client.get_available_slots.side_effect = slots

        resolved = await sources.doctors_on_duty(monday)
        by_id = {doctor.id: doctor for doctor in resolved.data}
        assert by_id["d1"].available_slots == 2
        assert not by_id["d1"].is_fully_booked
        assert by_id["d2"].available_slots == 0
        assert by_id["d2"].is_fully_booked

    @pytest.mark.asyncio
    async def test_unknown_when_only_default_grid(self, sources, api_client, monday, doctors):
        """No slot source answered: the doctor stays selectable, count unknown."""
        api_client.get_doctors_on_duty.return_value = doctors[:1]
        api_client.get_available_slots.side_effect = InfrastructureError("boom")
        api_client.get_shift_schedule.side_effect = InfrastructureError("boom")

        resolved = await sources.doctors_on_duty(monday)
        assert resolved.data[0].available_slots is None
        assert not resolved.data[0].is_fully_booked

    @pytest.mark.asyncio
    async def test_auth_error_during_slot_count(self, sources, api_client, monday, doctors):
        api_client.get_doctors_on_duty.return_value = doctors[:1]
        api_client.get_available_slots.side_effect = AuthError("expired", status=401)

        with pytest.raises(AuthError):
            await sources.doctors_on_duty(monday)


class TestAvailableSlots:
    """Slots for the time step."""

    @pytest.mark.asyncio
    async def test_primary_refit_for_duration(self, sources, api_client, monday, half_hour_slots):
        api_client.get_available_slots.return_value = half_hour_slots("09:00", "09:30", "10:30")
        resolved = await sources.available_slots("d1", monday, duration=60)
        assert resolved.tier == SourceTier.PRIMARY
        assert [s.start_time for s in resolved.data] == ["09:00"]

    @pytest.mark.asyncio
    async def test_secondary_generates_from_schedule_and_ledger(
            self, sources, api_client, monday, monday_shift, make_appointment):
        api_client.get_available_slots.side_effect = NotFoundError("no endpoint", status=404)
        api_client.get_shift_schedule.return_value = monday_shift
        api_client.get_all_appointments.return_value = [
            make_appointment("10:00", "10:30"),
            make_appointment("11:00", "11:30", doctor_id="d2"),
            make_appointment("11:30", "12:00", status=AppointmentStatus.CANCELLED),
        ]

        resolved = await sources.available_slots("d1", monday)
        starts = [slot.start_time for slot in resolved.data]
        assert resolved.tier == SourceTier.SECONDARY
        assert "10:00" not in starts
        assert "11:00" in starts
        assert "11:30" in starts

    @pytest.mark.asyncio
    async def test_synthetic_grid(self, sources, api_client, monday):
        api_client.get_available_slots.side_effect = InfrastructureError("boom")
        api_client.get_shift_schedule.side_effect = InfrastructureError("boom")

        resolved = await sources.available_slots("d1", monday)
        assert resolved.tier == SourceTier.SYNTHETIC
        assert resolved.data[0].start_time == "09:00"
        assert resolved.data[-1].end_time == "17:00"


class TestAppointments:
    """Ledger for the submit check."""

    @pytest.mark.asyncio
    async def test_secondary_filters_client_side(self, sources, api_client, monday, make_appointment):
        api_client.get_appointments_by_doctor_and_date.side_effect = InfrastructureError("boom")
        api_client.get_all_appointments.return_value = [
            make_appointment("09:00", "09:30"),
            make_appointment("09:00", "09:30", doctor_id="d2"),
        ]
        resolved = await sources.appointments_for("d1", monday)
        assert resolved.tier == SourceTier.SECONDARY
        assert [a.doctor_id for a in resolved.data] == ["d1"]

    @pytest.mark.asyncio
    async def test_no_synthetic_ledger(self, sources, api_client, monday):
        api_client.get_appointments_by_doctor_and_date.side_effect = InfrastructureError("boom")
        api_client.get_all_appointments.side_effect = InfrastructureError("boom again")
        with pytest.raises(InfrastructureError):
            await sources.appointments_for("d1", monday)


class TestScheduleEditing:
    """Schedule editor helpers."""

    @pytest.mark.asyncio
    async def test_default_week_offered_when_empty(self, sources, api_client):
        api_client.get_shift_schedule.return_value = []
        assert await sources.schedule_for_editing("d1") == default_week()

    @pytest.mark.asyncio
    async def test_save_valid_schedule(self, sources, api_client, monday):
        week = default_week()
        assert await sources.save_schedule("d1", week) is True
        api_client.update_shift_schedule.assert_awaited_once_with("d1", week)
        assert sources.calendar.duty_window("d1", monday) is not None

    @pytest.mark.asyncio
    async def test_invalid_schedule_not_sent(self, sources, api_client):
        with pytest.raises(ValidationError):
            await sources.save_schedule("d1", default_week()[:3])
        api_client.update_shift_schedule.assert_not_called()
