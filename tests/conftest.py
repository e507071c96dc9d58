"""Shared fixtures for booking engine tests."""

import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from booking_config import ClientConfig
from scheduling.models import (
    Appointment,
    AppointmentStatus,
    Doctor,
    Service,
    ShiftDay,
    TimeSlot,
)
from scheduling.shift_calendar import ShiftCalendar
from scheduling.utils import DAYS_OF_WEEK

# 2026-03-02 is a Monday
MONDAY = datetime.date(2026, 3, 2)


@pytest.fixture
def monday() -> datetime.date:
    """A Monday inside the booking horizon."""
    return MONDAY


@pytest.fixture
def monday_shift() -> list:
    """Week with only Monday active: 09:00-17:00, break 12:00-13:00."""
    return [
        ShiftDay(
            day_of_week=day,
            is_active=day == "Monday",
            start_time="09:00",
            end_time="17:00",
            break_start="12:00",
            break_end="13:00",
        )
        for day in DAYS_OF_WEEK
    ]


@pytest.fixture
def calendar(monday_shift) -> ShiftCalendar:
    """Calendar where doctor d1 works on Mondays."""
    return ShiftCalendar({"d1": monday_shift})


@pytest.fixture
def make_appointment():
    """Factory for ledger appointments of doctor d1 on MONDAY."""
    counter = {"n": 0}

    def _make(start, end, status=AppointmentStatus.CONFIRMED, doctor_id="d1", day=MONDAY):
        counter["n"] += 1
        return Appointment(
            id=f"a{counter['n']}",
            doctor_id=doctor_id,
            date=day,
            start_time=start,
            end_time=end,
            status=status,
        )

    return _make


@pytest.fixture
def doctors() -> list:
    """Two active doctors and one inactive."""
    return [
        Doctor(id="d1", name="Иванов Иван", specialty="Терапевт"),
        Doctor(id="d2", name="Петрова Анна", specialty="Кардиолог"),
        Doctor(id="d3", name="Сидоров Олег", specialty="Хирург", is_active=False),
    ]


@pytest.fixture
def services() -> list:
    """Reference services: 30 and 60 minutes."""
    return [
        Service(id="s30", name="Консультация", duration_minutes=30, price=1500),
        Service(id="s60", name="Расширенный прием", duration_minutes=60, price=3000),
    ]


@pytest.fixture
def half_hour_slots():
    """Factory for contiguous 30-minute available slots."""

    def _make(*starts):
        slots = []
        for start in starts:
            hours, minutes = map(int, start.split(":"))
            end_minutes = hours * 60 + minutes + 30
            slots.append(TimeSlot(
                start_time=start,
                end_time=f"{end_minutes // 60:02d}:{end_minutes % 60:02d}",
                duration_minutes=30,
            ))
        return slots

    return _make


@pytest.fixture
def api_client() -> MagicMock:
    """Scheduling API client with every endpoint mocked."""
    client = MagicMock()
    client.config = ClientConfig(base_url="http://scheduling.test", token_provider=lambda: "token")
    for name in (
        "get_shift_schedule",
        "update_shift_schedule",
        "get_doctors_on_duty",
        "get_all_doctors",
        "get_available_slots",
        "get_appointments_by_doctor_and_date",
        "get_all_appointments",
        "create_appointment",
        "get_services",
    ):
        setattr(client, name, AsyncMock())
    return client
