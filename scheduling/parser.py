# scheduling/parser.py
"""
Разбор JSON-ответов сервиса расписания в модели движка.

Сервис отдает одни и те же данные в разных обертках ({"shifts": [...]},
{"success": true, "data": {...}}, голый массив) - все они приводятся к спискам моделей.
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from logging_config import log_system_event
from .errors import InfrastructureError
from .models import Appointment, AppointmentStatus, Doctor, Service, ShiftDay, TimeSlot
from .utils import add_minutes, format_minutes, normalize_day_name, parse_date, parse_minutes


# Статусы внешней системы -> статусы движка
STATUS_ALIASES = {
    "pending": AppointmentStatus.PENDING,
    "scheduled": AppointmentStatus.PENDING,
    "confirmed": AppointmentStatus.CONFIRMED,
    "in-progress": AppointmentStatus.CONFIRMED,
    "in_progress": AppointmentStatus.CONFIRMED,
    "completed": AppointmentStatus.COMPLETED,
    "no-show": AppointmentStatus.COMPLETED,
    "cancelled": AppointmentStatus.CANCELLED,
    "canceled": AppointmentStatus.CANCELLED,
    "rescheduled": AppointmentStatus.CANCELLED,
}


class ScheduleParser:
    """Парсер ответов сервиса расписания"""

    @staticmethod
    def _unwrap(payload: Any, key: str, endpoint: str) -> List[Dict[str, Any]]:
        """
        Достает список элементов из ответа.

        Поддерживаемые форматы: [...], {key: [...]}, {"success": true, "data": {key: [...]}},
        {"data": [...]}.
        """
        items = None
        if isinstance(payload, list):
            items = payload
        elif isinstance(payload, dict):
            if isinstance(payload.get(key), list):
                items = payload[key]
            elif isinstance(payload.get("data"), dict) and isinstance(payload["data"].get(key), list):
                items = payload["data"][key]
            elif isinstance(payload.get("data"), list):
                items = payload["data"]

        if items is None:
            log_system_event("scheduling_api", "malformed_payload",
                             endpoint=endpoint, data_type=type(payload).__name__)
            raise InfrastructureError("Некорректный ответ сервиса расписания", endpoint=endpoint)

        return [item for item in items if isinstance(item, dict)]

    @staticmethod
    def _skip(endpoint: str, error: Exception):
        log_system_event("scheduling_api", "item_parse_error",
                         endpoint=endpoint, error=type(error).__name__)

    @staticmethod
    def parse_shifts(payload: Any) -> List[ShiftDay]:
        """Парсит недельный график врача"""
        shifts = []
        for item in ScheduleParser._unwrap(payload, "shifts", "shifts"):
            try:
                day = normalize_day_name(item.get("dayOfWeek"))
                if day is None:
                    raise ValueError(f"unknown day {item.get('dayOfWeek')!r}")
                shifts.append(ShiftDay(
                    day_of_week=day,
                    is_active=bool(item.get("isActive", False)),
                    start_time=item.get("startTime") or "",
                    end_time=item.get("endTime") or "",
                    break_start=item.get("breakStartTime") or item.get("breakStart"),
                    break_end=item.get("breakEndTime") or item.get("breakEnd"),
                ))
            except (ValueError, PydanticValidationError) as e:
                ScheduleParser._skip("shifts", e)
        return shifts

    @staticmethod
    def parse_doctors(payload: Any) -> List[Doctor]:
        """Парсит список врачей"""
        doctors = []
        for item in ScheduleParser._unwrap(payload, "doctors", "doctors"):
            try:
                # ФИО: либо name, либо firstName + lastName
                name = item.get("name") or " ".join(
                    part for part in (item.get("firstName"), item.get("lastName")) if part
                )
                doctors.append(Doctor(
                    id=str(item.get("id", "")) or None,
                    name=name.strip() or "",
                    specialty=item.get("specialty"),
                    is_active=bool(item.get("isActive", True)),
                    shift_start=item.get("shiftStart"),
                    shift_end=item.get("shiftEnd"),
                ))
            except (ValueError, PydanticValidationError) as e:
                ScheduleParser._skip("doctors", e)
        return doctors

    @staticmethod
    def parse_slots(payload: Any) -> List[TimeSlot]:
        """Парсит слоты, посчитанные сервисом"""
        slots = []
        for item in ScheduleParser._unwrap(payload, "availableSlots", "slots"):
            try:
                start = item.get("startTime")
                duration = item.get("duration") or item.get("durationMinutes")
                end = item.get("endTime")
                if parse_minutes(start) is None:
                    raise ValueError(f"bad startTime {start!r}")
                if end is None and duration:
                    end = add_minutes(start, int(duration))
                start_min, end_min = parse_minutes(start), parse_minutes(end)
                if end_min is None or end_min <= start_min:
                    raise ValueError(f"bad endTime {end!r}")
                slots.append(TimeSlot(
                    start_time=format_minutes(start_min),
                    end_time=format_minutes(end_min),
                    duration_minutes=int(duration) if duration else end_min - start_min,
                    is_available=bool(item.get("isAvailable", True)),
                ))
            except (ValueError, TypeError, PydanticValidationError) as e:
                ScheduleParser._skip("slots", e)

        slots.sort(key=lambda s: parse_minutes(s.start_time))
        return slots

    @staticmethod
    def parse_status(value: Optional[str]) -> AppointmentStatus:
        """Неизвестный статус считается pending (занимает время)"""
        if not value:
            return AppointmentStatus.PENDING
        return STATUS_ALIASES.get(str(value).strip().lower(), AppointmentStatus.PENDING)

    @staticmethod
    def parse_appointment(item: Dict[str, Any]) -> Appointment:
        """Парсит одну запись; ValueError если запись некорректна"""
        doctor_id = item.get("doctorId") or item.get("staffId")
        if not doctor_id:
            raise ValueError("no doctorId/staffId")

        appointment_date = parse_date(item.get("appointmentDate") or item.get("date"))
        if appointment_date is None:
            raise ValueError("bad appointmentDate")

        start = item.get("startTime") or item.get("appointmentTime")
        if parse_minutes(start) is None:
            raise ValueError(f"bad startTime {start!r}")

        end = item.get("endTime")
        if not end and item.get("duration"):
            end = add_minutes(start, int(item["duration"]))
        if parse_minutes(end) is None:
            raise ValueError(f"bad endTime {end!r}")

        return Appointment(
            id=str(item.get("id", "")),
            doctor_id=str(doctor_id),
            date=appointment_date,
            start_time=format_minutes(parse_minutes(start)),
            end_time=format_minutes(parse_minutes(end)),
            status=ScheduleParser.parse_status(item.get("status")),
            service_id=item.get("serviceId"),
            notes=item.get("notes"),
        )

    @staticmethod
    def parse_appointments(payload: Any) -> List[Appointment]:
        """Парсит список записей"""
        appointments = []
        for item in ScheduleParser._unwrap(payload, "appointments", "appointments"):
            try:
                appointments.append(ScheduleParser.parse_appointment(item))
            except (ValueError, TypeError, PydanticValidationError) as e:
                ScheduleParser._skip("appointments", e)
        return appointments

    @staticmethod
    def parse_services(payload: Any) -> List[Service]:
        """Парсит справочник услуг"""
        services = []
        for item in ScheduleParser._unwrap(payload, "services", "services"):
            try:
                services.append(Service(
                    id=str(item.get("id", "")),
                    name=item.get("name", ""),
                    duration_minutes=item.get("durationMinutes") or item.get("duration"),
                    price=item.get("price"),
                ))
            except (ValueError, TypeError, PydanticValidationError) as e:
                ScheduleParser._skip("services", e)
        return services
