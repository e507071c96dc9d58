# book_appointment/sources.py
"""
Источники данных мастера записи, обернутые в FallbackChain.

- врачи на дату: doctors-on-duty -> все врачи + графики + фильтр дежурств -> пустой список;
  каждому врачу добавляется число свободных слотов
- слоты: слоты сервиса -> график + журнал + SlotGenerator -> сетка 09:00-17:00
- журнал записей: записи врача на дату -> все записи с фильтрацией на клиенте
"""

import asyncio
from datetime import date
from typing import List, Optional

from booking_config import FETCH_TIMEOUT_SECONDS
from logging_config import log_data_event, log_system_event
from scheduling.errors import AuthError, BookingError, ValidationError
from scheduling.ledger import AppointmentLedger
from scheduling.models import Doctor, DutyWindow, OnDutyDoctor, Service, ShiftDay, TimeSlot
from scheduling.shift_calendar import ShiftCalendar, default_week, validate_schedule
from scheduling.slots import SlotGenerator
from scheduling.utils import parse_minutes
from scheduling_api_client import SchedulingApiClient
from .fallback import FallbackChain, Resolved, SourceTier


class BookingDataSources:
    """
    Данные для шагов мастера записи с деградацией источников.
    """

    def __init__(self, client: SchedulingApiClient, calendar: Optional[ShiftCalendar] = None,
                 slot_generator: Optional[SlotGenerator] = None,
                 timeout_seconds: Optional[float] = FETCH_TIMEOUT_SECONDS,
                 fail_open: bool = False):
        """
        Args:
            client: Клиент сервиса расписания
            calendar: Кэш графиков смен (заполняется при загрузке)
            slot_generator: Генератор слотов
            timeout_seconds: Ограничение времени на каждый источник
            fail_open: Включать врачей без графика (см. ShiftCalendar.filter_on_duty)
        """
        self.client = client
        self.calendar = calendar or ShiftCalendar()
        self.slot_generator = slot_generator or SlotGenerator()
        self.timeout_seconds = timeout_seconds
        self.fail_open = fail_open

    def _chain(self, name: str) -> FallbackChain:
        return FallbackChain(name, timeout_seconds=self.timeout_seconds)

    # --- Врачи ---

    @staticmethod
    def _window_from_doctor(doctor: Doctor):
        """Окно дежурства из shiftStart/shiftEnd, если их сообщил сервис"""
        start = parse_minutes(doctor.shift_start)
        end = parse_minutes(doctor.shift_end)
        if start is None or end is None or end <= start:
            return None
        return DutyWindow(start=start, end=end)

    async def _load_schedule(self, doctor_id: str):
        shifts = await self.client.get_shift_schedule(doctor_id)
        self.calendar.set_schedule(doctor_id, shifts)

    async def load_schedules(self, doctors: List[Doctor]):
        """
        Загружает графики врачей в календарь параллельно.

        Врач, чей график не загрузился, остается без записи (не дежурит).

        Raises:
            AuthError: если сервис отклонил авторизацию
        """
        results = await asyncio.gather(
            *(self._load_schedule(doctor.id) for doctor in doctors),
            return_exceptions=True,
        )
        for doctor, result in zip(doctors, results):
            if isinstance(result, AuthError):
                raise result
            if isinstance(result, BookingError):
                log_system_event("duty_filter", "schedule_load_failed",
                                 doctor_id=doctor.id, error=type(result).__name__)
            elif isinstance(result, BaseException):
                raise result

    async def doctors_on_duty(self, target_date: date) -> Resolved[List[OnDutyDoctor]]:
        """Врачи, дежурящие в дату"""

        async def primary():
            doctors = await self.client.get_doctors_on_duty(target_date)
            return [
                OnDutyDoctor(doctor=doctor, window=self._window_from_doctor(doctor))
                for doctor in doctors if doctor.is_active
            ]

        async def secondary():
            doctors = await self.client.get_all_doctors()
            await self.load_schedules(doctors)
            return self.calendar.filter_on_duty(doctors, target_date, fail_open=self.fail_open)

        resolved = await self._chain("doctors_on_duty").resolve(primary, secondary, synth=list)
        resolved.data = await self.annotate_availability(resolved.data, target_date)
        return resolved

    async def _with_slot_count(self, doctor: OnDutyDoctor, target_date: date) -> OnDutyDoctor:
        if not doctor.duty_verified:
            return doctor
        slots = await self.available_slots(doctor.id, target_date)
        # Сетка по умолчанию ничего не говорит о занятости врача
        if slots.tier == SourceTier.SYNTHETIC:
            return doctor
        count = len(slots.data)
        return doctor.model_copy(update={"available_slots": count, "is_fully_booked": count == 0})

    async def annotate_availability(self, doctors: List[OnDutyDoctor],
                                    target_date: date) -> List[OnDutyDoctor]:
        """
        Отмечает у дежурящих врачей число свободных слотов и полную занятость.

        Если занятость проверить не удалось, врач остается доступным для выбора
        (available_slots=None, is_fully_booked=False).

        Raises:
            AuthError: если сервис отклонил авторизацию
        """
        if not doctors:
            return []
        return list(await asyncio.gather(
            *(self._with_slot_count(doctor, target_date) for doctor in doctors)
        ))

    # --- Журнал записей ---

    async def appointments_for(self, doctor_id: str, target_date: date) -> Resolved[AppointmentLedger]:
        """
        Журнал записей врача на дату. Данных по умолчанию нет:
        если оба источника недоступны, исключение пробрасывается.
        """

        async def primary():
            appointments = await self.client.get_appointments_by_doctor_and_date(doctor_id, target_date)
            return AppointmentLedger(appointments).restricted_to(doctor_id, target_date)

        async def secondary():
            appointments = await self.client.get_all_appointments()
            return AppointmentLedger(appointments).restricted_to(doctor_id, target_date)

        resolved = await self._chain("appointments").resolve(primary, secondary)
        log_data_event(None, "ledger_loaded", doctor_id=doctor_id, date=target_date.isoformat(),
                       count=len(resolved.data), tier=resolved.tier.value)
        return resolved

    # --- Слоты ---

    async def available_slots(self, doctor_id: str, target_date: date,
                              duration: Optional[int] = None) -> Resolved[List[TimeSlot]]:
        """
        Слоты врача на дату.

        Args:
            doctor_id: ID врача
            target_date: Дата приема
            duration: Длительность услуги; если None - шаг сетки
        """
        slot_duration = duration or self.slot_generator.granularity

        async def primary():
            slots = await self.client.get_available_slots(doctor_id, target_date)
            if duration:
                return self.slot_generator.refit(slots, duration)
            return [slot for slot in slots if slot.is_available]

        async def secondary():
            shifts = await self.client.get_shift_schedule(doctor_id)
            self.calendar.set_schedule(doctor_id, shifts)
            appointments = await self.client.get_all_appointments()
            ledger = AppointmentLedger(appointments)
            return self.slot_generator.generate_for(
                self.calendar, doctor_id, target_date, slot_duration,
                ledger.non_cancelled(doctor_id, target_date),
            )

        def synth():
            return self.slot_generator.default_grid(slot_duration)

        return await self._chain("available_slots").resolve(primary, secondary, synth)

    # --- Справочники и графики ---

    async def services(self) -> List[Service]:
        """Справочник услуг (без деградации)"""
        return await self.client.get_services()

    async def schedule_for_editing(self, doctor_id: str) -> List[ShiftDay]:
        """График для редактора; если графика нет - стандартная неделя"""
        shifts = await self.client.get_shift_schedule(doctor_id)
        if not shifts:
            return default_week()
        self.calendar.set_schedule(doctor_id, shifts)
        return self.calendar.schedule_for(doctor_id)

    async def save_schedule(self, doctor_id: str, days: List[ShiftDay]) -> bool:
        """
        Проверяет и сохраняет недельный график врача.

        Raises:
            ValidationError: график не прошел проверку (в сервис не отправляется)
        """
        try:
            validate_schedule(days)
        except ValidationError as e:
            log_data_event(None, "schedule_rejected", doctor_id=doctor_id, reason=e.message)
            raise

        await self.client.update_shift_schedule(doctor_id, days)
        self.calendar.set_schedule(doctor_id, days)
        log_data_event(None, "schedule_saved", doctor_id=doctor_id,
                       active_days=sum(1 for day in days if day.is_active))
        return True
