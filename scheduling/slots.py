# scheduling/slots.py
"""
Генерация слотов времени для записи.

Окно дежурства нарезается с шагом granularity; из кандидатов исключаются пересечения
с перерывом и с неотмененными записями. Интервалы полуоткрытые: [start, end).
"""

from datetime import date
from typing import Iterable, List, Optional

from booking_config import DEFAULT_DAY_END, DEFAULT_DAY_START, SLOT_GRANULARITY_MINUTES
from logging_config import log_system_event
from .models import Appointment, AppointmentStatus, DutyWindow, TimeSlot
from .shift_calendar import ShiftCalendar
from .utils import MINUTES_PER_DAY, format_minutes, intervals_overlap, parse_minutes


class SlotGenerator:
    """Построитель упорядоченного списка доступных слотов"""

    def __init__(self, granularity: int = SLOT_GRANULARITY_MINUTES):
        self.granularity = granularity

    def _busy_intervals(self, appointments: Iterable[Appointment]) -> List[tuple]:
        """Интервалы (start, end) неотмененных записей в минутах"""
        busy = []
        for appointment in appointments:
            if appointment.status == AppointmentStatus.CANCELLED:
                continue
            start = parse_minutes(appointment.start_time)
            end = parse_minutes(appointment.end_time)
            if start is None or end is None or end <= start:
                log_system_event("slot_generator", "malformed_appointment",
                                 appointment_id=appointment.id,
                                 start=appointment.start_time, end=appointment.end_time)
                continue
            busy.append((start, end))
        return busy

    def _valid_input(self, window: DutyWindow, duration: int) -> bool:
        if not isinstance(self.granularity, int) or self.granularity <= 0:
            log_system_event("slot_generator", "invalid_granularity", granularity=self.granularity)
            return False
        if not isinstance(duration, int) or duration <= 0:
            log_system_event("slot_generator", "invalid_duration", duration=duration)
            return False
        if not 0 <= window.start < window.end <= MINUTES_PER_DAY:
            log_system_event("slot_generator", "window_invalid", start=window.start, end=window.end)
            return False
        if window.has_break and not window.start <= window.break_start < window.break_end <= window.end:
            log_system_event("slot_generator", "window_invalid",
                             break_start=window.break_start, break_end=window.break_end)
            return False
        return True

    def generate(self, window: Optional[DutyWindow], duration: int,
                 appointments: Iterable[Appointment] = ()) -> List[TimeSlot]:
        """
        Строит слоты для одного врача на одну дату.

        Args:
            window: Окно дежурства (None - врач не дежурит)
            duration: Длительность услуги в минутах
            appointments: Записи врача на эту дату

        Returns:
            Слоты по возрастанию времени начала; пустой список при некорректных данных
            и если длительность не меньше окна дежурства
        """
        if window is None:
            return []
        if not self._valid_input(window, duration):
            return []
        # Окно не длиннее услуги: слотов нет
        if duration >= window.end - window.start:
            log_system_event("slot_generator", "duration_exceeds_window",
                             duration=duration, window_minutes=window.end - window.start)
            return []

        busy = self._busy_intervals(appointments)
        slots = []

        t = window.start
        while t + duration <= window.end:
            end = t + duration

            if window.has_break and intervals_overlap(t, end, window.break_start, window.break_end):
                t += self.granularity
                continue

            if any(intervals_overlap(t, end, busy_start, busy_end) for busy_start, busy_end in busy):
                t += self.granularity
                continue

            slots.append(TimeSlot(
                start_time=format_minutes(t),
                end_time=format_minutes(end),
                duration_minutes=duration,
                is_available=True,
            ))
            t += self.granularity

        return slots

    def generate_for(self, calendar: ShiftCalendar, doctor_id: str, target_date: date,
                     duration: int, appointments: Iterable[Appointment] = ()) -> List[TimeSlot]:
        """Слоты по графику врача из календаря"""
        window = calendar.duty_window(doctor_id, target_date)
        return self.generate(window, duration, appointments)

    def default_grid(self, duration: Optional[int] = None) -> List[TimeSlot]:
        """
        Сетка по умолчанию 09:00-17:00 с шагом granularity (синтетический уровень).
        """
        window = DutyWindow(start=parse_minutes(DEFAULT_DAY_START), end=parse_minutes(DEFAULT_DAY_END))
        return self.generate(window, duration or self.granularity)

    @staticmethod
    def refit(slots: Iterable[TimeSlot], duration: int) -> List[TimeSlot]:
        """
        Оставляет слоты, от начала которых на duration минут вперед время
        непрерывно покрыто доступными слотами.

        Используется, когда список слотов получен без учета длительности услуги.

        Returns:
            Новые слоты длительностью duration
        """
        if not isinstance(duration, int) or duration <= 0:
            log_system_event("slot_generator", "invalid_duration", duration=duration)
            return []

        intervals = []
        for slot in slots:
            if not slot.is_available:
                continue
            start, end = parse_minutes(slot.start_time), parse_minutes(slot.end_time)
            if start is None or end is None or end <= start:
                continue
            intervals.append((start, end))
        intervals.sort()

        # Склеиваем смежные и пересекающиеся интервалы
        merged = []
        for start, end in intervals:
            if merged and start <= merged[-1][1]:
                merged[-1][1] = max(merged[-1][1], end)
            else:
                merged.append([start, end])

        fitted = []
        seen_starts = set()
        for start, _end in intervals:
            if start in seen_starts:
                continue
            seen_starts.add(start)
            if any(block_start <= start and start + duration <= block_end
                   for block_start, block_end in merged):
                fitted.append(TimeSlot(
                    start_time=format_minutes(start),
                    end_time=format_minutes(start + duration),
                    duration_minutes=duration,
                    is_available=True,
                ))
        return fitted
