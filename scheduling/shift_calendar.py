# scheduling/shift_calendar.py
"""
Недельный график врачей и фильтр дежурств.

Врач без записи графика на день недели считается не дежурящим (fail-closed).
Режим fail_open включается только явно.
"""

from datetime import date
from typing import Dict, Iterable, List, Optional

from booking_config import DEFAULT_BREAK_END, DEFAULT_BREAK_START, DEFAULT_DAY_END, DEFAULT_DAY_START
from logging_config import log_system_event
from .errors import ValidationError
from .models import Doctor, DutyWindow, OnDutyDoctor, ShiftDay
from .utils import DAYS_OF_WEEK, day_name, parse_minutes


WEEKEND = ("Saturday", "Sunday")


class ShiftCalendar:
    """
    Графики смен врачей: doctor_id -> {день недели -> ShiftDay}
    """

    def __init__(self, schedules: Optional[Dict[str, List[ShiftDay]]] = None):
        self._schedules: Dict[str, Dict[str, ShiftDay]] = {}
        for doctor_id, days in (schedules or {}).items():
            self.set_schedule(doctor_id, days)

    def set_schedule(self, doctor_id: str, days: Iterable[ShiftDay]):
        """
        Сохраняет недельный график врача (заменяет предыдущий).

        Args:
            doctor_id: ID врача
            days: Записи графика; при повторе дня недели используется первая
        """
        by_day: Dict[str, ShiftDay] = {}
        for shift in days:
            if shift.day_of_week in by_day:
                log_system_event("duty_filter", "duplicate_day",
                                 doctor_id=doctor_id, day=shift.day_of_week)
                continue
            by_day[shift.day_of_week] = shift
        self._schedules[str(doctor_id)] = by_day

    def has_schedule(self, doctor_id: str) -> bool:
        return bool(self._schedules.get(str(doctor_id)))

    def schedule_for(self, doctor_id: str) -> List[ShiftDay]:
        """График врача в порядке Monday..Sunday"""
        by_day = self._schedules.get(str(doctor_id), {})
        return [by_day[day] for day in DAYS_OF_WEEK if day in by_day]

    @staticmethod
    def window_from_shift(shift: ShiftDay, doctor_id: str = "") -> Optional[DutyWindow]:
        """
        Переводит запись смены в окно дежурства.

        Returns:
            DutyWindow или None если смена неактивна либо запись некорректна
        """
        if not shift.is_active:
            return None

        start = parse_minutes(shift.start_time)
        end = parse_minutes(shift.end_time)
        if start is None or end is None or end <= start:
            log_system_event("duty_filter", "malformed_shift", doctor_id=doctor_id,
                             day=shift.day_of_week, start=shift.start_time, end=shift.end_time)
            return None

        # Перерыв учитывается только если заданы обе границы
        break_start = break_end = None
        if shift.break_start and shift.break_end:
            break_start = parse_minutes(shift.break_start)
            break_end = parse_minutes(shift.break_end)
            if (break_start is None or break_end is None
                    or not start <= break_start < break_end <= end):
                log_system_event("duty_filter", "malformed_shift", doctor_id=doctor_id,
                                 day=shift.day_of_week, break_start=shift.break_start,
                                 break_end=shift.break_end)
                return None

        return DutyWindow(start=start, end=end, break_start=break_start, break_end=break_end)

    def duty_window(self, doctor_id: str, target_date: date) -> Optional[DutyWindow]:
        """
        Окно дежурства врача на дату.

        Args:
            doctor_id: ID врача
            target_date: Дата приема

        Returns:
            DutyWindow или None, если записи нет, день неактивен или запись некорректна
        """
        by_day = self._schedules.get(str(doctor_id))
        if not by_day:
            return None

        shift = by_day.get(day_name(target_date))
        if shift is None:
            return None

        return self.window_from_shift(shift, doctor_id=str(doctor_id))

    def filter_on_duty(self, doctors: Iterable[Doctor], target_date: date,
                       fail_open: bool = False) -> List[OnDutyDoctor]:
        """
        Оставляет только врачей, дежурящих в дату, с окном дежурства.

        Args:
            doctors: Список врачей
            target_date: Дата приема
            fail_open: Включать врачей без графика с окном по умолчанию
                       (duty_verified=False). Врачи с неактивным днем не включаются никогда.

        Returns:
            Список OnDutyDoctor в исходном порядке
        """
        on_duty = []
        for doctor in doctors:
            if not doctor.is_active:
                continue

            window = self.duty_window(doctor.id, target_date)
            if window is not None:
                on_duty.append(OnDutyDoctor(doctor=doctor, window=window))
                continue

            if fail_open and not self.has_schedule(doctor.id):
                log_system_event("duty_filter", "fail_open_default_window",
                                 doctor_id=doctor.id, date=target_date.isoformat())
                on_duty.append(OnDutyDoctor(doctor=doctor, window=default_window(),
                                            duty_verified=False))
                continue

            log_system_event("duty_filter", "no_schedule",
                             doctor_id=doctor.id, date=target_date.isoformat())

        return on_duty


def default_window() -> DutyWindow:
    """Окно стандартного рабочего дня 09:00-17:00 с перерывом 12:00-13:00"""
    return DutyWindow(
        start=parse_minutes(DEFAULT_DAY_START),
        end=parse_minutes(DEFAULT_DAY_END),
        break_start=parse_minutes(DEFAULT_BREAK_START),
        break_end=parse_minutes(DEFAULT_BREAK_END),
    )


def default_week() -> List[ShiftDay]:
    """
    Стандартный график для нового врача: Пн-Пт 09:00-17:00, перерыв 12:00-13:00,
    выходные - суббота и воскресенье.
    """
    return [
        ShiftDay(
            day_of_week=day,
            is_active=day not in WEEKEND,
            start_time=DEFAULT_DAY_START,
            end_time=DEFAULT_DAY_END,
            break_start=DEFAULT_BREAK_START,
            break_end=DEFAULT_BREAK_END,
        )
        for day in DAYS_OF_WEEK
    ]


def validate_schedule(days: List[ShiftDay]):
    """
    Проверяет недельный график перед сохранением.

    Raises:
        ValidationError: если нет записи на какой-то день, день повторяется,
                         нет ни одного рабочего дня или нарушены границы смены/перерыва
    """
    seen = set()
    for shift in days:
        if shift.day_of_week not in DAYS_OF_WEEK:
            raise ValidationError(f"Неизвестный день недели: {shift.day_of_week}", field="day_of_week")
        if shift.day_of_week in seen:
            raise ValidationError(f"День {shift.day_of_week} указан дважды", field="day_of_week")
        seen.add(shift.day_of_week)

    missing = [day for day in DAYS_OF_WEEK if day not in seen]
    if missing:
        raise ValidationError(f"Нет графика на дни: {', '.join(missing)}", field="day_of_week")

    active = [shift for shift in days if shift.is_active]
    if not active:
        raise ValidationError("Должен быть хотя бы один рабочий день", field="is_active")

    for shift in active:
        start = parse_minutes(shift.start_time)
        end = parse_minutes(shift.end_time)
        if start is None or end is None:
            raise ValidationError(f"{shift.day_of_week}: некорректное время смены", field="start_time")
        if start >= end:
            raise ValidationError(f"{shift.day_of_week}: начало смены должно быть раньше конца",
                                  field="end_time")

        if shift.break_start or shift.break_end:
            break_start = parse_minutes(shift.break_start)
            break_end = parse_minutes(shift.break_end)
            if break_start is None or break_end is None:
                raise ValidationError(f"{shift.day_of_week}: перерыв задан не полностью",
                                      field="break_start")
            if not start <= break_start < break_end <= end:
                raise ValidationError(f"{shift.day_of_week}: перерыв должен быть внутри смены",
                                      field="break_start")


def copy_day_to_all(days: List[ShiftDay], source_day: str) -> List[ShiftDay]:
    """
    Копирует время и активность одного дня на все дни недели.

    Returns:
        Новый график (исходный список не изменяется)
    """
    source = next((shift for shift in days if shift.day_of_week == source_day), None)
    if source is None:
        raise ValidationError(f"Нет графика на день {source_day}", field="day_of_week")

    return [source.model_copy(update={"day_of_week": day}) for day in DAYS_OF_WEEK]


def set_all_days_active(days: List[ShiftDay], active: bool) -> List[ShiftDay]:
    """Включает или выключает все дни графика"""
    return [shift.model_copy(update={"is_active": active}) for shift in days]
