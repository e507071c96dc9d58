# scheduling/ledger.py
"""
Журнал существующих записей (снимок на момент загрузки, только чтение).
"""

from datetime import date
from typing import Iterable, List

from .models import Appointment, AppointmentStatus


class AppointmentLedger:
    """Снимок записей на прием, полученный из сервиса расписания"""

    def __init__(self, appointments: Iterable[Appointment] = ()):
        self._appointments: List[Appointment] = list(appointments)

    def __len__(self):
        return len(self._appointments)

    def __iter__(self):
        return iter(self._appointments)

    def for_doctor_on(self, doctor_id: str, target_date: date) -> List[Appointment]:
        """Все записи врача на дату, по времени начала"""
        doctor_id = str(doctor_id)
        matched = [
            appointment for appointment in self._appointments
            if appointment.doctor_id == doctor_id and appointment.date == target_date
        ]
        return sorted(matched, key=lambda a: a.start_time)

    def non_cancelled(self, doctor_id: str, target_date: date) -> List[Appointment]:
        """Записи, занимающие время при построении слотов"""
        return [
            appointment for appointment in self.for_doctor_on(doctor_id, target_date)
            if appointment.status != AppointmentStatus.CANCELLED
        ]

    def blocking(self, doctor_id: str, target_date: date) -> List[Appointment]:
        """Записи pending/confirmed, проверяемые перед созданием новой"""
        return [
            appointment for appointment in self.for_doctor_on(doctor_id, target_date)
            if appointment.is_blocking
        ]

    def restricted_to(self, doctor_id: str, target_date: date) -> "AppointmentLedger":
        """Новый журнал только с записями врача на дату (для фильтрации полного списка)"""
        return AppointmentLedger(self.for_doctor_on(doctor_id, target_date))
