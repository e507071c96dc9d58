# scheduling/conflicts.py
"""
Финальная проверка пересечения записи с существующими перед созданием.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from .errors import SlotConflict, ValidationError
from .ledger import AppointmentLedger
from .models import Appointment
from .utils import add_minutes, intervals_overlap, parse_minutes


@dataclass
class ConflictCheck:
    """Результат проверки: ok или причина отказа"""
    ok: bool
    reason: str = ""
    conflicting_ids: List[str] = field(default_factory=list)

    def __bool__(self):
        return self.ok


@dataclass
class CandidateBooking:
    """Проверяемая запись: врач, дата, начало и длительность услуги"""
    doctor_id: str
    date: date
    start_time: str
    duration_minutes: int

    @property
    def end_time(self) -> Optional[str]:
        return add_minutes(self.start_time, self.duration_minutes)


class ConflictGuard:
    """Проверка кандидата против журнала записей"""

    @staticmethod
    def validate(candidate: CandidateBooking, existing: Iterable[Appointment]) -> ConflictCheck:
        """
        Проверяет, не пересекается ли кандидат с действующими записями.

        Учитываются только записи того же врача на ту же дату со статусом
        pending или confirmed.

        Args:
            candidate: Проверяемая запись
            existing: Известные записи (может содержать записи других врачей и дат)

        Returns:
            ConflictCheck(ok=True) или ConflictCheck(ok=False, reason, conflicting_ids)
        """
        start = parse_minutes(candidate.start_time)
        end_time = candidate.end_time
        end = parse_minutes(end_time) if end_time else None
        if start is None or end is None or candidate.duration_minutes <= 0:
            return ConflictCheck(ok=False, reason="Некорректное время записи")

        conflicting = []
        for appointment in AppointmentLedger(existing).blocking(candidate.doctor_id, candidate.date):
            other_start = parse_minutes(appointment.start_time)
            other_end = parse_minutes(appointment.end_time)
            if other_start is None or other_end is None:
                continue
            if intervals_overlap(start, end, other_start, other_end):
                conflicting.append(appointment.id)

        if conflicting:
            return ConflictCheck(
                ok=False,
                reason=SlotConflict().message,
                conflicting_ids=conflicting,
            )
        return ConflictCheck(ok=True)

    @staticmethod
    def ensure(candidate: CandidateBooking, existing: Iterable[Appointment]):
        """
        То же, что validate, но с исключениями.

        Raises:
            ValidationError: некорректное время кандидата
            SlotConflict: пересечение с действующей записью
        """
        result = ConflictGuard.validate(candidate, existing)
        if result.ok:
            return
        if not result.conflicting_ids:
            raise ValidationError(result.reason, field="time_slot")
        raise SlotConflict(conflicting_ids=result.conflicting_ids)
