# book_appointment/states.py
"""
Состояния мастера записи на прием и черновик записи
"""
from dataclasses import dataclass, field
import datetime
from enum import Enum
from typing import Optional

from scheduling.models import Service, TimeSlot


class WorkflowState(str, Enum):
    """Шаги мастера в порядке прохождения"""
    DATE_SELECTION = "date_selection"
    DOCTOR_SELECTION = "doctor_selection"
    TIME_SLOT = "time_slot"
    SERVICE_SELECTION = "service_selection"
    NOTES = "notes"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Шаг -> предыдущий шаг (для кнопки "Назад")
PREVIOUS_STATE = {
    WorkflowState.DOCTOR_SELECTION: WorkflowState.DATE_SELECTION,
    WorkflowState.TIME_SLOT: WorkflowState.DOCTOR_SELECTION,
    WorkflowState.SERVICE_SELECTION: WorkflowState.TIME_SLOT,
    WorkflowState.NOTES: WorkflowState.SERVICE_SELECTION,
}

CLOSED_STATES = (WorkflowState.COMPLETED, WorkflowState.CANCELLED)


@dataclass
class BookingDraft:
    # Данные выбора
    date: Optional[datetime.date] = None
    doctor_id: str = ""
    time_slot: Optional[TimeSlot] = None
    service: Optional[Service] = None
    notes: str = ""

    # Временные метки для контроля таймаутов
    created_at: datetime.datetime = field(default_factory=datetime.datetime.now)
    last_activity: datetime.datetime = field(default_factory=datetime.datetime.now)

    @property
    def service_id(self) -> str:
        return self.service.id if self.service else ""

    def update_activity(self):
        """Обновляет время последней активности"""
        self.last_activity = datetime.datetime.now()

    def is_expired(self, timeout_minutes: int = 30) -> bool:
        """
        Проверяет, истекло ли время неактивности

        Args:
            timeout_minutes: Таймаут в минутах (по умолчанию 30)

        Returns:
            True если время истекло, False иначе
        """
        if self.last_activity is None:
            return True
        elapsed = datetime.datetime.now() - self.last_activity
        return elapsed > datetime.timedelta(minutes=timeout_minutes)
