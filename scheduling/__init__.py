"""
Расчет доступного времени врачей: графики смен, журнал записей,
генерация слотов и проверка пересечений
"""

from .conflicts import CandidateBooking, ConflictCheck, ConflictGuard
from .errors import (
    AuthError,
    BookingError,
    InfrastructureError,
    NotFoundError,
    SlotConflict,
    SlotNoLongerAvailable,
    UpstreamError,
    ValidationError,
    WorkflowStateError,
)
from .ledger import AppointmentLedger
from .models import (
    Appointment,
    AppointmentStatus,
    Doctor,
    DutyWindow,
    OnDutyDoctor,
    Service,
    ShiftDay,
    TimeSlot,
)
from .shift_calendar import (
    ShiftCalendar,
    copy_day_to_all,
    default_week,
    set_all_days_active,
    validate_schedule,
)
from .slots import SlotGenerator

__all__ = [
    'CandidateBooking',
    'ConflictCheck',
    'ConflictGuard',
    'AuthError',
    'BookingError',
    'InfrastructureError',
    'NotFoundError',
    'SlotConflict',
    'SlotNoLongerAvailable',
    'UpstreamError',
    'ValidationError',
    'WorkflowStateError',
    'AppointmentLedger',
    'Appointment',
    'AppointmentStatus',
    'Doctor',
    'DutyWindow',
    'OnDutyDoctor',
    'Service',
    'ShiftDay',
    'TimeSlot',
    'ShiftCalendar',
    'copy_day_to_all',
    'default_week',
    'set_all_days_active',
    'validate_schedule',
    'SlotGenerator',
]
