"""
Pydantic модели движка записи на прием
"""
import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AppointmentStatus(str, Enum):
    """Статус записи"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Статусы, занимающие время врача при финальной проверке
BLOCKING_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


class Doctor(BaseModel):
    """Врач (справочник клиники, только чтение)"""
    id: str = Field(..., description="ID врача")
    name: str = Field(..., description="ФИО врача")
    specialty: Optional[str] = Field(None, description="Специальность")
    is_active: bool = Field(True, description="Врач активен")
    shift_start: Optional[str] = Field(None, description="Начало смены (если сообщил сервис)")
    shift_end: Optional[str] = Field(None, description="Конец смены (если сообщил сервис)")


class ShiftDay(BaseModel):
    """Смена врача на один день недели"""
    day_of_week: str = Field(..., description="День недели: Monday..Sunday")
    is_active: bool = Field(False, description="Рабочий ли день")
    start_time: str = Field("09:00", description="Начало смены HH:MM")
    end_time: str = Field("17:00", description="Конец смены HH:MM")
    break_start: Optional[str] = Field(None, description="Начало перерыва HH:MM")
    break_end: Optional[str] = Field(None, description="Конец перерыва HH:MM")

    def to_payload(self) -> dict:
        """Формат, ожидаемый сервисом расписания"""
        payload = {
            "dayOfWeek": self.day_of_week,
            "isActive": self.is_active,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }
        if self.break_start and self.break_end:
            payload["breakStartTime"] = self.break_start
            payload["breakEndTime"] = self.break_end
        return payload


class Service(BaseModel):
    """Услуга с фиксированной длительностью"""
    id: str = Field(..., description="ID услуги")
    name: str = Field(..., description="Название услуги")
    duration_minutes: int = Field(..., gt=0, description="Длительность в минутах")
    price: Optional[float] = Field(None, description="Стоимость")


class Appointment(BaseModel):
    """Существующая запись на прием"""
    id: str = Field(..., description="ID записи")
    doctor_id: str = Field(..., description="ID врача")
    date: datetime.date = Field(..., description="Дата приема")
    start_time: str = Field(..., description="Начало HH:MM")
    end_time: str = Field(..., description="Конец HH:MM")
    status: AppointmentStatus = Field(AppointmentStatus.PENDING, description="Статус записи")
    service_id: Optional[str] = Field(None, description="ID услуги")
    notes: Optional[str] = Field(None, description="Комментарий пациента")

    @property
    def is_blocking(self) -> bool:
        return self.status in BLOCKING_STATUSES


class TimeSlot(BaseModel):
    """Вычисляемый слот времени (не сохраняется)"""
    start_time: str = Field(..., description="Начало HH:MM")
    end_time: str = Field(..., description="Конец HH:MM")
    duration_minutes: int = Field(..., description="Длительность в минутах")
    is_available: bool = Field(True, description="Можно ли выбрать слот")


class DutyWindow(BaseModel):
    """Окно дежурства врача на конкретную дату (минуты от полуночи)"""
    start: int
    end: int
    break_start: Optional[int] = None
    break_end: Optional[int] = None

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None


class OnDutyDoctor(BaseModel):
    """Врач, дежурящий в выбранную дату, с окном дежурства"""
    doctor: Doctor
    window: Optional[DutyWindow] = None
    duty_verified: bool = Field(True, description="Окно подтверждено графиком")
    available_slots: Optional[int] = Field(None, description="Свободных слотов на дату (None - не проверено)")
    is_fully_booked: bool = Field(False, description="Свободного времени нет")

    @property
    def id(self) -> str:
        return self.doctor.id
