# book_appointment/workflow.py
"""
Мастер записи на прием: дата -> врач -> время -> услуга -> комментарий -> запись.

Каждый переход допустим только в своем состоянии. Пользовательские ошибки
(ValidationError, SlotConflict) складываются в errors, переход возвращает False/None.
Пока идет загрузка, переходы вперед не принимаются; назад и отмена - всегда.
"""

import asyncio
import inspect
from datetime import date, timedelta
from typing import Any, Callable, List, Optional, Set, Union

from booking_config import BOOKING_HORIZON_DAYS, CLINIC_TIMEZONE, NOTES_MAX_LENGTH
from logging_config import log_data_event, log_security_event, log_system_event, log_user_event
from scheduling.conflicts import CandidateBooking, ConflictGuard
from scheduling.errors import (
    FALLBACK_ERRORS,
    AuthError,
    BookingError,
    SlotConflict,
    ValidationError,
    WorkflowStateError,
)
from scheduling.models import Appointment, OnDutyDoctor, Service, TimeSlot
from scheduling.utils import add_minutes, clinic_today, parse_date, parse_minutes
from .fallback import Resolved, SourceTier
from .sources import BookingDataSources
from .states import CLOSED_STATES, PREVIOUS_STATE, BookingDraft, WorkflowState

# Ответ загрузки, пришедший после отмены или шага назад
_STALE = object()

DEGRADED_NOTICE = "Показана приблизительная доступность: данные могут быть неточными."
UNAVAILABLE_MESSAGE = "Сервис записи временно недоступен. Попробуйте позже."
ROSTER_UNVERIFIED_NOTICE = "Не удалось проверить график врачей на эту дату. Попробуйте позже или выберите другую дату."


class BookingWorkflow:
    """
    Конечный автомат мастера записи на прием.
    """

    def __init__(self, sources: BookingDataSources, services: Optional[List[Service]] = None,
                 on_success: Optional[Callable[[Appointment], Any]] = None,
                 on_auth_required: Optional[Callable[[AuthError], Any]] = None,
                 patient_id: Optional[str] = None,
                 today_provider: Optional[Callable[[], date]] = None,
                 user_id: Any = None,
                 notes_max_length: int = NOTES_MAX_LENGTH,
                 horizon_days: int = BOOKING_HORIZON_DAYS):
        """
        Args:
            sources: Источники данных с деградацией
            services: Справочник услуг (если None - загружается на шаге выбора услуги)
            on_success: Вызывается с созданной записью
            on_auth_required: Вызывается при AuthError перед остановкой мастера
            patient_id: Пациент, от имени которого создается запись
            today_provider: Функция "сегодня" (по умолчанию - дата в часовом поясе клиники)
            user_id: ID пользователя для логов
        """
        self.sources = sources
        self.on_success = on_success
        self.on_auth_required = on_auth_required
        self.patient_id = patient_id
        self.today_provider = today_provider or (lambda: clinic_today(CLINIC_TIMEZONE))
        self.user_id = user_id
        self.notes_max_length = notes_max_length
        self.horizon_days = horizon_days

        self.current_state = WorkflowState.DATE_SELECTION
        self.draft = BookingDraft()
        self.doctors: List[OnDutyDoctor] = []
        self.available_slots: List[TimeSlot] = []
        self.services: List[Service] = list(services) if services else []
        self.errors: List[BookingError] = []
        self.notices: List[str] = []
        self.data_tier: Optional[SourceTier] = None
        self.appointment: Optional[Appointment] = None

        self._generation = 0
        self._loading = False
        self._tasks: Set[asyncio.Task] = set()

        log_user_event(self.user_id, "booking_opened")

    # --- Служебное ---

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def is_closed(self) -> bool:
        return self.current_state in CLOSED_STATES

    @property
    def bookable_doctors(self) -> List[OnDutyDoctor]:
        """Дежурящие врачи, у которых есть (или не проверено) свободное время"""
        return [doctor for doctor in self.doctors if not doctor.is_fully_booked]

    @property
    def fully_booked_doctors(self) -> List[OnDutyDoctor]:
        return [doctor for doctor in self.doctors if doctor.is_fully_booked]

    def _require(self, state: WorkflowState):
        if self.is_closed:
            raise WorkflowStateError("Мастер записи уже закрыт")
        if self._loading:
            raise WorkflowStateError("Дождитесь окончания загрузки")
        if self.current_state != state:
            raise WorkflowStateError(
                f"Действие шага {state.value} недоступно в состоянии {self.current_state.value}"
            )

    def _reject(self, error: BookingError) -> bool:
        """Записывает пользовательскую ошибку"""
        self.errors.append(error)
        if isinstance(error, ValidationError):
            log_user_event(self.user_id, "booking_validation_failed", field=error.field)
        return False

    def _invalidate(self):
        """Отменяет текущие загрузки; их ответы будут отброшены"""
        self._generation += 1
        self._loading = False
        for task in list(self._tasks):
            task.cancel()

    async def _fetch(self, factory: Callable[[], Any]) -> Any:
        """
        Выполняет загрузку как отменяемую задачу.

        Returns:
            Результат или _STALE, если за время загрузки мастер отменен или сделан шаг назад

        Raises:
            AuthError: после вызова on_auth_required и остановки мастера
        """
        generation = self._generation
        task = asyncio.ensure_future(factory())
        self._tasks.add(task)
        self._loading = True

        try:
            result = await task
        except asyncio.CancelledError:
            if task.cancelled() and generation != self._generation:
                log_system_event("booking_workflow", "fetch_cancelled",
                                 user_id=self.user_id, state=self.current_state.value)
                return _STALE
            raise
        except AuthError as e:
            if generation != self._generation:
                return _STALE
            await self._auth_required(e)
            raise
        finally:
            self._tasks.discard(task)
            if generation == self._generation:
                self._loading = False

        if generation != self._generation:
            log_system_event("booking_workflow", "stale_response_dropped",
                             user_id=self.user_id, state=self.current_state.value)
            return _STALE
        return result

    async def _auth_required(self, error: AuthError):
        log_security_event(self.user_id, "auth_required", endpoint=error.endpoint)
        self._close(WorkflowState.CANCELLED)
        if self.on_auth_required:
            result = self.on_auth_required(error)
            if inspect.isawaitable(result):
                await result

    def _apply_tier(self, resolved: Resolved):
        self.data_tier = resolved.tier
        if resolved.degraded:
            if DEGRADED_NOTICE not in self.notices:
                self.notices.append(DEGRADED_NOTICE)
            log_user_event(self.user_id, "booking_degraded_data", tier=resolved.tier.value)
        else:
            self.notices = [notice for notice in self.notices if notice != DEGRADED_NOTICE]

    def _close(self, state: WorkflowState):
        self._invalidate()
        self.current_state = state
        self.draft = BookingDraft()
        self.doctors = []
        self.available_slots = []

    async def _load_slots(self) -> bool:
        duration = self.draft.service.duration_minutes if self.draft.service else None
        doctor_id, target_date = self.draft.doctor_id, self.draft.date

        resolved = await self._fetch(
            lambda: self.sources.available_slots(doctor_id, target_date, duration)
        )
        if resolved is _STALE:
            return False
        self.available_slots = resolved.data
        self._apply_tier(resolved)
        return True

    # --- Переходы ---

    async def select_date(self, value: Union[date, str]) -> bool:
        """
        Шаг 1: выбор даты. Смена даты сбрасывает врача и время.

        Returns:
            True если дата принята и врачи загружены
        """
        self._require(WorkflowState.DATE_SELECTION)
        self.errors = []

        target_date = parse_date(value)
        if target_date is None:
            return self._reject(ValidationError("Укажите дату приема", field="date"))

        today = self.today_provider()
        last_day = today + timedelta(days=self.horizon_days)
        if target_date < today or target_date > last_day:
            return self._reject(ValidationError(
                f"Запись возможна с {today.strftime('%d.%m.%Y')} по {last_day.strftime('%d.%m.%Y')}",
                field="date",
            ))

        if target_date != self.draft.date:
            self.draft.doctor_id = ""
            self.draft.time_slot = None
            self.doctors = []
            self.available_slots = []

        self.draft.date = target_date
        self.draft.update_activity()
        log_user_event(self.user_id, "booking_action", step="date", date=target_date.isoformat())

        self.current_state = WorkflowState.DOCTOR_SELECTION
        resolved = await self._fetch(lambda: self.sources.doctors_on_duty(target_date))
        if resolved is _STALE:
            return False

        self.doctors = resolved.data
        self._apply_tier(resolved)
        # Пустой список по умолчанию: "никто не дежурит" не подтверждено
        self.notices = [notice for notice in self.notices if notice != ROSTER_UNVERIFIED_NOTICE]
        if resolved.tier == SourceTier.SYNTHETIC:
            self.notices.append(ROSTER_UNVERIFIED_NOTICE)
            log_user_event(self.user_id, "booking_roster_unverified", date=target_date.isoformat())
        return True

    async def select_doctor(self, doctor_id: str) -> bool:
        """
        Шаг 2: выбор врача из дежурящих. Смена врача сбрасывает время.
        """
        self._require(WorkflowState.DOCTOR_SELECTION)
        self.errors = []

        doctor_id = str(doctor_id or "")
        doctor = next((d for d in self.doctors if d.id == doctor_id), None) if doctor_id else None
        if doctor is None:
            return self._reject(ValidationError("Выберите врача из списка", field="doctor_id"))
        if doctor.is_fully_booked:
            return self._reject(ValidationError(
                "У врача нет свободного времени на эту дату. Выберите другого врача или дату.",
                field="doctor_id",
            ))

        if doctor_id != self.draft.doctor_id:
            self.draft.time_slot = None
            self.available_slots = []

        self.draft.doctor_id = doctor_id
        self.draft.update_activity()
        log_user_event(self.user_id, "booking_action", step="doctor", doctor_id=doctor_id)

        self.current_state = WorkflowState.TIME_SLOT
        return await self._load_slots()

    async def select_slot(self, slot: Union[TimeSlot, str]) -> bool:
        """
        Шаг 3: выбор времени из доступных слотов.
        """
        self._require(WorkflowState.TIME_SLOT)
        self.errors = []

        start_time = slot.start_time if isinstance(slot, TimeSlot) else slot
        start = parse_minutes(start_time)
        chosen = next(
            (candidate for candidate in self.available_slots
             if candidate.is_available and parse_minutes(candidate.start_time) == start),
            None,
        ) if start is not None else None
        if chosen is None:
            return self._reject(ValidationError("Выберите время из доступных", field="time_slot"))

        self.draft.time_slot = chosen
        self.draft.update_activity()
        log_user_event(self.user_id, "booking_action", step="slot", time=chosen.start_time)

        self.current_state = WorkflowState.SERVICE_SELECTION
        if not self.services:
            try:
                services = await self._fetch(self.sources.services)
            except FALLBACK_ERRORS as e:
                log_system_event("booking_workflow", "services_unavailable",
                                 user_id=self.user_id, error=type(e).__name__)
                self.errors.append(BookingError("Справочник услуг временно недоступен"))
                return True
            if services is _STALE:
                return False
            self.services = services
        return True

    async def select_service(self, service_id: str) -> bool:
        """
        Шаг 4: выбор услуги.

        Слоты пересчитываются под длительность услуги. Если выбранное время
        не вмещает услугу, время сбрасывается и мастер возвращается к выбору времени.
        """
        self._require(WorkflowState.SERVICE_SELECTION)
        self.errors = []

        service = next((s for s in self.services if s.id == str(service_id)), None)
        if service is None:
            return self._reject(ValidationError("Выберите услугу из списка", field="service_id"))

        self.draft.service = service
        self.draft.update_activity()
        log_user_event(self.user_id, "booking_action", step="service", service_id=service.id)

        if not await self._load_slots():
            return False

        chosen_start = self.draft.time_slot.start_time if self.draft.time_slot else None
        fitted = next(
            (slot for slot in self.available_slots
             if chosen_start and slot.start_time == chosen_start),
            None,
        )
        if fitted is None:
            self.draft.time_slot = None
            self.current_state = WorkflowState.TIME_SLOT
            return self._reject(ValidationError(
                f"Услуга «{service.name}» ({service.duration_minutes} мин) не помещается "
                f"в выбранное время. Выберите другое время.",
                field="time_slot",
            ))

        self.draft.time_slot = fitted
        self.current_state = WorkflowState.NOTES
        return True

    def set_notes(self, notes: Optional[str]) -> bool:
        """
        Шаг 5: комментарий (необязательный, ограничен по длине).
        """
        self._require(WorkflowState.NOTES)
        self.errors = []

        notes = (notes or "").strip()
        if len(notes) > self.notes_max_length:
            return self._reject(ValidationError(
                f"Комментарий не должен превышать {self.notes_max_length} символов",
                field="notes",
            ))

        self.draft.notes = notes
        self.draft.update_activity()
        log_user_event(self.user_id, "booking_action", step="notes", length=len(notes))
        return True

    def _validate_draft(self) -> Optional[ValidationError]:
        draft = self.draft
        if draft.date is None:
            return ValidationError("Не выбрана дата приема", field="date")
        if not draft.doctor_id:
            return ValidationError("Не выбран врач", field="doctor_id")
        if draft.time_slot is None:
            return ValidationError("Не выбрано время приема", field="time_slot")
        if draft.service is None:
            return ValidationError("Не выбрана услуга", field="service_id")
        if len(draft.notes) > self.notes_max_length:
            return ValidationError(
                f"Комментарий не должен превышать {self.notes_max_length} символов", field="notes"
            )
        if add_minutes(draft.time_slot.start_time, draft.service.duration_minutes) is None:
            return ValidationError("Услуга не помещается в выбранное время", field="time_slot")
        return None

    async def _on_conflict(self, conflict: SlotConflict):
        """Время заняли: остаемся на шаге комментария и обновляем слоты"""
        log_data_event(self.user_id, "appointment_conflict", doctor_id=self.draft.doctor_id,
                       date=self.draft.date.isoformat(), time=self.draft.time_slot.start_time,
                       conflicting=",".join(conflict.conflicting_ids) or "server")
        log_user_event(self.user_id, "booking_slot_conflict")
        self.errors.append(conflict)
        await self._load_slots()

    def _unavailable(self, error: Exception) -> None:
        log_system_event("booking_workflow", "submit_unavailable",
                         user_id=self.user_id, error=type(error).__name__)
        self.errors.append(BookingError(UNAVAILABLE_MESSAGE))
        return None

    async def submit(self) -> Optional[Appointment]:
        """
        Проверяет черновик, повторно проверяет пересечения по свежему журналу и создает запись.

        Returns:
            Созданная запись или None (причина - в errors)
        """
        self._require(WorkflowState.NOTES)
        self.errors = []

        error = self._validate_draft()
        if error is not None:
            self._reject(error)
            return None

        draft = self.draft
        candidate = CandidateBooking(
            doctor_id=draft.doctor_id,
            date=draft.date,
            start_time=draft.time_slot.start_time,
            duration_minutes=draft.service.duration_minutes,
        )

        try:
            ledger = await self._fetch(
                lambda: self.sources.appointments_for(candidate.doctor_id, candidate.date)
            )
        except FALLBACK_ERRORS as e:
            return self._unavailable(e)
        if ledger is _STALE:
            return None

        check = ConflictGuard.validate(candidate, ledger.data)
        if not check.ok:
            if check.conflicting_ids:
                await self._on_conflict(SlotConflict(conflicting_ids=check.conflicting_ids))
            else:
                self._reject(ValidationError(check.reason, field="time_slot"))
            return None

        try:
            appointment = await self._fetch(lambda: self.sources.client.create_appointment(
                doctor_id=candidate.doctor_id,
                service_id=draft.service_id,
                target_date=candidate.date,
                start_time=candidate.start_time,
                end_time=candidate.end_time,
                notes=draft.notes or None,
                patient_id=self.patient_id,
            ))
        except SlotConflict as conflict:
            await self._on_conflict(conflict)
            return None
        except ValidationError as e:
            self._reject(e)
            return None
        except FALLBACK_ERRORS as e:
            return self._unavailable(e)
        if appointment is _STALE:
            return None

        log_data_event(self.user_id, "appointment_created", appointment_id=appointment.id,
                       doctor_id=appointment.doctor_id, date=appointment.date.isoformat(),
                       time=appointment.start_time)
        log_user_event(self.user_id, "booking_submitted", appointment_id=appointment.id)

        self.appointment = appointment
        self._close(WorkflowState.COMPLETED)

        if self.on_success:
            result = self.on_success(appointment)
            if inspect.isawaitable(result):
                await result
        return appointment

    def go_back(self) -> WorkflowState:
        """
        Возврат на предыдущий шаг. Введенные данные сохраняются.
        Допустим и во время загрузки: ее ответ будет отброшен.
        """
        if self.is_closed:
            raise WorkflowStateError("Мастер записи уже закрыт")
        previous = PREVIOUS_STATE.get(self.current_state)
        if previous is None:
            raise WorkflowStateError("Это первый шаг мастера записи")

        self._invalidate()
        self.errors = []
        self.current_state = previous
        self.draft.update_activity()
        log_user_event(self.user_id, "booking_step_back", state=previous.value)
        return previous

    def cancel(self):
        """Отмена записи: черновик удаляется, загрузки отменяются"""
        if self.is_closed:
            return
        self._close(WorkflowState.CANCELLED)
        log_user_event(self.user_id, "booking_cancelled")

    def expire(self):
        """Закрытие по неактивности"""
        if self.is_closed:
            return
        self._close(WorkflowState.CANCELLED)
        log_user_event(self.user_id, "booking_session_expired")

    def is_expired(self, timeout_minutes: int) -> bool:
        return self.draft.is_expired(timeout_minutes)
