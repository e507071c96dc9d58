# scheduling_api_client.py
"""
Асинхронный клиент сервиса расписания клиники.

Конфигурация (URL, токен, повторы) передается явно через ClientConfig.
Ответы с ошибкой переводятся в исключения из scheduling.errors:
401/403 -> AuthError, 404 -> NotFoundError, 5xx/сеть/тайм-аут -> InfrastructureError.
Для POST/PUT: 409 -> SlotConflict, 400/422 -> ValidationError; для GET эти ответы
считаются сбоем источника (InfrastructureError) и не повторяются.
"""

import asyncio
import json
from datetime import date
from typing import Any, Dict, List, Optional

import aiohttp

from booking_config import ClientConfig
from logging_config import log_security_event, log_system_event, log_transport_event
from scheduling.errors import (
    AuthError,
    InfrastructureError,
    NotFoundError,
    SlotConflict,
    ValidationError,
)
from scheduling.models import Appointment, Doctor, Service, ShiftDay, TimeSlot
from scheduling.parser import ScheduleParser


class SchedulingApiClient:
    """
    Клиент REST API сервиса расписания.
    """

    def __init__(self, config: ClientConfig, session: Optional[aiohttp.ClientSession] = None):
        """
        Args:
            config: Параметры подключения
            session: Внешняя сессия aiohttp (если None - создается и закрывается клиентом)
        """
        self.config = config
        self.session = session
        self._owns_session = session is None

        if not self.config.base_url:
            log_system_event("scheduling_api", "configuration_missing")

    async def __aenter__(self):
        if self.session is None:
            self.session = aiohttp.ClientSession()
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Закрывает сессию, если она создана клиентом"""
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self.config.token_provider() if self.config.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    @staticmethod
    def _error_message(text: str, default: str) -> str:
        """Достает текст ошибки из тела ответа ({"message": ...} или {"error": ...})"""
        try:
            body = json.loads(text)
        except (json.JSONDecodeError, TypeError):
            return default
        if isinstance(body, dict):
            for key in ("message", "error", "title"):
                if isinstance(body.get(key), str) and body[key]:
                    return body[key]
        return default

    def _raise_for_status(self, method: str, status: int, text: str, endpoint: str):
        if 200 <= status < 300:
            return

        if status in (401, 403):
            log_security_event(None, "auth_failed", endpoint=endpoint, status=status)
            raise AuthError("Сессия истекла, требуется повторный вход", status=status, endpoint=endpoint)
        if status == 404:
            raise NotFoundError("Ресурс не найден", status=status, endpoint=endpoint)
        if method != "GET" and status == 409:
            raise SlotConflict()
        if method != "GET" and status in (400, 422):
            raise ValidationError(self._error_message(text, "Сервис отклонил данные записи"))

        raise InfrastructureError(f"Ошибка сервиса расписания (HTTP {status})",
                                  status=status, endpoint=endpoint)

    async def _send(self, method: str, path: str, params: Optional[Dict[str, str]] = None,
                    json_body: Optional[Dict[str, Any]] = None) -> Any:
        """
        Выполняет один запрос.

        Returns:
            Разобранный JSON или None для пустого тела
        """
        if not self.config.base_url:
            raise InfrastructureError("Не задан адрес сервиса расписания", endpoint=path)

        if self.session is None:
            self.session = aiohttp.ClientSession()
            self._owns_session = True

        url = f"{self.config.base_url.rstrip('/')}{path}"
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)

        try:
            async with self.session.request(method, url, params=params, json=json_body,
                                            headers=self._headers(), timeout=timeout) as response:
                status = response.status
                # utf-8-sig - сервис может отдавать BOM
                text = await response.text(encoding='utf-8-sig')
        except asyncio.TimeoutError:
            log_transport_event(method, path, "timeout")
            raise InfrastructureError("Тайм-аут запроса к сервису расписания", endpoint=path)
        except aiohttp.ClientError as e:
            log_transport_event(method, path, "error", error=type(e).__name__)
            raise InfrastructureError("Сервис расписания недоступен", endpoint=path) from e

        log_transport_event(method, path, status)
        self._raise_for_status(method, status, text, path)

        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            log_system_event("scheduling_api", "malformed_payload", endpoint=path, error=str(e)[:100])
            raise InfrastructureError("Некорректный ответ сервиса расписания",
                                      status=status, endpoint=path) from e

    async def _request(self, method: str, path: str, params: Optional[Dict[str, str]] = None,
                       json_body: Optional[Dict[str, Any]] = None) -> Any:
        """
        Запрос с повторами: GET повторяется при InfrastructureError (кроме 4xx), POST/PUT - никогда.
        """
        attempts = 1 + self.config.max_retries if method == "GET" else 1

        for attempt in range(1, attempts + 1):
            try:
                return await self._send(method, path, params=params, json_body=json_body)
            except InfrastructureError as e:
                # 4xx повтором не исправить
                if e.status is not None and 400 <= e.status < 500:
                    raise
                if attempt >= attempts:
                    if attempts > 1:
                        log_system_event("scheduling_api", "retries_exhausted",
                                         endpoint=path, attempts=attempts)
                    raise
                log_system_event("scheduling_api", "retry", endpoint=path,
                                 attempt=attempt, error=e.message)
                await asyncio.sleep(self.config.retry_delay)

    # --- Графики смен ---

    async def get_shift_schedule(self, doctor_id: str) -> List[ShiftDay]:
        """Недельный график врача"""
        payload = await self._request("GET", f"/Booking/doctor/{doctor_id}/shifts")
        return ScheduleParser.parse_shifts(payload if payload is not None else [])

    async def update_shift_schedule(self, doctor_id: str, days: List[ShiftDay]) -> bool:
        """Сохраняет недельный график врача"""
        body = {"shifts": [shift.to_payload() for shift in days]}
        await self._request("PUT", f"/Booking/doctor/{doctor_id}/shifts", json_body=body)
        return True

    # --- Врачи ---

    async def get_doctors_on_duty(self, target_date: date) -> List[Doctor]:
        """Врачи, дежурящие в дату (основной источник)"""
        payload = await self._request("GET", "/Booking/doctors-on-duty",
                                      params={"date": target_date.isoformat()})
        return ScheduleParser.parse_doctors(payload if payload is not None else [])

    async def get_all_doctors(self) -> List[Doctor]:
        """Все врачи клиники (резервный источник)"""
        payload = await self._request("GET", "/Staff/by-role/doctor")
        return ScheduleParser.parse_doctors(payload if payload is not None else [])

    # --- Слоты и записи ---

    async def get_available_slots(self, doctor_id: str, target_date: date) -> List[TimeSlot]:
        """Слоты, посчитанные сервисом (основной источник)"""
        payload = await self._request("GET", "/Booking/available-slots-by-doctor",
                                      params={"doctorId": str(doctor_id),
                                              "date": target_date.isoformat()})
        return ScheduleParser.parse_slots(payload if payload is not None else [])

    async def get_appointments_by_doctor_and_date(self, doctor_id: str,
                                                  target_date: date) -> List[Appointment]:
        """Записи врача на дату"""
        payload = await self._request(
            "GET", f"/Appointments/doctor/{doctor_id}/date/{target_date.isoformat()}"
        )
        return ScheduleParser.parse_appointments(payload if payload is not None else [])

    async def get_all_appointments(self) -> List[Appointment]:
        """Все записи клиники (резервный источник, фильтруется на клиенте)"""
        payload = await self._request("GET", "/Appointments/all-appointments")
        return ScheduleParser.parse_appointments(payload if payload is not None else [])

    async def create_appointment(self, doctor_id: str, service_id: str, target_date: date,
                                 start_time: str, end_time: str, notes: Optional[str] = None,
                                 patient_id: Optional[str] = None) -> Appointment:
        """
        Создает запись на прием. Не повторяется при ошибке.

        Raises:
            SlotConflict: время уже занято (HTTP 409)
            ValidationError: сервис отклонил данные
            AuthError, InfrastructureError, NotFoundError
        """
        body = {
            "patientId": patient_id or self.config.patient_id,
            "staffId": str(doctor_id),
            "serviceId": str(service_id),
            "appointmentDate": target_date.isoformat(),
            "startTime": start_time,
            "endTime": end_time,
            "notes": notes or "",
        }
        payload = await self._request("POST", "/Appointments", json_body=body)

        item = payload
        if isinstance(payload, dict):
            for key in ("appointment", "data"):
                if isinstance(payload.get(key), dict):
                    item = payload[key]
                    break

        # Поля запроса - значения по умолчанию для неполного ответа
        merged = {
            "doctorId": str(doctor_id),
            "appointmentDate": target_date.isoformat(),
            "startTime": start_time,
            "endTime": end_time,
            "serviceId": str(service_id),
            "notes": notes,
            "status": "pending",
        }
        if isinstance(item, dict):
            merged.update({k: v for k, v in item.items() if v is not None})
        return ScheduleParser.parse_appointment(merged)

    # --- Справочники ---

    async def get_services(self) -> List[Service]:
        """Справочник услуг"""
        payload = await self._request("GET", "/Services")
        return ScheduleParser.parse_services(payload if payload is not None else [])
