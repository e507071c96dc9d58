# booking_config.py
"""Конфигурация движка записи на прием"""
import os
from dataclasses import dataclass, field
from typing import Callable, Optional

from dotenv import load_dotenv

# Загрузка переменных окружения
load_dotenv()

# URL и авторизация сервиса расписания
SCHEDULING_API_URL = os.getenv("SCHEDULING_API_URL")
SCHEDULING_API_TOKEN = os.getenv("SCHEDULING_API_TOKEN")
SCHEDULING_PATIENT_ID = os.getenv("SCHEDULING_PATIENT_ID")

# Часовой пояс клиники (для вычисления "сегодня")
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "UTC")

# Параметры сетки слотов и мастера записи
SLOT_GRANULARITY_MINUTES = int(os.getenv("SLOT_GRANULARITY_MINUTES", "30"))
BOOKING_HORIZON_DAYS = int(os.getenv("BOOKING_HORIZON_DAYS", "30"))
NOTES_MAX_LENGTH = int(os.getenv("NOTES_MAX_LENGTH", "500"))
WORKFLOW_INACTIVITY_TIMEOUT_MINUTES = int(os.getenv("WORKFLOW_INACTIVITY_TIMEOUT_MINUTES", "30"))

# Таймауты и повторы запросов
FETCH_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", "10"))
API_MAX_RETRIES = int(os.getenv("API_MAX_RETRIES", "2"))
API_RETRY_DELAY_SECONDS = float(os.getenv("API_RETRY_DELAY_SECONDS", "1"))

# Сетка по умолчанию (синтетический уровень) и стандартный график
DEFAULT_DAY_START = "09:00"
DEFAULT_DAY_END = "17:00"
DEFAULT_BREAK_START = "12:00"
DEFAULT_BREAK_END = "13:00"


def _static_token() -> Optional[str]:
    return SCHEDULING_API_TOKEN


@dataclass
class ClientConfig:
    """Параметры клиента сервиса расписания (передаются явно, без глобального клиента)"""
    base_url: str
    token_provider: Callable[[], Optional[str]] = field(default=_static_token)
    timeout_seconds: float = FETCH_TIMEOUT_SECONDS
    max_retries: int = API_MAX_RETRIES
    retry_delay: float = API_RETRY_DELAY_SECONDS
    patient_id: Optional[str] = None


def load_client_config(token_provider: Optional[Callable[[], Optional[str]]] = None) -> ClientConfig:
    """
    Собирает ClientConfig из переменных окружения.

    Args:
        token_provider: Функция, возвращающая актуальный токен (если None - токен из .env)
    """
    return ClientConfig(
        base_url=(SCHEDULING_API_URL or "").rstrip("/"),
        token_provider=token_provider or _static_token,
        timeout_seconds=FETCH_TIMEOUT_SECONDS,
        max_retries=API_MAX_RETRIES,
        retry_delay=API_RETRY_DELAY_SECONDS,
        patient_id=SCHEDULING_PATIENT_ID,
    )
