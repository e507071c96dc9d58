# scheduling/utils.py
"""
Вспомогательные функции для работы со временем и интервалами.
"""

import logging
import re
from datetime import date, datetime
from typing import Optional, Union

import pytz

logger = logging.getLogger(__name__)

DAYS_OF_WEEK = [
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"
]

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r'^(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?$')


def parse_minutes(value: Optional[str]) -> Optional[int]:
    """
    Переводит время суток в минуты от полуночи.

    Args:
        value: Строка "HH:MM" или "HH:MM:SS" ("24:00" допускается как граница конца дня)

    Returns:
        Минуты от полуночи или None если строка некорректна
    """
    if value is None:
        return None

    match = _TIME_RE.match(str(value).strip())
    if not match:
        return None

    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59:
        return None
    if hours == 24 and minutes == 0:
        return MINUTES_PER_DAY
    if hours > 23:
        return None

    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    """Минуты от полуночи -> "HH:MM" """
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(value: str, minutes: int) -> Optional[str]:
    """Прибавляет минуты к времени "HH:MM"; None если время некорректно или выходит за сутки"""
    start = parse_minutes(value)
    if start is None:
        return None
    end = start + minutes
    if end > MINUTES_PER_DAY:
        return None
    return format_minutes(end)


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Пересечение полуоткрытых интервалов [a_start, a_end) и [b_start, b_end)"""
    return a_start < b_end and a_end > b_start


def normalize_day_name(value: Union[str, int, None]) -> Optional[str]:
    """
    Нормализует день недели к виду "Monday".."Sunday".

    Целые числа трактуются как 0 = Sunday, 1 = Monday, ... 6 = Saturday.
    """
    if value is None:
        return None

    if isinstance(value, int) and not isinstance(value, bool):
        if 0 <= value <= 6:
            return DAYS_OF_WEEK[(value - 1) % 7]
        return None

    text = str(value).strip()
    if text.isdigit():
        return normalize_day_name(int(text))

    for day in DAYS_OF_WEEK:
        if day.lower() == text.lower() or day[:3].lower() == text.lower():
            return day
    return None


def day_name(target_date: date) -> str:
    """День недели даты в виде "Monday".."Sunday" """
    return DAYS_OF_WEEK[target_date.weekday()]


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Парсит дату из строки ISO ("2026-01-15" или "2026-01-15T00:00:00").

    Returns:
        Объект date или None если некорректна
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    try:
        return datetime.strptime(str(value).strip()[:10], '%Y-%m-%d').date()
    except ValueError:
        logger.warning(f"Не удалось распарсить дату: {value}")
        return None


def clinic_today(timezone_name: str = "UTC") -> date:
    """
    Текущая дата в часовом поясе клиники.

    Args:
        timezone_name: Имя часового пояса pytz
    """
    try:
        tz = pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Неизвестный часовой пояс '{timezone_name}', используется UTC")
        tz = pytz.UTC
    return datetime.now(tz).date()
