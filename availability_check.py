# availability_check.py
"""
Проверка доступного времени врача из командной строки.

Пример:
    python availability_check.py --doctor 42 --date 2026-03-02 --duration 30
"""
import argparse
import asyncio
import sys

from booking_config import load_client_config
from book_appointment.sources import BookingDataSources
from logging_config import log_system_event, setup_logging
from scheduling.errors import AuthError
from scheduling.utils import parse_date
from scheduling_api_client import SchedulingApiClient

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_AUTH = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Доступное время врача на дату")
    parser.add_argument("--doctor", required=True, help="ID врача")
    parser.add_argument("--date", required=True, help="Дата приема YYYY-MM-DD")
    parser.add_argument("--duration", type=int, default=None,
                        help="Длительность услуги в минутах (по умолчанию - шаг сетки)")
    return parser


async def check_availability(doctor_id: str, date_value: str, duration=None) -> int:
    """
    Печатает слоты врача и уровень источника данных.

    Returns:
        Код завершения
    """
    target_date = parse_date(date_value)
    if target_date is None:
        print(f"Некорректная дата: {date_value}", file=sys.stderr)
        return EXIT_USAGE

    log_system_event("availability_check", "started", doctor_id=doctor_id, date=target_date.isoformat())

    async with SchedulingApiClient(load_client_config()) as client:
        sources = BookingDataSources(client)
        try:
            resolved = await sources.available_slots(doctor_id, target_date, duration)
        except AuthError as e:
            log_system_event("availability_check", "auth_failed", status=e.status)
            print("Ошибка авторизации в сервисе расписания", file=sys.stderr)
            return EXIT_AUTH

    print(f"Врач {doctor_id}, {target_date.strftime('%d.%m.%Y')}, источник: {resolved.tier.value}")
    if resolved.degraded:
        print("Внимание: доступность приблизительная")
    for slot in resolved.data:
        print(f"  {slot.start_time}-{slot.end_time}")
    if not resolved.data:
        print("  Нет доступного времени")

    log_system_event("availability_check", "finished", count=len(resolved.data), tier=resolved.tier.value)
    return EXIT_OK


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    return asyncio.run(check_availability(args.doctor, args.date, args.duration))


if __name__ == "__main__":
    sys.exit(main())
