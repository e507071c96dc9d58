# logging_config.py
import logging
import logging.handlers
import os
import re

# Кастомные уровни логирования
USER_LEVEL = 25
SYSTEM_LEVEL = 24
DATA_LEVEL = 23
SECURITY_LEVEL = 22
TRANSPORT_LEVEL = 21

# Регистрация кастомных уровней
logging.addLevelName(USER_LEVEL, "USER")
logging.addLevelName(SYSTEM_LEVEL, "SYSTEM")
logging.addLevelName(DATA_LEVEL, "DATA")
logging.addLevelName(SECURITY_LEVEL, "SECURITY")
logging.addLevelName(TRANSPORT_LEVEL, "TRANSPORT")


class MaskingFilter(logging.Filter):
    """Фильтр для маскирования персональных данных и токенов в логах"""

    def mask_phone(self, phone):
        if phone and len(phone) >= 8:
            return phone[:4] + '*' * (len(phone) - 7) + phone[-3:]
        return phone

    def mask_email(self, email):
        if not email or '@' not in email:
            return email
        local, domain = email.split('@', 1)
        return local[:1] + '***@' + domain

    def filter(self, record):
        try:
            if hasattr(record, 'msg') and record.msg is not None:
                # msg может быть не строкой (например, объект исключения)
                if not isinstance(record.msg, str):
                    record.msg = str(record.msg)
            if hasattr(record, 'msg') and record.msg:
                # Bearer-токены
                record.msg = re.sub(r'(Bearer\s+)[A-Za-z0-9\-_\.=]+',
                                    r'\1***',
                                    record.msg)
                # Телефоны
                record.msg = re.sub(r'(\+\d{11,12})',
                                    lambda m: self.mask_phone(m.group(1)),
                                    record.msg)
                # E-mail
                record.msg = re.sub(r'([\w\.\-+]+@[\w\-]+\.[\w\.\-]+)',
                                    lambda m: self.mask_email(m.group(1)),
                                    record.msg)
        except Exception as e:
            # Ошибка маскирования не должна прерывать логирование
            logging.getLogger(__name__).warning(f"Ошибка маскирования данных: {e}")
        return True


def setup_logging(log_dir='logs'):
    """Настройка системы логирования с кастомными уровнями"""

    if not os.path.exists(log_dir):
        os.makedirs(log_dir)

    logger = logging.getLogger()
    # Минимальный уровень - TRANSPORT_LEVEL, чтобы записывались все кастомные уровни
    logger.setLevel(TRANSPORT_LEVEL)

    # Очищаем существующие обработчики
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] [%(name)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.handlers.TimedRotatingFileHandler(
        filename=os.path.join(log_dir, 'booking.log'),
        when='midnight',
        interval=1,
        backupCount=30,
        encoding='utf-8'
    )
    file_handler.setLevel(TRANSPORT_LEVEL)
    file_handler.setFormatter(formatter)
    file_handler.suffix = '%Y-%m-%d'

    # В консоль - только пользовательские события и выше
    console_handler = logging.StreamHandler()
    console_handler.setLevel(USER_LEVEL)
    console_handler.setFormatter(formatter)

    masking_filter = MaskingFilter()
    file_handler.addFilter(masking_filter)
    console_handler.addFilter(masking_filter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logging.log(SYSTEM_LEVEL, "Система логирования инициализирована")


# Словари переводов для логирования
USER_EVENT_TRANSLATIONS = {
    "booking_opened": "Открыт мастер записи на прием",
    "booking_cancelled": "Запись на прием отменена пользователем",
    "booking_session_expired": "Сессия записи истекла",
    "booking_step_back": "Навигация: Назад",
    "booking_submitted": "Запись на прием оформлена",
    "booking_action": {
        "date": "Выбор даты приема",
        "doctor": "Выбор врача",
        "slot": "Выбор времени приема",
        "service": "Выбор услуги",
        "notes": "Ввод комментария",
        "default": "Действие в мастере записи"
    },
    "booking_validation_failed": {
        "date": "Ошибка проверки: дата",
        "doctor_id": "Ошибка проверки: врач",
        "time_slot": "Ошибка проверки: время",
        "service_id": "Ошибка проверки: услуга",
        "notes": "Ошибка проверки: комментарий",
        "default": "Ошибка проверки данных записи"
    },
    "booking_slot_conflict": "Выбранное время уже занято",
    "booking_degraded_data": "Показана приблизительная доступность",
    "booking_roster_unverified": "Не удалось проверить график врачей",
}

SYSTEM_EVENT_TRANSLATIONS = {
    "fallback": {
        "primary_failed": "Основной источник недоступен, переход на резервный",
        "secondary_failed": "Резервный источник недоступен, используются данные по умолчанию",
        "secondary_failed_no_synth": "Резервный источник недоступен, данных по умолчанию нет",
        "primary_timeout": "Тайм-аут основного источника",
        "synthetic_empty": "Данные по умолчанию пусты"
    },
    "slot_generator": {
        "invalid_granularity": "Некорректный шаг сетки слотов",
        "invalid_duration": "Некорректная длительность услуги",
        "malformed_appointment": "Некорректное время записи в журнале",
        "window_invalid": "Некорректное окно дежурства",
        "duration_exceeds_window": "Услуга не помещается в окно дежурства"
    },
    "duty_filter": {
        "no_schedule": "У врача нет графика на этот день",
        "malformed_shift": "Некорректная запись графика смены, день исключен",
        "duplicate_day": "Повторная запись графика на день недели, используется первая",
        "schedule_load_failed": "Не удалось загрузить график врача",
        "fail_open_default_window": "График не подтвержден, используется окно по умолчанию"
    },
    "scheduling_api": {
        "configuration_missing": "Не задан адрес сервиса расписания",
        "retry": "Повтор запроса к сервису расписания",
        "retries_exhausted": "Все попытки запроса исчерпаны",
        "malformed_payload": "Некорректный ответ сервиса расписания",
        "item_parse_error": "Ошибка разбора элемента ответа"
    },
    "booking_workflow": {
        "stale_response_dropped": "Поздний ответ отброшен (черновик изменен)",
        "fetch_cancelled": "Загрузка данных отменена",
        "submit_unavailable": "Не удалось проверить доступность перед записью",
        "services_unavailable": "Справочник услуг недоступен"
    },
    "workflow_registry": {
        "expired_cleaned": "Очищены неактивные мастера записи",
        "worker_stopped": "Очистка мастеров записи остановлена"
    },
    "availability_check": {
        "started": "Проверка доступности запущена",
        "finished": "Проверка доступности завершена",
        "auth_failed": "Проверка доступности: ошибка авторизации"
    }
}

DATA_EVENT_TRANSLATIONS = {
    "appointment_created": "Создана запись на прием",
    "appointment_conflict": "Запись отклонена: пересечение с существующей",
    "schedule_saved": "График врача сохранен",
    "schedule_rejected": "График врача отклонен проверкой",
    "ledger_loaded": "Загружен журнал записей"
}

SECURITY_EVENT_TRANSLATIONS = {
    "auth_failed": "Ошибка авторизации в сервисе расписания",
    "auth_required": "Требуется повторная авторизация"
}


def _format_details(base_msg, details):
    detail_parts = [f"{k}={v}" for k, v in details.items()]
    if detail_parts:
        return f"{base_msg} ({', '.join(detail_parts)})"
    return base_msg


def _translate_user_event(action, **details):
    """Переводит событие пользователя на русский"""
    if action in USER_EVENT_TRANSLATIONS:
        translation = USER_EVENT_TRANSLATIONS[action]

        # Словарь - событие с вариантами (по step или field)
        if isinstance(translation, dict):
            key = details.pop("step", None) or details.get("field")
            base_msg = translation.get(key, translation.get("default", action))
        else:
            base_msg = translation

        return _format_details(base_msg, details)

    details_str = " ".join([f'{k}={v}' for k, v in details.items()])
    return f"{action} {details_str}" if details_str else action


def _translate_system_event(component, event, **details):
    """Переводит системное событие на русский"""
    component_translations = SYSTEM_EVENT_TRANSLATIONS.get(component, {})
    if event in component_translations:
        return _format_details(component_translations[event], details)

    details_str = " ".join([f'{k}={v}' for k, v in details.items()])
    return f"[{component}] {event} {details_str}" if details_str else f"[{component}] {event}"


def _translate_simple_event(translations, event, **details):
    if event in translations:
        return _format_details(translations[event], details)

    details_str = " ".join([f'{k}={v}' for k, v in details.items()])
    return f"{event} {details_str}" if details_str else event


# Утилиты для логирования
def log_user_event(user_id, action, **details):
    """Логирует действия пользователя"""
    translated_msg = _translate_user_event(action, **details)
    logging.log(USER_LEVEL, f"[user_id={user_id}] {translated_msg}")


def log_system_event(component, event, **details):
    """Логирует системные события"""
    translated_msg = _translate_system_event(component, event, **details)
    logging.log(SYSTEM_LEVEL, translated_msg)


def log_data_event(user_id, operation, **details):
    """Логирует работу с данными"""
    translated_msg = _translate_simple_event(DATA_EVENT_TRANSLATIONS, operation, **details)
    logging.log(DATA_LEVEL, f"[user_id={user_id}] {translated_msg}")


def log_security_event(user_id, event, **details):
    """Логирует события безопасности"""
    translated_msg = _translate_simple_event(SECURITY_EVENT_TRANSLATIONS, event, **details)
    logging.log(SECURITY_LEVEL, f"[user_id={user_id}] {translated_msg}")


def log_transport_event(method, endpoint, status, **details):
    """Логирует сетевые события"""
    details_str = " ".join([f'{k}={v}' for k, v in details.items()])
    logging.log(TRANSPORT_LEVEL, f"[{method} {endpoint}] status={status} {details_str}".rstrip())
