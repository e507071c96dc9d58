# scheduling/errors.py
"""
Иерархия ошибок движка записи.

Только ValidationError и SlotConflict показываются пользователю как действия к исправлению;
InfrastructureError/NotFoundError поглощаются FallbackChain; AuthError всегда
уходит на повторную авторизацию.
"""
from typing import List, Optional


class BookingError(Exception):
    """Базовая ошибка движка записи"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UpstreamError(BookingError):
    """Ошибка внешнего сервиса расписания"""

    def __init__(self, message: str, status: Optional[int] = None, endpoint: str = ""):
        super().__init__(message)
        self.status = status
        self.endpoint = endpoint


class InfrastructureError(UpstreamError):
    """5xx, недоступность, тайм-аут или некорректный ответ"""


class NotFoundError(UpstreamError):
    """404 - вариант эндпоинта отсутствует"""


class AuthError(UpstreamError):
    """401/403 - сессия истекла или недействительна"""


class ValidationError(BookingError):
    """Не заполнено обязательное поле черновика или нарушено ограничение"""

    def __init__(self, message: str, field: str = ""):
        super().__init__(message)
        self.field = field


class SlotConflict(BookingError):
    """Выбранное время пересекается с действующей записью"""

    def __init__(self, message: str = "Выбранное время уже занято. Пожалуйста, выберите другое время.",
                 conflicting_ids: Optional[List[str]] = None):
        super().__init__(message)
        self.conflicting_ids = conflicting_ids or []


SlotNoLongerAvailable = SlotConflict


class WorkflowStateError(BookingError):
    """Переход запрошен в неверном состоянии, во время загрузки или после закрытия"""


# Ошибки, при которых FallbackChain переходит на следующий уровень
FALLBACK_ERRORS = (InfrastructureError, NotFoundError)
