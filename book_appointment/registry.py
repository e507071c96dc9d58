# book_appointment/registry.py
"""
Хранилище мастеров записи: user_id -> BookingWorkflow
"""

import asyncio
from typing import Callable, Dict, Optional

from booking_config import WORKFLOW_INACTIVITY_TIMEOUT_MINUTES
from logging_config import log_system_event
from .workflow import BookingWorkflow


class WorkflowRegistry:
    """
    Один открытый мастер записи на пользователя. Неактивные мастера закрываются,
    их незавершенные загрузки отменяются.
    """

    def __init__(self, factory: Callable[..., BookingWorkflow],
                 timeout_minutes: int = WORKFLOW_INACTIVITY_TIMEOUT_MINUTES):
        """
        Args:
            factory: Создает мастер для пользователя: factory(user_id) -> BookingWorkflow
            timeout_minutes: Таймаут неактивности
        """
        self.factory = factory
        self.timeout_minutes = timeout_minutes
        self._workflows: Dict[object, BookingWorkflow] = {}

    def __len__(self):
        return len(self._workflows)

    def get(self, user_id) -> Optional[BookingWorkflow]:
        return self._workflows.get(user_id)

    def get_or_create(self, user_id) -> BookingWorkflow:
        """Открытый мастер пользователя или новый, если прежний закрыт"""
        workflow = self._workflows.get(user_id)
        if workflow is None or workflow.is_closed:
            workflow = self.factory(user_id)
            self._workflows[user_id] = workflow
        else:
            workflow.draft.update_activity()
        return workflow

    def replace(self, user_id) -> BookingWorkflow:
        """Начинает запись заново: прежний мастер отменяется"""
        self.discard(user_id)
        workflow = self.factory(user_id)
        self._workflows[user_id] = workflow
        return workflow

    def discard(self, user_id):
        workflow = self._workflows.pop(user_id, None)
        if workflow is not None:
            workflow.cancel()

    def cleanup_expired(self) -> int:
        """
        Закрывает мастера, неактивные дольше timeout_minutes, и закрытые мастера.

        Returns:
            Количество удаленных мастеров
        """
        expired_users = []
        for user_id, workflow in self._workflows.items():
            if workflow.is_closed:
                expired_users.append(user_id)
            elif workflow.is_expired(self.timeout_minutes):
                workflow.expire()
                expired_users.append(user_id)

        for user_id in expired_users:
            del self._workflows[user_id]

        if expired_users:
            log_system_event("workflow_registry", "expired_cleaned", count=len(expired_users))
        return len(expired_users)

    async def cleanup_worker(self, interval_seconds: float = 300):
        """Фоновая задача очистки неактивных мастеров"""
        while True:
            try:
                await asyncio.sleep(interval_seconds)
                self.cleanup_expired()
            except asyncio.CancelledError:
                log_system_event("workflow_registry", "worker_stopped")
                break
