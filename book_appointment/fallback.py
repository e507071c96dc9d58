# book_appointment/fallback.py
"""
Цепочка источников данных с деградацией: основной -> резервный -> данные по умолчанию.

Переход на следующий уровень происходит только при InfrastructureError/NotFoundError.
AuthError и прочие исключения пробрасываются вызывающему.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from booking_config import FETCH_TIMEOUT_SECONDS
from logging_config import log_system_event
from scheduling.errors import FALLBACK_ERRORS, InfrastructureError

T = TypeVar("T")


class SourceTier(str, Enum):
    """Уровень источника, из которого получены данные"""
    PRIMARY = "primary"
    SECONDARY = "secondary"
    SYNTHETIC = "synthetic"


@dataclass
class Resolved(Generic[T]):
    """Данные с отметкой об источнике"""
    data: T
    tier: SourceTier
    failures: List[Exception] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """Данные приблизительные (не из основного источника)"""
        return self.tier != SourceTier.PRIMARY


class FallbackChain:
    """
    Комбинатор деградации источников данных.
    """

    def __init__(self, name: str, timeout_seconds: Optional[float] = FETCH_TIMEOUT_SECONDS):
        """
        Args:
            name: Имя данных для логов (doctors_on_duty, available_slots, ...)
            timeout_seconds: Ограничение времени на каждый источник (None - без ограничения)
        """
        self.name = name
        self.timeout_seconds = timeout_seconds

    async def _call(self, source: Callable[[], Awaitable[Any]], tier: SourceTier) -> Any:
        if self.timeout_seconds is None:
            return await source()
        try:
            return await asyncio.wait_for(source(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            if tier == SourceTier.PRIMARY:
                log_system_event("fallback", "primary_timeout",
                                 source=self.name, timeout=self.timeout_seconds)
            raise InfrastructureError(f"Тайм-аут источника {self.name} ({tier.value})")

    async def resolve(self, primary: Callable[[], Awaitable[T]],
                      secondary: Optional[Callable[[], Awaitable[T]]] = None,
                      synth: Optional[Callable[[], T]] = None) -> Resolved[T]:
        """
        Получает данные, спускаясь по уровням при сбоях инфраструктуры.

        Args:
            primary: Основной источник (корутина-фабрика)
            secondary: Резервный источник (корутина-фабрика)
            synth: Синхронная функция, строящая данные по умолчанию

        Returns:
            Resolved с данными и уровнем источника

        Raises:
            AuthError: сразу, без перехода по уровням
            InfrastructureError/NotFoundError: если все уровни недоступны и synth не задан
        """
        failures: List[Exception] = []

        try:
            data = await self._call(primary, SourceTier.PRIMARY)
            return Resolved(data=data, tier=SourceTier.PRIMARY)
        except FALLBACK_ERRORS as e:
            failures.append(e)
            log_system_event("fallback", "primary_failed", source=self.name,
                             error=type(e).__name__, status=getattr(e, "status", None),
                             detail=getattr(e, "message", str(e)))

        if secondary is not None:
            try:
                data = await self._call(secondary, SourceTier.SECONDARY)
                return Resolved(data=data, tier=SourceTier.SECONDARY, failures=failures)
            except FALLBACK_ERRORS as e:
                failures.append(e)
                event = "secondary_failed" if synth is not None else "secondary_failed_no_synth"
                log_system_event("fallback", event, source=self.name,
                                 error=type(e).__name__, status=getattr(e, "status", None),
                                 detail=getattr(e, "message", str(e)))

        if synth is None:
            raise failures[-1]

        data = synth()
        if not data:
            log_system_event("fallback", "synthetic_empty", source=self.name)
        return Resolved(data=data, tier=SourceTier.SYNTHETIC, failures=failures)
