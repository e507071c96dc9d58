"""
Мастер записи на прием: пошаговый выбор даты, врача, времени, услуги
и создание записи с проверкой пересечений
"""

from .fallback import FallbackChain, Resolved, SourceTier
from .registry import WorkflowRegistry
from .sources import BookingDataSources
from .states import BookingDraft, WorkflowState
from .workflow import BookingWorkflow

__all__ = [
    'FallbackChain',
    'Resolved',
    'SourceTier',
    'WorkflowRegistry',
    'BookingDataSources',
    'BookingDraft',
    'WorkflowState',
    'BookingWorkflow',
]
