"""
Базовый класс источника данных отслеживания.

Определяет интерфейс для источников в цепочке fallback
(браузерный трекер, прямой API курьера, резервный трекер).
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..models import TrackingRequest, TrackingResult

logger = logging.getLogger(__name__)


class TrackingSource(ABC):
    """Базовый класс источника отслеживания."""

    #: Имя источника в цепочке неудач
    name: str = "source"

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    async def track(self, request: TrackingRequest) -> Optional[TrackingResult]:
        """
        Получение данных отслеживания.

        Args:
            request: Запрос на отслеживание

        Returns:
            Optional[TrackingResult]: Результат или None, если источник
            неприменим к запросу

        Raises:
            TrackingError: При неудаче источника
        """
        pass
