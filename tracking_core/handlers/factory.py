"""
Фабрика прямых источников курьеров.

Регистр сборщиков источников по коду курьера. Без регистрации источник
создается только для курьеров из direct_api_endpoints.
"""

import logging
from typing import Callable, Dict, List, Optional

from ..config.base import TrackerSettings
from .api_source import CourierApiSource
from .base import TrackingSource

logger = logging.getLogger(__name__)

SourceBuilder = Callable[[str, TrackerSettings], Optional[TrackingSource]]


def build_configured_api_source(
    courier: str, settings: TrackerSettings
) -> Optional[TrackingSource]:
    """Источник по шаблону URL из настроек (None, если курьер не настроен)."""
    endpoint = settings.direct_api_endpoints.get(courier)
    if not endpoint:
        return None
    return CourierApiSource(
        courier, endpoint_template=endpoint, timeout=settings.direct_api_timeout
    )


class SourceFactory:
    """Фабрика прямых источников курьеров."""

    def __init__(self):
        # Регистр сборщиков по коду курьера
        self._builders: Dict[str, SourceBuilder] = {}

    def register_direct_source(self, courier: str, builder: SourceBuilder) -> None:
        """
        Регистрация сборщика источника для курьера.

        Args:
            courier: Код курьера
            builder: Функция (courier, settings) -> источник или None
        """
        self._builders[courier.strip().lower()] = builder
        logger.debug(f"Зарегистрирован прямой источник для курьера: {courier}")

    def create_direct_source(
        self, courier: str, settings: TrackerSettings
    ) -> Optional[TrackingSource]:
        """
        Создание прямого источника для курьера.

        Args:
            courier: Код курьера
            settings: Настройки трекера

        Returns:
            Optional[TrackingSource]: Источник или None, если курьер не поддерживается
        """
        builder = self._builders.get(courier, build_configured_api_source)
        try:
            source = builder(courier, settings)
        except Exception as e:
            logger.error(f"Ошибка создания прямого источника для {courier}: {e}")
            return None

        if source is not None:
            logger.debug(f"Создан прямой источник для курьера: {courier}")
        return source

    def get_registered_couriers(self) -> List[str]:
        return list(self._builders.keys())
