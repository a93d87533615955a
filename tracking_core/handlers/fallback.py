"""
Резервный трекер.

Не обращается к сети: возвращает ограниченный результат "In Progress",
когда остальные источники не сработали.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from ..models import (
    DeliveryStatus,
    SourceFailure,
    TrackingEvent,
    TrackingRequest,
    TrackingResult,
)
from .base import TrackingSource

logger = logging.getLogger(__name__)

FALLBACK_STATUS = "In Progress"
FALLBACK_LOCATION = "Information Unavailable"
FALLBACK_EVENT_STATUS = "Tracking information received"
FALLBACK_MESSAGE = "Limited information available. Using fallback tracking system."


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FallbackTracker(TrackingSource):
    """Источник последней очереди с деградированным результатом."""

    name = "Fallback"

    def __init__(self, clock: Callable[[], datetime] = _utc_now):
        """
        Args:
            clock: Часы для дат результата
        """
        super().__init__()
        self._clock = clock

    async def track(
        self, request: TrackingRequest, failures: Iterable[SourceFailure] = ()
    ) -> TrackingResult:
        """
        Деградированный результат с накопленной цепочкой неудач.

        Args:
            request: Запрос на отслеживание
            failures: Неудачи предыдущих источников

        Returns:
            TrackingResult с degraded=True
        """
        logger.info(f"Используется резервный трекер для: {request.identifier}")

        now = self._clock().isoformat(timespec="milliseconds").replace("+00:00", "Z")
        is_ups = request.courier == "ups"

        return TrackingResult(
            tracking_number=request.identifier,
            courier=request.courier,
            delivery_status=DeliveryStatus(
                status=FALLBACK_STATUS,
                date=now,
                location=FALLBACK_LOCATION,
                signed_by="Not delivered" if is_ups else "",
            ),
            events=[
                TrackingEvent(
                    status=FALLBACK_EVENT_STATUS,
                    date=now,
                    location="Origin Scan" if is_ups else "",
                )
            ],
            source=self.name,
            degraded=True,
            message=FALLBACK_MESSAGE,
            errors=list(failures),
        )
