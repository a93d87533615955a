"""
Прямой API курьера.

Необязательный источник в цепочке: GET по шаблону URL с {identifier}
и разбор JSON-ответа в TrackingResult.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import aiohttp

from ..errors import NavigationError, NoStructuredData
from ..models import TrackingRequest, TrackingResult
from .base import TrackingSource

logger = logging.getLogger(__name__)

ResponseParser = Callable[[Any], TrackingResult]


class CourierApiSource(TrackingSource):
    """Источник данных через REST API курьера."""

    def __init__(
        self,
        courier: str,
        endpoint_template: Optional[str] = None,
        timeout: float = 15.0,
        headers: Optional[Dict[str, str]] = None,
        parser: Optional[ResponseParser] = None,
    ):
        """
        Args:
            courier: Код курьера
            endpoint_template: URL с подстановками {identifier} и {courier}
            timeout: Таймаут запроса (секунды)
            headers: Дополнительные заголовки
            parser: Разбор JSON-ответа (по умолчанию TrackingResult.from_dict)
        """
        super().__init__()
        self.courier = courier
        self.name = f"{courier.upper()} API"
        self.endpoint_template = endpoint_template
        self.timeout = timeout
        self.headers = dict(headers or {})
        self.parser = parser or TrackingResult.from_dict

        if "Accept" not in self.headers:
            self.headers["Accept"] = "application/json"

    async def track(self, request: TrackingRequest) -> Optional[TrackingResult]:
        """
        Запрос к API курьера.

        Returns:
            Optional[TrackingResult]: Результат или None, если endpoint не задан

        Raises:
            NavigationError: При сетевой ошибке, таймауте или статусе не 200
            NoStructuredData: Если ответ не JSON или не разбирается
        """
        if not self.endpoint_template:
            logger.debug(f"API endpoint не указан для курьера {self.courier}")
            return None

        url = self.endpoint_template.format(
            identifier=request.identifier, courier=request.courier
        )
        logger.info(f"Запрос к API курьера: {url}")

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(headers=self.headers, timeout=timeout) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        raise NavigationError(url, f"HTTP {response.status}")
                    try:
                        data = await response.json(content_type=None)
                    except ValueError as e:
                        raise NoStructuredData(f"{self.name} returned non-JSON body") from e
        except asyncio.TimeoutError as e:
            raise NavigationError(url, f"timeout after {self.timeout}s") from e
        except aiohttp.ClientError as e:
            raise NavigationError(url, str(e)) from e

        try:
            result = self.parser(data)
        except (TypeError, KeyError, ValueError) as e:
            raise NoStructuredData(f"{self.name} response could not be parsed: {e}") from e

        return result.with_request(request, source=self.name)
