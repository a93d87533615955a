"""
Основной источник: страница отслеживания в браузере.

Одна попытка: сессия браузера -> засев cookies -> навигация -> челлендж ->
ожидание контейнеров событий -> извлечение -> сохранение cookies.
Повторы с backoff выполняет RetryHandler.
"""

import logging
from typing import Any, AsyncContextManager, Callable, Optional

from ..config.base import TrackerSettings
from ..errors import ChallengeUnresolved, NoStructuredData
from ..models import CookieSet, TrackingRequest, TrackingResult
from ..orchestrator.challenge import ChallengeResolver
from ..orchestrator.retry import RetryConfig, RetryHandler
from ..orchestrator.session import BrowserSession, SessionConfig
from ..parsers.extractor import Extractor
from .base import TrackingSource

logger = logging.getLogger(__name__)

SessionFactory = Callable[[SessionConfig], AsyncContextManager[Any]]


class SourceTracker(TrackingSource):
    """Трекер, работающий через страницу отслеживания в браузере."""

    name = "PackageRadar"

    def __init__(
        self,
        settings: Optional[TrackerSettings] = None,
        cookies: Optional[CookieSet] = None,
        extractor: Optional[Extractor] = None,
        resolver: Optional[ChallengeResolver] = None,
        retry_handler: Optional[RetryHandler] = None,
        session_factory: Optional[SessionFactory] = None,
    ):
        """
        Инициализация трекера.

        Args:
            settings: Настройки трекера
            cookies: Cookies для засева каждой сессии
            extractor: Извлекатель событий
            resolver: Резолвер челленджа
            retry_handler: Обработчик повторных попыток
            session_factory: Фабрика сессий (по умолчанию BrowserSession.acquire)
        """
        super().__init__()
        self.settings = settings or TrackerSettings()
        self.cookies = cookies or CookieSet()
        self.extractor = extractor or Extractor(self.settings.extraction)
        self.resolver = resolver or ChallengeResolver(self.settings.challenge)
        self.retry_handler = retry_handler or RetryHandler(
            RetryConfig(
                max_retries=self.settings.max_retries,
                base_delay=self.settings.retry_base_delay,
                max_delay=self.settings.retry_max_delay,
            )
        )
        self.session_config = SessionConfig.from_settings(self.settings)
        self._session_factory = session_factory or BrowserSession.acquire

        # Самый свежий непустой набор cookies из любой попытки
        self.new_cookies: Optional[CookieSet] = None
        self._attempt_number = 0

    def build_url(self, request: TrackingRequest) -> str:
        return self.settings.url_template.format(
            courier=request.courier, identifier=request.identifier
        )

    async def track(self, request: TrackingRequest) -> TrackingResult:
        """
        Отслеживание с повторными попытками.

        Raises:
            SourceExhausted: Если все попытки завершились неудачей
        """
        self._attempt_number = 0
        logger.info(
            f"Отслеживание {request.identifier} ({request.courier}) через {self.name}"
        )
        return await self.retry_handler.execute_with_retry(
            self._attempt, self.name, request
        )

    async def _attempt(self, request: TrackingRequest) -> TrackingResult:
        self._attempt_number += 1
        number = self._attempt_number
        url = self.build_url(request)

        async with self._session_factory(self.session_config) as session:
            try:
                await self._seed_cookies(session)
                await session.navigate(url, self.settings.timeout)

                resolution = await self.resolver.resolve(session)
                if not resolution.resolved:
                    raise ChallengeUnresolved(
                        f"Challenge still present after: {', '.join(resolution.attempted)}"
                    )

                matched = await self._wait_for_containers(session)
                if matched is None:
                    html = await session.content()
                    if not self.extractor.has_tracking_vocabulary(html):
                        raise NoStructuredData(
                            "Could not find any tracking information on the page"
                        )
                    logger.info(
                        "Страница загружена, но контейнеры событий не найдены. "
                        "Используется текстовое извлечение"
                    )

                await session.save_debug_artifacts("packageradar-page")
                result = await session.extract(self.extractor.extract)
                return result.with_request(request, source=self.name)
            except Exception:
                await session.save_debug_artifacts(f"error-{number}")
                raise
            finally:
                await self._capture_cookies(session)

    async def _seed_cookies(self, session: Any) -> None:
        cookies = self.new_cookies or self.cookies
        if cookies:
            logger.info(f"Установка {len(cookies)} cookies для запроса")
            await session.inject_cookies(cookies)

    async def _wait_for_containers(self, session: Any) -> Optional[str]:
        """Первый селектор контейнеров, появившийся на странице."""
        for selector in self.extractor.container_selectors:
            if await session.wait_for_selector(selector, self.settings.selector_timeout):
                logger.debug(f"Найден селектор: {selector}")
                return selector
        return None

    async def _capture_cookies(self, session: Any) -> None:
        try:
            cookies = await session.get_cookies()
        except Exception as e:
            logger.debug(f"Не удалось получить cookies из сессии: {e}")
            return
        if cookies:
            self.new_cookies = cookies

    async def warm_up(self) -> CookieSet:
        """
        Получить свежие cookies: открыть главную страницу и пройти челлендж.

        Returns:
            CookieSet: Полученные cookies (может быть пустым)
        """
        logger.info(f"Получение cookies с {self.settings.base_url}")
        self.new_cookies = None
        async with self._session_factory(self.session_config) as session:
            try:
                await self._seed_cookies(session)
                await session.navigate(self.settings.base_url, self.settings.timeout)
                resolution = await self.resolver.resolve(session)
                if not resolution.resolved:
                    logger.warning("Челлендж не пройден автоматически")
                await session.save_debug_artifacts("cloudflare-page")
            finally:
                await self._capture_cookies(session)

        return self.new_cookies or CookieSet()
