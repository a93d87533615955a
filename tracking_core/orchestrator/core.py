"""
Оркестратор отслеживания.

Цепочка источников: браузерный трекер -> прямой API курьера (если есть) ->
резервный трекер. Неполные результаты и ошибки источников копятся в цепочке
неудач, которую получает только резервный результат.
"""

import logging
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional

from ..config.base import TrackerSettings
from ..config.loader import ConfigLoader
from ..cookies.store import CookieStore
from ..errors import AllSourcesExhausted
from ..handlers.base import TrackingSource
from ..handlers.browser_source import SourceTracker
from ..handlers.factory import SourceFactory
from ..handlers.fallback import FallbackTracker
from ..models import CookieSet, SourceFailure, TrackingRequest, TrackingResult
from .session import SessionConfig

logger = logging.getLogger(__name__)

INCOMPLETE_DATA = "Incomplete data"

PrimaryFactory = Callable[[CookieSet], SourceTracker]


class TrackingOrchestrator:
    """Оркестратор отслеживания посылок."""

    def __init__(
        self,
        settings: Optional[TrackerSettings] = None,
        cookie_store: Optional[CookieStore] = None,
        primary_factory: Optional[PrimaryFactory] = None,
        source_factory: Optional[SourceFactory] = None,
        fallback: Optional[FallbackTracker] = None,
        session_factory: Optional[Callable[[SessionConfig], AsyncContextManager[Any]]] = None,
    ):
        """
        Инициализация оркестратора.

        Args:
            settings: Настройки трекера
            cookie_store: Хранилище cookies (по умолчанию settings.cookies_path)
            primary_factory: Создание браузерного трекера по набору cookies
            source_factory: Фабрика прямых источников курьеров
            fallback: Резервный трекер
            session_factory: Фабрика сессий браузера для трекера по умолчанию
        """
        self.settings = settings or TrackerSettings()
        self.cookie_store = cookie_store or CookieStore(self.settings.cookies_path)
        self.source_factory = source_factory or SourceFactory()
        self.fallback = fallback or FallbackTracker()
        self._session_factory = session_factory
        self._primary_factory = primary_factory or self._create_primary
        self._stats = {
            "requests": 0,
            "primary": 0,
            "direct": 0,
            "fallback": 0,
            "failed": 0,
        }

        logger.info(
            f"TrackingOrchestrator инициализирован "
            f"(cookies={self.cookie_store.path}, fallback_only={self.use_fallback_only})"
        )

    @property
    def use_fallback_only(self) -> bool:
        return self.settings.use_fallback_only

    def _create_primary(self, cookies: CookieSet) -> SourceTracker:
        return SourceTracker(
            self.settings, cookies=cookies, session_factory=self._session_factory
        )

    async def track(self, identifier: str, courier: Optional[str] = None) -> TrackingResult:
        """
        Отследить посылку.

        Args:
            identifier: Номер отслеживания
            courier: Код курьера (по умолчанию из настроек)

        Returns:
            TrackingResult: Результат первого успешного источника

        Raises:
            InvalidTrackingRequest: При некорректном номере или курьере
            AllSourcesExhausted: Если не сработал даже резервный трекер
        """
        request = TrackingRequest(identifier, courier or self.settings.default_courier)
        self._stats["requests"] += 1
        failures: List[SourceFailure] = []

        if self.use_fallback_only:
            logger.info("Включен режим только резервного трекера")
        else:
            result = await self._track_primary(request, failures)
            if result is not None:
                self._stats["primary"] += 1
                return result

            result = await self._track_direct(request, failures)
            if result is not None:
                self._stats["direct"] += 1
                return result

        return await self._track_fallback(request, failures)

    async def _track_primary(
        self, request: TrackingRequest, failures: List[SourceFailure]
    ) -> Optional[TrackingResult]:
        cookies = self.cookie_store.snapshot()
        if not self.cookie_store.is_reusable(cookies):
            logger.info("Сохраненных cookies нет, челлендж проходится заново")
            cookies = CookieSet()

        tracker = self._primary_factory(cookies)
        try:
            result = await tracker.track(request)
        except Exception as e:
            logger.error(f"{tracker.name}: отслеживание не удалось: {e}")
            failures.append(SourceFailure(tracker.name, str(e)))
            return None
        finally:
            self._persist_cookies(tracker.new_cookies)

        return self._accept(tracker, result, failures)

    async def _track_direct(
        self, request: TrackingRequest, failures: List[SourceFailure]
    ) -> Optional[TrackingResult]:
        source = self.source_factory.create_direct_source(request.courier, self.settings)
        if source is None:
            logger.debug(f"Прямой источник для {request.courier} не настроен")
            return None

        try:
            result = await source.track(request)
        except Exception as e:
            logger.error(f"{source.name}: запрос не удался: {e}")
            failures.append(SourceFailure(source.name, str(e)))
            return None

        return self._accept(source, result, failures)

    async def _track_fallback(
        self, request: TrackingRequest, failures: List[SourceFailure]
    ) -> TrackingResult:
        try:
            result = await self.fallback.track(request, failures)
        except Exception as e:
            self._stats["failed"] += 1
            logger.error(f"Все источники не сработали: {e}")
            trail = failures + [SourceFailure(self.fallback.name, str(e))]
            raise AllSourcesExhausted(trail, f"All tracking sources failed: {e}") from e

        self._stats["fallback"] += 1
        if failures:
            logger.warning(
                f"Использован резервный трекер после {len(failures)} неудачных источников"
            )
        return result

    @staticmethod
    def _accept(
        source: TrackingSource,
        result: Optional[TrackingResult],
        failures: List[SourceFailure],
    ) -> Optional[TrackingResult]:
        """Результат источника, если он содержит реальные данные."""
        if result is None:
            return None
        if result.is_incomplete():
            logger.info(f"{source.name} вернул неполные данные, пробуем другие источники")
            failures.append(SourceFailure(source.name, INCOMPLETE_DATA))
            return None
        logger.info(f"{source.name} вернул данные отслеживания")
        return result

    def _persist_cookies(self, cookies: Optional[CookieSet]) -> None:
        try:
            self.cookie_store.supersede(cookies)
        except OSError as e:
            logger.error(f"Не удалось сохранить cookies: {e}")

    async def refresh_cookies(self) -> CookieSet:
        """
        Получить свежие cookies и сохранить их.

        Returns:
            CookieSet: Полученные cookies (пустой набор не сохраняется)
        """
        tracker = self._primary_factory(CookieSet())
        cookies = await tracker.warm_up()
        if cookies:
            self.cookie_store.save(cookies)
        else:
            logger.warning("Не удалось получить cookies")
        return cookies

    def get_stats(self) -> Dict[str, Any]:
        """
        Получение статистики оркестратора.

        Returns:
            Словарь со статистикой
        """
        return dict(self._stats)


def create_orchestrator(
    config_path: Optional[str] = None,
    settings: Optional[TrackerSettings] = None,
) -> TrackingOrchestrator:
    """
    Создать оркестратор из файла конфигурации.

    Args:
        config_path: Путь к JSON-файлу конфигурации
        settings: Готовые настройки (имеют приоритет над файлом)

    Returns:
        TrackingOrchestrator
    """
    if settings is None:
        settings = ConfigLoader().load_settings(config_path)
    return TrackingOrchestrator(settings)
