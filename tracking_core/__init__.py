"""
Tracking Core - отслеживание посылок через страницу PackageRadar.

Основные компоненты:
- config: Конфигурация (TrackerSettings, ExtractionPatterns, ChallengeSettings)
- orchestrator: Сессия браузера, маскировка, челлендж, повторы, оркестратор
- cookies: Хранилище cookies обхода защиты
- parsers: Извлечение событий из HTML
- handlers: Источники цепочки (браузер, API курьера, резервный)
- service: HTTP-сервис на aiohttp

Версия: 1.0.0
"""

__version__ = "1.0.0"

# Экспорт основных классов
from .config.base import (
    ChallengeSettings,
    ExtractionPatterns,
    SelectorPattern,
    StealthLevel,
    TrackerSettings,
)
from .config.loader import ConfigLoader, load_settings
from .cookies.store import CookieStore
from .errors import (
    AllSourcesExhausted,
    ChallengeUnresolved,
    ConfigurationError,
    InvalidTrackingRequest,
    NavigationError,
    NoStructuredData,
    SourceExhausted,
    TrackingError,
)
from .handlers.browser_source import SourceTracker
from .handlers.fallback import FallbackTracker
from .handlers.factory import SourceFactory
from .models import (
    Cookie,
    CookieSet,
    DeliveryStatus,
    SourceFailure,
    TrackingEvent,
    TrackingRequest,
    TrackingResult,
)
from .orchestrator.core import TrackingOrchestrator, create_orchestrator
from .parsers.extractor import Extractor

__all__ = [
    # Конфигурация
    "ChallengeSettings",
    "ExtractionPatterns",
    "SelectorPattern",
    "StealthLevel",
    "TrackerSettings",
    "ConfigLoader",
    "load_settings",
    # Модель данных
    "Cookie",
    "CookieSet",
    "DeliveryStatus",
    "SourceFailure",
    "TrackingEvent",
    "TrackingRequest",
    "TrackingResult",
    # Ошибки
    "AllSourcesExhausted",
    "ChallengeUnresolved",
    "ConfigurationError",
    "InvalidTrackingRequest",
    "NavigationError",
    "NoStructuredData",
    "SourceExhausted",
    "TrackingError",
    # Компоненты
    "CookieStore",
    "Extractor",
    "FallbackTracker",
    "SourceFactory",
    "SourceTracker",
    "TrackingOrchestrator",
    "create_orchestrator",
]
