"""
Иерархия исключений трекера.

Ошибки сессии браузера и резолвера челленджа локальны для одной попытки
и поглощаются циклом повторов SourceTracker. Вызывающему коду доступны
только InvalidTrackingRequest и AllSourcesExhausted.
"""

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .models import SourceFailure


class TrackingError(Exception):
    """Базовое исключение трекера."""


class InvalidTrackingRequest(TrackingError, ValueError):
    """Некорректный запрос (пустой идентификатор и т.п.)."""


class ConfigurationError(TrackingError):
    """Файл конфигурации не читается или не проходит валидацию."""


class NavigationError(TrackingError):
    """Страница не загрузилась или истек таймаут навигации."""

    def __init__(self, url: str, message: str):
        super().__init__(f"Navigation to {url} failed: {message}")
        self.url = url


class ChallengeUnresolved(TrackingError):
    """Челлендж остался на странице после всех тактик."""


class NoStructuredData(TrackingError):
    """Ни один селектор не сработал, текстовая эвристика не дала результата."""


class SourceExhausted(TrackingError):
    """Все попытки источника завершились неудачей."""

    def __init__(self, source: str, attempts: int, last_error: Optional[str]):
        super().__init__(
            f"{source} tracking failed after {attempts} attempts: {last_error}"
        )
        self.source = source
        self.attempts = attempts
        self.last_error = last_error


class AllSourcesExhausted(TrackingError):
    """Не сработал ни один источник, включая резервный."""

    def __init__(self, failures: List["SourceFailure"], message: str = ""):
        details = "; ".join(f"{f.source}: {f.error}" for f in failures)
        super().__init__(message or f"All tracking sources failed ({details})")
        self.failures = list(failures)
