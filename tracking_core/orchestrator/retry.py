"""
Обработчик повторных попыток с линейным backoff.

Каждая попытка оформляется как тактика TacticRunner с паузой перед ней:
перед первой попыткой паузы нет, перед k-м повтором - base_delay * k,
но не больше max_delay.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from ..errors import (
    ChallengeUnresolved,
    NavigationError,
    NoStructuredData,
    SourceExhausted,
)
from .tactics import Tactic, TacticRunner

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Категории ошибок попытки."""

    NETWORK = "network"  # Таймауты и ошибки навигации
    CHALLENGE = "challenge"  # Челлендж не пройден
    PARSING = "parsing"  # Нет структурированных данных
    UNKNOWN = "unknown"  # Неизвестные ошибки


@dataclass
class RetryConfig:
    """Конфигурация повторных попыток."""

    max_retries: int = 2  # Повторы после первой попытки
    base_delay: float = 2.0  # Шаг линейного backoff в секундах
    max_delay: float = 60.0  # Максимальная задержка в секундах
    attempt_timeout: Optional[float] = None  # Таймаут одной попытки


@dataclass
class RetryStats:
    """Статистика повторных попыток."""

    attempts: int = 0  # Общее количество попыток
    successes: int = 0  # Успешные попытки
    failures: int = 0  # Неудачные попытки
    total_delay: float = 0.0  # Общая задержка
    last_error: Optional[str] = None  # Последняя ошибка
    last_error_category: Optional[ErrorCategory] = None  # Категория последней ошибки


class RetryHandler:
    """
    Обработчик повторных попыток.

    Предоставляет:
    1. Линейный backoff между попытками
    2. Классификацию ошибок для логирования
    3. Статистику выполнения
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        runner: Optional[TacticRunner] = None,
    ):
        """
        Инициализация обработчика повторных попыток.

        Args:
            config: Конфигурация повторных попыток
            runner: Исполнитель тактик (подменяется в тестах)
        """
        self.config = config or RetryConfig()
        self.runner = runner or TacticRunner("retry")
        self.stats = RetryStats()

        logger.info(
            f"RetryHandler инициализирован с max_retries={self.config.max_retries}"
        )

    def _classify_error(self, error: Exception) -> ErrorCategory:
        """
        Классификация ошибки.

        Args:
            error: Исключение для классификации

        Returns:
            Категория ошибки
        """
        if isinstance(error, (NavigationError, asyncio.TimeoutError)):
            return ErrorCategory.NETWORK
        if isinstance(error, ChallengeUnresolved):
            return ErrorCategory.CHALLENGE
        if isinstance(error, NoStructuredData):
            return ErrorCategory.PARSING

        error_str = str(error).lower()
        for marker in ("timeout", "timed out", "connection", "network", "net::"):
            if marker in error_str:
                return ErrorCategory.NETWORK
        for marker in ("challenge", "captcha", "blocked", "access denied"):
            if marker in error_str:
                return ErrorCategory.CHALLENGE
        for marker in ("parse", "selector", "no such element"):
            if marker in error_str:
                return ErrorCategory.PARSING

        return ErrorCategory.UNKNOWN

    def _calculate_delay(self, retry: int) -> float:
        """
        Задержка перед повтором номер retry (0 - первая попытка).

        Args:
            retry: Номер повтора

        Returns:
            Задержка в секундах
        """
        if retry <= 0:
            return 0.0
        return min(self.config.base_delay * retry, self.config.max_delay)

    def build_tactics(
        self, func: Callable, resource_id: str = "default", *args, **kwargs
    ) -> List[Tactic]:
        """Попытки выполнения func в виде списка тактик."""
        total = self.config.max_retries + 1
        tactics = []
        for index in range(total):
            tactics.append(
                Tactic(
                    name=f"{resource_id}#{index + 1}",
                    action=self._make_attempt(
                        func, resource_id, index + 1, total, args, kwargs
                    ),
                    delay_before=self._calculate_delay(index),
                )
            )
        return tactics

    def _make_attempt(self, func, resource_id, number, total, args, kwargs):
        async def attempt() -> Any:
            self.stats.attempts += 1
            delay = self._calculate_delay(number - 1)
            self.stats.total_delay += delay
            try:
                if self.config.attempt_timeout:
                    result = await asyncio.wait_for(
                        func(*args, **kwargs), timeout=self.config.attempt_timeout
                    )
                else:
                    result = await func(*args, **kwargs)
            except Exception as e:
                category = self._classify_error(e)
                self.stats.failures += 1
                self.stats.last_error = str(e) or type(e).__name__
                self.stats.last_error_category = category
                logger.warning(
                    f"Ошибка выполнения для ресурса {resource_id}, "
                    f"попытка {number}/{total} (категория: {category.value}): {e}"
                )
                raise

            self.stats.successes += 1
            logger.debug(
                f"Успешное выполнение для ресурса {resource_id}, попытка {number}"
            )
            return result

        return attempt

    async def execute_with_retry(
        self, func: Callable, resource_id: str = "default", *args, **kwargs
    ) -> Any:
        """
        Выполнение функции с повторными попытками.

        Args:
            func: Асинхронная функция для выполнения
            resource_id: Идентификатор ресурса (для логов и ошибки)
            *args: Аргументы функции
            **kwargs: Ключевые аргументы функции

        Returns:
            Результат выполнения функции

        Raises:
            SourceExhausted: Если все попытки завершились неудачей
        """
        tactics = self.build_tactics(func, resource_id, *args, **kwargs)
        outcome = await self.runner.run(tactics)

        if outcome.succeeded:
            return outcome.value

        last_error = outcome.last_error
        message = (str(last_error) or type(last_error).__name__) if last_error else None
        logger.error(
            f"Все {outcome.attempts} попыток завершились неудачей "
            f"для ресурса {resource_id}. Последняя ошибка: {message}"
        )
        raise SourceExhausted(resource_id, outcome.attempts, message) from last_error

    def get_stats(self) -> RetryStats:
        """Получение статистики выполнения."""
        return self.stats

    def reset_stats(self):
        """Сброс статистики."""
        self.stats = RetryStats()
