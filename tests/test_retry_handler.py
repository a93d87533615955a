"""
Unit-тесты для RetryHandler.
"""

import asyncio

import pytest

from tracking_core.errors import (
    ChallengeUnresolved,
    NavigationError,
    NoStructuredData,
    SourceExhausted,
)
from tracking_core.orchestrator.retry import ErrorCategory, RetryConfig, RetryHandler
from tracking_core.orchestrator.tactics import TacticRunner


class TestRetryConfig:
    """Тесты конфигурации RetryConfig."""

    def test_default_config(self):
        """Тест значений по умолчанию."""
        config = RetryConfig()

        assert config.max_retries == 2
        assert config.base_delay == 2.0
        assert config.max_delay == 60.0
        assert config.attempt_timeout is None


class TestRetryHandler:
    """Тесты RetryHandler."""

    @pytest.fixture
    def retry_handler(self, sleeper):
        """Фикстура RetryHandler с подменой sleep."""
        return RetryHandler(
            RetryConfig(max_retries=2, base_delay=2.0),
            runner=TacticRunner("retry", sleep=sleeper),
        )

    @pytest.mark.asyncio
    async def test_execute_with_retry_success(self, retry_handler, sleeper):
        """Тест успешного выполнения без повторных попыток."""

        async def success_func(value):
            return value

        result = await retry_handler.execute_with_retry(success_func, "test_resource", "ok")

        assert result == "ok"
        stats = retry_handler.get_stats()
        assert stats.attempts == 1
        assert stats.successes == 1
        assert stats.failures == 0
        assert sleeper.calls == []

    @pytest.mark.asyncio
    async def test_execute_with_retry_failure(self, retry_handler, sleeper):
        """Все попытки неудачны: SourceExhausted с числом попыток и последней ошибкой."""

        async def failure_func():
            raise NavigationError("https://example.com", "timeout after 30s")

        with pytest.raises(SourceExhausted) as exc_info:
            await retry_handler.execute_with_retry(failure_func, "PackageRadar")

        error = exc_info.value
        assert error.attempts == 3
        assert error.source == "PackageRadar"
        assert str(error) == (
            "PackageRadar tracking failed after 3 attempts: "
            "Navigation to https://example.com failed: timeout after 30s"
        )
        assert isinstance(error.__cause__, NavigationError)

        # Паузы перед 2-й и 3-й попытками: 2с и 4с
        assert sleeper.calls == [2.0, 4.0]

        stats = retry_handler.get_stats()
        assert stats.attempts == 3
        assert stats.failures == 3
        assert stats.last_error_category == ErrorCategory.NETWORK

    @pytest.mark.asyncio
    async def test_execute_with_retry_success_after_retries(self, retry_handler, sleeper):
        """Тест успешного выполнения после повторной попытки."""
        call_count = 0

        async def func():
            nonlocal call_count
            call_count += 1
            if call_count == 1:
                raise RuntimeError("attempt 1")
            return "success"

        result = await retry_handler.execute_with_retry(func, "test_resource")

        assert result == "success"
        assert call_count == 2
        assert sleeper.calls == [2.0]
        assert retry_handler.get_stats().successes == 1

    @pytest.mark.asyncio
    async def test_no_retries(self, sleeper):
        """max_retries=0 - одна попытка без пауз."""
        handler = RetryHandler(
            RetryConfig(max_retries=0), runner=TacticRunner(sleep=sleeper)
        )

        async def failure_func():
            raise RuntimeError("boom")

        with pytest.raises(SourceExhausted) as exc_info:
            await handler.execute_with_retry(failure_func, "src")

        assert exc_info.value.attempts == 1
        assert sleeper.calls == []

    @pytest.mark.asyncio
    async def test_attempt_timeout(self, sleeper):
        """Зависшая попытка прерывается по attempt_timeout."""
        handler = RetryHandler(
            RetryConfig(max_retries=1, attempt_timeout=0.05),
            runner=TacticRunner(sleep=sleeper),
        )

        async def hang():
            await asyncio.Event().wait()

        with pytest.raises(SourceExhausted) as exc_info:
            await handler.execute_with_retry(hang, "src")

        assert exc_info.value.attempts == 2

    def test_calculate_delay(self):
        """Линейный backoff с ограничением сверху."""
        handler = RetryHandler(RetryConfig(base_delay=2.0, max_delay=5.0))

        assert handler._calculate_delay(0) == 0.0
        assert handler._calculate_delay(1) == 2.0
        assert handler._calculate_delay(2) == 4.0
        assert handler._calculate_delay(3) == 5.0

    def test_classify_error(self):
        """Тест классификации ошибок."""
        handler = RetryHandler()

        assert handler._classify_error(NavigationError("u", "x")) == ErrorCategory.NETWORK
        assert handler._classify_error(ChallengeUnresolved("x")) == ErrorCategory.CHALLENGE
        assert handler._classify_error(NoStructuredData("x")) == ErrorCategory.PARSING
        assert handler._classify_error(RuntimeError("Connection reset")) == ErrorCategory.NETWORK
        assert handler._classify_error(RuntimeError("captcha shown")) == ErrorCategory.CHALLENGE
        assert handler._classify_error(ValueError("boom")) == ErrorCategory.UNKNOWN

    def test_reset_stats(self, retry_handler):
        retry_handler.stats.attempts = 5
        retry_handler.reset_stats()
        assert retry_handler.get_stats().attempts == 0
