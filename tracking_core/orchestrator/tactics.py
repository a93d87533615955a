"""
Последовательное выполнение тактик.

Тактика - именованное асинхронное действие с необязательными таймаутом и
задержкой перед запуском. TacticRunner пробует тактики по порядку и
останавливается на первой успешной. На этом построены и повторные попытки
источника, и прохождение челленджа.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


@dataclass
class Tactic:
    """Одна тактика: действие, таймаут и пауза перед запуском."""

    name: str
    action: Callable[[], Awaitable[Any]]
    timeout: Optional[float] = None
    delay_before: float = 0.0


@dataclass
class TacticOutcome:
    """Итог прогона тактик."""

    succeeded: bool = False
    winner: Optional[str] = None
    value: Any = None
    attempted: List[str] = field(default_factory=list)
    errors: List[Tuple[str, str]] = field(default_factory=list)
    last_error: Optional[BaseException] = None
    elapsed: float = 0.0

    @property
    def attempts(self) -> int:
        return len(self.attempted)


class TacticRunner:
    """
    Пробует тактики по порядку до первого успеха.

    Тактика успешна, если ее действие завершилось без исключения и
    (при заданном is_resolved) проверка после нее вернула True.
    Таймаут тактики ограничивает действие вместе с проверкой.
    Исключения тактик не пробрасываются, а собираются в TacticOutcome.
    """

    def __init__(
        self,
        name: str = "tactics",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            name: Имя для логирования
            sleep: Функция ожидания (подменяется в тестах)
            clock: Монотонные часы
        """
        self.name = name
        self._sleep = sleep
        self._clock = clock

    @staticmethod
    def budget(tactics: Sequence[Tactic]) -> Optional[float]:
        """
        Верхняя граница времени прогона.

        Returns:
            Сумма пауз и таймаутов или None, если у какой-то тактики нет таймаута
        """
        total = 0.0
        for tactic in tactics:
            if tactic.timeout is None:
                return None
            total += tactic.delay_before + tactic.timeout
        return total

    async def run(
        self,
        tactics: Sequence[Tactic],
        is_resolved: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> TacticOutcome:
        """
        Выполнить тактики по порядку.

        Args:
            tactics: Упорядоченные тактики
            is_resolved: Проверка после каждой тактики

        Returns:
            TacticOutcome: Результат с победившей тактикой или списком ошибок
        """
        outcome = TacticOutcome()
        started = self._clock()

        for tactic in tactics:
            if tactic.delay_before > 0:
                logger.debug(
                    f"[{self.name}] Пауза {tactic.delay_before:.2f}с перед {tactic.name}"
                )
                await self._sleep(tactic.delay_before)

            outcome.attempted.append(tactic.name)
            try:
                attempt = self._attempt(tactic, is_resolved)
                if tactic.timeout is not None:
                    value, resolved = await asyncio.wait_for(attempt, tactic.timeout)
                else:
                    value, resolved = await attempt
            except asyncio.TimeoutError as e:
                message = (
                    f"timeout after {tactic.timeout}s"
                    if tactic.timeout is not None
                    else str(e) or "timeout"
                )
                outcome.errors.append((tactic.name, message))
                outcome.last_error = e
                logger.warning(f"[{self.name}] Тактика {tactic.name}: {message}")
                continue
            except Exception as e:
                outcome.errors.append((tactic.name, str(e)))
                outcome.last_error = e
                logger.warning(f"[{self.name}] Тактика {tactic.name} не удалась: {e}")
                continue

            if not resolved:
                logger.debug(f"[{self.name}] Тактика {tactic.name} не дала результата")
                continue

            outcome.succeeded = True
            outcome.winner = tactic.name
            outcome.value = value
            break

        outcome.elapsed = self._clock() - started
        return outcome

    async def _attempt(
        self, tactic: Tactic, is_resolved: Optional[Callable[[], Awaitable[bool]]]
    ) -> Tuple[Any, bool]:
        """Действие тактики и проверка после него: таймаут тактики покрывает оба шага."""
        value = await tactic.action()
        if is_resolved is None:
            return value, True
        return value, await self._check(is_resolved)

    async def _check(self, is_resolved: Callable[[], Awaitable[bool]]) -> bool:
        try:
            return bool(await is_resolved())
        except Exception as e:
            logger.debug(f"[{self.name}] Ошибка проверки результата: {e}")
            return False
