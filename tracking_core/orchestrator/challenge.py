"""
Обнаружение и прохождение челленджа (интерстициальная страница проверки).

Состояния: UNCHALLENGED -> CHALLENGED -> RESOLVING -> RESOLVED | STILL_CHALLENGED.
Тактики выполняются по порядку, после каждой страница проверяется заново,
прогон останавливается на первой успешной тактике. Проверка страницы и каждая
тактика вместе с проверкой после нее ограничены таймаутами,
поэтому resolve() не выходит за time_budget().
"""

import asyncio
import logging
import random
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..config.base import ChallengeSettings
from ..errors import ChallengeUnresolved
from ..models import Cookie, CookieSet
from .tactics import Tactic, TacticRunner

logger = logging.getLogger(__name__)

# Движения мыши и прокрутка внутри страницы (arguments[0] - движения, arguments[1] - прокрутки)
NOISE_SCRIPT = """
var moves = arguments[0], scrolls = arguments[1];
for (var i = 0; i < moves; i++) {
  var event = new MouseEvent('mousemove', {
    view: window, bubbles: true, cancelable: true,
    clientX: Math.floor(Math.random() * window.innerWidth),
    clientY: Math.floor(Math.random() * window.innerHeight)
  });
  document.dispatchEvent(event);
}
for (var j = 0; j < scrolls; j++) {
  window.scrollBy(0, 100 + Math.floor(Math.random() * 400));
}
"""

# Срок жизни внедряемых маркеров
INJECTED_COOKIE_TTL = 86400


class ChallengeState(Enum):
    """Состояния прохождения челленджа."""

    UNCHALLENGED = "unchallenged"
    CHALLENGED = "challenged"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    STILL_CHALLENGED = "still_challenged"


@dataclass
class ChallengeDetection:
    """Результат проверки страницы."""

    challenged: bool
    evidence: List[str] = field(default_factory=list)


@dataclass
class ChallengeResolution:
    """Итог прохождения челленджа."""

    state: ChallengeState
    tactic: Optional[str] = None
    attempted: List[str] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def resolved(self) -> bool:
        return self.state in (ChallengeState.UNCHALLENGED, ChallengeState.RESOLVED)


class ChallengeResolver:
    """
    Резолвер челленджа.

    Тактики по порядку:
    1. passive_wait - пассивное ожидание автопрохождения
    2. click_confirmation - клик по первой найденной кнопке подтверждения
    3. behavioral_noise - движения мыши и прокрутка в странице
    4. state_injection - запись маркеров проверки в cookies и перезагрузка
    """

    def __init__(
        self,
        settings: Optional[ChallengeSettings] = None,
        runner: Optional[TacticRunner] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Инициализация резолвера.

        Args:
            settings: Настройки челленджа
            runner: Исполнитель тактик (подменяется в тестах)
            rng: Генератор случайных чисел для пауз и шума
            clock: Часы для срока жизни внедряемых cookies
        """
        self.settings = settings or ChallengeSettings()
        self.runner = runner or TacticRunner("challenge")
        self._rng = rng or random.Random()
        self._clock = clock
        self._stats = {
            "detections": 0,
            "resolutions": 0,
            "failures": 0,
            "by_tactic": {},
        }

    def detect_markup(self, title: str, html: str) -> ChallengeDetection:
        """
        Проверка заголовка и разметки на признаки челленджа.

        Args:
            title: Заголовок страницы
            html: Исходный код страницы

        Returns:
            ChallengeDetection с найденными признаками
        """
        title = title or ""
        html = html or ""
        evidence = [m for m in self.settings.title_markers if m in title]
        evidence += [m for m in self.settings.content_markers if m in html]
        return ChallengeDetection(challenged=bool(evidence), evidence=evidence)

    async def detect(self, session: Any) -> ChallengeDetection:
        """Проверка текущей страницы. Ошибка чтения считается отсутствием челленджа."""
        try:
            return await self._read_detection(session)
        except Exception as e:
            logger.debug(f"Не удалось прочитать страницу для проверки челленджа: {e}")
            return ChallengeDetection(challenged=False)

    async def _read_detection(self, session: Any) -> ChallengeDetection:
        async def read():
            return await session.title(), await session.content()

        title, html = await asyncio.wait_for(read(), self.settings.detection_timeout)
        return self.detect_markup(title, html)

    async def is_challenged(self, session: Any) -> bool:
        return (await self.detect(session)).challenged

    async def resolve(self, session: Any) -> ChallengeResolution:
        """
        Пройти челлендж, если он есть.

        Args:
            session: Сессия браузера

        Returns:
            ChallengeResolution: UNCHALLENGED, RESOLVED или STILL_CHALLENGED
        """
        detection = await self.detect(session)
        if not detection.challenged:
            return ChallengeResolution(state=ChallengeState.UNCHALLENGED)

        self._stats["detections"] += 1
        logger.info(
            f"Обнаружен челлендж ({', '.join(detection.evidence)}), "
            f"запуск тактик, бюджет {self.time_budget():.0f}с"
        )

        # Нечитаемая страница не считается пройденной
        async def cleared() -> bool:
            return not (await self._read_detection(session)).challenged

        outcome = await self.runner.run(self.build_tactics(session), is_resolved=cleared)

        if outcome.succeeded:
            self._stats["resolutions"] += 1
            by_tactic = self._stats["by_tactic"]
            by_tactic[outcome.winner] = by_tactic.get(outcome.winner, 0) + 1
            logger.info(
                f"Челлендж пройден тактикой {outcome.winner} за {outcome.elapsed:.1f}с"
            )
            state = ChallengeState.RESOLVED
        else:
            self._stats["failures"] += 1
            logger.warning(
                f"Челлендж не пройден после тактик: {', '.join(outcome.attempted)}"
            )
            state = ChallengeState.STILL_CHALLENGED

        return ChallengeResolution(
            state=state,
            tactic=outcome.winner,
            attempted=list(outcome.attempted),
            elapsed=outcome.elapsed,
        )

    def build_tactics(self, session: Any) -> List[Tactic]:
        """Упорядоченные тактики для сессии."""
        s = self.settings
        grace = s.tactic_grace
        return [
            Tactic(
                name="passive_wait",
                action=lambda: self._passive_wait(session),
                timeout=s.passive_wait_range[1] + grace,
            ),
            Tactic(
                name="click_confirmation",
                action=lambda: self._click_confirmation(session),
                timeout=s.navigation_timeout + grace,
            ),
            Tactic(
                name="behavioral_noise",
                action=lambda: self._behavioral_noise(session),
                timeout=s.noise_settle_range[1] + grace,
            ),
            Tactic(
                name="state_injection",
                action=lambda: self._state_injection(session),
                timeout=s.navigation_timeout + s.injection_settle + grace,
            ),
        ]

    def time_budget(self) -> float:
        """Верхняя граница resolve(): первая проверка страницы плюс таймауты тактик (секунды)."""
        tactics = TacticRunner.budget(self.build_tactics(None)) or 0.0
        return self.settings.detection_timeout + tactics

    async def _passive_wait(self, session: Any) -> float:
        low, high = self.settings.passive_wait_range
        delay = self._rng.uniform(low, high)
        logger.debug(f"Ожидание автопрохождения {delay:.1f}с")
        await session.sleep(delay)
        return delay

    async def _click_confirmation(self, session: Any) -> str:
        for selector in self.settings.confirmation_selectors:
            if not await session.query_exists(selector):
                continue
            logger.debug(f"Клик по кнопке подтверждения: {selector}")
            await session.click(selector)
            if not await session.wait_for_navigation(self.settings.navigation_timeout):
                logger.debug("Навигация после клика не завершилась")
            return selector
        raise ChallengeUnresolved("No confirmation control found")

    async def _behavioral_noise(self, session: Any) -> Dict[str, int]:
        s = self.settings
        moves = self._rng.randint(*s.noise_moves_range)
        scrolls = self._rng.randint(*s.noise_scrolls_range)
        await session.run_script(NOISE_SCRIPT, moves, scrolls)
        await session.sleep(self._rng.uniform(*s.noise_settle_range))
        return {"moves": moves, "scrolls": scrolls}

    async def _state_injection(self, session: Any) -> CookieSet:
        s = self.settings
        markers = self.injection_cookies()
        await session.inject_cookies(markers)
        await session.reload(s.navigation_timeout)
        await session.sleep(s.injection_settle)
        return markers

    def injection_cookies(self) -> CookieSet:
        """Маркеры проверки для прямой записи в браузер."""
        now = self._clock()
        alphabet = string.ascii_lowercase + string.digits
        cookies = []
        for name in self.settings.injection_cookie_names:
            token = "".join(self._rng.choice(alphabet) for _ in range(11))
            value = f"bypass.{token}.{int(now * 1000)}" if name == "cf_clearance" else token
            cookies.append(
                Cookie(
                    name=name,
                    value=value,
                    domain=self.settings.injection_domain,
                    path="/",
                    expires=now + INJECTED_COOKIE_TTL,
                    secure=True,
                    same_site="None",
                )
            )
        return CookieSet(cookies)

    def get_stats(self) -> Dict[str, Any]:
        """
        Получение статистики работы резолвера.

        Returns:
            Словарь со статистикой
        """
        return {**self._stats, "by_tactic": dict(self._stats["by_tactic"])}
