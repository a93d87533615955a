"""
Общие фикстуры и фейки для тестов трекера.
"""

from contextlib import asynccontextmanager
from typing import Any, Iterable, List, Optional

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from tracking_core.config.base import ChallengeSettings, TrackerSettings
from tracking_core.models import Cookie, CookieSet

TRACKING_NUMBER = "1Z999AA10123456784"

CHALLENGE_TITLE = "Just a moment..."
CHALLENGE_HTML = '<html><body><form id="challenge-form"></form></body></html>'

PACKAGERADAR_HTML = """
<html>
<head><title>Tracking 1Z999AA10123456784</title></head>
<body>
<main>
  <div class="signed-by">J. SMITH</div>
  <ul id="fragment-checkpoints">
    <li>
      <div class="checkpoint-status">Delivered</div>
      <time class="datetime2" datetime="2024-03-05T14:32:00Z"><span>Mar 5</span>
      14:32</time>
      <div class="text-muted">Springfield, US</div>
    </li>
    <li>
      <div class="checkpoint-status">Out For Delivery</div>
      <time class="datetime2"><span>Mar 5</span>
      08:10</time>
      <div class="text-muted">Springfield, US</div>
    </li>
  </ul>
</main>
</body>
</html>
"""


class SleepRecorder:
    """Подмена asyncio.sleep, запоминающая паузы."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class FakeSession:
    """
    Сессия браузера со сценарием.

    clear_on - действия ("sleep", "click", "script", "reload"), после которых
    страница становится cleared_title/cleared_html.
    """

    def __init__(
        self,
        title: str = "",
        html: str = "",
        cookies: Optional[CookieSet] = None,
        navigate_error: Optional[BaseException] = None,
        selectors: Iterable[str] = (),
        clear_on: Iterable[str] = (),
        cleared_title: str = "Tracking",
        cleared_html: str = "<html><body>tracking</body></html>",
    ):
        self.title_value = title
        self.html = html
        self.cookies = cookies if cookies is not None else CookieSet()
        self.navigate_error = navigate_error
        self.selectors = set(selectors)
        self.clear_on = set(clear_on)
        self.cleared = (cleared_title, cleared_html)
        self.calls: List[Any] = []
        self.injected: List[CookieSet] = []
        self.slept: List[float] = []
        self.artifacts: List[str] = []
        self.started = False
        self.closed = False

    def _trigger(self, action: str) -> None:
        if action in self.clear_on:
            self.title_value, self.html = self.cleared

    async def navigate(self, url: str, timeout: Optional[float] = None) -> None:
        self.calls.append(("navigate", url))
        if self.navigate_error is not None:
            raise self.navigate_error

    async def reload(self, timeout: Optional[float] = None) -> None:
        self.calls.append(("reload",))
        self._trigger("reload")

    async def title(self) -> str:
        return self.title_value

    async def content(self) -> str:
        return self.html

    async def extract(self, program):
        return program(self.html)

    async def query_exists(self, selector: str) -> bool:
        return selector in self.selectors

    async def click(self, selector: str) -> None:
        self.calls.append(("click", selector))
        self._trigger("click")

    async def wait_for_selector(self, selector: str, timeout: float) -> bool:
        self.calls.append(("wait_for_selector", selector))
        return selector in self.selectors

    async def wait_for_navigation(self, timeout: float) -> bool:
        return True

    async def run_script(self, script: str, *args: Any) -> None:
        self.calls.append(("script", args))
        self._trigger("script")

    async def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self._trigger("sleep")

    async def get_cookies(self) -> CookieSet:
        return self.cookies

    async def inject_cookies(self, cookies: CookieSet) -> None:
        self.injected.append(cookies)

    async def save_debug_artifacts(self, prefix: str, screenshot=None, html=None):
        self.artifacts.append(prefix)
        return []


class FakeSessionFactory:
    """Фабрика сессий: выдает заранее подготовленные FakeSession по порядку."""

    def __init__(self, *sessions: FakeSession):
        self.sessions = list(sessions)
        self.opened: List[FakeSession] = []
        self.configs: List[Any] = []

    @asynccontextmanager
    async def _acquire(self, session: FakeSession):
        session.started = True
        try:
            yield session
        finally:
            session.closed = True

    def __call__(self, config):
        self.configs.append(config)
        session = self.sessions[len(self.opened)]
        self.opened.append(session)
        return self._acquire(session)


def make_cookie(name: str = "session", value: str = "abc", expires: Optional[float] = None) -> Cookie:
    return Cookie(name=name, value=value, domain=".packageradar.com", expires=expires)


@pytest.fixture
def sleeper() -> SleepRecorder:
    """Подмена asyncio.sleep для проверки пауз."""
    return SleepRecorder()


@pytest.fixture
def fast_challenge() -> ChallengeSettings:
    """Настройки челленджа без реальных ожиданий."""
    return ChallengeSettings(
        passive_wait_range=[0.0, 0.0],
        noise_settle_range=[0.0, 0.0],
        injection_settle=0.0,
        navigation_timeout=1.0,
        tactic_grace=1.0,
    )


@pytest.fixture
def tracker_settings(tmp_path, fast_challenge) -> TrackerSettings:
    """Настройки трекера для тестов: временные пути и короткие ожидания."""
    return TrackerSettings(
        selector_timeout=0.01,
        cookies_path=str(tmp_path / "cookies.json"),
        debug_dir=str(tmp_path / "debug"),
        challenge=fast_challenge,
    )


@pytest_asyncio.fixture
async def make_client():
    """Тестовый клиент aiohttp для приложения."""
    clients = []

    async def factory(app):
        client = TestClient(TestServer(app))
        await client.start_server()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.close()
