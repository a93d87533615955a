"""
Тесты сессии браузера с фейковым драйвером.
"""

import pytest
from selenium.common.exceptions import TimeoutException, WebDriverException

from tracking_core.config.base import StealthLevel, TrackerSettings
from tracking_core.errors import NavigationError
from tracking_core.models import Cookie, CookieSet
from tracking_core.orchestrator.session import BrowserSession, SessionConfig


class FakeDriver:
    """Драйвер Selenium без браузера."""

    def __init__(self, get_error=None, cdp_error=None, cookies=None):
        self.get_error = get_error
        self.cdp_error = cdp_error
        self.cookies = cookies or []
        self.cdp = []
        self.visited = []
        self.window_size = None
        self.quit_calls = 0
        self.title = "Tracking"
        self.page_source = "<html>tracking</html>"
        self.current_url = "https://packageradar.com/"

    def execute_cdp_cmd(self, command, params):
        if self.cdp_error is not None:
            raise self.cdp_error
        self.cdp.append((command, params))
        return {}

    def set_window_size(self, width, height):
        self.window_size = (width, height)

    def get(self, url):
        if self.get_error is not None:
            raise self.get_error
        self.visited.append(url)

    def find_elements(self, by, selector):
        raise WebDriverException("invalid selector")

    def get_cookies(self):
        return self.cookies

    def quit(self):
        self.quit_calls += 1


def _factory(driver):
    return lambda config, profile: driver


class TestSessionConfig:
    """Тесты SessionConfig."""

    def test_from_settings(self):
        settings = TrackerSettings(timeout=12, stealth_level="maximum", window_size=[800, 600])
        config = SessionConfig.from_settings(settings)

        assert config.navigation_timeout == 12
        assert config.stealth_level == StealthLevel.MAXIMUM
        assert config.window_size == (800, 600)
        assert config.base_url == settings.base_url


class TestBrowserSession:
    """Тесты BrowserSession."""

    @pytest.mark.asyncio
    async def test_acquire_applies_profile_and_closes(self):
        """Профиль применяется при старте, драйвер закрывается на выходе."""
        driver = FakeDriver()
        config = SessionConfig(window_size=(1024, 768))

        async with BrowserSession.acquire(config, driver_factory=_factory(driver)) as session:
            assert session.is_started
            commands = [command for command, _ in driver.cdp]
            assert commands.count("Page.addScriptToEvaluateOnNewDocument") == len(
                session.profile.init_scripts
            )
            assert "Network.setUserAgentOverride" in commands
            assert "Network.setExtraHTTPHeaders" in commands
            assert driver.window_size == (1024, 768)

        assert driver.quit_calls == 1
        assert session.is_started is False

    @pytest.mark.asyncio
    async def test_acquire_closes_on_error(self):
        driver = FakeDriver()

        with pytest.raises(RuntimeError):
            async with BrowserSession.acquire(driver_factory=_factory(driver)):
                raise RuntimeError("boom")

        assert driver.quit_calls == 1

    @pytest.mark.asyncio
    async def test_acquire_closes_when_profile_fails(self):
        """Ошибка применения профиля не оставляет браузер открытым."""
        driver = FakeDriver(cdp_error=WebDriverException("cdp failed"))

        with pytest.raises(WebDriverException):
            async with BrowserSession.acquire(driver_factory=_factory(driver)):
                pass

        assert driver.quit_calls == 1

    @pytest.mark.asyncio
    async def test_navigate(self):
        driver = FakeDriver()
        session = BrowserSession(driver_factory=_factory(driver))
        await session.start()

        await session.navigate("https://packageradar.com/courier/ups/tracking/1")
        assert driver.visited == ["https://packageradar.com/courier/ups/tracking/1"]
        assert await session.title() == "Tracking"
        assert await session.extract(len) == len(driver.page_source)
        await session.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, message",
        [
            (TimeoutException("page load"), "timeout after 30.0s"),
            (WebDriverException("net::ERR_NAME_NOT_RESOLVED"), "net::ERR_NAME_NOT_RESOLVED"),
        ],
    )
    async def test_navigate_errors(self, error, message):
        """Таймаут и ошибки WebDriver превращаются в NavigationError."""
        driver = FakeDriver(get_error=error)
        session = BrowserSession(driver_factory=_factory(driver))
        await session.start()

        with pytest.raises(NavigationError) as exc_info:
            await session.navigate("https://packageradar.com/x")

        assert exc_info.value.url == "https://packageradar.com/x"
        assert message in str(exc_info.value)
        await session.close()

    @pytest.mark.asyncio
    async def test_inject_cookies(self):
        """Cookies устанавливаются через CDP Network.setCookie."""
        driver = FakeDriver()
        session = BrowserSession(SessionConfig(stealth_level="plain"), driver_factory=_factory(driver))
        await session.start()
        driver.cdp.clear()

        await session.inject_cookies(
            CookieSet(
                [
                    Cookie("cf_clearance", "t", domain=".packageradar.com", expires=2000, secure=True, same_site="None"),
                    Cookie("local", "1"),
                ]
            )
        )

        first, second = [params for command, params in driver.cdp if command == "Network.setCookie"]
        assert first["domain"] == ".packageradar.com"
        assert first["expires"] == 2000
        assert first["sameSite"] == "None"
        assert "domain" not in second
        assert second["url"] == "https://packageradar.com"
        assert "expires" not in second
        await session.close()

    @pytest.mark.asyncio
    async def test_get_cookies_skips_malformed(self):
        driver = FakeDriver(cookies=[{"name": "a", "value": "1"}, {"value": "no-name"}])
        session = BrowserSession(driver_factory=_factory(driver))
        await session.start()

        cookies = await session.get_cookies()

        assert cookies.names() == ["a"]
        await session.close()

    @pytest.mark.asyncio
    async def test_query_exists_on_driver_error(self):
        driver = FakeDriver()
        session = BrowserSession(driver_factory=_factory(driver))
        await session.start()

        assert await session.query_exists("[[bad") is False
        await session.close()

    @pytest.mark.asyncio
    async def test_close_idempotent(self):
        driver = FakeDriver()
        session = BrowserSession(driver_factory=_factory(driver))
        await session.start()

        await session.close()
        await session.close()

        assert driver.quit_calls == 1
        with pytest.raises(RuntimeError):
            session.driver

    @pytest.mark.asyncio
    async def test_debug_artifacts_disabled(self, tmp_path):
        driver = FakeDriver()
        session = BrowserSession(SessionConfig(debug_dir=str(tmp_path)), driver_factory=_factory(driver))
        await session.start()

        assert await session.save_debug_artifacts("page") == []
        saved = await session.save_debug_artifacts("page", html=True)
        assert saved == [tmp_path / "page.html"]
        assert (tmp_path / "page.html").read_text(encoding="utf-8") == driver.page_source
        await session.close()

    @pytest.mark.asyncio
    async def test_debug_dir_unavailable(self, tmp_path):
        """Недоступная директория отладки не прерывает работу."""
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        config = SessionConfig(debug_dir=str(blocker / "debug"), save_html=True)
        session = BrowserSession(config, driver_factory=_factory(FakeDriver()))
        await session.start()

        assert await session.save_debug_artifacts("page") == []
        await session.close()
