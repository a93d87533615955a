"""
Сессия браузера для трекера.

BrowserSession оборачивает WebDriver: каждая блокирующая команда Selenium
выполняется в потоке через asyncio.to_thread и ограничена таймаутом
asyncio.wait_for. Сессия приобретается через BrowserSession.acquire(),
драйвер закрывается на любом пути выхода.
"""

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncIterator, Callable, List, Optional, Tuple

from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from ..config.base import DEFAULT_USER_AGENTS, StealthLevel, TrackerSettings
from ..errors import NavigationError
from ..models import Cookie, CookieSet
from .stealth import StealthProfile, build_stealth_profile

logger = logging.getLogger(__name__)

# Запас к таймауту потока сверх таймаута самой команды Selenium
COMMAND_GRACE = 5.0

DriverFactory = Callable[["SessionConfig", StealthProfile], Any]


@dataclass
class SessionConfig:
    """Конфигурация сессии браузера."""

    headless: bool = True
    stealth_level: StealthLevel = StealthLevel.HARDENED
    navigation_timeout: float = 30.0
    command_timeout: float = 30.0
    launch_timeout: float = 60.0
    window_size: Tuple[int, int] = (1920, 1080)
    user_agents: List[str] = field(default_factory=lambda: list(DEFAULT_USER_AGENTS))
    base_url: str = "https://packageradar.com"
    proxy: Optional[str] = None
    browser_executable_path: Optional[str] = None
    user_data_dir: Optional[str] = None
    disk_cache_dir: Optional[str] = None
    debug_dir: str = "debug"
    save_screenshot: bool = False
    save_html: bool = False

    @classmethod
    def from_settings(cls, settings: TrackerSettings) -> "SessionConfig":
        """
        Создать SessionConfig из настроек трекера.

        Args:
            settings: Настройки трекера

        Returns:
            SessionConfig для новой сессии
        """
        return cls(
            headless=settings.headless,
            stealth_level=settings.stealth_level,
            navigation_timeout=settings.timeout,
            command_timeout=settings.timeout,
            launch_timeout=settings.launch_timeout,
            window_size=(settings.window_size[0], settings.window_size[1]),
            user_agents=list(settings.user_agents),
            base_url=settings.base_url,
            proxy=settings.proxy,
            browser_executable_path=settings.browser_executable_path,
            user_data_dir=settings.user_data_dir,
            disk_cache_dir=settings.disk_cache_dir,
            debug_dir=settings.debug_dir,
            save_screenshot=settings.save_screenshot,
            save_html=settings.save_html,
        )


def create_chrome_driver(config: SessionConfig, profile: StealthProfile) -> Any:
    """
    Создание Chrome драйвера через undetected_chromedriver.

    Вызывается в отдельном потоке.

    Args:
        config: Конфигурация сессии
        profile: Профиль маскировки

    Returns:
        WebDriver экземпляр
    """
    import undetected_chromedriver as uc

    options = uc.ChromeOptions()

    for argument in profile.chrome_arguments():
        options.add_argument(argument)

    if config.headless:
        options.add_argument("--headless=new")
    if config.proxy:
        options.add_argument(f"--proxy-server={config.proxy}")
    if config.disk_cache_dir:
        options.add_argument(f"--disk-cache-dir={config.disk_cache_dir}")

    options.add_argument(f"--user-agent={profile.user_agent}")
    options.set_capability("pageLoadStrategy", "normal")

    driver = uc.Chrome(
        options=options,
        user_data_dir=config.user_data_dir,
        browser_executable_path=config.browser_executable_path,
    )

    # Только явные ожидания
    driver.set_page_load_timeout(config.navigation_timeout)
    driver.set_script_timeout(config.command_timeout)
    driver.implicitly_wait(0)

    logger.debug("Chrome драйвер создан")
    return driver


class BrowserSession:
    """
    Одна сессия браузера с фиксированным профилем маскировки.

    Используется через BrowserSession.acquire(config):

        async with BrowserSession.acquire(config) as session:
            await session.navigate(url)
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        driver_factory: Optional[DriverFactory] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Инициализация сессии.

        Args:
            config: Конфигурация сессии
            driver_factory: Фабрика драйвера (по умолчанию create_chrome_driver)
            rng: Генератор случайных чисел для выбора User-Agent
        """
        self.config = config or SessionConfig()
        self.profile = build_stealth_profile(
            self.config.stealth_level,
            self.config.user_agents,
            self.config.window_size,
            rng,
        )
        self._driver_factory = driver_factory or create_chrome_driver
        self._driver: Any = None
        self._page_marker: Any = None

    @classmethod
    @asynccontextmanager
    async def acquire(
        cls,
        config: Optional[SessionConfig] = None,
        driver_factory: Optional[DriverFactory] = None,
    ) -> AsyncIterator["BrowserSession"]:
        """Запустить сессию и гарантированно закрыть ее при выходе."""
        session = cls(config, driver_factory)
        try:
            await session.start()
            yield session
        finally:
            await session.close()

    @property
    def driver(self) -> Any:
        if self._driver is None:
            raise RuntimeError("Сессия браузера не запущена")
        return self._driver

    @property
    def is_started(self) -> bool:
        return self._driver is not None

    async def _call(self, func: Callable, *args: Any, timeout: Optional[float] = None) -> Any:
        """Выполнить блокирующий вызов Selenium в потоке с таймаутом."""
        if timeout is None:
            timeout = self.config.command_timeout
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout)

    async def start(self) -> None:
        """Запуск браузера и применение профиля маскировки."""
        if self._driver is not None:
            return

        logger.info(
            f"Запуск браузера (stealth={self.profile.level.value}, "
            f"headless={self.config.headless})"
        )
        self._driver = await self._call(
            self._driver_factory, self.config, self.profile,
            timeout=self.config.launch_timeout,
        )
        await self._apply_profile()

    async def _apply_profile(self) -> None:
        """Внедрение скриптов, User-Agent и заголовков через CDP."""
        driver = self.driver
        cdp = driver.execute_cdp_cmd

        for script in self.profile.init_scripts:
            await self._call(
                cdp, "Page.addScriptToEvaluateOnNewDocument", {"source": script}
            )

        await self._call(cdp, "Network.enable", {})
        await self._call(
            cdp,
            "Network.setUserAgentOverride",
            {"userAgent": self.profile.user_agent, "acceptLanguage": "en-US,en;q=0.9"},
        )
        if self.profile.extra_headers:
            await self._call(
                cdp,
                "Network.setExtraHTTPHeaders",
                {"headers": dict(self.profile.extra_headers)},
            )

        width, height = self.profile.window_size
        await self._call(driver.set_window_size, width, height)
        logger.debug(f"Профиль маскировки применен: UA={self.profile.user_agent}")

    async def navigate(self, url: str, timeout: Optional[float] = None) -> None:
        """
        Переход на страницу.

        Raises:
            NavigationError: При таймауте загрузки или ошибке WebDriver
        """
        timeout = timeout or self.config.navigation_timeout
        logger.info(f"Переход на: {url}")
        try:
            await self._call(self.driver.get, url, timeout=timeout + COMMAND_GRACE)
        except (asyncio.TimeoutError, TimeoutException) as e:
            raise NavigationError(url, f"timeout after {timeout}s") from e
        except WebDriverException as e:
            raise NavigationError(url, e.msg or str(e)) from e

    async def reload(self, timeout: Optional[float] = None) -> None:
        """
        Перезагрузка текущей страницы.

        Raises:
            NavigationError: При таймауте загрузки или ошибке WebDriver
        """
        timeout = timeout or self.config.navigation_timeout
        url = "<reload>"
        try:
            url = await self._call(lambda: self.driver.current_url)
            await self._call(self.driver.refresh, timeout=timeout + COMMAND_GRACE)
        except (asyncio.TimeoutError, TimeoutException) as e:
            raise NavigationError(url, f"timeout after {timeout}s") from e
        except WebDriverException as e:
            raise NavigationError(url, e.msg or str(e)) from e

    async def title(self) -> str:
        return await self._call(lambda: self.driver.title) or ""

    async def content(self) -> str:
        return await self._call(lambda: self.driver.page_source) or ""

    async def extract(self, program: Callable[[str], Any]) -> Any:
        """
        Выполнить чистую функцию над исходным кодом текущей страницы.

        Args:
            program: Функция html -> значение

        Returns:
            Значение, возвращенное program
        """
        html = await self.content()
        return program(html)

    async def query_exists(self, selector: str) -> bool:
        """Есть ли на странице хотя бы один элемент по CSS-селектору."""
        try:
            elements = await self._call(
                self.driver.find_elements, By.CSS_SELECTOR, selector
            )
        except WebDriverException as e:
            logger.debug(f"Ошибка поиска {selector}: {e}")
            return False
        return bool(elements)

    async def click(self, selector: str) -> None:
        """Клик по первому элементу, запоминая текущий документ для wait_for_navigation."""
        driver = self.driver
        self._page_marker = await self._call(driver.find_element, By.TAG_NAME, "html")
        element = await self._call(driver.find_element, By.CSS_SELECTOR, selector)
        await self._call(element.click)

    async def wait_for_selector(self, selector: str, timeout: float) -> bool:
        """
        Ожидание появления элемента.

        Returns:
            bool: True если элемент появился за timeout
        """
        wait = WebDriverWait(self.driver, timeout)
        condition = EC.presence_of_element_located((By.CSS_SELECTOR, selector))
        try:
            await self._call(wait.until, condition, timeout=timeout + COMMAND_GRACE)
            return True
        except (TimeoutException, asyncio.TimeoutError):
            return False
        except WebDriverException as e:
            logger.debug(f"Ошибка ожидания {selector}: {e}")
            return False

    async def wait_for_navigation(self, timeout: float) -> bool:
        """
        Ожидание смены документа после клика.

        Returns:
            bool: True если страница сменилась за timeout
        """
        marker = self._page_marker
        self._page_marker = None
        try:
            if marker is None:
                marker = await self._call(self.driver.find_element, By.TAG_NAME, "html")
            wait = WebDriverWait(self.driver, timeout)
            await self._call(
                wait.until, EC.staleness_of(marker), timeout=timeout + COMMAND_GRACE
            )
            return True
        except (TimeoutException, asyncio.TimeoutError):
            return False
        except WebDriverException as e:
            logger.debug(f"Ошибка ожидания навигации: {e}")
            return False

    async def run_script(self, script: str, *args: Any) -> Any:
        return await self._call(self.driver.execute_script, script, *args)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def get_cookies(self) -> CookieSet:
        """Cookies текущей сессии браузера."""
        raw_cookies = await self._call(self.driver.get_cookies) or []

        cookies = []
        for item in raw_cookies:
            try:
                cookies.append(Cookie.from_browser(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Пропущен некорректный cookie из браузера: {e}")
        return CookieSet(cookies)

    async def inject_cookies(self, cookies: CookieSet) -> None:
        """
        Установка cookies через CDP Network.setCookie.

        Работает до первой навигации, поэтому подходит для засева сессии.
        """
        cdp = self.driver.execute_cdp_cmd
        for cookie in cookies:
            params = {
                "name": cookie.name,
                "value": cookie.value,
                "path": cookie.path,
                "secure": cookie.secure,
                "httpOnly": cookie.http_only,
            }
            if cookie.domain:
                params["domain"] = cookie.domain
            else:
                params["url"] = self.config.base_url
            if cookie.expires is not None and cookie.expires > 0:
                params["expires"] = cookie.expires
            if cookie.same_site:
                params["sameSite"] = cookie.same_site
            await self._call(cdp, "Network.setCookie", params)

        logger.debug(f"Установлено cookies: {len(cookies)}")

    async def save_debug_artifacts(
        self,
        prefix: str,
        screenshot: Optional[bool] = None,
        html: Optional[bool] = None,
    ) -> List[Path]:
        """
        Сохранить скриншот и/или HTML текущей страницы.

        Args:
            prefix: Имя файла без расширения
            screenshot: Сохранять скриншот (по умолчанию из конфигурации)
            html: Сохранять HTML (по умолчанию из конфигурации)

        Returns:
            List[Path]: Пути сохраненных файлов
        """
        screenshot = self.config.save_screenshot if screenshot is None else screenshot
        html = self.config.save_html if html is None else html
        if not (screenshot or html) or self._driver is None:
            return []

        debug_dir = Path(self.config.debug_dir)
        saved: List[Path] = []

        try:
            debug_dir.mkdir(parents=True, exist_ok=True)
            if screenshot:
                path = debug_dir / f"{prefix}.png"
                await self._call(self._driver.save_screenshot, str(path))
                saved.append(path)
            if html:
                path = debug_dir / f"{prefix}.html"
                source = await self.content()
                path.write_text(source, encoding="utf-8")
                saved.append(path)
        except (WebDriverException, asyncio.TimeoutError, OSError) as e:
            logger.error(f"Ошибка сохранения отладочных файлов {prefix}: {e}")

        for path in saved:
            logger.info(f"Отладочный файл сохранен: {path}")
        return saved

    async def close(self) -> None:
        """Закрытие браузера. Повторный вызов ничего не делает."""
        driver, self._driver = self._driver, None
        self._page_marker = None
        if driver is None:
            return
        try:
            await self._call(driver.quit)
            logger.debug("Браузер закрыт")
        except Exception as e:
            logger.error(f"Ошибка при закрытии браузера: {e}")
