"""
Профили маскировки браузера.

Профиль фиксируется на всю сессию: аргументы запуска Chrome, скрипты,
внедряемые до загрузки каждого документа, User-Agent из пула ротации,
размер окна и дополнительные HTTP-заголовки.
"""

import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..config.base import DEFAULT_USER_AGENTS, StealthLevel

# Аргументы запуска по уровням (накопительно)
PLAIN_ARGUMENTS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
]

HARDENED_ARGUMENTS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-gpu",
    "--disable-software-rasterizer",
    "--no-first-run",
    "--disable-extensions",
    "--disable-infobars",
    "--hide-scrollbars",
    "--mute-audio",
]

MAXIMUM_ARGUMENTS = [
    "--disable-accelerated-2d-canvas",
]

WEBDRIVER_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {get: () => false});
"""

PLUGINS_SCRIPT = """
Object.defineProperty(navigator, 'plugins', {get: () => [1, 2, 3, 4, 5]});
"""

LANGUAGES_SCRIPT = """
Object.defineProperty(navigator, 'languages', {get: () => ['en-US', 'en']});
"""

PERMISSIONS_SCRIPT = """
if (window.navigator.permissions) {
  window.navigator.permissions.query = (parameters) =>
    parameters.name === 'notifications'
      ? Promise.resolve({state: Notification.permission})
      : Promise.resolve({state: 'prompt'});
}
"""

CHROME_RUNTIME_SCRIPT = """
window.chrome = {runtime: {}, loadTimes: function() {}, csi: function() {}, app: {}};
"""

DETAILED_PLUGINS_SCRIPT = """
Object.defineProperty(navigator, 'plugins', {
  get: () => [
    {0: {type: 'application/pdf'}, description: 'Portable Document Format',
     filename: 'internal-pdf-viewer', length: 1, name: 'PDF Viewer'},
    {0: {type: 'application/pdf'}, description: 'Portable Document Format',
     filename: 'internal-pdf-viewer', length: 1, name: 'Chrome PDF Viewer'}
  ]
});
"""

EXTENDED_LANGUAGES_SCRIPT = """
Object.defineProperty(navigator, 'languages', {get: () => ['en-US', 'en', 'es']});
"""

MEDIA_DEVICES_SCRIPT = """
if (navigator.mediaDevices) {
  navigator.mediaDevices.enumerateDevices = async () => [
    {deviceId: 'default', kind: 'audioinput', label: 'Default', groupId: 'default'},
    {deviceId: 'default', kind: 'videoinput', label: 'Default', groupId: 'default'}
  ];
}
"""

HARDWARE_SCRIPT = """
Object.defineProperty(navigator, 'hardwareConcurrency', {get: () => 8});
Object.defineProperty(navigator, 'platform', {get: () => 'Win32'});
"""

BASIC_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Upgrade-Insecure-Requests": "1",
}

# Accept-Encoding не задается: сжатие согласует сам браузер
EXTENDED_HEADERS = {
    "Cache-Control": "max-age=0",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "sec-ch-ua": '"Chromium";v="122", "Google Chrome";v="122", "Not-A.Brand";v="24"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
}


@dataclass(frozen=True)
class StealthProfile:
    """Профиль маскировки, фиксированный на одну сессию браузера."""

    level: StealthLevel
    user_agent: str
    window_size: Tuple[int, int] = (1920, 1080)
    launch_arguments: Tuple[str, ...] = ()
    init_scripts: Tuple[str, ...] = ()
    extra_headers: Dict[str, str] = field(default_factory=dict)

    def chrome_arguments(self) -> List[str]:
        """Аргументы командной строки Chrome, включая размер окна."""
        width, height = self.window_size
        return list(self.launch_arguments) + [f"--window-size={width},{height}"]


def build_stealth_profile(
    level: StealthLevel = StealthLevel.HARDENED,
    user_agents: Optional[Sequence[str]] = None,
    window_size: Sequence[int] = (1920, 1080),
    rng: Optional[random.Random] = None,
) -> StealthProfile:
    """
    Собрать профиль маскировки для указанного уровня.

    Args:
        level: Уровень маскировки
        user_agents: Пул User-Agent для ротации
        window_size: Размер окна [ширина, высота]
        rng: Генератор случайных чисел (для воспроизводимости в тестах)

    Returns:
        StealthProfile: Профиль для новой сессии
    """
    level = StealthLevel(level)
    rng = rng or random.Random()
    pool = list(user_agents or DEFAULT_USER_AGENTS)

    arguments = list(PLAIN_ARGUMENTS)
    scripts: List[str] = []
    headers: Dict[str, str] = {}

    if level in (StealthLevel.HARDENED, StealthLevel.MAXIMUM):
        arguments += HARDENED_ARGUMENTS
        scripts += [WEBDRIVER_SCRIPT, PERMISSIONS_SCRIPT]
        headers.update(BASIC_HEADERS)

    if level == StealthLevel.HARDENED:
        scripts += [PLUGINS_SCRIPT, LANGUAGES_SCRIPT]
    elif level == StealthLevel.MAXIMUM:
        arguments += MAXIMUM_ARGUMENTS
        scripts += [
            CHROME_RUNTIME_SCRIPT,
            DETAILED_PLUGINS_SCRIPT,
            EXTENDED_LANGUAGES_SCRIPT,
            MEDIA_DEVICES_SCRIPT,
            HARDWARE_SCRIPT,
        ]
        headers.update(EXTENDED_HEADERS)

    return StealthProfile(
        level=level,
        user_agent=rng.choice(pool),
        window_size=(int(window_size[0]), int(window_size[1])),
        launch_arguments=tuple(arguments),
        init_scripts=tuple(scripts),
        extra_headers=headers,
    )
