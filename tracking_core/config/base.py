"""
Базовые классы конфигурации трекера.

Содержит Pydantic-модели для настроек сессии браузера, резолвера
челленджа и паттернов извлечения данных.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, validator

from ..models import DEFAULT_COURIER


class StealthLevel(str, Enum):
    """Уровни маскировки браузера."""

    PLAIN = "plain"  # Минимальные флаги запуска
    HARDENED = "hardened"  # Скрытие webdriver, плагины, языки
    MAXIMUM = "maximum"  # Полный профиль: железо, медиа-устройства, заголовки


DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36 Edg/122.0.0.0",
]


class SelectorPattern(BaseModel):
    """Упорядоченный список селекторов для одного поля. Побеждает первый."""

    label: str = Field(..., description="Название поля (status, date, location)")
    candidates: List[str] = Field(..., description="CSS-селекторы по приоритету")
    attribute: Optional[str] = Field(
        None, description="Атрибут с машиночитаемым значением (например, datetime)"
    )
    label_selector: Optional[str] = Field(
        None, description="Вложенный элемент с подписью (второй уровень для даты)"
    )
    scope: str = Field("item", description="Область поиска: 'item' или 'document'")

    @validator("candidates")
    def validate_candidates(cls, v):
        if not v:
            raise ValueError("candidates должен содержать хотя бы один селектор")
        return v

    @validator("scope")
    def validate_scope(cls, v):
        if v not in ("item", "document"):
            raise ValueError("scope должен быть 'item' или 'document'")
        return v


class HeuristicRule(BaseModel):
    """Правило текстовой классификации: ключевые слова -> статус."""

    status: str
    keywords: List[str]


class ExtractionPatterns(BaseModel):
    """Паттерны извлечения событий отслеживания."""

    containers: List[str] = Field(
        default_factory=lambda: [
            "#fragment-checkpoints li",
            ".checkpoint-item",
            ".tracking-event",
            ".tracking-history li",
            ".tracking-details li",
        ],
        description="Селекторы контейнеров событий по приоритету",
    )
    status: SelectorPattern = Field(
        default_factory=lambda: SelectorPattern(
            label="status",
            candidates=[
                ".checkpoint-status",
                ".status",
                ".event-status",
                ".tracking-status",
            ],
        )
    )
    date: SelectorPattern = Field(
        default_factory=lambda: SelectorPattern(
            label="date",
            candidates=["time.datetime2", ".date", ".event-date", ".tracking-date"],
            attribute="datetime",
            label_selector="span",
        )
    )
    location: SelectorPattern = Field(
        default_factory=lambda: SelectorPattern(
            label="location",
            candidates=[
                ".text-muted",
                ".location",
                ".event-location",
                ".tracking-location",
            ],
        )
    )
    signed_by: SelectorPattern = Field(
        default_factory=lambda: SelectorPattern(
            label="signedBy",
            candidates=[".signed-by", ".signature", ".recipient"],
            scope="document",
        )
    )
    heuristics: List[HeuristicRule] = Field(
        default_factory=lambda: [
            HeuristicRule(status="Delivered", keywords=["delivered"]),
            HeuristicRule(status="In Transit", keywords=["transit"]),
            HeuristicRule(status="Processing", keywords=["processed", "processing"]),
        ],
        description="Классификация текста страницы при отсутствии контейнеров",
    )
    text_root_selectors: List[str] = Field(
        default_factory=lambda: ["main", "body"],
        description="Корень текста для эвристики",
    )
    tracking_vocabulary: List[str] = Field(
        default_factory=lambda: ["tracking", "shipment", "delivery"],
        description="Слова, по которым страница считается страницей отслеживания",
    )

    @validator("containers")
    def validate_containers(cls, v):
        if not v:
            raise ValueError("containers должен содержать хотя бы один селектор")
        return v


class ChallengeSettings(BaseModel):
    """Настройки обнаружения и прохождения челленджа."""

    title_markers: List[str] = Field(
        default_factory=lambda: ["Attention Required", "Just a moment"]
    )
    content_markers: List[str] = Field(
        default_factory=lambda: [
            "cf-browser-verification",
            "challenge-form",
            "turnstile",
            "challenge-platform",
        ]
    )
    confirmation_selectors: List[str] = Field(
        default_factory=lambda: [
            '#challenge-stage input[type="button"]',
            ".cf-confirm-button",
            ".cf-submit",
            ".cf-button",
            ".challenge-button",
            "#challenge-form button",
            'input[type="submit"]',
            'button[type="submit"]',
        ]
    )

    passive_wait_range: List[float] = Field([8.0, 12.0])
    navigation_timeout: float = Field(30.0, gt=0)
    noise_moves_range: List[int] = Field([5, 14])
    noise_scrolls_range: List[int] = Field([2, 6])
    noise_settle_range: List[float] = Field([1.0, 3.0])
    injection_domain: str = Field(".packageradar.com")
    injection_cookie_names: List[str] = Field(
        default_factory=lambda: ["cf_clearance", "__cf_bm"]
    )
    injection_settle: float = Field(5.0, ge=0)
    tactic_grace: float = Field(5.0, ge=0, description="Запас к таймауту тактики")
    detection_timeout: float = Field(5.0, gt=0, description="Таймаут чтения страницы при проверке")

    @validator(
        "passive_wait_range",
        "noise_moves_range",
        "noise_scrolls_range",
        "noise_settle_range",
    )
    def validate_range(cls, v):
        if len(v) != 2:
            raise ValueError("диапазон должен содержать 2 значения [min, max]")
        if v[0] < 0 or v[1] < 0:
            raise ValueError("значения диапазона не могут быть отрицательными")
        if v[0] > v[1]:
            raise ValueError("минимум должен быть не больше максимума")
        return v


class TrackerSettings(BaseModel):
    """Конфигурация трекера."""

    # Браузер
    headless: bool = Field(True, description="Запуск браузера без интерфейса")
    timeout: float = Field(30.0, gt=0, description="Таймаут навигации (секунды)")
    stealth_level: StealthLevel = Field(
        StealthLevel.HARDENED, description="Уровень маскировки браузера"
    )
    user_agents: List[str] = Field(default_factory=lambda: list(DEFAULT_USER_AGENTS))
    window_size: List[int] = Field([1920, 1080])
    proxy: Optional[str] = Field(None, description="Прокси для браузера")
    browser_executable_path: Optional[str] = None
    user_data_dir: Optional[str] = None
    disk_cache_dir: Optional[str] = None
    launch_timeout: float = Field(60.0, gt=0, description="Таймаут запуска браузера")

    # Повторные попытки
    max_retries: int = Field(2, ge=0, description="Количество повторных попыток")
    retry_base_delay: float = Field(2.0, ge=0, description="Базовая задержка backoff")
    retry_max_delay: float = Field(60.0, ge=0)
    selector_timeout: float = Field(
        10.0, gt=0, description="Ожидание каждого селектора контейнера"
    )

    # Отладочные артефакты
    save_screenshot: bool = False
    save_html: bool = False
    debug_dir: str = "debug"

    # Целевой сайт
    base_url: str = "https://packageradar.com"
    url_template: str = (
        "https://packageradar.com/courier/{courier}/tracking/{identifier}"
    )
    default_courier: str = DEFAULT_COURIER

    # Состояние обхода защиты
    cookies_path: str = "cookies.json"
    preload_cookies: bool = Field(
        False, description="Получить cookies при старте сервиса"
    )

    # Цепочка источников
    direct_api_endpoints: Dict[str, str] = Field(
        default_factory=dict,
        description="Шаблоны URL прямых API курьеров (courier -> URL с {identifier})",
    )
    direct_api_timeout: float = Field(15.0, gt=0)
    use_fallback_only: bool = Field(
        False, description="Использовать только резервный трекер"
    )

    log_level: str = Field("INFO", description="Уровень логирования")

    extraction: ExtractionPatterns = Field(default_factory=ExtractionPatterns)
    challenge: ChallengeSettings = Field(default_factory=ChallengeSettings)

    @validator("window_size")
    def validate_window_size(cls, v):
        if len(v) != 2 or v[0] <= 0 or v[1] <= 0:
            raise ValueError("window_size должен содержать [ширина, высота] > 0")
        return v

    @validator("user_agents")
    def validate_user_agents(cls, v):
        if not v:
            raise ValueError("user_agents не может быть пустым")
        return v

    @validator("url_template")
    def validate_url_template(cls, v):
        if "{identifier}" not in v:
            raise ValueError("url_template должен содержать {identifier}")
        return v

    @validator("log_level")
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Неизвестный уровень логирования: {v}")
        return level
