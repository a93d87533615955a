"""
Извлечение событий отслеживания из HTML страницы.

Extractor - чистая функция html -> TrackingResult поверх BeautifulSoup (lxml).
Для каждого поля селекторы пробуются по порядку, побеждает первый найденный
элемент. Если ни один контейнер событий не найден, статус определяется
эвристикой по тексту страницы.
"""

import logging
from typing import List, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from ..config.base import ExtractionPatterns, SelectorPattern
from ..models import (
    EVENT_STATUS_UNKNOWN,
    STATUS_NOT_FOUND,
    DeliveryStatus,
    TrackingEvent,
    TrackingResult,
)

logger = logging.getLogger(__name__)


def _clean_text(element: Optional[Tag]) -> str:
    """Текст элемента со схлопнутыми пробелами."""
    if element is None:
        return ""
    return " ".join(element.get_text().split())


class Extractor:
    """Извлечение TrackingResult из HTML по паттернам селекторов."""

    def __init__(self, patterns: Optional[ExtractionPatterns] = None):
        """
        Args:
            patterns: Паттерны селекторов (по умолчанию разметка PackageRadar)
        """
        self.patterns = patterns or ExtractionPatterns()

    def __call__(self, html: str) -> TrackingResult:
        return self.extract(html)

    @property
    def container_selectors(self) -> List[str]:
        return list(self.patterns.containers)

    @staticmethod
    def parse(html: str) -> BeautifulSoup:
        return BeautifulSoup(html or "", "lxml")

    def extract(self, html: str) -> TrackingResult:
        """
        Извлечь результат отслеживания из HTML.

        Не выбрасывает исключений: отсутствующие поля получают значения
        по умолчанию.

        Args:
            html: Исходный код страницы

        Returns:
            TrackingResult без эхо-полей запроса
        """
        soup = self.parse(html)
        checkpoints = self.find_checkpoints(soup)

        if not checkpoints:
            status = self.classify_text(self._page_text(soup))
            logger.debug(f"Контейнеры событий не найдены, статус по тексту: {status}")
            return TrackingResult(delivery_status=DeliveryStatus(status=status))

        first = checkpoints[0]
        patterns = self.patterns
        delivery_status = DeliveryStatus(
            status=self._field_text(soup, first, patterns.status) or STATUS_NOT_FOUND,
            date=self._field_date(soup, first, patterns.date),
            location=self._field_text(soup, first, patterns.location),
            signed_by=self._field_text(soup, first, patterns.signed_by),
        )

        events = [
            TrackingEvent(
                status=self._field_text(soup, item, patterns.status)
                or EVENT_STATUS_UNKNOWN,
                date=self._field_date(soup, item, patterns.date),
                location=self._field_text(soup, item, patterns.location),
            )
            for item in checkpoints
        ]

        logger.debug(f"Извлечено событий: {len(events)}")
        return TrackingResult(delivery_status=delivery_status, events=events)

    def find_checkpoints(self, soup: BeautifulSoup) -> List[Tag]:
        """Элементы первого селектора контейнеров, давшего хотя бы один элемент."""
        for selector in self.patterns.containers:
            elements = self._select(soup, selector)
            if elements:
                logger.debug(f"Контейнер событий: {selector} ({len(elements)} шт.)")
                return elements
        return []

    def classify_text(self, text: str) -> str:
        """
        Статус по ключевым словам в тексте страницы.

        Returns:
            Статус первого подошедшего правила или STATUS_NOT_FOUND
        """
        lowered = (text or "").lower()
        for rule in self.patterns.heuristics:
            if any(keyword.lower() in lowered for keyword in rule.keywords):
                return rule.status
        return STATUS_NOT_FOUND

    def has_tracking_vocabulary(self, html: str) -> bool:
        """Похожа ли страница на страницу отслеживания."""
        lowered = (html or "").lower()
        return any(word.lower() in lowered for word in self.patterns.tracking_vocabulary)

    def _page_text(self, soup: BeautifulSoup) -> str:
        for selector in self.patterns.text_root_selectors:
            root = self._select_one(soup, selector)
            if root is not None:
                return root.get_text()
        return soup.get_text()

    def _find_field(
        self, soup: BeautifulSoup, item: Tag, pattern: SelectorPattern
    ) -> Optional[Tag]:
        root = soup if pattern.scope == "document" else item
        for selector in pattern.candidates:
            element = self._select_one(root, selector)
            if element is not None:
                return element
        return None

    def _field_text(
        self, soup: BeautifulSoup, item: Tag, pattern: SelectorPattern
    ) -> str:
        return _clean_text(self._find_field(soup, item, pattern))

    def _field_date(
        self, soup: BeautifulSoup, item: Tag, pattern: SelectorPattern
    ) -> str:
        """
        Дата в два уровня: машиночитаемый атрибут, иначе подпись + последняя строка текста.
        """
        element = self._find_field(soup, item, pattern)
        if element is None:
            return ""

        if pattern.attribute:
            value = element.get(pattern.attribute)
            if value:
                return value.strip() if isinstance(value, str) else " ".join(value)

        label = ""
        if pattern.label_selector:
            label = _clean_text(self._select_one(element, pattern.label_selector))
        rest = element.get_text().split("\n")[-1].strip()
        return f"{label} {rest}".strip()

    @staticmethod
    def _select(root: Tag, selector: str) -> List[Tag]:
        try:
            return root.select(selector)
        except Exception as e:
            logger.warning(f"Некорректный селектор {selector}: {e}")
            return []

    @staticmethod
    def _select_one(root: Tag, selector: str) -> Optional[Tag]:
        try:
            return root.select_one(selector)
        except Exception as e:
            logger.warning(f"Некорректный селектор {selector}: {e}")
            return None
