"""
Тесты извлечения событий из HTML.
"""

from conftest import PACKAGERADAR_HTML

from tracking_core.config.base import ExtractionPatterns
from tracking_core.models import STATUS_NOT_FOUND
from tracking_core.parsers.extractor import Extractor

FALLBACK_SELECTORS_HTML = """
<html><body>
  <p class="recipient">J. SMITH</p>
  <div class="tracking-event">
    <span class="event-status">Delivered</span>
    <time class="date" datetime="2024-03-05T14:32:00Z">Mar 5, 14:32</time>
    <span class="event-location">Springfield, US</span>
  </div>
  <div class="tracking-event">
    <span class="event-status">Out For Delivery</span>
    <time class="date"><span>Mar 5</span>
    08:10</time>
    <span class="event-location">Springfield, US</span>
  </div>
</body></html>
"""


class TestExtractor:
    """Тесты Extractor."""

    def test_packageradar_markup(self):
        """Разметка PackageRadar: сводный статус и история."""
        result = Extractor().extract(PACKAGERADAR_HTML)

        status = result.delivery_status
        assert status.status == "Delivered"
        assert status.date == "2024-03-05T14:32:00Z"
        assert status.location == "Springfield, US"
        assert status.signed_by == "J. SMITH"

        assert [event.status for event in result.events] == ["Delivered", "Out For Delivery"]
        assert result.is_incomplete() is False

    def test_date_label_and_last_line(self):
        """Без атрибута datetime дата собирается из подписи и последней строки."""
        result = Extractor().extract(PACKAGERADAR_HTML)

        assert result.events[0].date == "2024-03-05T14:32:00Z"
        assert result.events[1].date == "Mar 5 08:10"

    def test_fallback_selectors_give_same_result(self):
        """Селекторы из хвоста списка дают тот же результат, что и первые."""
        extractor = Extractor()
        primary = extractor.extract(PACKAGERADAR_HTML)
        fallback = extractor.extract(FALLBACK_SELECTORS_HTML)

        assert fallback.delivery_status == primary.delivery_status
        assert fallback.events == primary.events

    def test_text_heuristic(self):
        """Без контейнеров статус определяется по тексту страницы."""
        html = (
            "<html><body><main><h1>Tracking 1Z999AA10123456784</h1>"
            "<p>Your package was DELIVERED today.</p></main></body></html>"
        )
        result = Extractor().extract(html)

        assert result.delivery_status.status == "Delivered"
        assert result.events == []
        assert result.is_incomplete() is False

    def test_heuristic_order(self):
        """Первое подошедшее правило побеждает."""
        extractor = Extractor()
        assert extractor.classify_text("Package in transit") == "In Transit"
        assert extractor.classify_text("Order processed") == "Processing"
        assert extractor.classify_text("Delivered, was in transit") == "Delivered"

    def test_sentinel(self):
        """Пустая страница - статус-заглушка и неполный результат."""
        result = Extractor().extract("<html><body><p>Nothing here</p></body></html>")

        assert result.delivery_status.status == STATUS_NOT_FOUND
        assert result.is_incomplete() is True

    def test_empty_html(self):
        assert Extractor().extract("").is_incomplete() is True

    def test_idempotent(self):
        """Повторное извлечение дает тот же результат."""
        extractor = Extractor()
        assert extractor(PACKAGERADAR_HTML) == extractor(PACKAGERADAR_HTML)

    def test_invalid_selector_is_skipped(self):
        """Некорректный селектор пропускается, следующий срабатывает."""
        patterns = ExtractionPatterns(containers=["li[[", "#fragment-checkpoints li"])
        result = Extractor(patterns).extract(PACKAGERADAR_HTML)

        assert len(result.events) == 2

    def test_missing_status_in_event(self):
        """Событие без статуса получает Unknown."""
        html = '<ul id="fragment-checkpoints"><li><div class="text-muted">US</div></li></ul>'
        result = Extractor().extract(html)

        assert result.events[0].status == "Unknown"
        assert result.events[0].location == "US"
        assert result.delivery_status.status == STATUS_NOT_FOUND
        assert result.is_incomplete() is False

    def test_tracking_vocabulary(self):
        extractor = Extractor()
        assert extractor.has_tracking_vocabulary("<h1>Shipment details</h1>") is True
        assert extractor.has_tracking_vocabulary("<h1>Hello</h1>") is False
