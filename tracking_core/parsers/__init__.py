"""
Парсеры для извлечения данных отслеживания.
"""

from .extractor import Extractor

__all__ = ["Extractor"]
