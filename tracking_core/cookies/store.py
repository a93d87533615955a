"""
Хранилище cookies обхода защиты.

Один JSON-файл со списком cookies в формате Selenium. Поврежденный или
отсутствующий файл равнозначен пустому набору. Запись атомарна: временный
файл в той же директории и os.replace.
"""

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional, Union

from ..models import CookieSet

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class CookieStore:
    """Файловое хранилище набора cookies."""

    def __init__(self, path: PathLike = "cookies.json", clock: Callable[[], float] = time.time):
        """
        Args:
            path: Путь к JSON-файлу cookies
            clock: Часы для проверки срока действия
        """
        self.path = Path(path)
        self._clock = clock

    def load(self, path: Optional[PathLike] = None) -> CookieSet:
        """
        Загрузить набор cookies.

        Никогда не выбрасывает исключений: любая ошибка дает пустой набор.

        Args:
            path: Путь к файлу (по умолчанию self.path)

        Returns:
            CookieSet: Загруженный или пустой набор
        """
        path = Path(path) if path else self.path
        if not path.exists():
            logger.info(f"Файл cookies не найден: {path}")
            return CookieSet()

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            cookies = CookieSet.from_list(data)
        except json.JSONDecodeError as e:
            logger.warning(f"Ошибка парсинга JSON cookies в {path}: {e}")
            return CookieSet()
        except OSError as e:
            logger.warning(f"Ошибка чтения cookies из {path}: {e}")
            return CookieSet()
        except (TypeError, KeyError, ValueError) as e:
            logger.warning(f"Некорректная структура cookies в {path}: {e}")
            return CookieSet()

        logger.info(f"Загружено cookies: {len(cookies)} из {path}")
        return cookies

    def save(self, cookies: CookieSet, path: Optional[PathLike] = None) -> Path:
        """
        Атомарно перезаписать файл cookies.

        Args:
            cookies: Набор для сохранения
            path: Путь к файлу (по умолчанию self.path)

        Returns:
            Path: Путь к сохраненному файлу

        Raises:
            OSError: Если файл не удалось записать
        """
        path = Path(path) if path else self.path
        directory = path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(directory)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(cookies.to_list(), f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

        logger.info(f"Cookies сохранены в {path} ({len(cookies)} шт.)")
        return path

    def is_reusable(self, cookies: CookieSet) -> bool:
        """Набор непустой и содержит хотя бы один неистекший cookie."""
        return bool(cookies) and bool(cookies.live(self._clock()))

    def snapshot(self) -> CookieSet:
        """Неистекшие cookies из файла."""
        cookies = self.load()
        live = cookies.live(self._clock())
        if len(live) != len(cookies):
            logger.debug(f"Отброшено истекших cookies: {len(cookies) - len(live)}")
        return live

    def supersede(self, cookies: Optional[CookieSet]) -> bool:
        """
        Заменить сохраненный набор свежим.

        Пустой набор игнорируется.

        Returns:
            bool: True если файл перезаписан
        """
        if not cookies:
            return False
        self.save(cookies)
        return True
