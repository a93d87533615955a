"""
Загрузчик конфигурации трекера.

Читает JSON-файл, проверяет его JSON-схемой и применяет переопределения
из переменных окружения. Переменные окружения читаются только здесь.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import jsonschema
from pydantic import ValidationError

from ..errors import ConfigurationError
from .base import TrackerSettings
from .schemas import SCHEMA_TRACKER_CONFIG

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "tracker_config.json"

# Переменная окружения -> (поле настроек, тип значения)
ENV_OVERRIDES = {
    "TRACKER_HEADLESS": ("headless", "bool"),
    "TRACKER_TIMEOUT": ("timeout", "float"),
    "TRACKER_MAX_RETRIES": ("max_retries", "int"),
    "TRACKER_COOKIES_PATH": ("cookies_path", "str"),
    "TRACKER_STEALTH_LEVEL": ("stealth_level", "str"),
    "TRACKER_PROXY": ("proxy", "str"),
    "TRACKER_BROWSER_PATH": ("browser_executable_path", "str"),
    "CHROME_USER_DATA_DIR": ("user_data_dir", "str"),
    "CHROME_CACHE_DIR": ("disk_cache_dir", "str"),
    "SAVE_DEBUG_SCREENSHOTS": ("save_screenshot", "bool"),
    "SAVE_DEBUG_HTML": ("save_html", "bool"),
    "USE_FALLBACK": ("use_fallback_only", "bool"),
    "LOG_LEVEL": ("log_level", "str"),
}

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


def _convert_env_value(name: str, raw: str, kind: str) -> Any:
    """Преобразовать строковое значение переменной окружения."""
    value = raw.strip()
    if kind == "bool":
        lowered = value.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"{name}: ожидается логическое значение, получено {raw!r}")
    if kind == "int":
        try:
            return int(value)
        except ValueError as e:
            raise ConfigurationError(f"{name}: ожидается целое число, получено {raw!r}") from e
    if kind == "float":
        try:
            return float(value)
        except ValueError as e:
            raise ConfigurationError(f"{name}: ожидается число, получено {raw!r}") from e
    return value


class ConfigLoader:
    """Загрузчик и валидатор конфигурации трекера."""

    def __init__(self, config_dir: str = "config"):
        """
        Инициализация загрузчика конфигурации.

        Args:
            config_dir: Директория с конфигурационными файлами
        """
        self.config_dir = Path(config_dir)
        self._settings: Optional[TrackerSettings] = None

    @property
    def settings(self) -> TrackerSettings:
        """Последняя загруженная конфигурация (загружает при первом обращении)."""
        if self._settings is None:
            self._settings = self.load_settings()
        return self._settings

    def load_settings(
        self,
        config_path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> TrackerSettings:
        """
        Загрузить конфигурацию трекера.

        Args:
            config_path: Путь к JSON-файлу конфигурации.
                        Если None, используется config/tracker_config.json
            environ: Источник переменных окружения (по умолчанию os.environ)

        Returns:
            TrackerSettings: Загруженная конфигурация

        Raises:
            ConfigurationError: Если файл поврежден или не проходит валидацию
        """
        path = Path(config_path) if config_path else self.config_dir / DEFAULT_CONFIG_FILE

        if path.exists():
            config_data = self._read_file(path)
        else:
            logger.warning(f"Файл конфигурации не найден: {path}")
            logger.info("Используется конфигурация по умолчанию")
            config_data = {}

        config_data.update(self.env_overrides(environ))

        try:
            self._settings = TrackerSettings(**config_data)
        except ValidationError as e:
            logger.error(f"Некорректная конфигурация в {path}: {e}")
            raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e

        logger.info(f"Конфигурация трекера загружена ({path})")
        return self._settings

    def _read_file(self, path: Path) -> Dict[str, Any]:
        """Прочитать и проверить JSON-файл конфигурации."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Ошибка парсинга JSON в {path}: {e}")
            raise ConfigurationError(f"Malformed JSON in {path}: {e}") from e
        except OSError as e:
            logger.error(f"Ошибка чтения конфигурации из {path}: {e}")
            raise ConfigurationError(f"Cannot read {path}: {e}") from e

        try:
            jsonschema.validate(config_data, SCHEMA_TRACKER_CONFIG)
        except jsonschema.ValidationError as e:
            logger.error(f"Конфигурация {path} не прошла проверку схемы: {e.message}")
            raise ConfigurationError(f"Schema violation in {path}: {e.message}") from e

        return config_data

    @staticmethod
    def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
        """
        Собрать переопределения настроек из переменных окружения.

        Args:
            environ: Источник переменных (по умолчанию os.environ)

        Returns:
            Dict[str, Any]: Поле настроек -> значение
        """
        if environ is None:
            environ = os.environ

        overrides: Dict[str, Any] = {}
        for name, (field_name, kind) in ENV_OVERRIDES.items():
            raw = environ.get(name)
            if raw is None:
                continue
            overrides[field_name] = _convert_env_value(name, raw, kind)
            logger.debug(f"Переопределение из окружения: {name} -> {field_name}")
        return overrides

    def save_settings(
        self, settings: TrackerSettings, config_path: Optional[str] = None
    ) -> Path:
        """
        Сохранить конфигурацию в JSON-файл.

        Args:
            settings: Конфигурация для сохранения
            config_path: Путь к файлу (по умолчанию config/tracker_config.json)

        Returns:
            Path: Путь к сохраненному файлу
        """
        path = Path(config_path) if config_path else self.config_dir / DEFAULT_CONFIG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(settings.model_dump(mode="json"), f, indent=2, ensure_ascii=False)

        logger.info(f"Конфигурация сохранена в {path}")
        return path


def load_settings(
    config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None
) -> TrackerSettings:
    """
    Загрузить конфигурацию трекера (удобная функция).

    Args:
        config_path: Путь к JSON-файлу конфигурации
        environ: Источник переменных окружения

    Returns:
        TrackerSettings: Загруженная конфигурация
    """
    return ConfigLoader().load_settings(config_path, environ)
