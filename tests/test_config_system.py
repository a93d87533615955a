"""
Тесты для системы конфигурации трекера.

Проверяет модели настроек, загрузчик конфигурации, переопределения
из окружения и JSON-схему файла конфигурации.
"""

import json
from pathlib import Path

import jsonschema
import pytest
from pydantic import ValidationError

from tracking_core.config.base import (
    ChallengeSettings,
    ExtractionPatterns,
    SelectorPattern,
    StealthLevel,
    TrackerSettings,
)
from tracking_core.config.loader import DEFAULT_CONFIG_FILE, ConfigLoader, load_settings
from tracking_core.config.schemas import SCHEMA_SELECTOR_PATTERN, SCHEMA_TRACKER_CONFIG
from tracking_core.errors import ConfigurationError


class TestTrackerSettings:
    """Тесты для TrackerSettings."""

    def test_default_config(self):
        """Проверка значений по умолчанию."""
        settings = TrackerSettings()

        assert settings.headless is True
        assert settings.timeout == 30.0
        assert settings.max_retries == 2
        assert settings.stealth_level == StealthLevel.HARDENED
        assert settings.default_courier == "ups"
        assert settings.cookies_path == "cookies.json"
        assert settings.use_fallback_only is False
        assert "{identifier}" in settings.url_template

    def test_config_validation(self):
        """Проверка валидации значений."""
        with pytest.raises(ValidationError):
            TrackerSettings(timeout=0)

        with pytest.raises(ValidationError):
            TrackerSettings(max_retries=-1)

        with pytest.raises(ValidationError):
            TrackerSettings(window_size=[1920])

        with pytest.raises(ValidationError):
            TrackerSettings(url_template="https://packageradar.com/{courier}")

        with pytest.raises(ValidationError):
            TrackerSettings(log_level="LOUD")

    def test_log_level_normalized(self):
        assert TrackerSettings(log_level="debug").log_level == "DEBUG"

    def test_challenge_ranges(self):
        """Диапазоны [min, max] проверяются."""
        with pytest.raises(ValidationError):
            ChallengeSettings(passive_wait_range=[12, 8])

        with pytest.raises(ValidationError):
            ChallengeSettings(noise_moves_range=[1, 2, 3])

    def test_selector_pattern(self):
        """Проверка паттерна селекторов."""
        pattern = SelectorPattern(label="status", candidates=[".status"])
        assert pattern.scope == "item"

        with pytest.raises(ValidationError):
            SelectorPattern(label="status", candidates=[])

        with pytest.raises(ValidationError):
            SelectorPattern(label="status", candidates=[".a"], scope="page")

    def test_default_extraction(self):
        """Паттерны по умолчанию начинаются с разметки PackageRadar."""
        patterns = ExtractionPatterns()

        assert patterns.containers[0] == "#fragment-checkpoints li"
        assert patterns.date.attribute == "datetime"
        assert patterns.signed_by.scope == "document"


class TestConfigLoader:
    """Тесты для загрузчика конфигурации."""

    @pytest.fixture
    def config_dir(self, tmp_path) -> Path:
        return tmp_path / "config"

    def _write(self, config_dir: Path, data) -> Path:
        config_dir.mkdir(parents=True, exist_ok=True)
        path = config_dir / DEFAULT_CONFIG_FILE
        with open(path, "w", encoding="utf-8") as f:
            if isinstance(data, str):
                f.write(data)
            else:
                json.dump(data, f)
        return path

    def test_missing_file_uses_defaults(self, config_dir):
        settings = ConfigLoader(str(config_dir)).load_settings(environ={})
        assert settings == TrackerSettings()

    def test_load_file(self, config_dir):
        """Проверка загрузки файла конфигурации."""
        self._write(
            config_dir,
            {
                "headless": False,
                "max_retries": 4,
                "stealth_level": "maximum",
                "direct_api_endpoints": {"ups": "https://api.example.com/{identifier}"},
                "challenge": {"passive_wait_range": [1, 2]},
            },
        )
        loader = ConfigLoader(str(config_dir))
        settings = loader.load_settings(environ={})

        assert settings.headless is False
        assert settings.max_retries == 4
        assert settings.stealth_level == StealthLevel.MAXIMUM
        assert settings.challenge.passive_wait_range == [1, 2]
        assert loader.settings is settings

    def test_corrupt_file(self, config_dir):
        path = self._write(config_dir, "{broken")

        with pytest.raises(ConfigurationError, match="Malformed JSON"):
            ConfigLoader().load_settings(str(path), environ={})

    def test_schema_violation(self, config_dir):
        """Неизвестные поля и неверные типы отклоняются схемой."""
        path = self._write(config_dir, {"headless": "yes"})
        with pytest.raises(ConfigurationError, match="Schema violation"):
            ConfigLoader().load_settings(str(path), environ={})

        path = self._write(config_dir, {"max_tabs": 3})
        with pytest.raises(ConfigurationError):
            ConfigLoader().load_settings(str(path), environ={})

    def test_model_violation(self, config_dir):
        """Ошибки, не покрытые схемой, ловятся моделью."""
        path = self._write(config_dir, {"challenge": {"passive_wait_range": [5, 1]}})

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            ConfigLoader().load_settings(str(path), environ={})

    def test_env_overrides(self, config_dir):
        """Переменные окружения имеют приоритет над файлом."""
        self._write(config_dir, {"headless": True, "max_retries": 1})
        environ = {
            "TRACKER_HEADLESS": "false",
            "TRACKER_MAX_RETRIES": "5",
            "TRACKER_TIMEOUT": "12.5",
            "USE_FALLBACK": "1",
            "TRACKER_COOKIES_PATH": "/tmp/state/cookies.json",
            "LOG_LEVEL": "debug",
        }
        settings = ConfigLoader(str(config_dir)).load_settings(environ=environ)

        assert settings.headless is False
        assert settings.max_retries == 5
        assert settings.timeout == 12.5
        assert settings.use_fallback_only is True
        assert settings.cookies_path == "/tmp/state/cookies.json"
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize(
        "environ",
        [{"TRACKER_HEADLESS": "maybe"}, {"TRACKER_MAX_RETRIES": "many"}, {"TRACKER_TIMEOUT": "x"}],
    )
    def test_invalid_env_values(self, config_dir, environ):
        with pytest.raises(ConfigurationError):
            ConfigLoader(str(config_dir)).load_settings(environ=environ)

    def test_save_and_load(self, config_dir):
        """Сохраненная конфигурация загружается без изменений."""
        loader = ConfigLoader(str(config_dir))
        original = TrackerSettings(max_retries=3, stealth_level="plain", proxy="http://proxy:8080")

        path = loader.save_settings(original)

        assert path == config_dir / DEFAULT_CONFIG_FILE
        assert loader.load_settings(environ={}) == original

    def test_load_settings_function(self, tmp_path):
        settings = load_settings(str(tmp_path / "absent.json"), environ={"TRACKER_PROXY": "socks5://p:1"})
        assert settings.proxy == "socks5://p:1"


class TestJsonSchemas:
    """Тесты для JSON-схем валидации."""

    def test_defaults_match_schema(self):
        """Сериализованные настройки по умолчанию проходят схему."""
        jsonschema.validate(TrackerSettings().model_dump(mode="json"), SCHEMA_TRACKER_CONFIG)

    def test_tracker_config_schema(self):
        """Проверка схемы конфигурации трекера."""
        jsonschema.validate({"headless": False, "timeout": 10}, SCHEMA_TRACKER_CONFIG)

        with pytest.raises(jsonschema.ValidationError):
            jsonschema.validate({"timeout": -1}, SCHEMA_TRACKER_CONFIG)

        with pytest.raises(jsonschema.ValidationError):
            jsonschema.validate({"stealth_level": "paranoid"}, SCHEMA_TRACKER_CONFIG)

        with pytest.raises(jsonschema.ValidationError):
            jsonschema.validate({"url_template": "https://x/{courier}"}, SCHEMA_TRACKER_CONFIG)

    def test_selector_pattern_schema(self):
        jsonschema.validate({"label": "status", "candidates": [".status"]}, SCHEMA_SELECTOR_PATTERN)

        with pytest.raises(jsonschema.ValidationError):
            jsonschema.validate({"label": "status", "candidates": []}, SCHEMA_SELECTOR_PATTERN)
