"""
JSON-схемы для валидации конфигурационных файлов.

Содержит схему в формате JSON Schema для валидации tracker_config.json.
Вложенные разделы extraction и challenge проверяются моделями Pydantic.
"""

SCHEMA_SELECTOR_PATTERN = {
    "type": "object",
    "properties": {
        "label": {"type": "string", "description": "Название поля"},
        "candidates": {
            "type": "array",
            "items": {"type": "string"},
            "minItems": 1,
            "description": "CSS-селекторы по приоритету",
        },
        "attribute": {"type": ["string", "null"]},
        "label_selector": {"type": ["string", "null"]},
        "scope": {"type": "string", "enum": ["item", "document"]},
    },
    "required": ["label", "candidates"],
    "additionalProperties": False,
}

SCHEMA_TRACKER_CONFIG = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "Tracker Configuration",
    "description": "Конфигурация трекера посылок",
    "type": "object",
    "properties": {
        "headless": {
            "type": "boolean",
            "default": True,
            "description": "Запуск браузера в headless-режиме",
        },
        "timeout": {
            "type": "number",
            "exclusiveMinimum": 0,
            "maximum": 600,
            "default": 30,
            "description": "Таймаут навигации (секунды)",
        },
        "stealth_level": {
            "type": "string",
            "enum": ["plain", "hardened", "maximum"],
            "default": "hardened",
            "description": "Уровень маскировки браузера",
        },
        "user_agents": {
            "type": "array",
            "items": {"type": "string"},
            "minItems": 1,
            "description": "Пул User-Agent для ротации",
        },
        "window_size": {
            "type": "array",
            "items": {"type": "integer", "minimum": 1},
            "minItems": 2,
            "maxItems": 2,
        },
        "proxy": {"type": ["string", "null"]},
        "browser_executable_path": {"type": ["string", "null"]},
        "user_data_dir": {"type": ["string", "null"]},
        "disk_cache_dir": {"type": ["string", "null"]},
        "launch_timeout": {"type": "number", "exclusiveMinimum": 0},
        "max_retries": {
            "type": "integer",
            "minimum": 0,
            "maximum": 10,
            "default": 2,
            "description": "Количество повторных попыток",
        },
        "retry_base_delay": {"type": "number", "minimum": 0, "default": 2.0},
        "retry_max_delay": {"type": "number", "minimum": 0, "default": 60.0},
        "selector_timeout": {"type": "number", "exclusiveMinimum": 0},
        "save_screenshot": {"type": "boolean", "default": False},
        "save_html": {"type": "boolean", "default": False},
        "debug_dir": {"type": "string"},
        "base_url": {"type": "string"},
        "url_template": {
            "type": "string",
            "pattern": "\\{identifier\\}",
            "description": "Шаблон URL страницы отслеживания",
        },
        "default_courier": {"type": "string", "minLength": 1},
        "cookies_path": {"type": "string", "minLength": 1},
        "preload_cookies": {"type": "boolean", "default": False},
        "direct_api_endpoints": {
            "type": "object",
            "additionalProperties": {"type": "string", "pattern": "\\{identifier\\}"},
            "description": "Шаблоны URL прямых API курьеров",
        },
        "direct_api_timeout": {"type": "number", "exclusiveMinimum": 0},
        "use_fallback_only": {"type": "boolean", "default": False},
        "log_level": {
            "type": "string",
            "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            "default": "INFO",
            "description": "Уровень логирования",
        },
        "extraction": {
            "type": "object",
            "properties": {
                "containers": {
                    "type": "array",
                    "items": {"type": "string"},
                    "minItems": 1,
                },
                "status": SCHEMA_SELECTOR_PATTERN,
                "date": SCHEMA_SELECTOR_PATTERN,
                "location": SCHEMA_SELECTOR_PATTERN,
                "signed_by": SCHEMA_SELECTOR_PATTERN,
            },
        },
        "challenge": {"type": "object"},
    },
    "additionalProperties": False,
}

# Экспортируемые схемы
__all__ = [
    "SCHEMA_SELECTOR_PATTERN",
    "SCHEMA_TRACKER_CONFIG",
]
