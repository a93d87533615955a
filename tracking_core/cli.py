"""
Командная строка трекера.

Пример:
    tracking-core 1Z999AA10123456784 --courier ups --save-html -v
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError
from tabulate import tabulate

from .config.base import TrackerSettings
from .config.loader import ConfigLoader
from .errors import AllSourcesExhausted, ConfigurationError, InvalidTrackingRequest
from .models import TrackingResult
from .orchestrator.core import TrackingOrchestrator

logger = logging.getLogger("tracking_core")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tracking-core",
        description="Отслеживание посылки через PackageRadar с резервными источниками",
    )
    parser.add_argument("identifier", help="Номер отслеживания")
    parser.add_argument("--courier", default=None, help="Код курьера (по умолчанию ups)")
    parser.add_argument("--config", type=str, default=None,
                        help="Путь к JSON-файлу конфигурации")
    parser.add_argument("--no-headless", action="store_true",
                        help="Показывать окно браузера")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Таймаут навигации (секунды)")
    parser.add_argument("--max-retries", type=int, default=None,
                        help="Количество повторных попыток")
    parser.add_argument("--save-screenshot", action="store_true",
                        help="Сохранить скриншот страницы")
    parser.add_argument("--save-html", action="store_true",
                        help="Сохранить HTML страницы")
    parser.add_argument("--json", action="store_true",
                        help="Вывести результат в формате JSON")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Подробный вывод")
    return parser


def apply_arguments(settings: TrackerSettings, args: argparse.Namespace) -> TrackerSettings:
    """Переопределить настройки аргументами командной строки."""
    overrides = {}
    if args.no_headless:
        overrides["headless"] = False
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    if args.max_retries is not None:
        overrides["max_retries"] = args.max_retries
    if args.save_screenshot:
        overrides["save_screenshot"] = True
    if args.save_html:
        overrides["save_html"] = True
    if not overrides:
        return settings
    return TrackerSettings(**{**settings.model_dump(), **overrides})


def format_result(result: TrackingResult) -> str:
    """Человекочитаемое представление результата."""
    status = result.delivery_status
    lines = [
        "Delivery Status Information:",
        "-" * 35,
        f"Status: {status.status}",
        f"Signed By: {status.signed_by}",
        f"Date: {status.date}",
        f"Location: {status.location}",
        "-" * 35,
    ]
    if result.message:
        lines.append(result.message)

    if result.events:
        rows = [
            [index, event.status, event.date, event.location]
            for index, event in enumerate(result.events, start=1)
        ]
        lines.append("")
        lines.append(
            tabulate(rows, headers=["#", "Status", "Date", "Location"], tablefmt="grid")
        )

    if result.errors:
        lines.append("")
        lines.append(
            tabulate(
                [[f.source, f.error] for f in result.errors],
                headers=["Source", "Error"],
                tablefmt="grid",
            )
        )
    return "\n".join(lines)


async def async_main(args: argparse.Namespace, settings: TrackerSettings) -> int:
    orchestrator = TrackingOrchestrator(settings)
    try:
        result = await orchestrator.track(args.identifier, args.courier)
    except InvalidTrackingRequest as e:
        logger.error(f"Некорректный запрос: {e}")
        return 2
    except AllSourcesExhausted as e:
        logger.error(f"Отслеживание не удалось: {e}")
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(format_result(result))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = ConfigLoader().load_settings(args.config)
        settings = apply_arguments(settings, args)
    except (ConfigurationError, ValidationError) as e:
        logging.basicConfig(level=logging.ERROR, format=LOG_FORMAT)
        logger.error(f"Ошибка конфигурации: {e}")
        return 2

    level = logging.DEBUG if args.verbose else getattr(logging, settings.log_level)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    if args.verbose:
        # Отключаем шумные логи библиотек
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("selenium").setLevel(logging.WARNING)
        logging.getLogger("undetected_chromedriver").setLevel(logging.WARNING)

    return asyncio.run(async_main(args, settings))


if __name__ == "__main__":
    sys.exit(main())
