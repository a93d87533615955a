"""
HTTP-сервис трекера на aiohttp.

Маршруты:
    GET  /                        - описание API
    POST /api/track               - отслеживание {trackingNumber, courier?}
    POST /api/regenerate-cookies  - получение свежих cookies
    GET  /health                  - состояние сервиса
"""

import argparse
import asyncio
import logging
import os
import time
from datetime import datetime, timezone
from typing import Optional

from aiohttp import web

from ..config.base import TrackerSettings
from ..config.loader import ConfigLoader
from ..errors import AllSourcesExhausted, ConfigurationError, InvalidTrackingRequest
from ..orchestrator.core import TrackingOrchestrator

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

ORCHESTRATOR_KEY = web.AppKey("orchestrator", TrackingOrchestrator)
STARTED_AT_KEY = web.AppKey("started_at", float)
PRELOAD_TASK_KEY = web.AppKey("preload_task", asyncio.Task)

routes = web.RouteTableDef()


@web.middleware
async def cors_middleware(request: web.Request, handler):
    if request.method == "OPTIONS":
        response = web.Response()
    else:
        response = await handler(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    return response


@routes.get("/")
async def index(request: web.Request) -> web.Response:
    return web.json_response(
        {
            "message": "Package Tracking API",
            "usage": {
                "endpoint": "/api/track",
                "method": "POST",
                "body": {
                    "trackingNumber": "your-tracking-number",
                    "courier": "ups",
                },
            },
        }
    )


@routes.post("/api/track")
async def track(request: web.Request) -> web.Response:
    orchestrator = request.app[ORCHESTRATOR_KEY]

    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {}

    identifier = body.get("trackingNumber")
    courier = body.get("courier")

    try:
        logger.info(f"Запрос отслеживания: {identifier}")
        result = await orchestrator.track(identifier, courier)
    except InvalidTrackingRequest as e:
        return web.json_response(
            {
                "error": str(e),
                "message": "Please provide a valid tracking number in the request body",
            },
            status=400,
        )
    except AllSourcesExhausted as e:
        logger.error(f"Ошибка отслеживания: {e}")
        return web.json_response(
            {
                "error": "Tracking failed",
                "message": str(e),
                "errors": [failure.to_dict() for failure in e.failures],
            },
            status=500,
        )

    return web.json_response(result.to_dict())


@routes.post("/api/regenerate-cookies")
async def regenerate_cookies(request: web.Request) -> web.Response:
    orchestrator = request.app[ORCHESTRATOR_KEY]
    try:
        cookies = await orchestrator.refresh_cookies()
    except Exception as e:
        logger.error(f"Не удалось обновить cookies: {e}")
        return web.json_response(
            {
                "success": False,
                "error": "Failed to regenerate cookies",
                "message": str(e),
            },
            status=500,
        )

    return web.json_response(
        {
            "success": True,
            "message": f"Successfully regenerated {len(cookies)} cookies",
            "count": len(cookies),
        }
    )


@routes.get("/health")
async def health(request: web.Request) -> web.Response:
    orchestrator = request.app[ORCHESTRATOR_KEY]
    return web.json_response(
        {
            "status": "ok",
            "uptime": round(time.monotonic() - request.app[STARTED_AT_KEY], 3),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "fallbackMode": orchestrator.use_fallback_only,
        }
    )


async def _preload_cookies(orchestrator: TrackingOrchestrator) -> None:
    try:
        cookies = await orchestrator.refresh_cookies()
        logger.info(f"Предзагружено cookies: {len(cookies)}")
    except Exception as e:
        logger.error(f"Не удалось предзагрузить cookies: {e}")


async def _on_startup(app: web.Application) -> None:
    orchestrator = app[ORCHESTRATOR_KEY]
    if orchestrator.settings.preload_cookies and not orchestrator.use_fallback_only:
        app[PRELOAD_TASK_KEY] = asyncio.create_task(_preload_cookies(orchestrator))
    elif orchestrator.use_fallback_only:
        logger.info("Режим резервного трекера: предзагрузка cookies пропущена")


async def _on_cleanup(app: web.Application) -> None:
    task = app.get(PRELOAD_TASK_KEY)
    if task is not None and not task.done():
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


def create_app(
    orchestrator: Optional[TrackingOrchestrator] = None,
    settings: Optional[TrackerSettings] = None,
) -> web.Application:
    """
    Создать приложение aiohttp.

    Args:
        orchestrator: Готовый оркестратор (иначе создается из settings)
        settings: Настройки трекера

    Returns:
        web.Application
    """
    app = web.Application(middlewares=[cors_middleware])
    app[ORCHESTRATOR_KEY] = orchestrator or TrackingOrchestrator(settings)
    app[STARTED_AT_KEY] = time.monotonic()
    app.add_routes(routes)
    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)
    return app


def main(argv=None) -> int:
    """Точка входа HTTP-сервиса."""
    parser = argparse.ArgumentParser(description="HTTP-сервис отслеживания посылок")
    parser.add_argument("--host", default="0.0.0.0", help="Адрес для прослушивания")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PORT", "3000")),
        help="Порт (по умолчанию PORT или 3000)",
    )
    parser.add_argument("--config", help="Путь к JSON-файлу конфигурации")
    args = parser.parse_args(argv)

    try:
        settings = ConfigLoader().load_settings(args.config)
    except ConfigurationError as e:
        logging.basicConfig(level=logging.ERROR, format=LOG_FORMAT)
        logger.error(f"Ошибка конфигурации: {e}")
        return 2

    logging.basicConfig(level=getattr(logging, settings.log_level), format=LOG_FORMAT)
    logger.info(f"Запуск сервиса, USE_FALLBACK={settings.use_fallback_only}")

    web.run_app(create_app(settings=settings), host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
