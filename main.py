#!/usr/bin/env python3
# main.py
"""
Главная точка входа Location Relay.

uvicorn поднимает HTTP-приложение, lifespan которого запускает
WebSocket-сервер и liveness monitor. SIGINT/SIGTERM обрабатывает uvicorn:
остановка heartbeat, обрыв соединений, закрытие слушающего сокета.
"""

from __future__ import annotations

import sys

import uvicorn

from src.config import settings
from src.common.logger import setup_logging


def main() -> int:
    """Запуск сервиса."""
    setup_logging()

    config = uvicorn.Config(
        "src.services.relay.app:app",
        host=settings.relay.RELAY_HOST,
        port=settings.relay.RELAY_HTTP_PORT,
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
    uvicorn.Server(config).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
