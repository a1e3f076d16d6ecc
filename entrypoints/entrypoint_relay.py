#!/usr/bin/env python3
"""
Entrypoint для Location Relay.

Запуск:
    python entrypoint_relay.py

HTTP (health/stats) по умолчанию: 8081
WebSocket по умолчанию: 8080 (PORT / WS_PORT)
"""

import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

import uvicorn

from src.config import settings


def main() -> None:
    """Запустить Location Relay."""
    uvicorn.run(
        "src.services.relay.app:app",
        host=settings.relay.RELAY_HOST,
        port=settings.relay.RELAY_HTTP_PORT,
        reload=settings.system.DEBUG,
        log_level=settings.logging.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
