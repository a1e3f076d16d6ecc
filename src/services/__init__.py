# src/services/__init__.py
"""
Сервисы приложения.

- relay: WebSocket-ретранслятор телеметрии (порт RELAY_WS_PORT)
  с HTTP health/stats на FastAPI (порт RELAY_HTTP_PORT)
"""

__all__: list[str] = []
