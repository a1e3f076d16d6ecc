# src/services/relay/__init__.py
"""
Location Relay — ретранслятор геолокации в реальном времени.

Обеспечивает:
- Рукопожатие hello с ролями driver/viewer
- Комнаты по deviceId: один водитель, много зрителей
- Ограничение частоты телеметрии (token bucket)
- Догоняющий снимок для новых зрителей
- Проверку живости соединений (ping/pong)
"""
