# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from src.services.relay.connection import Connection
from src.services.relay.device_memory import DeviceMemory
from src.services.relay.handler import ConnectionHandler
from src.services.relay.room_registry import RoomRegistry


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "PROJECT_NAME": "location_relay_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "LOG_LEVEL": "DEBUG",
        "ENVIRONMENT": "test",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_FORMAT": "colored",
        "RELAY_HOST": "127.0.0.1",
        "RELAY_WS_PORT": 9080,
        "RELAY_HTTP_PORT": 9081,
        "HEARTBEAT_MS": 5000,
        "TELEMETRY_RATE_PER_SEC": 5,
        "TELEMETRY_BURST": 5,
        "DEVICE_MEMORY_TTL_SECONDS": 3600,
        "MAX_MESSAGE_BYTES": 4096,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФЕЙКОВЫЙ ТРАНСПОРТ И ЧАСЫ
# =============================================================================

class FakeTransport:
    """Транспорт в памяти: запоминает кадры, закрытия и пинги."""

    def __init__(self, auto_pong: bool = True) -> None:
        self.open = True
        self.sent: list[str] = []
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.terminated = False
        self.pings = 0
        self.auto_pong = auto_pong

    @property
    def is_open(self) -> bool:
        return self.open

    @property
    def frames(self) -> list[dict[str, Any]]:
        return [json.loads(text) for text in self.sent]

    async def send_text(self, data: str) -> None:
        self.sent.append(data)

    async def close(self, code: int, reason: str = "") -> None:
        self.open = False
        self.close_code = code
        self.close_reason = reason

    def terminate(self) -> None:
        self.open = False
        self.terminated = True

    async def ping(self, on_pong: Callable[[], None]) -> None:
        self.pings += 1
        if self.auto_pong:
            on_pong()


class ManualClock:
    """Часы, которые двигает тест."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def memory(clock: ManualClock) -> DeviceMemory:
    return DeviceMemory(ttl_seconds=3600, clock=clock)


@pytest.fixture
def handler(registry: RoomRegistry, memory: DeviceMemory, clock: ManualClock) -> ConnectionHandler:
    return ConnectionHandler(registry, memory, rate_per_sec=5, burst=5, clock=clock)


@pytest.fixture
def connect(handler: ConnectionHandler) -> Callable[..., Any]:
    """Фабрика соединений: возвращает (Connection, FakeTransport)."""

    async def _connect(remote: str = "127.0.0.1:5000", auto_pong: bool = True) -> tuple[Connection, FakeTransport]:
        transport = FakeTransport(auto_pong=auto_pong)
        conn = await handler.register(transport, remote=remote)
        return conn, transport

    return _connect


@pytest.fixture
def make_connection(clock: ManualClock) -> Callable[..., tuple[Connection, FakeTransport]]:
    """Соединение вне обработчика (для тестов реестра и лимитера)."""

    def _make(remote: str = "127.0.0.1:6000") -> tuple[Connection, FakeTransport]:
        transport = FakeTransport()
        return Connection(transport=transport, remote=remote), transport

    return _make
