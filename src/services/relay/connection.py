# src/services/relay/connection.py
"""
Запись соединения и его конечный автомат.

Connection хранит состояние клиента отдельно от транспортного объекта:
связь с сокетом идёт через connection_id и интерфейс Transport.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Protocol

from src.common.constants import ConnectionRole
from src.services.relay.rate_limiter import TokenBucket


class Transport(Protocol):
    """Минимальный интерфейс сокета, нужный ретранслятору."""

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int, reason: str = "") -> None: ...

    def terminate(self) -> None: ...

    async def ping(self, on_pong: Callable[[], None]) -> None: ...


class ConnectionState(str, Enum):
    """Состояния соединения."""
    UNIDENTIFIED = "unidentified"
    DRIVER = "driver"
    VIEWER = "viewer"
    CLOSED = "closed"


class IllegalTransitionError(Exception):
    """Недопустимый переход состояния соединения."""

    def __init__(self, current: ConnectionState, target: ConnectionState) -> None:
        super().__init__(f"Переход {current.value} -> {target.value} запрещён")
        self.current = current
        self.target = target


# Повторный hello разрешён из любого идентифицированного состояния
ALLOWED_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.UNIDENTIFIED: frozenset(
        {ConnectionState.DRIVER, ConnectionState.VIEWER, ConnectionState.CLOSED}
    ),
    ConnectionState.DRIVER: frozenset(
        {ConnectionState.DRIVER, ConnectionState.VIEWER, ConnectionState.CLOSED}
    ),
    ConnectionState.VIEWER: frozenset(
        {ConnectionState.DRIVER, ConnectionState.VIEWER, ConnectionState.CLOSED}
    ),
    ConnectionState.CLOSED: frozenset(),
}


def state_for_role(role: ConnectionRole) -> ConnectionState:
    """Состояние, соответствующее объявленной роли."""
    return ConnectionState.DRIVER if role is ConnectionRole.DRIVER else ConnectionState.VIEWER


def encode_frame(payload: dict[str, Any]) -> str:
    """JSON-текст кадра."""
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


@dataclass(eq=False)
class Connection:
    """Одно принятое WebSocket-соединение."""
    transport: Transport
    bucket: TokenBucket = field(default_factory=TokenBucket)
    remote: str | None = None
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: ConnectionState = ConnectionState.UNIDENTIFIED
    device_id: str | None = None
    is_alive: bool = True
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def role(self) -> ConnectionRole | None:
        """Роль в идентифицированном состоянии, иначе None."""
        if self.state is ConnectionState.DRIVER:
            return ConnectionRole.DRIVER
        if self.state is ConnectionState.VIEWER:
            return ConnectionRole.VIEWER
        return None

    @property
    def is_identified(self) -> bool:
        return self.role is not None

    @property
    def is_closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    @property
    def is_open(self) -> bool:
        """Открыт ли сокет для записи."""
        return self.transport.is_open

    def can_transition(self, target: ConnectionState) -> bool:
        return target in ALLOWED_TRANSITIONS[self.state]

    def transition(self, target: ConnectionState) -> None:
        """Перевести соединение в новое состояние по таблице переходов."""
        if not self.can_transition(target):
            raise IllegalTransitionError(self.state, target)
        self.state = target

    def identify(self, role: ConnectionRole, device_id: str) -> None:
        """Привязать роль и устройство (hello)."""
        self.transition(state_for_role(role))
        self.device_id = device_id

    def mark_alive(self) -> None:
        """Пришёл pong."""
        self.is_alive = True

    async def send(self, payload: dict[str, Any]) -> bool:
        """
        Отправить кадр, если сокет открыт.

        Returns:
            True если кадр передан транспорту
        """
        if not self.is_open:
            return False
        await self.transport.send_text(encode_frame(payload))
        return True

    async def close(self, code: int, reason: str = "") -> None:
        """Закрыть сокет с рукопожатием."""
        if self.transport.is_open:
            await self.transport.close(code, reason)

    def terminate(self) -> None:
        """Оборвать сокет без рукопожатия."""
        self.transport.terminate()
