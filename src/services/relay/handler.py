# src/services/relay/handler.py
"""
Обработчик соединений ретранслятора.

Конечный автомат на каждое соединение:
UNIDENTIFIED -> DRIVER | VIEWER -> CLOSED.
Разбирает кадры, проводит рукопожатие, пропускает телеметрию
через лимитер и рассылает её зрителям комнаты.
"""

from __future__ import annotations

import time
from typing import Any, Callable

from src.common.constants import (
    ERR_DEVICE_MISMATCH,
    ERR_DRIVERS_ONLY,
    ERR_NO_PONG,
    ERR_RATE_LIMITED,
    ERR_UNSUPPORTED,
    CloseCode,
    ConnectionRole,
    ErrorKind,
    MessageType,
    TypeMsg,
)
from src.common.logger import log_debug, log_info, log_warning
from src.services.relay.connection import Connection, ConnectionState, Transport
from src.services.relay.device_memory import DeviceMemory
from src.services.relay.protocol import (
    ValidationResult,
    clean_text,
    parse_frame,
    validate_hello,
    validate_telemetry,
)
from src.services.relay.rate_limiter import TokenBucket
from src.services.relay.room_registry import RoomRegistry
from src.shared.models.relay_dto import ErrorFrame, HelloAckFrame, TelemetryFrame


class ConnectionHandler:
    """
    Владелец таблицы соединений.

    Реестр комнат и память устройств внедряются снаружи,
    что позволяет тестировать обработчик без сокетов.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        memory: DeviceMemory,
        rate_per_sec: float = 5.0,
        burst: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.memory = memory
        self._rate_per_sec = rate_per_sec
        self._burst = burst
        self._clock = clock

        # connection_id -> Connection
        self._connections: dict[str, Connection] = {}

        # Для статистики
        self._total_connections: int = 0
        self._telemetry_accepted: int = 0
        self._rejections: dict[ErrorKind, int] = {kind: 0 for kind in ErrorKind}

    @property
    def active_connections(self) -> int:
        return len(self._connections)

    def connections(self) -> list[Connection]:
        """Снимок таблицы соединений."""
        return list(self._connections.values())

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    async def register(self, transport: Transport, remote: str | None = None) -> Connection:
        """Завести запись для только что принятого сокета."""
        conn = Connection(
            transport=transport,
            bucket=TokenBucket(self._burst, self._rate_per_sec, clock=self._clock),
            remote=remote,
        )
        self._connections[conn.connection_id] = conn
        self._total_connections += 1
        await log_debug(f"[connect] {conn.connection_id} (remote={remote})")
        return conn

    async def close_connection(self, conn: Connection) -> None:
        """
        Закрытие сокета или ошибка транспорта в любом состоянии.

        Идемпотентно.
        """
        if not conn.is_closed:
            conn.transition(ConnectionState.CLOSED)
        self.registry.detach(conn)
        if self._connections.pop(conn.connection_id, None) is not None:
            await log_debug(
                f"[close] {conn.connection_id} device={conn.device_id or '(none)'} (remote={conn.remote})"
            )

    async def shutdown(self) -> None:
        """Оборвать все открытые соединения."""
        for conn in self.connections():
            conn.terminate()
            await self.close_connection(conn)

    # =========================================================================
    # ВХОДЯЩИЕ КАДРЫ
    # =========================================================================

    async def handle_message(self, conn: Connection, raw: str | bytes) -> None:
        """Обработать один входящий кадр."""
        if conn.is_closed:
            return

        parsed = parse_frame(raw)
        if parsed.message is None:
            await self._reject(conn, parsed.rejection)
            return

        msg = parsed.message
        msg_type = msg.get("type")

        # До идентификации допустим только hello, после него hello означает повторную подписку
        if not conn.is_identified or msg_type == MessageType.HELLO.value:
            result = validate_hello(msg)
            if not result.ok:
                await self._reject(conn, result)
                return
            await self._handle_hello(conn, msg)
            return

        if msg_type == MessageType.TELEMETRY.value:
            await self._handle_telemetry(conn, msg)
            return

        await self._reject(conn, ValidationResult.reject(ERR_UNSUPPORTED))

    async def _handle_hello(self, conn: Connection, msg: dict[str, Any]) -> None:
        """Рукопожатие или повторная подписка."""
        role = ConnectionRole(msg["role"])
        device_id: str = msg["deviceId"]

        await self.registry.assign(conn, device_id, role)

        announced_name = clean_text(msg.get("displayName"))
        self.memory.remember_name(device_id, announced_name)
        self.memory.remember_route(
            device_id,
            route_id=clean_text(msg.get("routeId")),
            direction=clean_text(msg.get("direction")),
        )
        profile = self.memory.lookup(device_id)

        ack = HelloAckFrame(
            role=role.value,
            deviceId=device_id,
            displayName=announced_name or (profile.display_name if profile else None),
            routeId=profile.route_id if profile else None,
            direction=profile.direction if profile else None,
        )

        await log_info(
            f"[hello] {role.value} subscribed to {device_id} "
            f"name={ack.displayName or '(none)'} "
            f"route={ack.routeId or '(none)'}/{ack.direction or '(none)'} (remote={conn.remote})",
            type_msg=TypeMsg.INFO,
        )
        await conn.send(ack.to_wire())

    async def _handle_telemetry(self, conn: Connection, msg: dict[str, Any]) -> None:
        """Телеметрия от водителя: проверка, лимит, слияние, рассылка."""
        if conn.role is not ConnectionRole.DRIVER:
            await self._reject(conn, ValidationResult.reject(ERR_DRIVERS_ONLY, ErrorKind.AUTHORIZATION))
            return

        result = validate_telemetry(msg)
        if not result.ok:
            await self._reject(conn, result)
            return

        device_id: str = msg["deviceId"]
        if device_id != conn.device_id:
            await self._reject(conn, ValidationResult.reject(ERR_DEVICE_MISMATCH, ErrorKind.AUTHORIZATION))
            return

        if not conn.bucket.try_consume():
            await self._reject(conn, ValidationResult.reject(ERR_RATE_LIMITED, ErrorKind.RATE))
            return

        incoming_name = clean_text(msg.get("displayName"))
        incoming_route = clean_text(msg.get("routeId"))
        incoming_direction = clean_text(msg.get("direction"))
        self.memory.remember_name(device_id, incoming_name)
        self.memory.remember_route(device_id, incoming_route, incoming_direction)
        profile = self.memory.lookup(device_id)

        frame = TelemetryFrame(
            deviceId=device_id,
            lat=msg["lat"],
            lng=msg["lng"],
            ts=msg["ts"],
            speed=msg.get("speed"),
            heading=msg.get("heading"),
            displayName=incoming_name or (profile.display_name if profile else None),
            routeId=incoming_route or (profile.route_id if profile else None),
            direction=incoming_direction or (profile.direction if profile else None),
        )
        payload = frame.to_wire()

        self.registry.store_snapshot(device_id, payload)
        recipients = await self.registry.broadcast(device_id, payload)
        self._telemetry_accepted += 1

        await log_debug(
            f"[telemetry] device={device_id} name={frame.displayName or '(none)'} "
            f"route={frame.routeId or '(none)'}/{frame.direction or '(none)'} "
            f"lat={frame.lat} lng={frame.lng} viewers={recipients}"
        )

    # =========================================================================
    # ОТКАЗЫ
    # =========================================================================

    async def _reject(self, conn: Connection, result: ValidationResult) -> None:
        """
        Исход отклонённого кадра по классу ошибки.

        RATE: тихий сброс, только журнал.
        PROTOCOL до идентификации: error и закрытие с кодом 1002.
        Остальные классы: error, соединение остаётся открытым.
        """
        kind = result.kind or ErrorKind.VALIDATION
        self._rejections[kind] += 1

        if kind is ErrorKind.RATE:
            await log_warning(f"[telemetry] rate limited device={conn.device_id}")
            return

        if kind in (ErrorKind.TRANSPORT, ErrorKind.AUTHORIZATION):
            await log_warning(f"[{kind.value}] {result.error} (device={conn.device_id or '(none)'}, remote={conn.remote})")
        else:
            await log_debug(f"[{kind.value}] {result.error} (remote={conn.remote})")

        await self._send_error(conn, result.error)

        if kind is ErrorKind.PROTOCOL and not conn.is_identified:
            await conn.close(CloseCode.PROTOCOL_ERROR, result.error or "")
            await self.close_connection(conn)

    async def terminate_unresponsive(self, conn: Connection) -> None:
        """Отказ класса LIVENESS: обрыв без рукопожатия и без error-кадра."""
        self._rejections[ErrorKind.LIVENESS] += 1
        await log_warning(
            f"[liveness] terminating {conn.connection_id} ({ERR_NO_PONG}) "
            f"device={conn.device_id or '(none)'} (remote={conn.remote})"
        )
        conn.terminate()
        await self.close_connection(conn)

    async def _send_error(self, conn: Connection, error: str | None) -> None:
        await conn.send(ErrorFrame(error=error or ERR_UNSUPPORTED).to_wire())

    def rejections(self, kind: ErrorKind) -> int:
        """Счётчик отказов указанного класса."""
        return self._rejections[kind]

    def get_stats(self) -> dict[str, int]:
        """Статистика соединений, телеметрии и отказов."""
        client_visible = (
            ErrorKind.TRANSPORT,
            ErrorKind.PROTOCOL,
            ErrorKind.AUTHORIZATION,
            ErrorKind.VALIDATION,
        )
        return {
            "active_connections": len(self._connections),
            "total_connections_ever": self._total_connections,
            "telemetry_accepted": self._telemetry_accepted,
            "telemetry_rate_limited": self._rejections[ErrorKind.RATE],
            "rejected_frames": sum(self._rejections[kind] for kind in client_visible),
            "liveness_terminated": self._rejections[ErrorKind.LIVENESS],
            "remembered_devices": len(self.memory),
        }
