# src/services/relay/room_registry.py
"""
Реестр комнат: deviceId -> один водитель и множество зрителей.

Мутации реестра выполняются целиком до первого await,
поэтому в одном event loop блокировки не нужны.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.common.constants import INFO_DRIVER_REPLACED, CloseCode, ConnectionRole, TypeMsg
from src.common.logger import log_info
from src.services.relay.connection import Connection, ConnectionState
from src.shared.models.relay_dto import InfoFrame


@dataclass(eq=False)
class Room:
    """Комната устройства."""
    device_id: str
    driver: Connection | None = None
    viewers: set[Connection] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return self.driver is None and not self.viewers


class RoomRegistry:
    """
    Владелец комнат и снимков телеметрии.

    Инварианты:
    - соединение состоит не более чем в одной комнате;
    - в комнате не более одного водителя;
    - пустая комната удаляется сразу вместе со снимком.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}
        self._snapshots: dict[str, dict[str, Any]] = {}
        self._replaced_drivers: int = 0

    def ensure_room(self, device_id: str) -> Room:
        """Вернуть комнату, создав при необходимости."""
        room = self._rooms.get(device_id)
        if room is None:
            room = Room(device_id=device_id)
            self._rooms[device_id] = room
        return room

    def get_room(self, device_id: str) -> Room | None:
        return self._rooms.get(device_id)

    def rooms(self) -> list[Room]:
        return list(self._rooms.values())

    def detach(self, conn: Connection) -> bool:
        """
        Убрать соединение из его комнаты.

        Идемпотентно. Пустая комната удаляется вместе со снимком.

        Returns:
            True если соединение было участником комнаты
        """
        if conn.device_id is None:
            return False

        room = self._rooms.get(conn.device_id)
        if room is None:
            return False

        removed = False
        if room.driver is conn:
            room.driver = None
            removed = True
        elif conn in room.viewers:
            room.viewers.discard(conn)
            removed = True

        if room.is_empty:
            del self._rooms[conn.device_id]
            self._snapshots.pop(conn.device_id, None)

        return removed

    async def assign(self, conn: Connection, device_id: str, role: ConnectionRole) -> Connection | None:
        """
        Поместить соединение в комнату устройства с указанной ролью.

        Сначала соединение отсоединяется от прежней комнаты. Прежний водитель
        комнаты получает info, закрывается кодом DRIVER_REPLACED и больше
        не принимает сообщений. Новый зритель сразу получает последний снимок.

        Returns:
            Вытесненное соединение водителя или None
        """
        self.detach(conn)
        conn.identify(role, device_id)
        room = self.ensure_room(device_id)

        if role is ConnectionRole.DRIVER:
            prior = room.driver if room.driver is not conn else None
            room.driver = conn
            if prior is not None:
                prior.transition(ConnectionState.CLOSED)
                self._replaced_drivers += 1
            await self._displace(prior, device_id)
            return prior

        room.viewers.add(conn)
        snapshot = self._snapshots.get(device_id)
        if snapshot is not None:
            await conn.send(snapshot)
        return None

    async def _displace(self, prior: Connection | None, device_id: str) -> None:
        if prior is None:
            return
        await log_info(
            f"[hello] driver replaced for {device_id} (remote={prior.remote})",
            type_msg=TypeMsg.INFO,
        )
        await prior.send(InfoFrame(message=INFO_DRIVER_REPLACED).to_wire())
        await prior.close(CloseCode.DRIVER_REPLACED, "driver replaced")

    def store_snapshot(self, device_id: str, payload: dict[str, Any]) -> None:
        """Сохранить последний принятый кадр телеметрии устройства."""
        self._snapshots[device_id] = payload

    def get_snapshot(self, device_id: str) -> dict[str, Any] | None:
        return self._snapshots.get(device_id)

    async def broadcast(self, device_id: str, payload: dict[str, Any]) -> int:
        """
        Разослать кадр всем открытым зрителям комнаты.

        Закрытые зрители пропускаются; их убирает detach.

        Returns:
            Количество получателей
        """
        room = self._rooms.get(device_id)
        if room is None:
            return 0

        sent_count = 0
        for viewer in list(room.viewers):
            if viewer.is_open and await viewer.send(payload):
                sent_count += 1
        return sent_count

    def get_stats(self) -> dict[str, int]:
        """Статистика комнат."""
        return {
            "rooms": len(self._rooms),
            "drivers": sum(1 for room in self._rooms.values() if room.driver is not None),
            "viewers": sum(len(room.viewers) for room in self._rooms.values()),
            "snapshots": len(self._snapshots),
            "replaced_drivers": self._replaced_drivers,
        }
