# src/services/relay/device_memory.py
"""
Память устройств: последнее отображаемое имя и маршрут по deviceId.

В отличие от снимка телеметрии переживает опустение комнаты.
Записи, не тронутые дольше TTL, вытесняются.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class DeviceProfile:
    """Запомненные метаданные устройства."""
    display_name: str | None = None
    route_id: str | None = None
    direction: str | None = None
    touched_at: float = 0.0


class DeviceMemory:
    """
    Хранилище метаданных устройств.

    Поля сливаются по одному: уже известное значение сохраняется,
    если следующее сообщение его не передало.
    """

    def __init__(
        self,
        ttl_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            ttl_seconds: Время жизни записи без обращений; 0 — бессрочно
            clock: Монотонные часы в секундах
        """
        self._ttl = ttl_seconds
        self._clock = clock
        self._profiles: dict[str, DeviceProfile] = {}

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, device_id: str) -> bool:
        return self.lookup(device_id) is not None

    def _expired(self, profile: DeviceProfile, now: float) -> bool:
        return self._ttl > 0 and now - profile.touched_at > self._ttl

    def _profile(self, device_id: str) -> DeviceProfile:
        now = self._clock()
        profile = self._profiles.get(device_id)
        if profile is None or self._expired(profile, now):
            profile = DeviceProfile()
            self._profiles[device_id] = profile
        profile.touched_at = now
        return profile

    def remember_name(self, device_id: str, display_name: str | None) -> None:
        """Запомнить имя, если оно передано."""
        if not display_name:
            return
        self._profile(device_id).display_name = display_name

    def remember_route(
        self,
        device_id: str,
        route_id: str | None = None,
        direction: str | None = None,
    ) -> None:
        """Запомнить маршрут и направление; пропущенные поля не затираются."""
        if not route_id and not direction:
            return
        profile = self._profile(device_id)
        if route_id:
            profile.route_id = route_id
        if direction:
            profile.direction = direction

    def lookup(self, device_id: str) -> DeviceProfile | None:
        """Профиль устройства или None. Обращение продлевает жизнь записи."""
        profile = self._profiles.get(device_id)
        if profile is None:
            return None

        now = self._clock()
        if self._expired(profile, now):
            del self._profiles[device_id]
            return None

        profile.touched_at = now
        return profile

    def prune(self) -> int:
        """
        Вытеснить просроченные записи.

        Returns:
            Количество удалённых записей
        """
        if self._ttl <= 0:
            return 0

        now = self._clock()
        expired = [
            device_id
            for device_id, profile in self._profiles.items()
            if self._expired(profile, now)
        ]
        for device_id in expired:
            del self._profiles[device_id]
        return len(expired)
