# src/services/relay/rate_limiter.py
"""
Token bucket для ограничения частоты телеметрии водителя.
"""

from __future__ import annotations

import time
from typing import Callable


class TokenBucket:
    """
    Непрерывный token bucket.

    При каждой попытке запас пополняется на elapsed * rate (не выше capacity),
    затем списывается один токен. Без очереди: нет токена — сообщение отброшено.
    """

    def __init__(
        self,
        capacity: float = 5.0,
        rate_per_sec: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            capacity: Максимальный запас токенов (размер всплеска)
            rate_per_sec: Скорость пополнения, токенов в секунду
            clock: Монотонные часы в секундах
        """
        self.capacity = capacity
        self.rate_per_sec = rate_per_sec
        self._clock = clock
        self._tokens = capacity
        self._last: float | None = None

    @property
    def tokens(self) -> float:
        """Текущий запас (без пополнения)."""
        return self._tokens

    def try_consume(self) -> bool:
        """Списать токен. False — лимит исчерпан."""
        now = self._clock()
        if self._last is not None:
            elapsed = max(0.0, now - self._last)
            self._tokens = min(self.capacity, self._tokens + elapsed * self.rate_per_sec)
        self._last = now

        if self._tokens < 1:
            return False
        self._tokens -= 1
        return True
