# src/services/relay/liveness.py
"""
Периодическая проверка живости соединений (ping/pong).

Соединение, не ответившее pong с прошлого обхода, обрывается
без рукопожатия и проходит обычный путь закрытия.
"""

from __future__ import annotations

import asyncio

from src.common.constants import TypeMsg
from src.common.logger import log_debug, log_error, log_info
from src.services.relay.handler import ConnectionHandler


class LivenessMonitor:
    """Обходит все открытые соединения с фиксированным интервалом."""

    def __init__(self, handler: ConnectionHandler, interval_seconds: float) -> None:
        """
        Args:
            handler: Обработчик соединений (владелец таблицы)
            interval_seconds: Интервал между обходами
        """
        self._handler = handler
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Запустить периодический обход."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        await log_info(f"Liveness monitor запущен (interval={self._interval}s)", type_msg=TypeMsg.INFO)

    async def stop(self) -> None:
        """Остановить обход."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep()
            except Exception as e:
                # Обход не должен останавливаться из-за одного соединения
                await log_error(f"Ошибка обхода liveness: {e}", exc_info=True)

    async def sweep(self) -> int:
        """
        Один обход.

        Returns:
            Количество оборванных соединений
        """
        terminated = 0
        for conn in self._handler.connections():
            if conn.is_closed:
                continue

            if not conn.is_alive:
                await self._handler.terminate_unresponsive(conn)
                terminated += 1
                continue

            conn.is_alive = False
            await conn.transport.ping(conn.mark_alive)

        pruned = self._handler.memory.prune()
        if pruned:
            await log_debug(f"[liveness] evicted {pruned} stale device profiles")

        return terminated
