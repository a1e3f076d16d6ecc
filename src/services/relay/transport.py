# src/services/relay/transport.py
"""
WebSocket-транспорт на библиотеке websockets.

WebSocketTransport адаптирует серверное соединение к интерфейсу Transport,
RelayServer принимает сокеты и читает кадры в ConnectionHandler.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed, ConnectionClosedError
from websockets.protocol import State

from src.common.constants import TypeMsg
from src.common.logger import log_debug, log_error, log_info
from src.services.relay.handler import ConnectionHandler


class WebSocketTransport:
    """Адаптер ServerConnection -> Transport."""

    def __init__(self, websocket: ServerConnection) -> None:
        self._ws = websocket
        self._closing: asyncio.Task | None = None

    @property
    def is_open(self) -> bool:
        return self._ws.state is State.OPEN

    async def send_text(self, data: str) -> None:
        try:
            await self._ws.send(data)
        except ConnectionClosed:
            await log_debug(f"Send to closed socket {self.remote}")

    async def close(self, code: int, reason: str = "") -> None:
        """
        Начать закрывающее рукопожатие.

        Не ждёт ответа пира: закрытие идёт фоновой задачей.
        """
        if self._closing is None:
            self._closing = asyncio.create_task(self._ws.close(code, reason))

    def terminate(self) -> None:
        self._ws.transport.abort()

    async def ping(self, on_pong: Callable[[], None]) -> None:
        try:
            pong_waiter = await self._ws.ping()
        except ConnectionClosed:
            return

        def _on_done(future: asyncio.Future) -> None:
            if not future.cancelled() and future.exception() is None:
                on_pong()

        pong_waiter.add_done_callback(_on_done)

    @property
    def remote(self) -> str | None:
        address = self._ws.remote_address
        if not address:
            return None
        return f"{address[0]}:{address[1]}"


class RelayServer:
    """Слушающий WebSocket-сервер ретранслятора."""

    def __init__(
        self,
        handler: ConnectionHandler,
        host: str,
        port: int,
        max_message_bytes: int = 65536,
    ) -> None:
        self._handler = handler
        self._host = host
        self._port = port
        self._max_size = max_message_bytes
        self._server: Server | None = None

    @property
    def is_serving(self) -> bool:
        return self._server is not None

    async def start(self) -> None:
        """Начать приём соединений."""
        if self._server is not None:
            return

        # Встроенный keepalive отключён: пинги шлёт LivenessMonitor
        self._server = await serve(
            self._serve_connection,
            self._host,
            self._port,
            ping_interval=None,
            max_size=self._max_size,
        )
        await log_info(f"WS relay running on ws://{self._host}:{self._port}", type_msg=TypeMsg.INFO)

    async def stop(self) -> None:
        """Оборвать все соединения и перестать принимать новые."""
        await self._handler.shutdown()

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
            await log_info("WS relay stopped", type_msg=TypeMsg.INFO)

    async def _serve_connection(self, websocket: ServerConnection) -> None:
        transport = WebSocketTransport(websocket)
        conn = await self._handler.register(transport, remote=transport.remote)
        try:
            async for message in websocket:
                await self._handler.handle_message(conn, message)
        except ConnectionClosedError as e:
            await log_debug(f"Socket error {conn.remote}: {e}")
        except Exception as e:
            await log_error(f"Socket handler failure {conn.remote}: {e}", exc_info=True)
        finally:
            await self._handler.close_connection(conn)
