# src/services/relay/app.py
"""
FastAPI приложение ретранслятора геолокации.

WebSocket (отдельный порт RELAY_WS_PORT):
- hello / telemetry от водителей и зрителей

REST endpoints:
- GET /health — проверка здоровья
- GET /stats — статистика комнат и соединений
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from pydantic import BaseModel

from src.common.logger import setup_logging
from src.config import settings
from src.services.relay.device_memory import DeviceMemory
from src.services.relay.handler import ConnectionHandler
from src.services.relay.liveness import LivenessMonitor
from src.services.relay.room_registry import RoomRegistry
from src.services.relay.transport import RelayServer
from src.shared.models.common import HealthStatus


SERVICE_NAME = "location_relay"


# === MODELS ===

class StatsResponse(BaseModel):
    """Статистика ретранслятора."""
    active_connections: int
    total_connections_ever: int
    rooms: int
    drivers: int
    viewers: int
    snapshots: int
    replaced_drivers: int
    remembered_devices: int
    telemetry_accepted: int
    telemetry_rate_limited: int
    rejected_frames: int
    liveness_terminated: int


# === COMPONENTS ===

registry = RoomRegistry()
memory = DeviceMemory(ttl_seconds=settings.relay.DEVICE_MEMORY_TTL_SECONDS)
handler = ConnectionHandler(
    registry,
    memory,
    rate_per_sec=settings.relay.TELEMETRY_RATE_PER_SEC,
    burst=settings.relay.TELEMETRY_BURST,
)
monitor = LivenessMonitor(handler, interval_seconds=settings.relay.heartbeat_seconds)
relay_server = RelayServer(
    handler,
    host=settings.relay.RELAY_HOST,
    port=settings.relay.RELAY_WS_PORT,
    max_message_bytes=settings.relay.MAX_MESSAGE_BYTES,
)

_started_at = time.monotonic()


# === LIFESPAN ===

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    setup_logging()

    # Startup
    await relay_server.start()
    await monitor.start()

    yield

    # Shutdown: heartbeat, затем соединения, затем слушающий сокет
    await monitor.stop()
    await relay_server.stop()


# === APP ===

app = FastAPI(
    title="Location Relay",
    description="WebSocket-ретранслятор телеметрии водителя для зрителей.",
    version=settings.system.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# === HEALTH CHECK ===

@app.get("/health", response_model=HealthStatus, tags=["Health"])
async def health_check() -> HealthStatus:
    """Проверка здоровья сервиса."""
    return HealthStatus(
        status="healthy" if relay_server.is_serving else "degraded",
        service=SERVICE_NAME,
        version=settings.system.VERSION,
        uptime_seconds=round(time.monotonic() - _started_at, 3),
    )


# === STATS ===

@app.get("/stats", response_model=StatsResponse, tags=["Stats"])
async def get_stats() -> StatsResponse:
    """Получить статистику ретранслятора."""
    return StatsResponse(
        **handler.get_stats(),
        **registry.get_stats(),
    )


# === STARTUP ===

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.relay.RELAY_HOST, port=settings.relay.RELAY_HTTP_PORT)
