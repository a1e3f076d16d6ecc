# src/shared/models/relay_dto.py
"""
Исходящие кадры протокола ретранслятора.

Необязательные поля со значением None в кадр не попадают.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class _Frame(BaseModel):
    """Базовый кадр."""

    model_config = ConfigDict(frozen=True)

    def to_wire(self) -> dict[str, Any]:
        """Словарь для отправки клиенту."""
        return self.model_dump(exclude_none=True)


class HelloAckFrame(_Frame):
    """Подтверждение рукопожатия."""
    type: Literal["hello-ack"] = "hello-ack"
    role: str
    deviceId: str
    displayName: str | None = None
    routeId: str | None = None
    direction: str | None = None


class TelemetryFrame(_Frame):
    """Телеметрия для зрителей (рассылка и догоняющий снимок)."""
    type: Literal["telemetry"] = "telemetry"
    deviceId: str
    lat: int | float
    lng: int | float
    ts: int | float
    speed: int | float | None = None
    heading: int | float | None = None
    displayName: str | None = None
    routeId: str | None = None
    direction: str | None = None


class ErrorFrame(_Frame):
    """Ошибка протокола."""
    type: Literal["error"] = "error"
    error: str


class InfoFrame(_Frame):
    """Информационное сообщение (вытеснение водителя)."""
    type: Literal["info"] = "info"
    message: str
