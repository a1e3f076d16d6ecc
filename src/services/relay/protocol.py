# src/services/relay/protocol.py
"""
Валидация входящих кадров протокола.

Чистые функции: ничего не бросают и не меняют состояние.
Результат — ValidationResult с текстом причины отказа.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any

from src.common.constants import (
    ERR_INVALID_JSON,
    ERR_NOT_OBJECT,
    ConnectionRole,
    ErrorKind,
    MessageType,
)


@dataclass(frozen=True)
class ValidationResult:
    """Результат проверки кадра."""
    error: str | None = None
    kind: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def accept(cls) -> "ValidationResult":
        return cls()

    @classmethod
    def reject(cls, error: str, kind: ErrorKind = ErrorKind.VALIDATION) -> "ValidationResult":
        return cls(error=error, kind=kind)


@dataclass(frozen=True)
class ParsedFrame:
    """Разобранный кадр: либо объект, либо ошибка транспорта."""
    message: dict[str, Any] | None = None
    error: str | None = None

    @property
    def rejection(self) -> ValidationResult:
        """Отказ класса TRANSPORT для неразобранного кадра."""
        return ValidationResult.reject(self.error or ERR_INVALID_JSON, ErrorKind.TRANSPORT)


_ROLES = {role.value for role in ConnectionRole}


def _is_number(value: Any) -> bool:
    """Конечное число, не bool (NaN и Infinity отвергаются)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


def _is_device_id(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def parse_frame(raw: str | bytes) -> ParsedFrame:
    """
    Разбирает текст кадра в JSON-объект.

    Бинарные кадры декодируются как UTF-8.
    """
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        message = json.loads(raw)
    except (UnicodeDecodeError, ValueError):
        return ParsedFrame(error=ERR_INVALID_JSON)

    if not isinstance(message, dict):
        return ParsedFrame(error=ERR_NOT_OBJECT)
    return ParsedFrame(message=message)


def validate_hello(msg: Any) -> ValidationResult:
    """
    Проверяет кадр hello.

    displayName, routeId и direction пропускаются без проверки типа.
    """
    if not isinstance(msg, dict):
        return ValidationResult.reject(ERR_NOT_OBJECT, ErrorKind.PROTOCOL)
    if msg.get("type") != MessageType.HELLO.value:
        return ValidationResult.reject('Expected type "hello"', ErrorKind.PROTOCOL)
    role = msg.get("role")
    if not isinstance(role, str) or role not in _ROLES:
        return ValidationResult.reject("Role must be driver or viewer", ErrorKind.PROTOCOL)
    if not _is_device_id(msg.get("deviceId")):
        return ValidationResult.reject("deviceId required", ErrorKind.PROTOCOL)
    return ValidationResult.accept()


def validate_telemetry(msg: Any) -> ValidationResult:
    """Проверяет кадр telemetry: deviceId, lat/lng/ts и необязательные speed/heading."""
    if not isinstance(msg, dict):
        return ValidationResult.reject(ERR_NOT_OBJECT)
    if msg.get("type") != MessageType.TELEMETRY.value:
        return ValidationResult.reject('Expected type "telemetry"')
    if not _is_device_id(msg.get("deviceId")):
        return ValidationResult.reject("deviceId required")

    for field_name in ("lat", "lng", "ts"):
        if not _is_number(msg.get(field_name)):
            return ValidationResult.reject(f"{field_name} must be number")

    for field_name in ("speed", "heading"):
        if field_name in msg and not _is_number(msg[field_name]):
            return ValidationResult.reject(f"{field_name} must be number")

    return ValidationResult.accept()


def clean_text(value: Any) -> str | None:
    """Обрезанная строка или None для пустых и нестроковых значений."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None
