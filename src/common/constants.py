# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum, IntEnum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ConnectionRole(str, Enum):
    """Роль, объявленная клиентом в hello."""
    DRIVER = "driver"
    VIEWER = "viewer"


class MessageType(str, Enum):
    """Типы кадров протокола."""
    HELLO = "hello"
    HELLO_ACK = "hello-ack"
    TELEMETRY = "telemetry"
    ERROR = "error"
    INFO = "info"


class ErrorKind(str, Enum):
    """Классы ошибок соединения."""
    TRANSPORT = "transport"          # не-JSON, не объект
    PROTOCOL = "protocol"            # неверный hello; до идентификации закрывает сокет
    AUTHORIZATION = "authorization"  # viewer шлёт телеметрию, чужой deviceId
    VALIDATION = "validation"        # кривые поля телеметрии
    RATE = "rate"                    # превышен лимит, тихий сброс
    LIVENESS = "liveness"            # нет pong


class CloseCode(IntEnum):
    """Коды закрытия WebSocket."""
    PROTOCOL_ERROR = 1002
    DRIVER_REPLACED = 4001


# Тексты ошибок, уходящие клиенту
ERR_INVALID_JSON = "Invalid JSON"
ERR_NOT_OBJECT = "Payload must be object"
ERR_DRIVERS_ONLY = "Only drivers may send telemetry"
ERR_DEVICE_MISMATCH = "Driver must send telemetry for subscribed deviceId"
ERR_UNSUPPORTED = "Unsupported message type"

# Только для журнала сервера: клиенту при сбросе ничего не уходит
ERR_RATE_LIMITED = "Telemetry rate limit exceeded"
ERR_NO_PONG = "No pong since previous sweep"

INFO_DRIVER_REPLACED = "Another driver connected"
