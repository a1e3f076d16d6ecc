# src/shared/models/__init__.py
"""
Общие DTO и Pydantic-модели.
"""

from src.shared.models.common import HealthStatus
from src.shared.models.relay_dto import (
    ErrorFrame,
    HelloAckFrame,
    InfoFrame,
    TelemetryFrame,
)

__all__ = [
    "HealthStatus",
    "HelloAckFrame",
    "TelemetryFrame",
    "ErrorFrame",
    "InfoFrame",
]
