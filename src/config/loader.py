# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины — config/config.json.
Порты и интервал heartbeat переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


def _env_first(*names: str, default: Any = None) -> Any:
    """Первое непустое значение из перечисленных переменных окружения."""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "location_relay"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/relay.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760
    LOG_BACKUP_COUNT: int = 5

    @field_validator("LOG_FORMAT")
    @classmethod
    def check_format(cls, v: str) -> str:
        """Допустимы только colored и json."""
        if v not in ("colored", "json"):
            raise ValueError(f"Неизвестный формат логов: {v}")
        return v


class RelaySettings(BaseModel):
    """Настройки WebSocket-ретранслятора."""
    RELAY_HOST: str = "0.0.0.0"
    RELAY_WS_PORT: int = 8080
    RELAY_HTTP_PORT: int = 8081
    HEARTBEAT_MS: int = 15000
    TELEMETRY_RATE_PER_SEC: float = 5.0
    TELEMETRY_BURST: float = 5.0
    DEVICE_MEMORY_TTL_SECONDS: float = 86400.0  # 0 — хранить бессрочно
    MAX_MESSAGE_BYTES: int = 65536

    @field_validator("RELAY_WS_PORT", "RELAY_HTTP_PORT")
    @classmethod
    def check_port(cls, v: int) -> int:
        """Порт в диапазоне 1..65535."""
        if not 1 <= v <= 65535:
            raise ValueError(f"Недопустимый порт: {v}")
        return v

    @field_validator("HEARTBEAT_MS", "TELEMETRY_RATE_PER_SEC", "TELEMETRY_BURST", "MAX_MESSAGE_BYTES")
    @classmethod
    def check_positive(cls, v: float) -> float:
        """Значение должно быть положительным."""
        if v <= 0:
            raise ValueError("Значение должно быть больше нуля")
        return v

    @field_validator("DEVICE_MEMORY_TTL_SECONDS")
    @classmethod
    def check_ttl(cls, v: float) -> float:
        """TTL не может быть отрицательным."""
        if v < 0:
            raise ValueError("TTL не может быть отрицательным")
        return v

    @property
    def heartbeat_seconds(self) -> float:
        """Интервал heartbeat в секундах."""
        return self.HEARTBEAT_MS / 1000


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    relay: RelaySettings = Field(default_factory=RelaySettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_config_json(cls) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        PORT/WS_PORT и HEARTBEAT_MS переопределяются из окружения.
        """
        config_data = load_config_json()

        # Фильтруем комментарии (ключи, начинающиеся с _comment_)
        filtered_data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        return cls(
            system=SystemSettings(
                PROJECT_NAME=filtered_data.get("PROJECT_NAME", "location_relay"),
                VERSION=filtered_data.get("VERSION", "1.0.0"),
                DEBUG=filtered_data.get("DEBUG", False),
                LOG_LEVEL=filtered_data.get("LOG_LEVEL", "INFO"),
                ENVIRONMENT=os.getenv("ENVIRONMENT", filtered_data.get("ENVIRONMENT", "development")),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=os.getenv("LOG_LEVEL", filtered_data.get("LOG_LEVEL", "INFO")),
                LOG_TO_FILE=filtered_data.get("LOG_TO_FILE", False),
                LOG_FILE_PATH=filtered_data.get("LOG_FILE_PATH", "logs/relay.log"),
                LOG_FORMAT=filtered_data.get("LOG_FORMAT", "colored"),
                LOG_MAX_BYTES=filtered_data.get("LOG_MAX_BYTES", 10485760),
                LOG_BACKUP_COUNT=filtered_data.get("LOG_BACKUP_COUNT", 5),
            ),
            relay=RelaySettings(
                RELAY_HOST=os.getenv("RELAY_HOST", filtered_data.get("RELAY_HOST", "0.0.0.0")),
                RELAY_WS_PORT=int(_env_first("PORT", "WS_PORT", default=filtered_data.get("RELAY_WS_PORT", 8080))),
                RELAY_HTTP_PORT=int(os.getenv("HTTP_PORT", filtered_data.get("RELAY_HTTP_PORT", 8081))),
                HEARTBEAT_MS=int(os.getenv("HEARTBEAT_MS", filtered_data.get("HEARTBEAT_MS", 15000))),
                TELEMETRY_RATE_PER_SEC=filtered_data.get("TELEMETRY_RATE_PER_SEC", 5.0),
                TELEMETRY_BURST=filtered_data.get("TELEMETRY_BURST", 5.0),
                DEVICE_MEMORY_TTL_SECONDS=float(
                    os.getenv("DEVICE_MEMORY_TTL_SECONDS", filtered_data.get("DEVICE_MEMORY_TTL_SECONDS", 86400))
                ),
                MAX_MESSAGE_BYTES=filtered_data.get("MAX_MESSAGE_BYTES", 65536),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Использует кэширование для производительности.
    """
    from dotenv import load_dotenv

    # Загружаем .env файл
    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
