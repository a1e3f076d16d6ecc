# src/config/__init__.py
"""
Конфигурация ретранслятора (config/config.json + переменные окружения).
"""

from src.config.loader import RelaySettings, Settings, get_settings, settings

__all__ = ["RelaySettings", "Settings", "get_settings", "settings"]
