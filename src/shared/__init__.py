# src/shared/__init__.py
"""
Общий код сервиса.

Модули:
- models: DTO и Pydantic-модели кадров протокола
"""

__all__: list[str] = []
