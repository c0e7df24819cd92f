# src/shared/__init__.py
"""
Общий код между слоями.

Модули:
- events: схемы событий RabbitMQ
- models: общие Pydantic-модели ответов API
"""

__all__: list[str] = []
