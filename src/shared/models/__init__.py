# src/shared/models/__init__.py
"""
Общие Pydantic-модели.
"""

from src.shared.models.common import EntityId, ErrorResponse, HealthStatus

__all__ = [
    "EntityId",
    "ErrorResponse",
    "HealthStatus",
]
