"""Shared utilities used across 3+ features."""

from app.shared.models import TimestampMixin
from app.shared.schemas import PaginatedResponse, PaginationParams

__all__ = [
    "ErrorResponse",
    "PaginatedResponse",
    "PaginationParams",
    "TimestampMixin",
]
