"""Utility modules."""

from app.utils.pagination import PaginationParams, get_pagination

__all__ = [
    "PaginationParams",
    "get_pagination",
]
