"""Repository module for database operations."""

from .base import BaseRepository
from .articles import ArticleRepository

__all__ = [
    "BaseRepository",
    "ArticleRepository",
]
