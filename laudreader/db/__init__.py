"""Database module for LaudReader."""

from .connection import async_session_factory, engine
from .models import Article, ArticleStatus, Base

__all__ = [
    "engine",
    "async_session_factory",
    "Base",
    "Article",
    "ArticleStatus",
]
