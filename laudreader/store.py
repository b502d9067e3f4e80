"""Article store: transactional facade over ArticleRepository.

Each method runs in its own session and commits before returning, so every
call is one atomic unit. Mutations bump a version counter that wakes up
``watch_all()`` subscribers.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from laudreader.db.models import Article, ArticleStatus
from laudreader.db.repositories.articles import ArticleRepository

logger = logging.getLogger(__name__)


def copy_article(article: Article) -> Article:
    """Detached copy of an article with all set column values, including id.

    Unset (None) columns are left out so their defaults apply on insert.
    """
    values = {c.key: getattr(article, c.key) for c in Article.__table__.columns}
    return Article(**{key: value for key, value in values.items() if value is not None})


class ArticleStore:
    """Single source of truth for persisted articles."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._version = 0
        self._changed = asyncio.Condition()

    async def _notify(self) -> None:
        async with self._changed:
            self._version += 1
            self._changed.notify_all()

    async def get_all(self) -> List[Article]:
        """All articles, newest first."""
        async with self._session_factory() as session:
            return await ArticleRepository(session).get_all()

    async def watch_all(self) -> AsyncIterator[List[Article]]:
        """Yield the article list now and again after every change."""
        while True:
            seen = self._version
            yield await self.get_all()
            async with self._changed:
                await self._changed.wait_for(lambda: self._version != seen)

    async def get_by_id(self, article_id: int) -> Optional[Article]:
        async with self._session_factory() as session:
            return await ArticleRepository(session).get_by_id(article_id)

    async def insert(self, article: Article) -> int:
        """Insert an article (a copy of it, so snapshots can be re-inserted)."""
        async with self._session_factory() as session:
            article_id = await ArticleRepository(session).insert(copy_article(article))
            await session.commit()
        await self._notify()
        return article_id

    async def update(self, article: Article) -> bool:
        async with self._session_factory() as session:
            updated = await ArticleRepository(session).update_row(article)
            await session.commit()
        await self._notify()
        return updated

    async def delete(self, article: Article) -> bool:
        async with self._session_factory() as session:
            deleted = await ArticleRepository(session).delete(article.id)
            await session.commit()
        await self._notify()
        return deleted

    async def update_status(self, article_id: int, status: ArticleStatus) -> bool:
        async with self._session_factory() as session:
            updated = await ArticleRepository(session).update_status(article_id, status)
            await session.commit()
        await self._notify()
        return updated

    async def update_progress(self, article_id: int, percent: int) -> bool:
        async with self._session_factory() as session:
            updated = await ArticleRepository(session).update_progress(article_id, percent)
            await session.commit()
        await self._notify()
        return updated

    async def update_audio_ready(
        self, article_id: int, path: str, size_bytes: int, duration_ms: int
    ) -> bool:
        async with self._session_factory() as session:
            updated = await ArticleRepository(session).update_audio_ready(
                article_id, path, size_bytes, duration_ms
            )
            await session.commit()
        await self._notify()
        return updated

    async def update_generation_error(self, article_id: int, error: Optional[str]) -> bool:
        async with self._session_factory() as session:
            updated = await ArticleRepository(session).update_generation_error(
                article_id, error
            )
            await session.commit()
        await self._notify()
        return updated

    async def update_playback_position(
        self, article_id: int, position_ms: int, played_at: Optional[datetime] = None
    ) -> bool:
        async with self._session_factory() as session:
            updated = await ArticleRepository(session).update_playback_position(
                article_id, position_ms, played_at or datetime.now()
            )
            await session.commit()
        await self._notify()
        return updated

    async def update_duration(self, article_id: int, duration_ms: int) -> bool:
        async with self._session_factory() as session:
            updated = await ArticleRepository(session).update_duration(article_id, duration_ms)
            await session.commit()
        await self._notify()
        return updated

    async def get_first_with_status(self, status: ArticleStatus) -> Optional[Article]:
        async with self._session_factory() as session:
            return await ArticleRepository(session).get_first_with_status(status)

    async def list_with_status(self, status: ArticleStatus) -> List[Article]:
        async with self._session_factory() as session:
            return await ArticleRepository(session).list_with_status(status)
