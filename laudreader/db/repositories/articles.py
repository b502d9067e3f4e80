"""Repository for articles."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from laudreader.db.models import Article, ArticleStatus
from laudreader.db.repositories.base import BaseRepository

# Columns copied by a full-row update; id and created_at never change
_MUTABLE_COLUMNS = (
    "title",
    "source_url",
    "domain",
    "extracted_text",
    "status",
    "generation_progress",
    "generation_error",
    "audio_file_path",
    "audio_file_size_bytes",
    "duration_ms",
    "playback_position_ms",
    "last_played_at",
)


class ArticleRepository(BaseRepository[Article]):
    """Repository for article operations.

    Every targeted update is a single UPDATE statement so concurrent writers
    (generation progress, position tracking) never overwrite each other's
    columns.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, Article)

    async def get_all(self) -> List[Article]:
        """Get all articles, newest first."""
        stmt = select(Article).order_by(Article.created_at.desc(), Article.id.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def insert(self, article: Article) -> int:
        """Insert an article row and return its new id."""
        self.session.add(article)
        await self.session.flush()
        return article.id

    async def update_row(self, article: Article) -> bool:
        """Overwrite all mutable columns of an existing row."""
        values = {name: getattr(article, name) for name in _MUTABLE_COLUMNS}
        return await self._update(article.id, **values)

    async def update_status(self, article_id: int, status: ArticleStatus) -> bool:
        """Set article status."""
        return await self._update(article_id, status=status)

    async def update_progress(self, article_id: int, progress: int) -> bool:
        """Set generation progress percent."""
        return await self._update(article_id, generation_progress=progress)

    async def update_audio_ready(
        self,
        article_id: int,
        path: str,
        size_bytes: int,
        duration_ms: int,
    ) -> bool:
        """Record the finished audio file and mark the article READY."""
        return await self._update(
            article_id,
            audio_file_path=path,
            audio_file_size_bytes=size_bytes,
            duration_ms=duration_ms,
            generation_progress=100,
            generation_error=None,
            status=ArticleStatus.READY,
        )

    async def update_generation_error(
        self, article_id: int, error: Optional[str]
    ) -> bool:
        """Set or clear the last generation failure reason."""
        return await self._update(article_id, generation_error=error)

    async def update_playback_position(
        self, article_id: int, position_ms: int, played_at: datetime
    ) -> bool:
        """Persist playback position and last played timestamp."""
        return await self._update(
            article_id,
            playback_position_ms=max(0, position_ms),
            last_played_at=played_at,
        )

    async def update_duration(self, article_id: int, duration_ms: int) -> bool:
        """Set duration once the playback engine has resolved it."""
        return await self._update(article_id, duration_ms=duration_ms)

    async def get_first_with_status(self, status: ArticleStatus) -> Optional[Article]:
        """Get any one article with the given status."""
        stmt = select(Article).where(Article.status == status).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_with_status(self, status: ArticleStatus) -> List[Article]:
        """Get all articles with the given status, oldest first."""
        stmt = (
            select(Article)
            .where(Article.status == status)
            .order_by(Article.created_at, Article.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _update(self, article_id: int, **values) -> bool:
        stmt = update(Article).where(Article.id == article_id).values(**values)
        result = await self.session.execute(stmt)
        return result.rowcount > 0
