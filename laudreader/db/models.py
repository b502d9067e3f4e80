"""SQLAlchemy ORM models for LaudReader."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    Enum,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class ArticleStatus(enum.Enum):
    """Lifecycle status of an article's audio."""
    GENERATING = "generating"
    READY = "ready"
    PLAYING = "playing"
    PLAYED = "played"

    @property
    def is_playable(self) -> bool:
        return self in (ArticleStatus.READY, ArticleStatus.PLAYING, ArticleStatus.PLAYED)


class Article(Base):
    """Article extracted from a URL and its generated audio."""
    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Content (immutable after creation)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    source_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    extracted_text: Mapped[str] = mapped_column(Text, nullable=False)

    # Generation state
    status: Mapped[ArticleStatus] = mapped_column(
        Enum(ArticleStatus, native_enum=False, length=20),
        nullable=False,
        default=ArticleStatus.GENERATING,
        index=True,
    )
    generation_progress: Mapped[int] = mapped_column(Integer, default=0)
    generation_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    audio_file_path: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    audio_file_size_bytes: Mapped[int] = mapped_column(BigInteger, default=0)
    duration_ms: Mapped[int] = mapped_column(BigInteger, default=0)  # 0 = unknown

    # Playback state
    playback_position_ms: Mapped[int] = mapped_column(BigInteger, default=0)
    last_played_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now, index=True
    )

    def __repr__(self) -> str:
        return f"<Article id={self.id} status={self.status.name} title={self.title!r}>"
