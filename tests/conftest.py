"""Shared fixtures: a throwaway SQLite store and article factories."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from laudreader.db.connection import create_session_factory, create_tables
from laudreader.db.models import Article, ArticleStatus
from laudreader.notifications import MessageQueue
from laudreader.store import ArticleStore


@pytest.fixture
async def session_factory(tmp_path: Path):
    engine, factory = create_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)
    yield factory
    await engine.dispose()


@pytest.fixture
async def store(session_factory) -> ArticleStore:
    return ArticleStore(session_factory)


@pytest.fixture
def messages() -> MessageQueue:
    return MessageQueue()


@pytest.fixture
def audio_dir(tmp_path: Path) -> Path:
    path = tmp_path / "audio"
    path.mkdir()
    return path


_created_at = datetime(2024, 1, 1, 12, 0, 0)


def make_article(
    title: str = "Test Article",
    text: str = "First sentence. Second sentence.",
    status: ArticleStatus = ArticleStatus.GENERATING,
    minutes: int = 0,
    **fields,
) -> Article:
    """New, unsaved article; ``minutes`` offsets created_at for ordering."""
    return Article(
        title=title,
        source_url=f"https://example.com/{title.lower().replace(' ', '-')}",
        domain="example.com",
        extracted_text=text,
        status=status,
        created_at=_created_at + timedelta(minutes=minutes),
        **fields,
    )


async def add_ready_article(
    store: ArticleStore,
    audio_dir: Path,
    title: str = "Ready Article",
    position_ms: int = 0,
    status: ArticleStatus = ArticleStatus.READY,
    minutes: int = 0,
) -> Article:
    """Insert an article that has an audio file on disk and return it."""
    article_id = await store.insert(make_article(title=title, status=status, minutes=minutes))
    path = audio_dir / f"article_{article_id}.mp3"
    path.write_bytes(b"ID3-fake-audio")
    await store.update_audio_ready(article_id, str(path), path.stat().st_size, 0)
    if status is not ArticleStatus.READY:
        await store.update_status(article_id, status)
    if position_ms:
        await store.update_playback_position(article_id, position_ms)
    return await store.get_by_id(article_id)
