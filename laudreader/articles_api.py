"""REST API for articles, playback and user messages."""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse
from pydantic import BaseModel, HttpUrl

from laudreader.db.models import Article, ArticleStatus
from laudreader.dependencies import (
    ArticleDep,
    CoordinatorDep,
    LibraryDep,
    MessagesDep,
    StoreDep,
    TrackerDep,
)
from laudreader.player.tracker import PlayerState

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/articles", tags=["Articles"])
player_router = APIRouter(prefix="/player", tags=["Player"])
messages_router = APIRouter(prefix="/messages", tags=["Messages"])


# Pydantic models for API
class ArticleCreate(BaseModel):
    url: HttpUrl


class ArticleResponse(BaseModel):
    id: int
    title: str
    source_url: str
    domain: str
    status: str
    generation_progress: int
    generation_error: Optional[str]
    generating: bool
    audio_file_size_bytes: int
    duration_ms: int
    playback_position_ms: int
    last_played_at: Optional[str]
    created_at: str
    text_length: int


class ArticleSnapshot(BaseModel):
    """Full article row, as returned by DELETE and accepted by restore."""
    id: int
    title: str
    source_url: str
    domain: str
    extracted_text: str
    status: ArticleStatus
    generation_progress: int = 0
    generation_error: Optional[str] = None
    audio_file_path: Optional[str] = None
    audio_file_size_bytes: int = 0
    duration_ms: int = 0
    playback_position_ms: int = 0
    last_played_at: Optional[datetime] = None
    created_at: datetime


class PlayerResponse(BaseModel):
    article_id: Optional[int]
    title: str
    is_playing: bool
    position_ms: int
    duration_ms: int


class TapResponse(BaseModel):
    result: str
    player: PlayerResponse


class GenerateResponse(BaseModel):
    article_id: int
    started: bool


def _article_to_response(article: Article, generating: bool = False) -> ArticleResponse:
    return ArticleResponse(
        id=article.id,
        title=article.title,
        source_url=article.source_url,
        domain=article.domain,
        status=article.status.value,
        generation_progress=article.generation_progress,
        generation_error=article.generation_error,
        generating=generating,
        audio_file_size_bytes=article.audio_file_size_bytes,
        duration_ms=article.duration_ms,
        playback_position_ms=article.playback_position_ms,
        last_played_at=article.last_played_at.isoformat() if article.last_played_at else None,
        created_at=article.created_at.isoformat(),
        text_length=len(article.extracted_text),
    )


def _article_to_snapshot(article: Article) -> ArticleSnapshot:
    return ArticleSnapshot(
        id=article.id,
        title=article.title,
        source_url=article.source_url,
        domain=article.domain,
        extracted_text=article.extracted_text,
        status=article.status,
        generation_progress=article.generation_progress,
        generation_error=article.generation_error,
        audio_file_path=article.audio_file_path,
        audio_file_size_bytes=article.audio_file_size_bytes,
        duration_ms=article.duration_ms,
        playback_position_ms=article.playback_position_ms,
        last_played_at=article.last_played_at,
        created_at=article.created_at,
    )


def _player_to_response(state: PlayerState) -> PlayerResponse:
    return PlayerResponse(
        article_id=state.article_id if state.is_loaded else None,
        title=state.title,
        is_playing=state.is_playing,
        position_ms=state.position_ms,
        duration_ms=state.duration_ms,
    )


@router.get("", response_model=List[ArticleResponse])
async def list_articles(store: StoreDep, coordinator: CoordinatorDep):
    """List all articles, newest first."""
    articles = await store.get_all()
    return [
        _article_to_response(a, generating=coordinator.has_active_job(a.id))
        for a in articles
    ]


@router.post("", response_model=ArticleResponse, status_code=201)
async def add_article(
    data: ArticleCreate,
    library: LibraryDep,
    store: StoreDep,
    coordinator: CoordinatorDep,
    messages: MessagesDep,
):
    """Extract an article from a URL and start generating its audio."""
    if not await library.credentials.is_signed_in():
        raise HTTPException(status_code=401, detail="Please sign in with Google first")

    article_id = await library.add_article_from_url(str(data.url))
    if article_id is None:
        raise HTTPException(status_code=422, detail=messages.latest or "Failed to add article")

    article = await store.get_by_id(article_id)
    return _article_to_response(article, generating=coordinator.has_active_job(article_id))


@router.post("/restore", response_model=ArticleResponse, status_code=201)
async def restore_article(
    data: ArticleSnapshot, tracker: TrackerDep, store: StoreDep, coordinator: CoordinatorDep
):
    """Undo a delete; audio removed by the delete is generated again."""
    if await store.get_by_id(data.id) is not None:
        raise HTTPException(status_code=409, detail="Article already exists")
    article_id = await tracker.restore_article(Article(**data.model_dump()))
    return _article_to_response(
        await store.get_by_id(article_id), generating=coordinator.has_active_job(article_id)
    )


@router.get("/{article_id}", response_model=ArticleResponse)
async def get_article(article: ArticleDep, coordinator: CoordinatorDep):
    """Get single article by ID."""
    return _article_to_response(article, generating=coordinator.has_active_job(article.id))


@router.get("/{article_id}/audio")
async def get_article_audio(article: ArticleDep):
    """Download the generated MP3."""
    if not article.audio_file_path or not Path(article.audio_file_path).exists():
        raise HTTPException(status_code=404, detail="Audio not available")
    return FileResponse(
        article.audio_file_path,
        media_type="audio/mpeg",
        filename=f"article_{article.id}.mp3",
    )


@router.post("/{article_id}/generate", response_model=GenerateResponse)
async def generate_audio(article: ArticleDep, coordinator: CoordinatorDep):
    """Retry audio generation for an article that has no audio yet."""
    if article.status is not ArticleStatus.GENERATING:
        raise HTTPException(status_code=409, detail=f"Article is {article.status.value}")
    started = coordinator.start_generation(article.id)
    return GenerateResponse(article_id=article.id, started=started)


@router.post("/{article_id}/tap", response_model=TapResponse)
async def tap_article(article: ArticleDep, tracker: TrackerDep):
    """Play, pause or resume depending on what is loaded."""
    result = await tracker.on_article_tap(article)
    return TapResponse(result=result.value, player=_player_to_response(tracker.state))


@router.post("/{article_id}/played", response_model=ArticleResponse)
async def mark_as_played(article: ArticleDep, tracker: TrackerDep, store: StoreDep):
    if not await tracker.mark_as_played(article):
        raise HTTPException(status_code=409, detail="Still generating audio...")
    return _article_to_response(await store.get_by_id(article.id))


@router.post("/{article_id}/unplayed", response_model=ArticleResponse)
async def mark_as_unplayed(article: ArticleDep, tracker: TrackerDep, store: StoreDep):
    if not await tracker.mark_as_unplayed(article):
        raise HTTPException(status_code=409, detail="Still generating audio...")
    return _article_to_response(await store.get_by_id(article.id))


@router.delete("/{article_id}", response_model=ArticleSnapshot)
async def delete_article(article: ArticleDep, tracker: TrackerDep):
    """Delete an article and its audio; the snapshot can be restored."""
    deleted = await tracker.delete_article(article)
    return _article_to_snapshot(deleted)


@player_router.get("", response_model=PlayerResponse)
async def get_player(tracker: TrackerDep):
    return _player_to_response(tracker.state)


@player_router.post("/toggle", response_model=PlayerResponse)
async def toggle_play_pause(tracker: TrackerDep):
    tracker.toggle_play_pause()
    return _player_to_response(tracker.state)


@player_router.post("/seek-back", response_model=PlayerResponse)
async def seek_back(tracker: TrackerDep):
    await tracker.seek_back()
    return _player_to_response(tracker.state)


@player_router.post("/seek-forward", response_model=PlayerResponse)
async def seek_forward(tracker: TrackerDep):
    await tracker.seek_forward()
    return _player_to_response(tracker.state)


@messages_router.get("", response_model=List[str])
async def drain_messages(messages: MessagesDep):
    """Pop all pending user-facing messages."""
    return messages.drain()


@messages_router.delete("")
async def clear_messages(messages: MessagesDep):
    messages.clear()
    return {"success": True}
