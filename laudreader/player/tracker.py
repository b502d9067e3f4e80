"""Article lifecycle and playback position tracking.

The tracker owns the single PlayerState and the binding between an article
and the playback engine. While the engine reports it is playing, a
background task saves the position every POSITION_SAVE_INTERVAL_SEC; the
task is cancelled on pause/stop (the final position is saved once) and
started fresh on resume.

Status transitions:
    GENERATING -> READY          generation coordinator
    READY -> PLAYING             play request
    PLAYING -> PLAYED            engine completion or "mark as played"
    READY -> PLAYED              "mark as played"
    PLAYED -> READY              "mark as unplayed" (position reset to 0)
    PLAYING -> READY             another article is bound instead
"""

import asyncio
import enum
import logging
from collections.abc import AsyncIterator, Coroutine
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Optional

from laudreader.config import settings
from laudreader.db.models import Article, ArticleStatus
from laudreader.errors import StorageFailure
from laudreader.notifications import MessageQueue
from laudreader.player.engine import PlaybackEngine
from laudreader.store import ArticleStore, copy_article
from laudreader.tts.assembler import remove_file
from laudreader.tts.coordinator import GenerationCoordinator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerState:
    """What is loaded in the player. article_id <= 0 means nothing."""
    article_id: int = -1
    title: str = ""
    is_playing: bool = False
    position_ms: int = 0
    duration_ms: int = 0

    @property
    def is_loaded(self) -> bool:
        return self.article_id > 0


class TapResult(enum.Enum):
    """What tapping an article did."""
    PAUSED = "paused"
    RESUMED = "resumed"
    STARTED = "started"
    STILL_GENERATING = "still_generating"
    UNAVAILABLE = "unavailable"


class PlaybackTracker:
    """Drives article status and playback position from engine signals."""

    def __init__(
        self,
        store: ArticleStore,
        engine: PlaybackEngine,
        messages: Optional[MessageQueue] = None,
        save_interval_sec: float = None,
        seek_step_ms: int = None,
        coordinator: Optional[GenerationCoordinator] = None,
    ):
        self.store = store
        self.engine = engine
        self.coordinator = coordinator
        self.messages = messages or MessageQueue()
        self.save_interval_sec = save_interval_sec or settings.POSITION_SAVE_INTERVAL_SEC
        self.seek_step_ms = seek_step_ms or settings.SEEK_STEP_MS

        self._state = PlayerState()
        self._state_changed = asyncio.Event()
        self._position_task: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        self._position_lock = asyncio.Lock()
        self._position_seq = 0
        self._written_seq: dict[int, int] = {}

        engine.add_listener(self)

    # ------------------------------------------------------------------
    # Player state
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlayerState:
        return self._state

    def _set_state(self, state: PlayerState) -> None:
        self._state = state
        changed, self._state_changed = self._state_changed, asyncio.Event()
        changed.set()

    async def watch_player_state(self) -> AsyncIterator[PlayerState]:
        """Yield the current PlayerState and every later change."""
        while True:
            changed = self._state_changed
            yield self._state
            await changed.wait()

    # ------------------------------------------------------------------
    # Engine signals
    # ------------------------------------------------------------------

    def on_is_playing_changed(self, is_playing: bool) -> None:
        if not self._state.is_loaded:
            return
        self._set_state(replace(
            self._state,
            is_playing=is_playing,
            position_ms=self.engine.position_ms,
            duration_ms=max(self.engine.duration_ms, 0),
        ))
        if is_playing:
            self._start_position_tracking()
        else:
            self._stop_position_tracking()
            self._spawn(self._save_position(self._state.article_id, self.engine.position_ms))

    def on_playback_completed(self) -> None:
        article_id = self._state.article_id
        position_ms = self.engine.position_ms
        self._stop_position_tracking()
        self._set_state(PlayerState())
        if article_id > 0:
            self._spawn(self._complete(article_id, position_ms))

    async def _complete(self, article_id: int, position_ms: int) -> None:
        await self._save_position(article_id, position_ms)
        await self.store.update_status(article_id, ArticleStatus.PLAYED)
        logger.info(f"Article {article_id}: played to the end")

    # ------------------------------------------------------------------
    # Position persistence
    # ------------------------------------------------------------------

    def _start_position_tracking(self) -> None:
        self._stop_position_tracking()
        article_id = self._state.article_id
        self._position_task = asyncio.create_task(
            self._track_position(article_id), name=f"track-position-{article_id}"
        )

    def _stop_position_tracking(self) -> None:
        if self._position_task is not None:
            self._position_task.cancel()
            self._position_task = None

    async def _track_position(self, article_id: int) -> None:
        while True:
            await asyncio.sleep(self.save_interval_sec)
            position_ms = self.engine.position_ms
            if self._state.article_id == article_id:
                self._set_state(replace(
                    self._state,
                    position_ms=position_ms,
                    duration_ms=max(self.engine.duration_ms, 0),
                ))
            # Shielded so cancelling the tracker never interrupts a write
            await asyncio.shield(self._spawn(self._save_position(article_id, position_ms)))

    def _save_position(self, article_id: int, position_ms: int) -> Coroutine:
        """Stamp a position write with its request order and return it.

        Writes run one at a time; a write requested before one that has
        already landed for the same article is dropped, so a slow periodic
        save can never overwrite a later pause, seek or reset.
        """
        self._position_seq += 1
        return self._write_position(self._position_seq, article_id, position_ms)

    async def _write_position(self, seq: int, article_id: int, position_ms: int) -> None:
        if article_id <= 0:
            return
        async with self._position_lock:
            if seq < self._written_seq.get(article_id, 0):
                logger.debug(f"Article {article_id}: dropping stale position {position_ms}ms")
                return
            self._written_seq[article_id] = seq
            try:
                await self.store.update_playback_position(
                    article_id, position_ms, datetime.now()
                )
            except Exception as e:
                logger.warning(f"Article {article_id}: could not save position: {e}")

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Playback bookkeeping failed: {task.exception()!r}")

    async def flush(self) -> None:
        """Wait for pending store writes triggered by engine signals."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def on_article_tap(self, article: Article) -> TapResult:
        """Pause, resume or start playback depending on what is loaded."""
        state = self._state
        if state.article_id == article.id and state.is_playing:
            self.engine.pause()
            return TapResult.PAUSED
        if state.article_id == article.id:
            self.engine.play()
            return TapResult.RESUMED

        if article.status.is_playable:
            started = await self.play_article(article)
            return TapResult.STARTED if started else TapResult.UNAVAILABLE

        self.messages.post("Still generating audio...")
        return TapResult.STILL_GENERATING

    async def play_article(self, article: Article) -> bool:
        """Bind an article to the engine and play from its stored position."""
        path = article.audio_file_path
        if not path:
            return False
        if not Path(path).exists():
            logger.warning(f"Article {article.id}: audio file missing at {path}")
            self.messages.post("Audio file not found")
            return False

        previous_id = self._state.article_id
        if previous_id == article.id:
            self.engine.play()
            return True
        if previous_id > 0:
            await self._unbind(previous_id)

        self._set_state(PlayerState(
            article_id=article.id,
            title=article.title,
            is_playing=False,
            position_ms=article.playback_position_ms,
            duration_ms=article.duration_ms,
        ))
        await self.store.update_status(article.id, ArticleStatus.PLAYING)

        await self.engine.load(path, article.playback_position_ms)
        resolved_ms = self.engine.duration_ms
        if resolved_ms > 0 and article.duration_ms == 0:
            await self.store.update_duration(article.id, resolved_ms)
        self._set_state(replace(self._state, duration_ms=max(resolved_ms, 0)))

        self.engine.play()
        logger.info(f"Article {article.id}: playing from {article.playback_position_ms}ms")
        return True

    async def _unbind(self, article_id: int) -> None:
        position_ms = self.engine.position_ms
        self._stop_position_tracking()
        self._set_state(PlayerState())
        self.engine.stop()
        await self._save_position(article_id, position_ms)

        previous = await self.store.get_by_id(article_id)
        if previous is not None and previous.status is ArticleStatus.PLAYING:
            await self.store.update_status(article_id, ArticleStatus.READY)

    def toggle_play_pause(self) -> bool:
        """Pause if playing, resume otherwise. Returns the new is_playing."""
        if not self._state.is_loaded:
            return False
        if self.engine.is_playing:
            self.engine.pause()
        else:
            self.engine.play()
        return self.engine.is_playing

    async def seek_back(self) -> int:
        return await self.seek_to(self.engine.position_ms - self.seek_step_ms)

    async def seek_forward(self) -> int:
        return await self.seek_to(self.engine.position_ms + self.seek_step_ms)

    async def seek_to(self, position_ms: int) -> int:
        """Seek the loaded article and save the new position."""
        if not self._state.is_loaded:
            return 0
        self.engine.seek_to(max(0, position_ms))
        position_ms = self.engine.position_ms
        self._set_state(replace(self._state, position_ms=position_ms))
        await self._save_position(self._state.article_id, position_ms)
        return position_ms

    async def mark_as_played(self, article: Article) -> bool:
        if article.status is ArticleStatus.GENERATING:
            return False
        if article.status is not ArticleStatus.PLAYED:
            await self.store.update_status(article.id, ArticleStatus.PLAYED)
        return True

    async def mark_as_unplayed(self, article: Article) -> bool:
        """Back to READY with the position reset to the start."""
        if article.status is ArticleStatus.GENERATING:
            return False
        if self._state.article_id == article.id:
            self.engine.seek_to(0)
            self._set_state(replace(self._state, position_ms=0))
        await self.store.update_status(article.id, ArticleStatus.READY)
        await self._save_position(article.id, 0)
        return True

    async def delete_article(self, article: Article) -> Article:
        """Remove an article and its audio. Returns the snapshot for undo."""
        if self._state.article_id == article.id:
            self._stop_position_tracking()
            self._set_state(PlayerState())
            self.engine.stop()

        if article.audio_file_path:
            try:
                remove_file(Path(article.audio_file_path))
            except StorageFailure as e:
                logger.warning(f"Article {article.id}: {e}")
                self.messages.post(f"Could not delete audio file: {e}")

        await self.store.delete(article)
        self.messages.post("Article deleted")
        logger.info(f"Article {article.id}: deleted")
        return article

    async def restore_article(self, article: Article) -> int:
        """Undo a delete by inserting the snapshot again.

        The audio file went away with the delete, so a snapshot whose file
        is gone comes back as GENERATING (position kept) and its audio is
        generated again.
        """
        snapshot = copy_article(article)
        has_audio = bool(snapshot.audio_file_path) and Path(snapshot.audio_file_path).exists()
        if snapshot.status is not ArticleStatus.GENERATING and not has_audio:
            snapshot.status = ArticleStatus.GENERATING
            snapshot.audio_file_path = None
            snapshot.audio_file_size_bytes = 0
            snapshot.duration_ms = 0
            snapshot.generation_progress = 0
            snapshot.generation_error = None

        article_id = await self.store.insert(snapshot)
        self.messages.post("Article restored")
        logger.info(f"Article {article_id}: restored ({snapshot.status.name})")

        if snapshot.status is ArticleStatus.GENERATING and self.coordinator is not None:
            self.coordinator.start_generation(article_id)
        return article_id

    async def close(self) -> None:
        """Save the position of whatever is loaded and release the engine."""
        article_id = self._state.article_id
        if article_id > 0:
            position_ms = self.engine.position_ms
            self._stop_position_tracking()
            self._set_state(PlayerState())
            self.engine.stop()
            await self._save_position(article_id, position_ms)
        await self.flush()
