"""Tests for article status transitions and playback position tracking."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from laudreader.db.models import ArticleStatus
from laudreader.notifications import MessageQueue
from laudreader.player.tracker import PlaybackTracker, PlayerState, TapResult
from laudreader.store import ArticleStore
from laudreader.tts.coordinator import GenerationCoordinator
from tests.conftest import add_ready_article, make_article
from tests.fakes.fake_engine import FakePlaybackEngine
from tests.fakes.fake_synth import FakeSynthesizer


@pytest.fixture
def engine() -> FakePlaybackEngine:
    return FakePlaybackEngine(resolved_duration_ms=60_000)


@pytest.fixture
async def tracker(store: ArticleStore, engine: FakePlaybackEngine, messages: MessageQueue):
    tracker = PlaybackTracker(
        store, engine, messages=messages, save_interval_sec=60, seek_step_ms=15_000
    )
    yield tracker
    await tracker.close()


class TestPlaybackLifecycle:

    async def test_play_binds_article_and_marks_playing(
        self, store, audio_dir, tracker: PlaybackTracker, engine: FakePlaybackEngine
    ):
        article = await add_ready_article(store, audio_dir, position_ms=4000)

        assert await tracker.on_article_tap(article) is TapResult.STARTED

        assert engine.loaded == [(article.audio_file_path, 4000)]
        assert engine.is_playing
        assert tracker.state.article_id == article.id
        assert tracker.state.is_playing
        assert tracker.state.duration_ms == 60_000
        stored = await store.get_by_id(article.id)
        assert stored.status is ArticleStatus.PLAYING
        assert stored.duration_ms == 60_000

    async def test_tap_toggles_pause_and_resume(
        self, store, audio_dir, tracker: PlaybackTracker, engine: FakePlaybackEngine
    ):
        article = await add_ready_article(store, audio_dir)
        await tracker.on_article_tap(article)

        assert await tracker.on_article_tap(article) is TapResult.PAUSED
        assert not engine.is_playing
        assert not tracker.state.is_playing
        await tracker.flush()
        assert (await store.get_by_id(article.id)).status is ArticleStatus.PLAYING

        assert await tracker.on_article_tap(article) is TapResult.RESUMED
        assert engine.is_playing
        assert len(engine.loaded) == 1

    async def test_pause_saves_position(
        self, store, audio_dir, tracker: PlaybackTracker, engine: FakePlaybackEngine
    ):
        article = await add_ready_article(store, audio_dir)
        await tracker.on_article_tap(article)
        engine.advance(7_500)

        tracker.toggle_play_pause()
        await tracker.flush()

        stored = await store.get_by_id(article.id)
        assert stored.playback_position_ms == 7_500
        assert stored.last_played_at is not None
        assert stored.status is ArticleStatus.PLAYING

    async def test_position_saved_periodically_while_playing(self, store, audio_dir):
        engine = FakePlaybackEngine()
        tracker = PlaybackTracker(store, engine, save_interval_sec=0.01)
        article = await add_ready_article(store, audio_dir)
        await tracker.on_article_tap(article)
        engine.advance(3_000)

        for _ in range(100):
            await asyncio.sleep(0.01)
            if (await store.get_by_id(article.id)).playback_position_ms == 3_000:
                break

        assert (await store.get_by_id(article.id)).playback_position_ms == 3_000
        assert tracker.state.position_ms == 3_000
        await tracker.close()

    async def test_completion_marks_played(
        self, store, audio_dir, tracker: PlaybackTracker, engine: FakePlaybackEngine
    ):
        article = await add_ready_article(store, audio_dir)
        await tracker.on_article_tap(article)

        engine.finish()
        await tracker.flush()

        stored = await store.get_by_id(article.id)
        assert stored.status is ArticleStatus.PLAYED
        assert stored.playback_position_ms == 60_000
        assert tracker.state == PlayerState()

    async def test_switching_articles_returns_previous_to_ready(
        self, store, audio_dir, tracker: PlaybackTracker, engine: FakePlaybackEngine
    ):
        first = await add_ready_article(store, audio_dir, title="First")
        second = await add_ready_article(store, audio_dir, title="Second", minutes=1)
        await tracker.on_article_tap(first)
        engine.advance(2_000)

        assert await tracker.on_article_tap(second) is TapResult.STARTED
        await tracker.flush()

        previous = await store.get_by_id(first.id)
        assert previous.status is ArticleStatus.READY
        assert previous.playback_position_ms == 2_000
        assert (await store.get_by_id(second.id)).status is ArticleStatus.PLAYING
        assert tracker.state.article_id == second.id

    async def test_played_article_keeps_played_status_when_switched_away(
        self, store, audio_dir, tracker: PlaybackTracker, engine: FakePlaybackEngine
    ):
        first = await add_ready_article(store, audio_dir, title="First")
        second = await add_ready_article(store, audio_dir, title="Second", minutes=1)
        await tracker.on_article_tap(first)
        await tracker.mark_as_played(await store.get_by_id(first.id))

        await tracker.on_article_tap(second)

        assert (await store.get_by_id(first.id)).status is ArticleStatus.PLAYED


class SlowFirstWriteStore(ArticleStore):
    """Store whose first position write stalls until others are queued."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.first_write_started = asyncio.Event()

    async def update_playback_position(self, article_id, position_ms, played_at=None):
        if not self.first_write_started.is_set():
            self.first_write_started.set()
            await asyncio.sleep(0.3)
        return await super().update_playback_position(article_id, position_ms, played_at)


class TestPositionWriteOrdering:

    @pytest.fixture
    async def slow_store(self, session_factory) -> SlowFirstWriteStore:
        return SlowFirstWriteStore(session_factory)

    async def test_slow_periodic_save_does_not_overwrite_pause(self, slow_store, audio_dir):
        engine = FakePlaybackEngine()
        tracker = PlaybackTracker(slow_store, engine, save_interval_sec=0.01)
        article = await add_ready_article(slow_store, audio_dir)
        await tracker.on_article_tap(article)
        engine.advance(3_000)
        await asyncio.wait_for(slow_store.first_write_started.wait(), timeout=2)

        engine.advance(4_000)
        tracker.toggle_play_pause()
        await tracker.flush()

        assert (await slow_store.get_by_id(article.id)).playback_position_ms == 7_000
        await tracker.close()

    async def test_slow_periodic_save_does_not_overwrite_reset(self, slow_store, audio_dir):
        engine = FakePlaybackEngine()
        tracker = PlaybackTracker(slow_store, engine, save_interval_sec=0.01)
        article = await add_ready_article(slow_store, audio_dir)
        await tracker.on_article_tap(article)
        engine.advance(3_000)
        await asyncio.wait_for(slow_store.first_write_started.wait(), timeout=2)

        tracker.toggle_play_pause()
        await tracker.mark_as_unplayed(await slow_store.get_by_id(article.id))
        await tracker.flush()

        stored = await slow_store.get_by_id(article.id)
        assert stored.playback_position_ms == 0
        assert stored.status is ArticleStatus.READY
        await tracker.close()


class TestTapEdgeCases:

    async def test_generating_article_is_not_playable(
        self, store, tracker: PlaybackTracker, messages: MessageQueue, engine
    ):
        article_id = await store.insert(make_article())
        article = await store.get_by_id(article_id)

        assert await tracker.on_article_tap(article) is TapResult.STILL_GENERATING
        assert messages.drain() == ["Still generating audio..."]
        assert engine.loaded == []

    async def test_missing_audio_file(
        self, store, audio_dir, tracker: PlaybackTracker, messages: MessageQueue
    ):
        article = await add_ready_article(store, audio_dir)
        Path(article.audio_file_path).unlink()

        assert await tracker.on_article_tap(article) is TapResult.UNAVAILABLE
        assert messages.drain() == ["Audio file not found"]
        assert not tracker.state.is_loaded
        assert (await store.get_by_id(article.id)).status is ArticleStatus.READY


class TestSeek:

    async def test_seek_forward_and_back_save_position(
        self, store, audio_dir, tracker: PlaybackTracker, engine: FakePlaybackEngine
    ):
        article = await add_ready_article(store, audio_dir, position_ms=1_000)
        await tracker.on_article_tap(article)

        assert await tracker.seek_forward() == 16_000
        assert (await store.get_by_id(article.id)).playback_position_ms == 16_000

        assert await tracker.seek_back() == 1_000
        assert await tracker.seek_back() == 0
        assert (await store.get_by_id(article.id)).playback_position_ms == 0

    async def test_seek_without_article_does_nothing(self, tracker: PlaybackTracker):
        assert await tracker.seek_forward() == 0


class TestMarking:

    async def test_mark_generating_is_rejected(self, store, tracker: PlaybackTracker):
        article = await store.get_by_id(await store.insert(make_article()))
        assert await tracker.mark_as_played(article) is False
        assert await tracker.mark_as_unplayed(article) is False

    async def test_unplayed_resets_position(
        self, store, audio_dir, tracker: PlaybackTracker
    ):
        article = await add_ready_article(
            store, audio_dir, status=ArticleStatus.PLAYED, position_ms=30_000
        )

        assert await tracker.mark_as_unplayed(article) is True

        stored = await store.get_by_id(article.id)
        assert stored.status is ArticleStatus.READY
        assert stored.playback_position_ms == 0

    async def test_unplayed_rewinds_loaded_article(
        self, store, audio_dir, tracker: PlaybackTracker, engine: FakePlaybackEngine
    ):
        article = await add_ready_article(store, audio_dir)
        await tracker.on_article_tap(article)
        engine.advance(9_000)

        await tracker.mark_as_unplayed(await store.get_by_id(article.id))

        assert engine.position_ms == 0
        assert tracker.state.position_ms == 0


class TestDeleteAndRestore:

    async def test_delete_bound_article_stops_playback(
        self, store, audio_dir, tracker: PlaybackTracker, engine: FakePlaybackEngine,
        messages: MessageQueue,
    ):
        article = await add_ready_article(store, audio_dir)
        await tracker.on_article_tap(article)
        messages.clear()

        deleted = await tracker.delete_article(await store.get_by_id(article.id))

        assert deleted.id == article.id
        assert not engine.is_playing
        assert not tracker.state.is_loaded
        assert not Path(article.audio_file_path).exists()
        assert await store.get_by_id(article.id) is None
        assert messages.drain() == ["Article deleted"]

    async def test_restore_reinserts_snapshot(
        self, store, audio_dir, tracker: PlaybackTracker, messages: MessageQueue
    ):
        article = await add_ready_article(store, audio_dir, position_ms=12_000)
        snapshot = await tracker.delete_article(article)

        assert await tracker.restore_article(snapshot) == article.id

        restored = await store.get_by_id(article.id)
        assert restored.title == article.title
        assert restored.playback_position_ms == 12_000
        assert restored.status is ArticleStatus.GENERATING
        assert restored.audio_file_path is None
        assert messages.latest == "Article restored"

    async def test_restore_regenerates_audio_and_keeps_messages(
        self, store, audio_dir, engine: FakePlaybackEngine, messages: MessageQueue
    ):
        coordinator = GenerationCoordinator(
            store, FakeSynthesizer(), audio_dir=audio_dir, messages=messages
        )
        tracker = PlaybackTracker(store, engine, messages=messages, coordinator=coordinator)
        article = await add_ready_article(store, audio_dir, position_ms=5_000)
        messages.post("Article added")
        snapshot = await tracker.delete_article(article)

        await tracker.restore_article(snapshot)
        await coordinator.wait_until_idle()

        restored = await store.get_by_id(article.id)
        assert restored.status is ArticleStatus.READY
        assert restored.playback_position_ms == 5_000
        assert Path(restored.audio_file_path).exists()
        assert messages.drain() == ["Article added", "Article deleted", "Article restored"]
        assert await tracker.on_article_tap(restored) is TapResult.STARTED
        assert engine.loaded == [(restored.audio_file_path, 5_000)]
        await tracker.close()


async def test_watch_player_state_sees_changes(
    store, audio_dir, tracker: PlaybackTracker
):
    article = await add_ready_article(store, audio_dir)
    stream = tracker.watch_player_state()
    assert await anext(stream) == PlayerState()

    await tracker.on_article_tap(article)

    state = await asyncio.wait_for(anext(stream), timeout=2)
    assert state.article_id == article.id
    await stream.aclose()
