"""Tests for the clock-driven playback engine and audio duration lookup."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from laudreader.player import engine as engine_module
from laudreader.player.engine import ClockPlaybackEngine, PlaybackEngine, read_duration_ms


class RecordingListener:

    def __init__(self, engine: ClockPlaybackEngine):
        self.engine = engine
        self.events: list[tuple] = []

    def on_is_playing_changed(self, is_playing: bool) -> None:
        self.events.append(("playing", is_playing, self.engine.position_ms))

    def on_playback_completed(self) -> None:
        self.events.append(("completed",))


@pytest.fixture
def fixed_duration(monkeypatch):
    def set_duration(ms: int):
        monkeypatch.setattr(engine_module, "read_duration_ms", lambda path: ms)
    return set_duration


@pytest.fixture
def clock_engine() -> ClockPlaybackEngine:
    return ClockPlaybackEngine()


def test_engine_satisfies_protocol(clock_engine):
    assert isinstance(clock_engine, PlaybackEngine)


class TestClockPlaybackEngine:

    async def test_load_resolves_duration_and_start(self, clock_engine, fixed_duration):
        fixed_duration(120_000)
        await clock_engine.load("/audio/a.mp3", start_ms=5_000)

        assert clock_engine.duration_ms == 120_000
        assert clock_engine.position_ms == 5_000
        assert not clock_engine.is_playing

    async def test_play_without_load_is_ignored(self, clock_engine):
        listener = RecordingListener(clock_engine)
        clock_engine.add_listener(listener)
        clock_engine.play()
        assert not clock_engine.is_playing
        assert listener.events == []

    async def test_position_advances_while_playing(self, clock_engine, fixed_duration):
        fixed_duration(0)
        await clock_engine.load("/audio/a.mp3", start_ms=1_000)
        clock_engine.play()
        await asyncio.sleep(0.05)
        clock_engine.pause()

        paused_at = clock_engine.position_ms
        assert paused_at >= 1_030
        await asyncio.sleep(0.02)
        assert clock_engine.position_ms == paused_at

    async def test_completes_at_end_of_duration(self, clock_engine, fixed_duration):
        fixed_duration(30)
        listener = RecordingListener(clock_engine)
        clock_engine.add_listener(listener)
        await clock_engine.load("/audio/a.mp3")

        clock_engine.play()
        await asyncio.sleep(0.1)

        assert listener.events == [
            ("playing", True, 0),
            ("playing", False, 30),
            ("completed",),
        ]
        assert not clock_engine.is_playing

    async def test_unknown_duration_never_completes(self, clock_engine, fixed_duration):
        fixed_duration(0)
        listener = RecordingListener(clock_engine)
        clock_engine.add_listener(listener)
        await clock_engine.load("/audio/a.mp3")

        clock_engine.play()
        await asyncio.sleep(0.05)

        assert clock_engine.is_playing
        assert ("completed",) not in listener.events
        clock_engine.stop()

    async def test_seek_clamps_to_duration(self, clock_engine, fixed_duration):
        fixed_duration(10_000)
        await clock_engine.load("/audio/a.mp3")

        clock_engine.seek_to(-50)
        assert clock_engine.position_ms == 0
        clock_engine.seek_to(50_000)
        assert clock_engine.position_ms == 10_000

    async def test_stop_reports_position_before_reset(self, clock_engine, fixed_duration):
        fixed_duration(0)
        listener = RecordingListener(clock_engine)
        clock_engine.add_listener(listener)
        await clock_engine.load("/audio/a.mp3", start_ms=8_000)
        clock_engine.play()

        clock_engine.stop()

        assert listener.events[-1][:2] == ("playing", False)
        assert listener.events[-1][2] >= 8_000
        assert clock_engine.position_ms == 0
        assert clock_engine.duration_ms == 0


class TestProbeDuration:

    def test_reads_length_from_audio_info(self, monkeypatch):
        class Info:
            length = 12.5

        class Audio:
            info = Info()

        opened = []

        def fake_file(path):
            opened.append(path)
            return Audio()

        monkeypatch.setattr(engine_module, "MutagenFile", fake_file)
        assert read_duration_ms(Path("/audio/a.mp3")) == 12_500
        assert opened == ["/audio/a.mp3"]

    def test_unrecognized_file_is_zero(self, tmp_path: Path):
        path = tmp_path / "a.mp3"
        path.write_bytes(b"not audio at all")
        assert read_duration_ms(path) == 0

    def test_missing_file_is_zero(self, tmp_path: Path):
        assert read_duration_ms(tmp_path / "missing.mp3") == 0
