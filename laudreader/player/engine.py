"""Media playback engine interface and a wall-clock implementation."""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Protocol, runtime_checkable

from mutagen import File as MutagenFile
from mutagen import MutagenError

logger = logging.getLogger(__name__)


class PlaybackListener(Protocol):
    """Signals emitted by a playback engine."""

    def on_is_playing_changed(self, is_playing: bool) -> None: ...

    def on_playback_completed(self) -> None: ...


@runtime_checkable
class PlaybackEngine(Protocol):
    """What the playback tracker needs from a media engine."""

    @property
    def is_playing(self) -> bool: ...

    @property
    def position_ms(self) -> int: ...

    @property
    def duration_ms(self) -> int: ...

    def add_listener(self, listener: PlaybackListener) -> None: ...

    async def load(self, path: str, start_ms: int = 0) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek_to(self, position_ms: int) -> None: ...

    def stop(self) -> None: ...


def read_duration_ms(audio_path: Path) -> int:
    """Duration of an audio file in milliseconds, 0 if it can't be read."""
    try:
        audio = MutagenFile(str(audio_path))
    except (MutagenError, OSError) as e:
        logger.warning(f"Could not read audio info from {audio_path}: {e}")
        return 0
    if audio is None or audio.info is None:
        return 0
    return int(audio.info.length * 1000)


class ClockPlaybackEngine:
    """Plays an audio file on a virtual timeline driven by the event loop clock.

    No audio is rendered; position advances in real time while playing, and
    playback completes when the position reaches the file's duration. The
    duration is read on load; when it is unknown (0) playback never
    completes on its own.
    """

    def __init__(self):
        self._listeners: List[PlaybackListener] = []
        self._path: Optional[str] = None
        self._duration_ms = 0
        self._base_position_ms = 0
        self._started_at: Optional[float] = None
        self._completion: Optional[asyncio.TimerHandle] = None

    @property
    def is_playing(self) -> bool:
        return self._started_at is not None

    @property
    def position_ms(self) -> int:
        position = self._base_position_ms
        if self._started_at is not None:
            elapsed = asyncio.get_running_loop().time() - self._started_at
            position += int(elapsed * 1000)
        if self._duration_ms:
            position = min(position, self._duration_ms)
        return position

    @property
    def duration_ms(self) -> int:
        return self._duration_ms

    def add_listener(self, listener: PlaybackListener) -> None:
        self._listeners.append(listener)

    async def load(self, path: str, start_ms: int = 0) -> None:
        self.stop()
        loop = asyncio.get_running_loop()
        self._duration_ms = await loop.run_in_executor(None, read_duration_ms, Path(path))
        self._path = path
        self._base_position_ms = max(0, start_ms)
        logger.debug(f"Loaded {path} at {start_ms}ms (duration {self._duration_ms}ms)")

    def play(self) -> None:
        if self._path is None or self.is_playing:
            return
        loop = asyncio.get_running_loop()
        self._started_at = loop.time()
        if self._duration_ms:
            remaining = max(0, self._duration_ms - self._base_position_ms) / 1000
            self._completion = loop.call_later(remaining, self._complete)
        self._emit_is_playing(True)

    def pause(self) -> None:
        if not self.is_playing:
            return
        self._base_position_ms = self.position_ms
        self._halt()
        self._emit_is_playing(False)

    def seek_to(self, position_ms: int) -> None:
        was_playing = self.is_playing
        if was_playing:
            self._halt()
        self._base_position_ms = max(0, position_ms)
        if self._duration_ms:
            self._base_position_ms = min(self._base_position_ms, self._duration_ms)
        if was_playing:
            loop = asyncio.get_running_loop()
            self._started_at = loop.time()
            if self._duration_ms:
                remaining = (self._duration_ms - self._base_position_ms) / 1000
                self._completion = loop.call_later(remaining, self._complete)

    def stop(self) -> None:
        # Listeners still see the final position while is_playing flips
        if self.is_playing:
            self._base_position_ms = self.position_ms
            self._halt()
            self._emit_is_playing(False)
        self._halt()
        self._path = None
        self._base_position_ms = 0
        self._duration_ms = 0

    def _halt(self) -> None:
        if self._completion is not None:
            self._completion.cancel()
            self._completion = None
        self._started_at = None

    def _complete(self) -> None:
        self._completion = None
        self._base_position_ms = self._duration_ms
        self._started_at = None
        self._emit_is_playing(False)
        for listener in list(self._listeners):
            listener.on_playback_completed()

    def _emit_is_playing(self, is_playing: bool) -> None:
        for listener in list(self._listeners):
            listener.on_is_playing_changed(is_playing)
