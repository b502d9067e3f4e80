"""Playback engine binding and article lifecycle tracking."""

from laudreader.player.engine import ClockPlaybackEngine, PlaybackEngine
from laudreader.player.tracker import PlaybackTracker, PlayerState, TapResult

__all__ = [
    "ClockPlaybackEngine",
    "PlaybackEngine",
    "PlaybackTracker",
    "PlayerState",
    "TapResult",
]
