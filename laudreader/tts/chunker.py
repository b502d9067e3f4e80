"""Split article text into chunks that fit the TTS request limit."""

from dataclasses import dataclass
from typing import List

from laudreader.config import settings

# Sentence-ending punctuation followed by whitespace
SENTENCE_ENDERS = (". ", "! ", "? ", ".\n", "!\n", "?\n")


@dataclass(frozen=True)
class AudioChunk:
    """One unit of synthesis work, numbered in text order."""
    index: int
    text: str


def find_split_point(window: str) -> int:
    """Index right after the last sentence boundary in window, or -1.

    Falls back to the position after the last line break when the window
    has no sentence boundary.
    """
    last_boundary = -1
    for ender in SENTENCE_ENDERS:
        idx = window.rfind(ender)
        if idx >= 0 and idx + len(ender) > last_boundary:
            last_boundary = idx + len(ender)

    if last_boundary <= 0:
        newline_idx = window.rfind("\n")
        if newline_idx > 0:
            return newline_idx + 1

    return last_boundary


def split_into_chunks(text: str, max_chunk_chars: int = None) -> List[str]:
    """Split text into ordered chunks of at most max_chunk_chars characters.

    Text that already fits is returned as a single chunk untouched, even
    when empty, so every article has at least one unit of work.
    """
    if max_chunk_chars is None:
        max_chunk_chars = settings.TTS_MAX_CHUNK_CHARS
    if max_chunk_chars <= 0:
        raise ValueError("max_chunk_chars must be positive")

    if len(text) <= max_chunk_chars:
        return [text]

    chunks: List[str] = []
    remaining = text

    while remaining:
        if len(remaining) <= max_chunk_chars:
            chunks.append(remaining)
            break

        split_at = find_split_point(remaining[:max_chunk_chars])
        if split_at <= 0:
            split_at = max_chunk_chars

        chunks.append(remaining[:split_at].strip())
        remaining = remaining[split_at:].strip()

    return [chunk for chunk in chunks if chunk]


def make_chunks(text: str, max_chunk_chars: int = None) -> List[AudioChunk]:
    """Split text and number the pieces in order."""
    return [
        AudioChunk(index=i, text=chunk)
        for i, chunk in enumerate(split_into_chunks(text, max_chunk_chars))
    ]
