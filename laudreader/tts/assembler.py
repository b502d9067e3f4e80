"""Sequential chunk synthesis and MP3 concatenation."""

import asyncio
import logging
import shutil
import tempfile
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from laudreader.errors import StorageFailure
from laudreader.tts.chunker import AudioChunk

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationProgress:
    """Chunks done out of total."""
    current: int
    total: int

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 0
        return (self.current * 100) // self.total


Synthesize = Callable[[str], Awaitable[bytes]]
ProgressCallback = Callable[[GenerationProgress], Awaitable[None]]


def remove_file(path: Path) -> bool:
    """Delete a file if present. Returns True if something was deleted."""
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StorageFailure(f"Could not delete {path}: {e}") from e


def write_chunk(path: Path, audio_bytes: bytes) -> None:
    path.write_bytes(audio_bytes)


def concatenate_files(chunk_files: Sequence[Path], output_path: Path) -> None:
    """Write the chunk files back to back into output_path."""
    with open(output_path, "wb") as output:
        for chunk_file in chunk_files:
            with open(chunk_file, "rb") as chunk_input:
                shutil.copyfileobj(chunk_input, output)


async def assemble_audio(
    chunks: Sequence[AudioChunk],
    synthesize: Synthesize,
    output_path: Path,
    on_progress: ProgressCallback,
) -> Path:
    """Synthesize chunks in order and concatenate them into output_path.

    MP3 frames are self-delimiting, so a byte-level concatenation of the
    per-chunk files is a valid MP3 stream.

    Each chunk is written to its own file in a temporary directory next to
    output_path; the directory is always removed. If anything fails, no
    partial output_path is left behind and the error propagates.
    """
    output_path = Path(output_path)
    loop = asyncio.get_running_loop()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    total = len(chunks)

    try:
        with tempfile.TemporaryDirectory(
            prefix=f".{output_path.stem}-chunks-", dir=output_path.parent
        ) as tmp_dir:
            chunk_files: list[Path] = []

            for done, chunk in enumerate(chunks):
                await on_progress(GenerationProgress(done, total))

                audio_bytes = await synthesize(chunk.text)
                chunk_file = Path(tmp_dir) / f"chunk_{chunk.index:04d}.mp3"
                await loop.run_in_executor(None, write_chunk, chunk_file, audio_bytes)
                chunk_files.append(chunk_file)
                logger.debug(
                    f"{output_path.name}: chunk {done + 1}/{total} "
                    f"({len(chunk.text)} chars, {len(audio_bytes)} bytes)"
                )

            await loop.run_in_executor(None, concatenate_files, chunk_files, output_path)

        await on_progress(GenerationProgress(total, total))
        return output_path

    except BaseException as e:
        try:
            remove_file(output_path)
        except StorageFailure as cleanup_error:
            logger.warning(f"Failed to remove partial audio: {cleanup_error}")
        if isinstance(e, OSError):
            raise StorageFailure(f"Could not write {output_path.name}: {e}") from e
        raise
