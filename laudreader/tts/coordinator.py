"""Per-article audio generation jobs.

The coordinator owns the set of live jobs, keyed by article id. Admission is
a check-and-insert on that map with no suspension point in between, so two
overlapping requests for the same article can never both start a job.

Usage:
    coordinator = GenerationCoordinator(store, client.synthesize, messages=messages)
    coordinator.start_generation(article_id)
    ...
    await coordinator.shutdown()  # waits for running jobs, never cancels them
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from laudreader.config import settings
from laudreader.db.models import ArticleStatus
from laudreader.errors import StorageFailure, Unauthenticated
from laudreader.notifications import LoggingStatusNotifier, MessageQueue, StatusNotifier
from laudreader.store import ArticleStore
from laudreader.tts.assembler import GenerationProgress, Synthesize, assemble_audio, remove_file
from laudreader.tts.chunker import make_chunks

logger = logging.getLogger(__name__)


def audio_path_for(audio_dir: Path, article_id: int) -> Path:
    """Final MP3 location for an article."""
    return Path(audio_dir) / f"article_{article_id}.mp3"


class GenerationCoordinator:
    """Runs at most one synthesis pipeline per article."""

    def __init__(
        self,
        store: ArticleStore,
        synthesize: Synthesize,
        audio_dir: Path = None,
        notifier: Optional[StatusNotifier] = None,
        messages: Optional[MessageQueue] = None,
        max_chunk_chars: int = None,
    ):
        self.store = store
        self.synthesize = synthesize
        self.audio_dir = Path(audio_dir or settings.AUDIO_DIR)
        self.notifier = notifier or LoggingStatusNotifier()
        self.messages = messages or MessageQueue()
        self.max_chunk_chars = max_chunk_chars or settings.TTS_MAX_CHUNK_CHARS
        self._jobs: dict[int, asyncio.Task] = {}
        self._idle = asyncio.Event()
        self._idle.set()

    def start_generation(self, article_id: int) -> bool:
        """Start generating audio for an article.

        Returns False (and does nothing) if a job for this article is
        already running.
        """
        if article_id in self._jobs:
            logger.debug(f"Article {article_id}: generation already in progress")
            return False

        task = asyncio.create_task(
            self._run_job(article_id), name=f"generate-article-{article_id}"
        )
        self._jobs[article_id] = task
        self._idle.clear()
        task.add_done_callback(lambda t: self._finish(article_id, t))
        logger.info(f"Article {article_id}: generation started")
        return True

    def has_active_job(self, article_id: int) -> bool:
        return article_id in self._jobs

    def active_job_ids(self) -> List[int]:
        return list(self._jobs)

    def is_idle(self) -> bool:
        return not self._jobs

    async def wait_until_idle(self) -> None:
        """Return once no job is running."""
        await self._idle.wait()

    async def shutdown(self) -> None:
        """Let running jobs finish; the host may exit afterwards."""
        if self._jobs:
            logger.info(f"Waiting for {len(self._jobs)} generation job(s) to finish")
        await self.wait_until_idle()

    async def resume_pending(self) -> int:
        """Restart generation for every article left in GENERATING state."""
        pending = await self.store.list_with_status(ArticleStatus.GENERATING)
        started = sum(1 for article in pending if self.start_generation(article.id))
        if started:
            logger.info(f"Resumed generation for {started} article(s)")
        return started

    def _finish(self, article_id: int, task: asyncio.Task) -> None:
        if self._jobs.get(article_id) is task:
            del self._jobs[article_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Article {article_id}: job crashed: {task.exception()!r}")
        if not self._jobs:
            self._idle.set()

    async def _run_job(self, article_id: int) -> None:
        output_path = audio_path_for(self.audio_dir, article_id)
        try:
            await self._generate(article_id, output_path)
        except Exception as e:
            logger.exception(f"Article {article_id}: audio generation failed")
            await self._handle_failure(article_id, output_path, e)
        finally:
            self.notifier.clear(article_id)

    async def _generate(self, article_id: int, output_path: Path) -> None:
        article = await self.store.get_by_id(article_id)
        if article is None:
            logger.warning(f"Article {article_id}: not found, nothing to generate")
            return
        if article.status is not ArticleStatus.GENERATING:
            logger.info(f"Article {article_id}: already {article.status.name}, skipping")
            return

        await self.store.update_generation_error(article_id, None)

        chunks = make_chunks(article.extracted_text, self.max_chunk_chars)
        logger.info(
            f"Article {article_id}: synthesizing {len(article.extracted_text)} chars "
            f"in {len(chunks)} chunk(s)"
        )

        async def on_progress(progress: GenerationProgress) -> None:
            await self.store.update_progress(article_id, progress.percent)
            self.notifier.update(
                article_id, f"Generating: {article.title} ({progress.percent}%)"
            )

        await assemble_audio(chunks, self.synthesize, output_path, on_progress)

        size_bytes = output_path.stat().st_size
        # Duration is resolved by the playback engine on first load
        updated = await self.store.update_audio_ready(
            article_id, str(output_path), size_bytes, duration_ms=0
        )
        if not updated:
            logger.info(f"Article {article_id}: deleted during generation, discarding audio")
            remove_file(output_path)
            return

        logger.info(f"Article {article_id}: audio ready ({size_bytes} bytes)")

    async def _handle_failure(
        self, article_id: int, output_path: Path, error: Exception
    ) -> None:
        try:
            remove_file(output_path)
        except StorageFailure as cleanup_error:
            logger.warning(f"Article {article_id}: {cleanup_error}")

        try:
            await self.store.update_status(article_id, ArticleStatus.GENERATING)
            await self.store.update_generation_error(article_id, str(error))
        except Exception:
            logger.exception(f"Article {article_id}: could not reset status after failure")

        if isinstance(error, Unauthenticated):
            self.messages.post("Please sign in with Google first")
        else:
            self.messages.post(f"Audio generation failed: {error}")
