"""Wiring of the long-lived service objects."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from laudreader.auth import CredentialProvider, build_credential_provider
from laudreader.config import settings
from laudreader.db.connection import async_session_factory
from laudreader.extractor import ArticleExtractor
from laudreader.library import ArticleLibrary
from laudreader.notifications import LoggingStatusNotifier, MessageQueue
from laudreader.player.engine import ClockPlaybackEngine, PlaybackEngine
from laudreader.player.tracker import PlaybackTracker
from laudreader.store import ArticleStore
from laudreader.tts.assembler import Synthesize
from laudreader.tts.client import SynthesisClient
from laudreader.tts.coordinator import GenerationCoordinator

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the HTTP layer talks to."""
    store: ArticleStore
    messages: MessageQueue
    credentials: CredentialProvider
    coordinator: GenerationCoordinator
    tracker: PlaybackTracker
    library: ArticleLibrary
    synthesis_client: Optional[SynthesisClient] = None
    # Disposed on close when the services were built around their own database
    db_engine: Optional[AsyncEngine] = None

    async def close(self) -> None:
        """Finish running jobs, save playback position, close HTTP clients."""
        await self.coordinator.shutdown()
        await self.tracker.close()
        if self.synthesis_client is not None:
            await self.synthesis_client.close()
        if self.db_engine is not None:
            await self.db_engine.dispose()
        logger.info("Services closed")


def build_services(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    credentials: Optional[CredentialProvider] = None,
    synthesize: Optional[Synthesize] = None,
    engine: Optional[PlaybackEngine] = None,
    extractor: Optional[ArticleExtractor] = None,
    audio_dir=None,
) -> Services:
    """Build the service graph; any collaborator can be swapped (tests)."""
    store = ArticleStore(session_factory or async_session_factory)
    messages = MessageQueue()
    credentials = credentials or build_credential_provider()

    synthesis_client = None
    if synthesize is None:
        synthesis_client = SynthesisClient(credentials)
        synthesize = synthesis_client.synthesize

    coordinator = GenerationCoordinator(
        store,
        synthesize,
        audio_dir=audio_dir or settings.AUDIO_DIR,
        notifier=LoggingStatusNotifier(),
        messages=messages,
    )
    tracker = PlaybackTracker(
        store, engine or ClockPlaybackEngine(), messages=messages, coordinator=coordinator
    )
    library = ArticleLibrary(
        store,
        extractor or ArticleExtractor(),
        coordinator,
        credentials,
        messages,
    )
    return Services(
        store=store,
        messages=messages,
        credentials=credentials,
        coordinator=coordinator,
        tracker=tracker,
        library=library,
        synthesis_client=synthesis_client,
    )
