"""Adding articles from shared URLs."""

import logging
from typing import Optional

from laudreader.auth import CredentialProvider
from laudreader.db.models import Article, ArticleStatus
from laudreader.errors import ExtractionFailure
from laudreader.extractor import ArticleExtractor
from laudreader.notifications import MessageQueue
from laudreader.store import ArticleStore
from laudreader.tts.coordinator import GenerationCoordinator

logger = logging.getLogger(__name__)


class ArticleLibrary:
    """Creates articles and hands them to the generation coordinator."""

    def __init__(
        self,
        store: ArticleStore,
        extractor: ArticleExtractor,
        coordinator: GenerationCoordinator,
        credentials: CredentialProvider,
        messages: MessageQueue,
    ):
        self.store = store
        self.extractor = extractor
        self.coordinator = coordinator
        self.credentials = credentials
        self.messages = messages

    async def add_article_from_url(self, url: str) -> Optional[int]:
        """Extract a page, store it as GENERATING and start synthesis.

        Returns the new article id, or None if the user isn't signed in or
        extraction failed (a message is posted either way).
        """
        if not await self.credentials.is_signed_in():
            self.messages.post("Please sign in with Google first")
            return None

        try:
            extracted = await self.extractor.extract(url)
        except ExtractionFailure as e:
            logger.warning(f"Extraction failed for {url}: {e}")
            self.messages.post(f"Failed to add article: {e}")
            return None

        article_id = await self.store.insert(
            Article(
                title=extracted.title,
                source_url=url,
                domain=extracted.domain,
                extracted_text=extracted.text,
                status=ArticleStatus.GENERATING,
            )
        )
        self.messages.post("Article added")
        logger.info(f"Article {article_id} added from {url}")

        self.coordinator.start_generation(article_id)
        return article_id
