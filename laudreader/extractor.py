"""Article text extraction using trafilatura."""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import httpx
import trafilatura
from bs4 import BeautifulSoup
from trafilatura.settings import use_config

from laudreader.config import settings
from laudreader.errors import ExtractionFailure
from laudreader.url_validator import RejectedUrl, check_article_url

logger = logging.getLogger(__name__)

# Configure trafilatura for better extraction
TRAFILATURA_CONFIG = use_config()
TRAFILATURA_CONFIG.set("DEFAULT", "EXTRACTION_TIMEOUT", "30")


@dataclass
class ExtractedArticle:
    """Readable content of a web page."""
    title: str
    domain: str
    text: str


def domain_of(url: str) -> str:
    """Host of a URL without a leading 'www.'."""
    host = urlparse(url).hostname
    if not host:
        return url
    return host.removeprefix("www.")


def extract_title_from_html(html: str) -> Optional[str]:
    """Extract title from HTML if trafilatura metadata fails."""
    soup = BeautifulSoup(html, "lxml")

    # Try og:title first
    og_title = soup.find("meta", property="og:title")
    if og_title and og_title.get("content"):
        return og_title["content"].strip()

    title_tag = soup.find("title")
    if title_tag and title_tag.string:
        return title_tag.string.strip()

    h1 = soup.find("h1")
    if h1:
        return h1.get_text(strip=True)

    return None


def extract_from_html(html: str, url: str) -> ExtractedArticle:
    """Pull title and main text out of an HTML document.

    Raises:
        ExtractionFailure: no readable text in the page
    """
    domain = domain_of(url)

    extracted = trafilatura.extract(
        html,
        include_comments=False,
        include_tables=False,
        favor_precision=True,
        config=TRAFILATURA_CONFIG,
    )
    text = extracted.strip() if extracted else ""
    if not text:
        raise ExtractionFailure(f"Failed to extract article text from {url}")

    metadata = trafilatura.extract_metadata(html)
    title = metadata.title if metadata and metadata.title else None
    if not title:
        title = extract_title_from_html(html)

    return ExtractedArticle(
        title=title.strip() if title and title.strip() else domain,
        domain=domain,
        text=text,
    )


class ArticleExtractor:
    """Fetches a URL and extracts its readable article text."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        block_private_urls: bool = None,
    ):
        self._client = http_client
        if block_private_urls is None:
            block_private_urls = settings.EXTRACTOR_BLOCK_PRIVATE_URLS
        self.block_private_urls = block_private_urls

    async def fetch_html(self, url: str) -> str:
        headers = {
            "User-Agent": settings.EXTRACTOR_USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        }
        if self._client is not None:
            response = await self._client.get(url, headers=headers, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=settings.EXTRACTOR_TIMEOUT_SEC) as client:
                response = await client.get(url, headers=headers, follow_redirects=True)

        if not response.is_success:
            raise ExtractionFailure(f"HTTP {response.status_code} fetching {url}")
        if not response.text:
            raise ExtractionFailure(f"Empty response body from {url}")
        return response.text

    async def extract(self, url: str) -> ExtractedArticle:
        """Fetch and parse an article.

        Raises:
            ExtractionFailure: invalid URL, fetch error or no usable text
        """
        try:
            await check_article_url(url, block_private=self.block_private_urls)
        except RejectedUrl as e:
            raise ExtractionFailure(str(e)) from e

        try:
            html = await self.fetch_html(url)
        except httpx.HTTPError as e:
            raise ExtractionFailure(f"HTTP error: {e}") from e

        article = extract_from_html(html, url)
        logger.info(f"Extracted {len(article.text)} chars from {article.domain}: {article.title}")
        return article
