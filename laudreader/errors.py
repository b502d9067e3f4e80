"""Exception hierarchy for LaudReader."""

from typing import Optional


class LaudReaderError(Exception):
    """Base class for all LaudReader errors."""


class ExtractionFailure(LaudReaderError):
    """Page could not be fetched or yielded no usable text."""


class ArticleNotFound(LaudReaderError):
    """No article row with the given id."""

    def __init__(self, article_id: int):
        super().__init__(f"Article {article_id} not found")
        self.article_id = article_id


class StorageFailure(LaudReaderError):
    """Writing or deleting an audio file on disk failed."""


class SynthesisError(LaudReaderError):
    """Base class for speech synthesis failures."""


class Unauthenticated(SynthesisError):
    """No valid credential could be obtained."""

    def __init__(self, message: str = "Not authenticated. Please sign in with Google."):
        super().__init__(message)


class ProviderError(SynthesisError):
    """The speech provider rejected the request."""

    def __init__(self, http_status: int, body: Optional[str] = None):
        self.http_status = http_status
        self.body = body or "Unknown error"
        super().__init__(f"TTS API error {http_status}: {self.body}")


class EmptyResponse(SynthesisError):
    """Successful response without audio payload."""

    def __init__(self, message: str = "Empty TTS response"):
        super().__init__(message)
