"""Google Cloud Text-to-Speech client.

One chunk of text becomes one POST to ``text:synthesize``. The client never
retries: a failed chunk fails the whole generation.
"""

import base64
import binascii
import logging
from typing import Optional

import httpx

from laudreader.auth import CredentialProvider
from laudreader.config import settings
from laudreader.errors import EmptyResponse, ProviderError, Unauthenticated

logger = logging.getLogger(__name__)


class SynthesisClient:
    """Turns a chunk of text into encoded audio bytes."""

    def __init__(
        self,
        credentials: CredentialProvider,
        http_client: Optional[httpx.AsyncClient] = None,
        api_url: str = None,
        language_code: str = None,
        voice_name: str = None,
        audio_encoding: str = None,
    ):
        self.credentials = credentials
        self.api_url = api_url or settings.TTS_API_URL
        self.language_code = language_code or settings.TTS_LANGUAGE_CODE
        self.voice_name = voice_name or settings.TTS_VOICE_NAME
        self.audio_encoding = audio_encoding or settings.TTS_AUDIO_ENCODING
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    connect=10.0,
                    read=settings.TTS_TIMEOUT_SEC,
                    write=30.0,
                    pool=10.0,
                ),
                limits=httpx.Limits(
                    max_connections=10,
                    max_keepalive_connections=5,
                    keepalive_expiry=30.0,
                ),
            )
            self._owns_client = True
            logger.debug("Created TTS HTTP client")
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.debug("Closed TTS HTTP client")

    def build_payload(self, text: str) -> dict:
        return {
            "input": {"text": text},
            "voice": {
                "languageCode": self.language_code,
                "name": self.voice_name,
            },
            "audioConfig": {
                "audioEncoding": self.audio_encoding,
                "speakingRate": settings.TTS_SPEAKING_RATE,
                "pitch": settings.TTS_PITCH,
            },
        }

    async def synthesize(self, text: str) -> bytes:
        """Synthesize one chunk.

        Raises:
            Unauthenticated: no access token available
            ProviderError: non-success HTTP status
            EmptyResponse: success without audioContent
        """
        token = await self.credentials.get_access_token()
        if not token:
            raise Unauthenticated()

        response = await self._get_client().post(
            self.api_url,
            json=self.build_payload(text),
            headers={"Authorization": f"Bearer {token}"},
        )

        if not response.is_success:
            body = response.text or None
            logger.warning(f"TTS API returned {response.status_code} for {len(text)} chars")
            raise ProviderError(response.status_code, body)

        try:
            data = response.json()
        except ValueError:
            raise EmptyResponse("TTS response is not valid JSON")

        audio_content = data.get("audioContent") if isinstance(data, dict) else None

        if not audio_content:
            raise EmptyResponse()

        try:
            return base64.b64decode(audio_content)
        except (binascii.Error, ValueError):
            raise EmptyResponse("TTS response audioContent is not valid base64")
