"""Bearer token providers for the Google Cloud Text-to-Speech API.

Usage:
    provider = build_credential_provider()
    token = await provider.get_access_token()
    if token is None:
        # Not signed in
"""

import asyncio
import logging
from typing import Optional, Protocol, runtime_checkable

import google.auth
from google.auth.exceptions import DefaultCredentialsError, GoogleAuthError
from google.auth.transport.requests import Request

from laudreader.config import settings

logger = logging.getLogger(__name__)


@runtime_checkable
class CredentialProvider(Protocol):
    """Source of OAuth access tokens."""

    async def is_signed_in(self) -> bool: ...

    async def get_access_token(self) -> Optional[str]: ...


class StaticTokenProvider:
    """Hands out a fixed token (GOOGLE_ACCESS_TOKEN or tests)."""

    def __init__(self, token: Optional[str]):
        self._token = token or None

    async def is_signed_in(self) -> bool:
        return self._token is not None

    async def get_access_token(self) -> Optional[str]:
        return self._token


class GoogleCredentialProvider:
    """Access tokens from Google Application Default Credentials.

    A failed refresh is treated as a stale credential: credentials are
    reloaded and refreshed once more before giving up with None.
    """

    def __init__(self, scope: str = None):
        self.scope = scope or settings.GOOGLE_AUTH_SCOPE
        self._credentials = None
        self._lock = asyncio.Lock()

    def _load_credentials(self):
        credentials, project = google.auth.default(scopes=[self.scope])
        logger.debug(f"Loaded Google credentials (project: {project})")
        return credentials

    async def is_signed_in(self) -> bool:
        """Whether default credentials can be found (loaded in the executor)."""
        async with self._lock:
            if self._credentials is not None:
                return True
            loop = asyncio.get_running_loop()
            try:
                self._credentials = await loop.run_in_executor(None, self._load_credentials)
                return True
            except DefaultCredentialsError:
                return False

    def _refresh_token(self, reload: bool) -> str:
        if reload or self._credentials is None:
            self._credentials = self._load_credentials()
        if not self._credentials.valid:
            self._credentials.refresh(Request())
        return self._credentials.token

    async def get_access_token(self) -> Optional[str]:
        loop = asyncio.get_running_loop()
        async with self._lock:
            try:
                return await loop.run_in_executor(None, self._refresh_token, False)
            except DefaultCredentialsError:
                logger.warning("No Google credentials configured")
                return None
            except GoogleAuthError as e:
                logger.warning(f"Token refresh failed, retrying once: {e}")

            self._credentials = None
            try:
                return await loop.run_in_executor(None, self._refresh_token, True)
            except GoogleAuthError as e:
                logger.error(f"Could not obtain access token: {e}")
                return None


def build_credential_provider() -> CredentialProvider:
    """Pick the credential provider configured in settings."""
    if settings.GOOGLE_ACCESS_TOKEN:
        return StaticTokenProvider(settings.GOOGLE_ACCESS_TOKEN)
    return GoogleCredentialProvider()
