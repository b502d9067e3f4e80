"""User-facing messages and generation status lines."""

import asyncio
import logging
from typing import List, Optional, Protocol

logger = logging.getLogger(__name__)


class MessageQueue:
    """Queue of one-shot messages for the user ("Article deleted", ...)."""

    def __init__(self, maxsize: int = 100):
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self.latest: Optional[str] = None

    def post(self, message: str) -> None:
        """Add a message, dropping the oldest one when full."""
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(message)
        self.latest = message
        logger.info(f"Message: {message}")

    async def get(self) -> str:
        """Wait for the next message."""
        return await self._queue.get()

    def drain(self) -> List[str]:
        """Pop every pending message."""
        messages = []
        while not self._queue.empty():
            messages.append(self._queue.get_nowait())
        return messages

    def clear(self) -> None:
        """Drop pending messages and the latest one."""
        self.drain()
        self.latest = None


class StatusNotifier(Protocol):
    """Receives human-readable progress lines while audio is generated."""

    def update(self, article_id: int, text: str) -> None: ...

    def clear(self, article_id: int) -> None: ...


class LoggingStatusNotifier:
    """Keeps the current status line per article and logs changes."""

    def __init__(self):
        self.lines: dict[int, str] = {}

    def update(self, article_id: int, text: str) -> None:
        if self.lines.get(article_id) != text:
            logger.info(text)
        self.lines[article_id] = text

    def clear(self, article_id: int) -> None:
        self.lines.pop(article_id, None)
