"""Tests for user messages and generation status lines."""

from __future__ import annotations

import asyncio

from laudreader.notifications import LoggingStatusNotifier, MessageQueue


class TestMessageQueue:

    async def test_post_and_drain_in_order(self):
        queue = MessageQueue()
        queue.post("Article added")
        queue.post("Article deleted")

        assert queue.latest == "Article deleted"
        assert queue.drain() == ["Article added", "Article deleted"]
        assert queue.drain() == []

    async def test_full_queue_drops_oldest(self):
        queue = MessageQueue(maxsize=2)
        for text in ("one", "two", "three"):
            queue.post(text)
        assert queue.drain() == ["two", "three"]

    async def test_get_waits_for_message(self):
        queue = MessageQueue()
        waiter = asyncio.ensure_future(queue.get())
        await asyncio.sleep(0)
        queue.post("hello")
        assert await asyncio.wait_for(waiter, timeout=1) == "hello"

    async def test_clear_resets_latest(self):
        queue = MessageQueue()
        queue.post("Article deleted")
        queue.clear()
        assert queue.latest is None
        assert queue.drain() == []


def test_status_lines():
    notifier = LoggingStatusNotifier()
    notifier.update(1, "Generating: A (0%)")
    notifier.update(1, "Generating: A (50%)")
    assert notifier.lines == {1: "Generating: A (50%)"}
    notifier.clear(1)
    notifier.clear(1)
    assert notifier.lines == {}
