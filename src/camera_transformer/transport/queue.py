"""
Message Queue
=============

Per-publisher outbox between the relay callbacks and the sender task.

Design Rules:
    - Holds at most ``maxsize`` messages; a full outbox evicts its oldest entry
    - put() is synchronous and never waits
    - Messages leave in the order they were put
"""

import asyncio
import logging
from collections import deque
from typing import Deque

from camera_transformer.models.message import ImageMessage


logger = logging.getLogger(__name__)


class MessageQueue:
    """
    Outbox of one publisher.

    Subscriber callbacks put() transformed messages; the connection's
    sender task awaits get() and writes them to the socket.
    """

    def __init__(self, maxsize: int = 5) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._pending: Deque[ImageMessage] = deque(maxlen=maxsize)
        self._ready = asyncio.Event()
        self.dropped_count: int = 0
        self.total_put: int = 0

    @property
    def maxsize(self) -> int:
        return self._pending.maxlen

    @property
    def size(self) -> int:
        return len(self._pending)

    def put(self, message: ImageMessage) -> bool:
        """
        Queue a message for sending.

        Returns:
            False when the oldest queued message was evicted to make room.
        """
        self.total_put += 1
        evicted = len(self._pending) == self._pending.maxlen
        self._pending.append(message)
        self._ready.set()

        if evicted:
            self.dropped_count += 1
            logger.warning(
                f"Publish queue full ({self.maxsize}), evicted oldest message "
                f"({self.dropped_count} so far)"
            )
        return not evicted

    async def get(self) -> ImageMessage:
        """Wait for and remove the oldest queued message."""
        while not self._pending:
            self._ready.clear()
            await self._ready.wait()
        return self._pending.popleft()

    def clear(self) -> int:
        """Discard everything queued; returns how many messages were discarded."""
        discarded = len(self._pending)
        self._pending.clear()
        return discarded

    def metrics(self) -> dict:
        return {
            "size": self.size,
            "maxsize": self.maxsize,
            "dropped_count": self.dropped_count,
            "total_put": self.total_put,
        }
