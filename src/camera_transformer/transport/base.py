"""
Transport Interface
===================

Abstract pub/sub transport injected into the stream relay.

Lifecycle:
    1. Construct the transport (no connection yet)
    2. advertise() / subscribe() every stream (relay start)
    3. await run() - connects and delivers messages until stop()
    4. await stop()

Design Rules:
    - Subscriptions never deliver before run() is entered
    - Callbacks for one topic are invoked sequentially, in arrival order
    - A failing callback never affects other callbacks or the connection
"""

from abc import ABC, abstractmethod
from typing import Callable

from camera_transformer.models.message import ImageMessage


MessageCallback = Callable[[ImageMessage], None]


class Publisher(ABC):
    """Handle for publishing images on one topic."""

    def __init__(self, topic: str, queue_size: int) -> None:
        self.topic = topic
        self.queue_size = queue_size

    @abstractmethod
    def publish(self, message: ImageMessage) -> None:
        """Publish a message. Must not block."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Stop publishing on the topic."""
        ...


class Subscription(ABC):
    """Handle for a callback registered on one topic."""

    def __init__(self, topic: str, callback: MessageCallback, queue_size: int) -> None:
        self.topic = topic
        self.callback = callback
        self.queue_size = queue_size

    @abstractmethod
    def close(self) -> None:
        """Stop delivering messages to the callback."""
        ...


class Transport(ABC):
    """
    Pub/sub transport carrying image messages.

    Implementations:
        - InMemoryTransport: synchronous loopback (tests, local wiring)
        - RosbridgeTransport: rosbridge v2 WebSocket client
    """

    @abstractmethod
    def advertise(self, topic: str, queue_size: int = 5) -> Publisher:
        """Create a publisher for ``topic``."""
        ...

    @abstractmethod
    def subscribe(
        self,
        topic: str,
        callback: MessageCallback,
        queue_size: int = 10,
    ) -> Subscription:
        """Register ``callback`` for messages on ``topic``."""
        ...

    @abstractmethod
    async def run(self) -> None:
        """Deliver messages until stop() is called."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop delivering and release the connection."""
        ...

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether the transport is currently able to deliver messages."""
        ...

    def metrics(self) -> dict:
        """Transport metrics for observability."""
        return {}
