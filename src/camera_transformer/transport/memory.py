"""
In-Memory Transport
===================

Synchronous loopback transport.

Publishing on a topic invokes every subscription of that topic directly,
on the caller's stack. Used by the test suite and for wiring relays
together inside one process.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, List

from camera_transformer.models.message import ImageMessage
from camera_transformer.transport.base import (
    MessageCallback,
    Publisher,
    Subscription,
    Transport,
)


logger = logging.getLogger(__name__)


class InMemoryPublisher(Publisher):
    """Publisher that hands messages straight to the transport."""

    def __init__(self, transport: "InMemoryTransport", topic: str, queue_size: int) -> None:
        super().__init__(topic, queue_size)
        self._transport = transport
        self.closed = False

    def publish(self, message: ImageMessage) -> None:
        if self.closed:
            logger.warning(f"Publish on closed publisher {self.topic} ignored")
            return
        self._transport.deliver(self.topic, message)

    def close(self) -> None:
        self.closed = True


class InMemorySubscription(Subscription):
    """Subscription registered with an InMemoryTransport."""

    def __init__(
        self,
        transport: "InMemoryTransport",
        topic: str,
        callback: MessageCallback,
        queue_size: int,
    ) -> None:
        super().__init__(topic, callback, queue_size)
        self._transport = transport

    def close(self) -> None:
        self._transport._remove(self)


class InMemoryTransport(Transport):
    """
    Loopback transport with synchronous delivery.

    Attributes:
        published: Every message published, per topic, in publish order
        advertised: Topics advertised, in call order
    """

    def __init__(self) -> None:
        self._subscriptions: Dict[str, List[InMemorySubscription]] = defaultdict(list)
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()
        self.published: Dict[str, List[ImageMessage]] = defaultdict(list)
        self.advertised: List[str] = []
        self.dropped_count: int = 0

    @property
    def connected(self) -> bool:
        return self._running

    @property
    def subscriptions(self) -> Dict[str, List[InMemorySubscription]]:
        """Live subscriptions per topic."""
        return {topic: list(subs) for topic, subs in self._subscriptions.items() if subs}

    def advertise(self, topic: str, queue_size: int = 5) -> InMemoryPublisher:
        self.advertised.append(topic)
        return InMemoryPublisher(self, topic, queue_size)

    def subscribe(
        self,
        topic: str,
        callback: MessageCallback,
        queue_size: int = 10,
    ) -> InMemorySubscription:
        subscription = InMemorySubscription(self, topic, callback, queue_size)
        self._subscriptions[topic].append(subscription)
        return subscription

    def start_delivery(self) -> None:
        """Enable delivery without entering run()."""
        self._running = True

    async def run(self) -> None:
        self._running = True
        self._stop_event.clear()
        await self._stop_event.wait()

    async def stop(self) -> None:
        self._running = False
        self._stop_event.set()

    def deliver(self, topic: str, message: ImageMessage) -> None:
        """
        Record a publication and dispatch it to the topic's subscriptions.

        Messages are only dispatched while the transport is running.
        """
        self.published[topic].append(message)

        if not self._running:
            self.dropped_count += 1
            logger.debug(f"Transport not running, message on {topic} not delivered")
            return

        for subscription in list(self._subscriptions.get(topic, ())):
            try:
                subscription.callback(message)
            except Exception as e:
                logger.exception(f"Subscriber callback failed on {topic}: {e}")

    def _remove(self, subscription: InMemorySubscription) -> None:
        subscribers = self._subscriptions.get(subscription.topic, [])
        if subscription in subscribers:
            subscribers.remove(subscription)

    def metrics(self) -> dict:
        return {
            "connected": self.connected,
            "messages_published": sum(len(msgs) for msgs in self.published.values()),
            "dropped_count": self.dropped_count,
        }
