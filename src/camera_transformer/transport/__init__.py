"""
Transport Module
================

Pub/sub transports the stream relay is wired to:
    - Transport / Publisher / Subscription: abstract interface
    - InMemoryTransport: synchronous loopback
    - RosbridgeTransport: rosbridge v2 WebSocket client
    - MessageQueue: bounded drop-oldest publish queue

Example:
    from camera_transformer.transport import RosbridgeTransport

    transport = RosbridgeTransport("ws://localhost:9090")
    relay = StreamRelay(transport, registry)
    relay.start()

    await transport.run()
"""

from camera_transformer.transport.base import (
    MessageCallback,
    Publisher,
    Subscription,
    Transport,
)
from camera_transformer.transport.memory import InMemoryTransport
from camera_transformer.transport.queue import MessageQueue
from camera_transformer.transport.rosbridge import RosbridgeTransport


__all__ = [
    "MessageCallback",
    "Publisher",
    "Subscription",
    "Transport",
    "InMemoryTransport",
    "MessageQueue",
    "RosbridgeTransport",
]
