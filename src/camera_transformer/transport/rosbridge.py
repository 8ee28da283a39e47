"""
Rosbridge Transport
===================

WebSocket client speaking the rosbridge v2 JSON protocol.

This transport:
    - Connects to a rosbridge server (default ws://localhost:9090)
    - Advertises every output topic and subscribes every input topic
      (re-sent after each reconnect)
    - Parses inbound "publish" ops into ImageMessage and dispatches them
    - Sends outbound messages through a bounded queue per publisher
    - Reconnects with a fixed backoff

Protocol ops used:
    {"op": "advertise",   "topic": t, "type": "sensor_msgs/Image"}
    {"op": "subscribe",   "topic": t, "type": "sensor_msgs/Image", "queue_length": n}
    {"op": "publish",     "topic": t, "msg": {...}}
    {"op": "unsubscribe", "topic": t}
    {"op": "unadvertise", "topic": t}

Design Rules:
    - One wire subscription per topic, fanned out locally in
      registration order
    - Malformed frames are logged and counted, never raised
    - All dispatch happens on the event loop, one message at a time
"""

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set

import websockets
from pydantic import ValidationError
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    ConnectionClosedOK,
)

from camera_transformer.models.message import ImageMessage
from camera_transformer.transport.base import (
    MessageCallback,
    Publisher,
    Subscription,
    Transport,
)
from camera_transformer.transport.queue import MessageQueue


logger = logging.getLogger(__name__)


MESSAGE_TYPE = "sensor_msgs/Image"


class RosbridgeMetrics:
    """Metrics for RosbridgeTransport observability."""

    __slots__ = (
        "messages_received",
        "messages_sent",
        "reconnect_count",
        "parse_errors",
        "callback_errors",
    )

    def __init__(self) -> None:
        self.messages_received: int = 0
        self.messages_sent: int = 0
        self.reconnect_count: int = 0
        self.parse_errors: int = 0
        self.callback_errors: int = 0

    def to_dict(self) -> dict:
        return {
            "messages_received": self.messages_received,
            "messages_sent": self.messages_sent,
            "reconnect_count": self.reconnect_count,
            "parse_errors": self.parse_errors,
            "callback_errors": self.callback_errors,
        }


class RosbridgePublisher(Publisher):
    """Publisher queueing messages for the transport's sender task."""

    def __init__(self, transport: "RosbridgeTransport", topic: str, queue_size: int) -> None:
        super().__init__(topic, queue_size)
        self._transport = transport
        self.queue = MessageQueue(maxsize=queue_size)
        self.closed = False

    def publish(self, message: ImageMessage) -> None:
        if self.closed:
            logger.warning(f"Publish on closed publisher {self.topic} ignored")
            return
        self.queue.put(message)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.queue.clear()
        self._transport._remove_publisher(self)


class RosbridgeSubscription(Subscription):
    """Local callback registered on a rosbridge topic."""

    def __init__(
        self,
        transport: "RosbridgeTransport",
        topic: str,
        callback: MessageCallback,
        queue_size: int,
    ) -> None:
        super().__init__(topic, callback, queue_size)
        self._transport = transport

    def close(self) -> None:
        self._transport._remove_subscription(self)


def advertise_op(topic: str) -> dict:
    return {"op": "advertise", "topic": topic, "type": MESSAGE_TYPE}


def subscribe_op(topic: str, queue_length: int) -> dict:
    return {
        "op": "subscribe",
        "topic": topic,
        "type": MESSAGE_TYPE,
        "queue_length": queue_length,
    }


def publish_op(topic: str, message: ImageMessage) -> dict:
    return {"op": "publish", "topic": topic, "msg": message.model_dump(mode="json")}


class RosbridgeTransport(Transport):
    """
    rosbridge v2 WebSocket transport.

    Attributes:
        url: WebSocket URL of the rosbridge server
        reconnect_backoff_ms: Backoff between reconnect attempts
        max_reconnect_attempts: Max consecutive failed reconnects before
            giving up (0 = unlimited). A successful connect resets the count.

    Example:
        transport = RosbridgeTransport("ws://localhost:9090")
        publisher = transport.advertise("cam1/image_transformed")
        transport.subscribe("cam1/image", on_image)

        task = asyncio.create_task(transport.run())
        ...
        await transport.stop()
        await task
    """

    def __init__(
        self,
        url: str,
        reconnect_backoff_ms: int = 500,
        max_reconnect_attempts: int = 0,
    ) -> None:
        self.url = url
        self.reconnect_backoff_ms = reconnect_backoff_ms
        self.max_reconnect_attempts = max_reconnect_attempts

        # Registrations, kept across reconnects
        self._publishers: Dict[str, List[RosbridgePublisher]] = defaultdict(list)
        self._subscriptions: Dict[str, List[RosbridgeSubscription]] = defaultdict(list)

        # State
        self._websocket: Optional[Any] = None
        self._connected: bool = False
        self._running: bool = False
        self._gave_up: bool = False
        self._failed_attempts: int = 0
        self._stop_event: asyncio.Event = asyncio.Event()
        self._pending_ops: Set[asyncio.Task] = set()
        self._senders: Dict[int, asyncio.Task] = {}

        self._metrics = RosbridgeMetrics()

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def gave_up(self) -> bool:
        """Whether run() exited because reconnect attempts were exhausted."""
        return self._gave_up

    # =========================================================================
    # Registration
    # =========================================================================

    def advertise(self, topic: str, queue_size: int = 5) -> RosbridgePublisher:
        publisher = RosbridgePublisher(self, topic, queue_size)
        first = not self._publishers[topic]
        self._publishers[topic].append(publisher)
        if first:
            self._send_soon(advertise_op(topic))
        if self._websocket is not None:
            self._start_sender(self._websocket, publisher)
        return publisher

    def subscribe(
        self,
        topic: str,
        callback: MessageCallback,
        queue_size: int = 10,
    ) -> RosbridgeSubscription:
        subscription = RosbridgeSubscription(self, topic, callback, queue_size)
        first = not self._subscriptions[topic]
        self._subscriptions[topic].append(subscription)
        if first:
            self._send_soon(subscribe_op(topic, queue_size))
        return subscription

    def _remove_publisher(self, publisher: RosbridgePublisher) -> None:
        publishers = self._publishers.get(publisher.topic, [])
        if publisher not in publishers:
            return
        publishers.remove(publisher)
        sender = self._senders.pop(id(publisher), None)
        if sender is not None:
            sender.cancel()
        if not publishers:
            self._publishers.pop(publisher.topic, None)
            self._send_soon({"op": "unadvertise", "topic": publisher.topic})

    def _remove_subscription(self, subscription: RosbridgeSubscription) -> None:
        subscriptions = self._subscriptions.get(subscription.topic, [])
        if subscription not in subscriptions:
            return
        subscriptions.remove(subscription)
        if not subscriptions:
            self._subscriptions.pop(subscription.topic, None)
            self._send_soon({"op": "unsubscribe", "topic": subscription.topic})

    # =========================================================================
    # Run loop
    # =========================================================================

    async def run(self) -> None:
        """
        Connect and deliver messages.

        Runs until stop() is called, reconnecting on disconnect.
        """
        self._running = True
        self._gave_up = False
        self._failed_attempts = 0
        self._stop_event.clear()

        logger.info(f"RosbridgeTransport starting, connecting to {self.url}")

        while self._running:
            try:
                await self._connect_and_consume()
            except Exception as e:
                if not self._running:
                    break
                logger.error(f"Connection error: {e}")
            self._connected = False

            if not self._running:
                break

            if (
                self.max_reconnect_attempts > 0
                and self._failed_attempts >= self.max_reconnect_attempts
            ):
                logger.error(
                    f"Max reconnect attempts ({self.max_reconnect_attempts}) exceeded"
                )
                self._gave_up = True
                break

            self._failed_attempts += 1
            self._metrics.reconnect_count += 1
            backoff_sec = self.reconnect_backoff_ms / 1000.0
            logger.info(
                f"Reconnecting in {backoff_sec:.1f}s "
                f"(attempt {self._failed_attempts})"
            )

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=backoff_sec)
                break
            except asyncio.TimeoutError:
                pass

        self._running = False
        logger.info("RosbridgeTransport stopped")

    async def stop(self) -> None:
        """Signal the run loop to exit and close the connection."""
        logger.info("RosbridgeTransport stopping...")
        self._running = False
        self._stop_event.set()

        if self._websocket is not None:
            try:
                await self._websocket.close()
            except ConnectionClosed:
                pass

        self._connected = False

    async def _connect_and_consume(self) -> None:
        """Connect, register topics, and dispatch messages until disconnect."""
        async with websockets.connect(
            self.url,
            ping_interval=20,
            ping_timeout=10,
            close_timeout=5,
            max_size=None,
        ) as ws:
            self._websocket = ws
            self._connected = True
            self._failed_attempts = 0
            logger.info(f"Connected to rosbridge: {self.url}")

            try:
                await self._register(ws)
                for publishers in self._publishers.values():
                    for publisher in publishers:
                        self._start_sender(ws, publisher)

                async for raw in ws:
                    if not self._running:
                        break
                    self.handle_frame(raw)

            except ConnectionClosedOK:
                logger.info("Connection closed normally")
            except ConnectionClosedError as e:
                logger.warning(f"Connection closed with error: {e}")
                raise
            finally:
                senders = list(self._senders.values())
                self._senders.clear()
                for task in senders:
                    task.cancel()
                await asyncio.gather(*senders, return_exceptions=True)
                self._connected = False
                self._websocket = None

    async def _register(self, ws) -> None:
        """(Re-)send advertise and subscribe ops for every registered topic."""
        for topic in self._publishers:
            await ws.send(json.dumps(advertise_op(topic)))
        for topic, subscriptions in self._subscriptions.items():
            queue_length = max(s.queue_size for s in subscriptions)
            await ws.send(json.dumps(subscribe_op(topic, queue_length)))
        logger.info(
            f"Registered {len(self._publishers)} publications, "
            f"{len(self._subscriptions)} subscriptions"
        )

    def _start_sender(self, ws, publisher: RosbridgePublisher) -> None:
        if id(publisher) in self._senders:
            return
        self._senders[id(publisher)] = asyncio.get_running_loop().create_task(
            self._drain(ws, publisher), name=f"publish:{publisher.topic}"
        )

    async def _drain(self, ws, publisher: RosbridgePublisher) -> None:
        """Send queued messages of one publisher in FIFO order."""
        while True:
            message = await publisher.queue.get()
            await ws.send(json.dumps(publish_op(publisher.topic, message)))
            self._metrics.messages_sent += 1

    def _send_soon(self, op: dict) -> None:
        """Send a control op now if connected; otherwise it is sent on connect."""
        ws = self._websocket
        if ws is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._send_op(ws, op))
        self._pending_ops.add(task)
        task.add_done_callback(self._pending_ops.discard)

    async def _send_op(self, ws, op: dict) -> None:
        try:
            await ws.send(json.dumps(op))
        except ConnectionClosed as e:
            logger.warning(f"Could not send {op['op']} for {op['topic']}: {e}")

    # =========================================================================
    # Inbound dispatch
    # =========================================================================

    def handle_frame(self, raw) -> None:
        """
        Parse one raw WebSocket frame and dispatch it to subscribers.

        Args:
            raw: JSON text (or bytes) received from rosbridge
        """
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._metrics.parse_errors += 1
            logger.error(f"Failed to parse rosbridge frame: {e}")
            return

        if not isinstance(data, dict):
            self._metrics.parse_errors += 1
            logger.error(f"Invalid rosbridge frame: expected object, got {type(data).__name__}")
            return

        op = data.get("op")
        if op == "status":
            logger.warning(f"rosbridge status ({data.get('level')}): {data.get('msg')}")
            return
        if op != "publish":
            logger.debug(f"Ignoring rosbridge op: {op}")
            return

        topic = data.get("topic")
        subscriptions = list(self._subscriptions.get(topic, ()))
        if not subscriptions:
            return

        try:
            message = ImageMessage.model_validate(data.get("msg"))
        except ValidationError as e:
            self._metrics.parse_errors += 1
            logger.error(f"Invalid image message on {topic}: {e.error_count()} errors: {e}")
            return

        self._metrics.messages_received += 1

        for subscription in subscriptions:
            try:
                subscription.callback(message)
            except Exception as e:
                self._metrics.callback_errors += 1
                logger.exception(f"Subscriber callback failed on {topic}: {e}")

    def metrics(self) -> dict:
        queues = {
            topic: [p.queue.metrics() for p in publishers]
            for topic, publishers in self._publishers.items()
        }
        return {
            "url": self.url,
            "connected": self._connected,
            **self._metrics.to_dict(),
            "publish_queues": queues,
        }
