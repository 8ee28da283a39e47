"""
Stream Relay
============

Wires each stream mapping to live transport endpoints and runs the
per-message pipeline:

    inbound ImageMessage
        -> ImageCodec.decode      (DecodeError: log, drop)
        -> apply_transform        (180 degree rotation)
        -> ImageCodec.encode      (EncodeError: log critical, drop)
        -> publish on the binding's output

Design Rules:
    - One StreamBinding per mapping, indexed by registry position
    - Every publisher is advertised before its subscription exists
    - Callbacks receive the binding index as an explicit bound argument
    - A bad message never raises out of on_message and never affects
      other bindings
    - No shared mutable state between bindings, no locks
"""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Dict, List, Optional

from camera_transformer.image.codec import DecodeError, EncodeError, ImageCodec, metadata_of
from camera_transformer.image.transforms import apply_transform
from camera_transformer.models.message import ImageMessage
from camera_transformer.registry import StreamMapping, TransformRegistry
from camera_transformer.transport.base import Publisher, Subscription, Transport


logger = logging.getLogger(__name__)


class BindingState(str, Enum):
    """Lifecycle state of a stream binding."""

    ACTIVE = "ACTIVE"
    TERMINATED = "TERMINATED"


@dataclass(frozen=True, slots=True)
class StreamBinding:
    """
    Live runtime realization of a stream mapping.

    Attributes:
        index: Position of the mapping in the registry
        mapping: The mapping this binding realizes
        publisher: Handle for the output stream
        subscription: Handle for the input stream
    """

    index: int
    mapping: StreamMapping
    publisher: Publisher
    subscription: Subscription


class BindingMetrics:
    """Per-binding counters."""

    __slots__ = (
        "received",
        "published",
        "decode_errors",
        "encode_errors",
        "state",
    )

    def __init__(self) -> None:
        self.received: int = 0
        self.published: int = 0
        self.decode_errors: int = 0
        self.encode_errors: int = 0
        self.state: BindingState = BindingState.ACTIVE

    def to_dict(self) -> dict:
        return {
            "received": self.received,
            "published": self.published,
            "decode_errors": self.decode_errors,
            "encode_errors": self.encode_errors,
            "state": self.state.value,
        }


class StreamRelay:
    """
    Multiplexed image transformation relay.

    Attributes:
        transport: Injected pub/sub transport
        registry: Ordered stream mappings
        bindings: One StreamBinding per mapping, in registry order

    Example:
        transport = RosbridgeTransport("ws://localhost:9090")
        registry = TransformRegistry.from_pairs([["cam1/image", "cam1/image_transformed"]])

        relay = StreamRelay(transport, registry)
        relay.start()
        await transport.run()
        relay.shutdown()
    """

    def __init__(
        self,
        transport: Transport,
        registry: TransformRegistry,
        codec: Optional[ImageCodec] = None,
        publish_queue_size: int = 5,
        subscribe_queue_size: int = 10,
    ) -> None:
        """
        Initialize stream relay. No endpoints are created until start().

        Args:
            transport: Pub/sub transport to advertise and subscribe on
            registry: Stream mappings to realize
            codec: Image codec (default: ImageCodec())
            publish_queue_size: Outbound queue size per output stream
            subscribe_queue_size: Inbound queue length per input stream
        """
        self.transport = transport
        self.registry = registry
        self.codec = codec or ImageCodec()
        self.publish_queue_size = publish_queue_size
        self.subscribe_queue_size = subscribe_queue_size

        self._bindings: List[StreamBinding] = []
        self._metrics: List[BindingMetrics] = []
        self._started: bool = False

    @property
    def bindings(self) -> List[StreamBinding]:
        return list(self._bindings)

    @property
    def started(self) -> bool:
        return self._started

    def state(self, index: int) -> BindingState:
        """Lifecycle state of the binding at ``index``."""
        return self._metrics[index].state

    def is_active(self) -> bool:
        """Whether every binding is active."""
        return self._started and all(m.state is BindingState.ACTIVE for m in self._metrics)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """
        Create one binding per mapping, in registry order.

        Must complete before the transport starts delivering messages.

        Raises:
            RuntimeError: If the relay was already started
        """
        if self._started:
            raise RuntimeError("StreamRelay already started")

        for index, mapping in enumerate(self.registry):
            # Output first, so the callback never sees an unready publisher
            publisher = self.transport.advertise(
                mapping.output_name,
                queue_size=self.publish_queue_size,
            )
            self._metrics.append(BindingMetrics())
            subscription = self.transport.subscribe(
                mapping.input_name,
                partial(self.on_message, index),
                queue_size=self.subscribe_queue_size,
            )
            self._bindings.append(
                StreamBinding(
                    index=index,
                    mapping=mapping,
                    publisher=publisher,
                    subscription=subscription,
                )
            )
            if mapping.rotation is not None:
                logger.info(
                    f"Rotation value '{mapping.rotation}' for {mapping.input_name} "
                    f"is not used, applying {mapping.transform.value}"
                )
            logger.info(f"Binding {index}: {mapping.input_name} -> {mapping.output_name}")

        self._started = True
        logger.info(f"StreamRelay started with {len(self._bindings)} bindings")

    def shutdown(self) -> None:
        """Close every subscription and publication. Idempotent."""
        for binding in self._bindings:
            metrics = self._metrics[binding.index]
            if metrics.state is BindingState.TERMINATED:
                continue
            binding.subscription.close()
            binding.publisher.close()
            metrics.state = BindingState.TERMINATED

        if self._bindings:
            logger.info("StreamRelay shut down")

    # =========================================================================
    # Per-message pipeline
    # =========================================================================

    def on_message(self, index: int, message: ImageMessage) -> bool:
        """
        Transform one inbound message and republish it.

        Args:
            index: Index of the binding the message arrived on
            message: Inbound image message

        Returns:
            True if a transformed message was published, False if the
            message was dropped.
        """
        if index >= len(self._bindings):
            logger.warning(f"Message for unbound index {index} dropped")
            return False

        binding = self._bindings[index]
        metrics = self._metrics[index]
        mapping = binding.mapping

        if metrics.state is not BindingState.ACTIVE:
            return False
        metrics.received += 1

        try:
            buffer = self.codec.decode(message)
        except DecodeError as e:
            metrics.decode_errors += 1
            logger.error(f"Decode failed on {mapping.input_name} (binding {index}): {e}")
            return False

        transformed = apply_transform(mapping.transform, buffer)

        try:
            outbound = self.codec.encode(transformed, metadata_of(message))
        except EncodeError as e:
            metrics.encode_errors += 1
            logger.critical(
                f"Encode failed for {mapping.output_name} (binding {index}, "
                f"seq={message.header.seq}): {e}"
            )
            return False

        binding.publisher.publish(outbound)
        metrics.published += 1
        return True

    # =========================================================================
    # Observability
    # =========================================================================

    def metrics(self) -> List[Dict[str, object]]:
        """Per-binding metrics, in registry order."""
        return [
            {
                "index": binding.index,
                "input": binding.mapping.input_name,
                "output": binding.mapping.output_name,
                **self._metrics[binding.index].to_dict(),
            }
            for binding in self._bindings
        ]
