"""
camera-transformer
==================

Message-driven image transformation relay.

This package subscribes to one or more live image streams, rotates every
image by 180 degrees, and republishes the result on a derived output
stream, one independently configured mapping per camera.

Components:
    - registry: Ordered stream mappings (TransformRegistry)
    - image: Message <-> pixel buffer codec and geometric transforms
    - relay: Per-message pipeline and subscription bookkeeping (StreamRelay)
    - transport: Pub/sub transports (rosbridge WebSocket, in-memory)
    - api: FastAPI status endpoints
    - main: Command-line entry point

Example:
    from camera_transformer.registry import TransformRegistry
    from camera_transformer.relay import StreamRelay
    from camera_transformer.transport import RosbridgeTransport

    registry = TransformRegistry.from_pairs([["cam1/image", "cam1/image_transformed"]])
    transport = RosbridgeTransport("ws://localhost:9090")

    relay = StreamRelay(transport, registry)
    relay.start()
    await transport.run()
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
