"""
Camera Transformer Entry Point
==============================

Command-line bootstrap for the image transformation relay.

Usage:
    camera-transformer --camera cam1/image cam1/image_transformed \\
                       --camera cam2/image cam2/image_transformed 180

    camera-transformer --config config.yaml --status-port 8080

Lifecycle:
    1. Parse options and load configuration (fatal on error, exit 1)
    2. Build the TransformRegistry (fatal on error, exit 1)
    3. Create the transport and start the StreamRelay (all bindings)
    4. Run the transport (and optional status API) until SIGINT/SIGTERM
    5. Terminate bindings, exit 0
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional, Sequence

import uvicorn
import yaml

from camera_transformer.api import create_app
from camera_transformer.config import Settings, load_config, setup_logging
from camera_transformer.registry import ConfigurationError, TransformRegistry
from camera_transformer.relay import StreamRelay
from camera_transformer.transport.base import Transport
from camera_transformer.transport.rosbridge import RosbridgeTransport


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    """Command-line options."""
    parser = argparse.ArgumentParser(
        prog="camera-transformer",
        description="Rotate images from one or more camera streams and republish them.",
        add_help=False,
    )
    parser.add_argument("-h", "--help", action="store_true", help="show this help and exit")
    parser.add_argument(
        "--camera",
        action="append",
        nargs="+",
        metavar="TOPIC",
        help=(
            "repeated argument. should be in the format "
            "<image topic> <transformed image topic> [rotation]"
        ),
    )
    parser.add_argument("--config", help="path to config.yaml")
    parser.add_argument("--url", help="rosbridge WebSocket URL (overrides config)")
    parser.add_argument("--status-port", type=int, help="serve the status API on this port")
    parser.add_argument("--log-level", help="log level (overrides config)")
    return parser


def build_registry(camera_args: Optional[Sequence[Sequence[str]]]) -> TransformRegistry:
    """
    Build the registry from ``--camera`` token lists.

    Raises:
        ConfigurationError: If no camera is configured or an entry is malformed
    """
    if not camera_args:
        raise ConfigurationError("At least one --camera <image topic> <transformed image topic> is required")
    return TransformRegistry.from_pairs(camera_args)


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Apply command-line options on top of file/environment settings."""
    if args.url:
        settings.transport.url = args.url
    if args.status_port is not None:
        settings.server.port = args.status_port
        settings.server.enabled = True
    if args.log_level:
        settings.logging.level = args.log_level
    return settings


def create_transport(settings: Settings) -> Transport:
    """Create the rosbridge transport from settings."""
    return RosbridgeTransport(
        url=settings.transport.url,
        reconnect_backoff_ms=settings.transport.reconnect_backoff_ms,
        max_reconnect_attempts=settings.transport.max_reconnect_attempts,
    )


# =============================================================================
# Runtime
# =============================================================================

async def run(
    settings: Settings,
    registry: TransformRegistry,
    transport: Optional[Transport] = None,
) -> int:
    """
    Run the relay until shutdown.

    Args:
        settings: Loaded configuration
        registry: Validated stream mappings
        transport: Transport to use (default: rosbridge from settings)

    Returns:
        Process exit code
    """
    if transport is None:
        transport = create_transport(settings)

    relay = StreamRelay(
        transport,
        registry,
        publish_queue_size=settings.relay.publish_queue_size,
        subscribe_queue_size=settings.relay.subscribe_queue_size,
    )
    # All bindings exist before the transport delivers anything
    relay.start()

    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()
    handled_signals: List[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop, stop_requested, sig)
            handled_signals.append(sig)
        except (NotImplementedError, RuntimeError):
            pass

    tasks = [asyncio.create_task(transport.run(), name="transport")]

    server: Optional[uvicorn.Server] = None
    if settings.server.enabled:
        server = uvicorn.Server(
            uvicorn.Config(
                create_app(relay, transport),
                host=settings.server.host,
                port=settings.server.port,
                log_level=settings.logging.level.lower(),
            )
        )
        tasks.append(asyncio.create_task(server.serve(), name="status_api"))
        logger.info(f"Status API on {settings.server.host}:{settings.server.port}")

    stop_waiter = asyncio.create_task(stop_requested.wait(), name="stop_signal")

    try:
        await asyncio.wait([*tasks, stop_waiter], return_when=asyncio.FIRST_COMPLETED)
    finally:
        logger.info("Shutting down gracefully...")
        stop_waiter.cancel()
        await transport.stop()
        if server is not None:
            server.should_exit = True
        await asyncio.gather(*tasks, stop_waiter, return_exceptions=True)

        relay.shutdown()
        for sig in handled_signals:
            loop.remove_signal_handler(sig)

    if getattr(transport, "gave_up", False):
        logger.error("Transport gave up reconnecting")
        return 1

    logger.info("Shutdown complete")
    return 0


def _request_stop(stop_requested: asyncio.Event, sig: signal.Signals) -> None:
    logger.info(f"Received {sig.name}, initiating graceful shutdown...")
    stop_requested.set()


# =============================================================================
# Main Entry Point
# =============================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Parse options, validate configuration, and run the relay.

    Returns:
        0 on signal-driven shutdown, 1 on configuration error or help
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.help:
        parser.print_help()
        return 1

    try:
        settings = apply_cli_overrides(load_config(args.config), args)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(settings)

    camera_args = args.camera if args.camera else settings.cameras
    try:
        registry = build_registry(camera_args)
    except ConfigurationError as e:
        print(e, file=sys.stderr)
        return 1

    return asyncio.run(run(settings, registry))


if __name__ == "__main__":
    sys.exit(main())
