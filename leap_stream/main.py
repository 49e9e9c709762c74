#!/usr/bin/env python3
"""
Leap Stream - Main Entry Point

Connects to the local Leap Motion service and prints a summary line for
every tracking frame, optionally with palm positions normalized through
the frame's interaction box.

Usage:
    python -m leap_stream.main
    python -m leap_stream.main --url ws://127.0.0.1:6437/v6.json --normalize --count 100
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional, Set

from websockets.exceptions import InvalidHandshake, InvalidURI

from .config import ClientConfig
from .frame import Frame
from .normalize import NormalizationError
from .ws_client import LeapClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def format_frame(frame: Frame, normalize: bool = False) -> str:
    """Return a one-line summary of a frame."""
    parts = [
        f"frame {frame.id}",
        f"{frame.current_frame_rate:.1f} fps",
        f"hands={len(frame.hands)}",
        f"pointables={len(frame.pointables)}",
        f"gestures={len(frame.gestures)}",
    ]
    for hand in frame.hands:
        position = hand.palm_position
        if normalize:
            try:
                position = frame.interaction_box.normalize_point(position, clamp=True)
            except NormalizationError as e:
                logger.debug(f"Cannot normalize hand {hand.id}: {e}")
                continue
        xyz = " ".join(f"{v:.3f}" for v in position)
        parts.append(f"{hand.type or 'hand'}#{hand.id}: {xyz}")
    return " | ".join(parts)


class FramePrinter:
    """Frame handler that prints frames and closes after a frame budget."""

    def __init__(self, normalize: bool = False, count: Optional[int] = None):
        self.normalize = normalize
        self.count = count
        self.seen = 0
        self.client: Optional[LeapClient] = None

    async def __call__(self, frame: Frame) -> None:
        print(format_frame(frame, self.normalize), flush=True)
        self.seen += 1
        if self.count is not None and self.seen >= self.count and self.client:
            await self.client.close()


def schedule_close(client: LeapClient, tasks: Set[asyncio.Task]) -> asyncio.Task:
    """Start closing the client from a callback, keeping the task referenced."""
    task = asyncio.get_running_loop().create_task(client.close())
    tasks.add(task)
    task.add_done_callback(tasks.discard)
    return task


async def main_async(args: argparse.Namespace) -> None:
    """Async main entry point."""
    config = ClientConfig.from_env()
    if args.url:
        config.url = args.url
    if args.no_gestures:
        config.enable_gestures = False
    if args.no_background:
        config.background = False

    printer = FramePrinter(normalize=args.normalize, count=args.count)

    try:
        client = await LeapClient.connect(printer, config)
    except InvalidURI as e:
        logger.error(f"Invalid service URL: {e}")
        sys.exit(1)
    except InvalidHandshake as e:
        logger.error(f"Service at {config.url} rejected the connection: {e}")
        sys.exit(1)
    except (OSError, asyncio.TimeoutError) as e:
        logger.error(f"Cannot connect to {config.url}: {e} - is the Leap service running?")
        sys.exit(1)
    printer.client = client

    # Handle shutdown signals
    loop = asyncio.get_running_loop()
    close_tasks: Set[asyncio.Task] = set()

    def signal_handler():
        logger.info("Shutdown signal received")
        schedule_close(client, close_tasks)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await client.wait_done()
    finally:
        await client.close()
        logger.info(f"Stream stats: {client.get_stats()}")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Leap Motion WebSocket stream client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--url",
        type=str,
        default=None,
        help="WebSocket endpoint (overrides LEAP_WS_URL)",
    )
    parser.add_argument(
        "--no-gestures",
        action="store_true",
        help="Do not request gesture recognition",
    )
    parser.add_argument(
        "--no-background",
        action="store_true",
        help="Do not request frames while unfocused",
    )
    parser.add_argument(
        "--normalize",
        action="store_true",
        help="Print palm positions normalized to the interaction box",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=None,
        help="Exit after this many frames",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        asyncio.run(main_async(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
