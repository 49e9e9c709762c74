"""Shared fixtures: sample messages and an in-process Leap service."""

import asyncio
import json
from typing import List, Optional

import pytest
import pytest_asyncio
from websockets.asyncio.server import serve

from leap_stream import ClientConfig

SERVICE_VERSION = {"serviceVersion": "2.3.1+33747", "version": 6}

# Messages that overflow the parser: nesting past the recursion limit and
# an integer literal longer than the interpreter converts.
DEEP_ARRAY = "[" * 100000
HUGE_NUMBER = '{"currentFrameRate": 1' + "0" * 5000 + "}"


def make_deep_matrix_frame(frame_id: int, depth: int = 3000) -> str:
    """Frame whose rotation matrix is nested far deeper than 3x3."""
    return '{"id": %d, "r": %s}' % (frame_id, "[" * depth + "]" * depth)


def make_frame(frame_id: int, hands: Optional[list] = None) -> dict:
    """Build a v6 tracking frame as the service sends it."""
    return {
        "currentFrameRate": 110.5,
        "id": frame_id,
        "r": [[1, 0, 0], [0, 1, 0], [0, 0, 1]],
        "s": 1.0,
        "t": [0.0, 0.0, 0.0],
        "timestamp": 4729292670 + frame_id,
        "gestures": [],
        "hands": hands or [],
        "interactionBox": {"center": [0, 200, 0], "size": [235.247, 235.247, 147.751]},
        "pointables": [],
    }


def make_hand(hand_id: int = 57, palm=(10.0, 180.0, -5.0)) -> dict:
    return {
        "armBasis": [[0.99, 0.01, 0.1], [0.0, 0.99, -0.1], [-0.1, 0.1, 0.99]],
        "armWidth": 61.2,
        "confidence": 0.97,
        "direction": [0.05, 0.2, -0.97],
        "elbow": [40.0, 60.0, 230.0],
        "grabStrength": 0.0,
        "id": hand_id,
        "palmNormal": [0.01, -0.99, -0.1],
        "palmPosition": list(palm),
        "palmVelocity": [1.0, -2.0, 0.5],
        "pinchStrength": 0.1,
        "r": [[1, 0, 0], [0, 1, 0], [0, 0, 1]],
        "s": 1.0,
        "sphereCenter": [12.0, 200.0, -30.0],
        "sphereRadius": 80.5,
        "stabilizedPalmPosition": list(palm),
        "t": [0.0, 0.0, 0.0],
        "timeVisible": 2.35,
        "type": "right",
        "wrist": [20.0, 170.0, 40.0],
    }


def make_device_event(attached: bool = True, streaming: bool = True) -> dict:
    return {
        "event": {
            "type": "deviceEvent",
            "state": {
                "attached": attached,
                "id": "LP00000000001",
                "streaming": streaming,
                "type": "Peripheral",
            },
        }
    }


class FakeLeapService:
    """
    Minimal stand-in for the Leap service.

    Records the handshake messages it receives, then sends the queued
    outbound messages once both handshake messages have arrived.
    """

    def __init__(self, outbound: Optional[List[str]] = None, close_after_send: bool = False):
        self.outbound = list(outbound or [])
        self.close_after_send = close_after_send
        self.received: List[dict] = []
        self.handshake_done = asyncio.Event()
        self.connections = 0
        self.server = None

    async def handler(self, websocket) -> None:
        self.connections += 1
        handshake = []
        async for raw in websocket:
            message = json.loads(raw)
            handshake.append(message)
            self.received.append(message)
            if len(handshake) == 2:
                self.handshake_done.set()
                for outbound in self.outbound:
                    await websocket.send(outbound)
                if self.close_after_send:
                    await websocket.close()
                    return

    @property
    def url(self) -> str:
        port = next(iter(self.server.sockets)).getsockname()[1]
        return f"ws://127.0.0.1:{port}/v6.json"

    def config(self, **kwargs) -> ClientConfig:
        return ClientConfig(url=self.url, open_timeout=2.0, close_timeout=2.0, **kwargs)


@pytest_asyncio.fixture
async def leap_service():
    """Factory starting FakeLeapService instances on ephemeral ports."""
    servers = []

    async def start(outbound=None, close_after_send=False) -> FakeLeapService:
        service = FakeLeapService(outbound, close_after_send)
        service.server = await serve(service.handler, "127.0.0.1", 0)
        servers.append(service.server)
        return service

    yield start

    for server in servers:
        server.close()
        await server.wait_closed()
