"""
Leap Stream - WebSocket client for the Leap Motion tracking service.

Connects to the local Leap Motion service, performs the configuration
handshake and delivers decoded tracking frames to a handler. Also provides
interaction box normalization for raw sensor coordinates.
"""

__version__ = "1.0.0"

from .config import ClientConfig
from .frame import (
    DeviceEvent,
    Frame,
    FrameDecodeError,
    Gesture,
    Hand,
    InteractionBox,
    Pointable,
    ServiceInfo,
    decode_message,
)
from .normalize import NormalizationError, denormalize_point, normalize_point
from .ws_client import LeapClient, StreamStats, SyncLeapClient

__all__ = [
    "ClientConfig",
    "DeviceEvent",
    "Frame",
    "FrameDecodeError",
    "Gesture",
    "Hand",
    "InteractionBox",
    "LeapClient",
    "NormalizationError",
    "Pointable",
    "ServiceInfo",
    "StreamStats",
    "SyncLeapClient",
    "decode_message",
    "denormalize_point",
    "normalize_point",
]
