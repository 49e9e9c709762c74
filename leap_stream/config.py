"""
Client configuration.

Environment Variables:
    LEAP_WS_URL: Service endpoint (default: ws://localhost:6437/v6.json)
    LEAP_WS_ORIGIN: Origin header sent on connect (default: http://localhost/)
    LEAP_ENABLE_GESTURES: Request gesture recognition (default: true)
    LEAP_BACKGROUND: Receive frames while not focused (default: true)
    LEAP_OPEN_TIMEOUT: Handshake timeout in seconds (default: 10)
"""

import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

DEFAULT_URL = "ws://localhost:6437/v6.json"
DEFAULT_ORIGIN = "http://localhost/"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = environ.get(name)
    if value is None:
        return default
    value = value.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass
class ClientConfig:
    """
    Connection settings for the Leap Motion WebSocket service.

    Attributes:
        url: WebSocket endpoint of the service
        origin: Origin header sent with the opening handshake
        enable_gestures: Ask the service to run gesture recognition
        background: Ask the service to keep sending frames while the
            application is not focused
        background_key: Message key used for the background request
        open_timeout: Seconds allowed for the opening handshake
        close_timeout: Seconds allowed for the closing handshake
        ping_interval: Keepalive ping interval in seconds (None disables)
        max_size: Maximum inbound message size in bytes
    """
    url: str = DEFAULT_URL
    origin: str = DEFAULT_ORIGIN
    enable_gestures: bool = True
    background: bool = True
    background_key: str = "background"
    open_timeout: float = 10.0
    close_timeout: float = 5.0
    ping_interval: Optional[float] = 20.0
    max_size: int = 2 ** 20

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ClientConfig':
        """Load configuration from environment variables."""
        if environ is None:
            environ = os.environ
        return cls(
            url=environ.get("LEAP_WS_URL", DEFAULT_URL),
            origin=environ.get("LEAP_WS_ORIGIN", DEFAULT_ORIGIN),
            enable_gestures=_env_bool(environ, "LEAP_ENABLE_GESTURES", True),
            background=_env_bool(environ, "LEAP_BACKGROUND", True),
            open_timeout=float(environ.get("LEAP_OPEN_TIMEOUT", "10")),
        )

    def handshake_messages(self) -> List[Dict[str, bool]]:
        """Configuration messages sent right after connecting, in order."""
        return [
            {"enableGestures": self.enable_gestures},
            {self.background_key: self.background},
        ]
