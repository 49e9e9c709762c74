"""
Tracking data model and inbound message decoding.

Defines the records of the Leap Motion v6 JSON protocol and decodes each
inbound WebSocket message into one of them. Decoding is faithful rather
than validating: missing fields take empty defaults, but a field of the
wrong type rejects the whole message.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from .normalize import Vector3, denormalize_point, normalize_point


class FrameDecodeError(ValueError):
    """Raised when an inbound message cannot be decoded."""


# ============================================================================
# Field Helpers
# ============================================================================

def _number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FrameDecodeError(f"{key}: expected number, got {type(value).__name__}")
    try:
        return float(value)
    except OverflowError as e:
        raise FrameDecodeError(f"{key}: number out of range") from e


def _float(d: Dict[str, Any], key: str) -> float:
    value = d.get(key)
    if value is None:
        return 0.0
    return _number(value, key)


def _int(d: Dict[str, Any], key: str) -> int:
    value = d.get(key)
    if value is None:
        return 0
    return _integral(value, key)


def _integral(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise FrameDecodeError(f"{key}: expected integer, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise FrameDecodeError(f"{key}: expected integer, got {value!r}")


def _bool(d: Dict[str, Any], key: str) -> bool:
    value = d.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise FrameDecodeError(f"{key}: expected bool, got {type(value).__name__}")
    return value


def _str(d: Dict[str, Any], key: str) -> str:
    value = d.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise FrameDecodeError(f"{key}: expected string, got {type(value).__name__}")
    return value


def _list(d: Dict[str, Any], key: str) -> list:
    value = d.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise FrameDecodeError(f"{key}: expected array, got {type(value).__name__}")
    return value


def _vector(d: Dict[str, Any], key: str) -> Tuple[float, ...]:
    return tuple(_number(v, key) for v in _list(d, key))


def _int_vector(d: Dict[str, Any], key: str) -> Tuple[int, ...]:
    return tuple(_integral(v, key) for v in _list(d, key))


def _nested(value: Any, key: str):
    """Convert arbitrarily nested number arrays (matrices, bone bases)."""
    if isinstance(value, list):
        return tuple(_nested(v, key) for v in value)
    return _number(value, key)


def _matrix(d: Dict[str, Any], key: str) -> tuple:
    return tuple(_nested(row, key) for row in _list(d, key))


def _object(value: Any, key: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise FrameDecodeError(f"{key}: expected object, got {type(value).__name__}")
    return value


# ============================================================================
# Records
# ============================================================================

@dataclass(frozen=True)
class InteractionBox:
    """
    Currently valid tracking volume of the device.

    Attributes:
        center: Midpoint of the box in millimeters (integers on the wire)
        size: Full width, height and depth of the box in millimeters
    """
    center: Tuple[int, ...] = ()
    size: Tuple[float, ...] = ()

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'InteractionBox':
        d = _object(d, "interactionBox")
        return cls(
            center=_int_vector(d, "center"),
            size=_vector(d, "size"),
        )

    @property
    def width(self) -> float:
        return self.size[0]

    @property
    def height(self) -> float:
        return self.size[1]

    @property
    def depth(self) -> float:
        return self.size[2]

    def normalize_point(self, position: Sequence[float], clamp: bool = True) -> Vector3:
        """Map a point in millimeters into this box's [0, 1] range."""
        return normalize_point(self, position, clamp)

    def denormalize_point(self, position: Sequence[float]) -> Vector3:
        """Map a normalized point back to millimeters."""
        return denormalize_point(self, position)


@dataclass(frozen=True)
class Gesture:
    """Gesture recognized in a frame (circle, swipe, keyTap, screenTap)."""
    id: int = 0
    type: str = ""
    state: str = ""
    duration: int = 0
    hand_ids: Tuple[int, ...] = ()
    pointable_ids: Tuple[int, ...] = ()
    center: Tuple[float, ...] = ()
    direction: Tuple[float, ...] = ()
    normal: Tuple[float, ...] = ()
    position: Tuple[float, ...] = ()
    start_position: Tuple[float, ...] = ()
    progress: float = 0.0
    radius: float = 0.0
    speed: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Gesture':
        d = _object(d, "gestures")
        return cls(
            id=_int(d, "id"),
            type=_str(d, "type"),
            state=_str(d, "state"),
            duration=_int(d, "duration"),
            hand_ids=_int_vector(d, "handIds"),
            pointable_ids=_int_vector(d, "pointableIds"),
            center=_vector(d, "center"),
            direction=_vector(d, "direction"),
            normal=_vector(d, "normal"),
            position=_vector(d, "position"),
            start_position=_vector(d, "startPosition"),
            progress=_float(d, "progress"),
            radius=_float(d, "radius"),
            speed=_float(d, "speed"),
        )


@dataclass(frozen=True)
class Hand:
    """Tracked hand. Positions are in millimeters from the device origin."""
    id: int = 0
    type: str = ""
    confidence: float = 0.0
    arm_basis: tuple = ()
    arm_width: float = 0.0
    direction: Tuple[float, ...] = ()
    elbow: Tuple[float, ...] = ()
    wrist: Tuple[float, ...] = ()
    grab_strength: float = 0.0
    pinch_strength: float = 0.0
    palm_normal: Tuple[float, ...] = ()
    palm_position: Tuple[float, ...] = ()
    palm_velocity: Tuple[float, ...] = ()
    stabilized_palm_position: Tuple[float, ...] = ()
    sphere_center: Tuple[float, ...] = ()
    sphere_radius: float = 0.0
    r: tuple = ()
    s: float = 0.0
    t: Tuple[float, ...] = ()
    time_visible: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Hand':
        d = _object(d, "hands")
        return cls(
            id=_int(d, "id"),
            type=_str(d, "type"),
            confidence=_float(d, "confidence"),
            arm_basis=_matrix(d, "armBasis"),
            arm_width=_float(d, "armWidth"),
            direction=_vector(d, "direction"),
            elbow=_vector(d, "elbow"),
            wrist=_vector(d, "wrist"),
            grab_strength=_float(d, "grabStrength"),
            pinch_strength=_float(d, "pinchStrength"),
            palm_normal=_vector(d, "palmNormal"),
            palm_position=_vector(d, "palmPosition"),
            palm_velocity=_vector(d, "palmVelocity"),
            stabilized_palm_position=_vector(d, "stabilizedPalmPosition"),
            sphere_center=_vector(d, "sphereCenter"),
            sphere_radius=_float(d, "sphereRadius"),
            r=_matrix(d, "r"),
            s=_float(d, "s"),
            t=_vector(d, "t"),
            time_visible=_float(d, "timeVisible"),
        )


@dataclass(frozen=True)
class Pointable:
    """Finger or tool attached to a hand."""
    id: int = 0
    hand_id: int = 0
    type: int = 0
    tool: bool = False
    extended: bool = False
    length: float = 0.0
    width: float = 0.0
    bases: tuple = ()
    btip_position: Tuple[float, ...] = ()
    carp_position: Tuple[float, ...] = ()
    dip_position: Tuple[float, ...] = ()
    mcp_position: Tuple[float, ...] = ()
    pip_position: Tuple[float, ...] = ()
    direction: Tuple[float, ...] = ()
    tip_position: Tuple[float, ...] = ()
    tip_velocity: Tuple[float, ...] = ()
    stabilized_tip_position: Tuple[float, ...] = ()
    time_visible: float = 0.0
    touch_distance: float = 0.0
    touch_zone: str = ""

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Pointable':
        d = _object(d, "pointables")
        return cls(
            id=_int(d, "id"),
            hand_id=_int(d, "handId"),
            type=_int(d, "type"),
            tool=_bool(d, "tool"),
            extended=_bool(d, "extended"),
            length=_float(d, "length"),
            width=_float(d, "width"),
            bases=_matrix(d, "bases"),
            btip_position=_vector(d, "btipPosition"),
            carp_position=_vector(d, "carpPosition"),
            dip_position=_vector(d, "dipPosition"),
            mcp_position=_vector(d, "mcpPosition"),
            pip_position=_vector(d, "pipPosition"),
            direction=_vector(d, "direction"),
            tip_position=_vector(d, "tipPosition"),
            tip_velocity=_vector(d, "tipVelocity"),
            stabilized_tip_position=_vector(d, "stabilizedTipPosition"),
            time_visible=_float(d, "timeVisible"),
            touch_distance=_float(d, "touchDistance"),
            touch_zone=_str(d, "touchZone"),
        )


@dataclass(frozen=True)
class Frame:
    """
    One unit of tracking data from the sensor stream.

    Attributes:
        current_frame_rate: Instantaneous device frame rate (fps)
        id: Frame id, increasing
        r: 3x3 rotation matrix relative to the previous frame
        s: Scale factor relative to the previous frame
        t: Translation vector relative to the previous frame
        timestamp: Device timestamp in microseconds
        gestures: Gestures active in this frame
        hands: Tracked hands
        interaction_box: Tracking volume used for normalization
        pointables: Tracked fingers and tools
    """
    current_frame_rate: float = 0.0
    id: int = 0
    r: tuple = ()
    s: float = 0.0
    t: Tuple[float, ...] = ()
    timestamp: int = 0
    gestures: Tuple[Gesture, ...] = ()
    hands: Tuple[Hand, ...] = ()
    interaction_box: InteractionBox = field(default_factory=InteractionBox)
    pointables: Tuple[Pointable, ...] = ()

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'Frame':
        d = _object(d, "frame")
        box = d.get("interactionBox")
        return cls(
            current_frame_rate=_float(d, "currentFrameRate"),
            id=_int(d, "id"),
            r=_matrix(d, "r"),
            s=_float(d, "s"),
            t=_vector(d, "t"),
            timestamp=_int(d, "timestamp"),
            gestures=tuple(Gesture.from_dict(g) for g in _list(d, "gestures")),
            hands=tuple(Hand.from_dict(h) for h in _list(d, "hands")),
            interaction_box=InteractionBox.from_dict(box) if box is not None else InteractionBox(),
            pointables=tuple(Pointable.from_dict(p) for p in _list(d, "pointables")),
        )

    def hand(self, hand_id: int) -> Optional[Hand]:
        """Find a hand by id."""
        for hand in self.hands:
            if hand.id == hand_id:
                return hand
        return None

    def pointables_for_hand(self, hand_id: int) -> Tuple[Pointable, ...]:
        """Fingers and tools attached to the given hand."""
        return tuple(p for p in self.pointables if p.hand_id == hand_id)


@dataclass(frozen=True)
class DeviceEvent:
    """
    Device state change sent when the controller is plugged or unplugged,
    or when the service is paused or resumed.
    """
    id: str = ""
    attached: bool = False
    streaming: bool = False
    type: str = ""

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'DeviceEvent':
        event = _object(d, "event")
        state = _object(event.get("state", {}), "state")
        return cls(
            id=_str(state, "id"),
            attached=_bool(state, "attached"),
            streaming=_bool(state, "streaming"),
            type=_str(state, "type"),
        )


@dataclass(frozen=True)
class ServiceInfo:
    """Version header sent once by the service after connecting."""
    service_version: str = ""
    version: int = 0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'ServiceInfo':
        return cls(
            service_version=_str(d, "serviceVersion"),
            version=_int(d, "version"),
        )


Message = Union[Frame, DeviceEvent, ServiceInfo]


def decode_message(raw: Union[str, bytes]) -> Message:
    """
    Decode one inbound WebSocket message.

    Args:
        raw: Text (or UTF-8 bytes) of a single message

    Returns:
        Frame, DeviceEvent or ServiceInfo depending on the message shape

    Raises:
        FrameDecodeError: If the message is not JSON, not an object, is
            nested too deeply, or has a field of the wrong type
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FrameDecodeError(f"message is not UTF-8: {e}") from e

    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as e:
        raise FrameDecodeError(f"message is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise FrameDecodeError(f"expected JSON object, got {type(data).__name__}")

    try:
        if "event" in data:
            return DeviceEvent.from_dict(data["event"])
        if "serviceVersion" in data:
            return ServiceInfo.from_dict(data)
        return Frame.from_dict(data)
    except RecursionError as e:
        raise FrameDecodeError(f"message is nested too deeply: {e}") from e
