"""
Interaction box normalization.

Converts points between the Leap Motion frame of reference (millimeters)
and the unit cube of an interaction box, where the minimum corner of the
box maps to 0 and the maximum corner maps to 1 on each axis.
"""

from typing import Sequence, Tuple

import numpy as np

Vector3 = Tuple[float, float, float]


class NormalizationError(ValueError):
    """Raised when a box or point does not have exactly 3 components."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


def _as_vec3(values: Sequence[float], field: str) -> np.ndarray:
    """Convert a 3-component sequence to a float64 array."""
    if values is None or len(values) != 3:
        count = 0 if values is None else len(values)
        raise NormalizationError(
            field, f"{field} must have exactly 3 values, got {count}"
        )
    return np.asarray(values, dtype=np.float64)


def _box_vectors(box) -> Tuple[np.ndarray, np.ndarray]:
    center = _as_vec3(box.center, "center")
    size = _as_vec3(box.size, "size")
    return center, size


def normalize_point(box, point: Sequence[float], clamp: bool = True) -> Vector3:
    """
    Normalize a sensor-space point using an interaction box.

    Each axis is mapped independently with
    ``(point - center) / size + 0.5``. A zero extent in ``box.size`` is not
    guarded and yields inf/nan on that axis.

    Args:
        box: Object with ``center`` and ``size`` sequences (an InteractionBox)
        point: Raw point in millimeters
        clamp: Saturate each axis into [0, 1]

    Returns:
        Normalized (x, y, z)

    Raises:
        NormalizationError: If center, size or point is not 3 components
    """
    center, size = _box_vectors(box)
    vec = _as_vec3(point, "point")

    normalized = (vec - center) / size + 0.5

    if clamp:
        normalized = np.minimum(np.maximum(normalized, 0.0), 1.0)

    return tuple(float(v) for v in normalized)


def denormalize_point(box, point: Sequence[float]) -> Vector3:
    """
    Convert a normalized point back to the Leap Motion frame of reference.

    Inverse of an unclamped ``normalize_point``.
    """
    center, size = _box_vectors(box)
    vec = _as_vec3(point, "point")

    raw = (vec - 0.5) * size + center

    return tuple(float(v) for v in raw)
