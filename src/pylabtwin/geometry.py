"""Rotation and angle helpers shared by the actuators and pendulum controllers.

Orientations are :class:`scipy.spatial.transform.Rotation` objects and
vectors are ``numpy`` arrays of shape ``(3,)``.

Euler angles follow the scene convention used on the wire: degrees, applied
about the fixed axes in Z, X, Y order (``"zxy"`` extrinsic), and reported
back as an ``(x, y, z)`` triple in ``[0, 360)``.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Literal

import numpy as np
from scipy.spatial.transform import Rotation

Axis = Literal["x", "y", "z"]

_AXIS_VECTORS: dict[str, tuple[float, float, float]] = {
    "x": (1.0, 0.0, 0.0),
    "y": (0.0, 1.0, 0.0),
    "z": (0.0, 0.0, 1.0),
}

#: Angular distance under which a smoothed orientation counts as arrived.
CONVERGENCE_EPSILON_DEG = 0.1


def vec3(value: Sequence[float] | np.ndarray | None = None) -> np.ndarray:
    """Return *value* as a float ``(3,)`` array (zeros when ``None``)."""
    if value is None:
        return np.zeros(3)
    arr = np.asarray(value, dtype=float).reshape(3)
    return arr.copy()


def axis_vector(axis: Axis) -> np.ndarray:
    try:
        return np.array(_AXIS_VECTORS[axis])
    except KeyError:
        raise ValueError(f"axis must be one of x, y, z (got {axis!r})") from None


def euler_to_rotation(euler_deg: Sequence[float] | np.ndarray) -> Rotation:
    """Build an orientation from an ``(x, y, z)`` Euler triple in degrees."""
    x, y, z = vec3(euler_deg)
    return Rotation.from_euler("zxy", [z, x, y], degrees=True)


def rotation_to_euler(rotation: Rotation) -> np.ndarray:
    """Inverse of :func:`euler_to_rotation`; components wrapped into ``[0, 360)``."""
    z, x, y = rotation.as_euler("zxy", degrees=True)
    return np.mod(np.array([x, y, z]), 360.0)


def axis_rotation(axis: Axis, angle_deg: float) -> Rotation:
    """Rotation of *angle_deg* about one of the principal axes."""
    return Rotation.from_rotvec(axis_vector(axis) * math.radians(angle_deg))


def angular_distance(a: Rotation, b: Rotation) -> float:
    """Smallest angle in degrees taking *a* onto *b*."""
    return math.degrees(float((a.inv() * b).magnitude()))


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def slerp(a: Rotation, b: Rotation, t: float) -> Rotation:
    """Spherical interpolation from *a* towards *b* along the shortest arc."""
    t = clamp01(t)
    if t >= 1.0:
        return b
    delta = (a.inv() * b).as_rotvec()
    return a * Rotation.from_rotvec(delta * t)


def wrap_angle(angle_deg: float) -> float:
    """Wrap an angle into ``(-180, 180]``."""
    wrapped = math.fmod(angle_deg, 360.0)
    if wrapped > 180.0:
        wrapped -= 360.0
    elif wrapped <= -180.0:
        wrapped += 360.0
    return wrapped


def delta_angle(current: float, target: float) -> float:
    """Shortest signed difference from *current* to *target*, in ``(-180, 180]``."""
    return wrap_angle(target - current)


def lerp_angle(start: float, end: float, t: float) -> float:
    """Interpolate between two angles along the shortest way round."""
    return start + delta_angle(start, end) * clamp01(t)


def smoothstep(t: float) -> float:
    """Cubic ``3t² - 2t³`` easing on a clamped parameter."""
    t = clamp01(t)
    return t * t * (3.0 - 2.0 * t)


def twist_angle(rotation: Rotation, axis: Sequence[float] | np.ndarray) -> float:
    """Signed angle (degrees) of the component of *rotation* about *axis*.

    Swing-twist decomposition: only the twist about *axis* is kept.
    """
    direction = vec3(axis)
    norm = float(np.linalg.norm(direction))
    if norm == 0.0:
        return 0.0
    direction /= norm
    x, y, z, w = rotation.as_quat()
    projection = float(np.dot([x, y, z], direction))
    return wrap_angle(math.degrees(2.0 * math.atan2(projection, w)))


def rotate_around(
    position: np.ndarray,
    rotation: Rotation,
    point: Sequence[float] | np.ndarray,
    axis: Sequence[float] | np.ndarray,
    angle_deg: float,
) -> tuple[np.ndarray, Rotation]:
    """Rotate a pose about the line through *point* along *axis*.

    Returns the new ``(position, rotation)`` pair.
    """
    direction = vec3(axis)
    norm = float(np.linalg.norm(direction))
    if norm == 0.0 or angle_deg == 0.0:
        return vec3(position), rotation
    step = Rotation.from_rotvec(direction / norm * math.radians(angle_deg))
    pivot = vec3(point)
    new_position = pivot + step.apply(vec3(position) - pivot)
    return new_position, step * rotation
