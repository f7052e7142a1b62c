from __future__ import annotations

import math

import numpy as np
import pytest

from pylabtwin.geometry import (
    angular_distance,
    axis_rotation,
    delta_angle,
    euler_to_rotation,
    lerp_angle,
    rotate_around,
    rotation_to_euler,
    slerp,
    smoothstep,
    twist_angle,
    wrap_angle,
)


@pytest.mark.parametrize(
    ("angle", "expected"),
    [(0.0, 0.0), (190.0, -170.0), (-190.0, 170.0), (180.0, 180.0), (-180.0, 180.0), (720.0 + 30.0, 30.0)],
)
def test_wrap_angle(angle: float, expected: float) -> None:
    assert wrap_angle(angle) == pytest.approx(expected)


def test_wrap_angle_range_and_idempotence() -> None:
    angles = np.concatenate([np.linspace(-1080.0, 1080.0, 4321), [-180.0, 180.0, 540.0, -540.0, 1e-12, -1e-12, 1e9]])
    for angle in angles:
        wrapped = wrap_angle(float(angle))
        assert -180.0 < wrapped <= 180.0
        assert wrap_angle(wrapped) == wrapped


def test_delta_angle_takes_the_short_way_round() -> None:
    assert delta_angle(170.0, -170.0) == pytest.approx(20.0)
    assert delta_angle(-170.0, 170.0) == pytest.approx(-20.0)
    assert lerp_angle(170.0, -170.0, 0.5) == pytest.approx(180.0)


def test_smoothstep_is_clamped_and_symmetric() -> None:
    assert smoothstep(-1.0) == 0.0
    assert smoothstep(0.5) == pytest.approx(0.5)
    assert smoothstep(2.0) == 1.0
    samples = [smoothstep(i / 20) for i in range(21)]
    assert samples == sorted(samples)


def test_euler_matches_wire_convention() -> None:
    rotation = euler_to_rotation((10.0, 20.0, 30.0))
    assert rotation_to_euler(rotation) == pytest.approx([10.0, 20.0, 30.0])
    # A pure yaw equals a rotation about +Y.
    assert angular_distance(euler_to_rotation((0.0, 90.0, 0.0)), axis_rotation("y", 90.0)) < 1e-9


def test_slerp_moves_along_shortest_arc() -> None:
    start = axis_rotation("z", 0.0)
    end = axis_rotation("z", 90.0)
    halfway = slerp(start, end, 0.5)
    assert twist_angle(halfway, (0.0, 0.0, 1.0)) == pytest.approx(45.0)
    assert slerp(start, end, 1.5) is end


def test_twist_angle_ignores_swing() -> None:
    rotation = axis_rotation("z", 30.0) * axis_rotation("x", 0.0)
    assert twist_angle(rotation, (0.0, 0.0, 1.0)) == pytest.approx(30.0)
    assert twist_angle(axis_rotation("z", -45.0), (0.0, 0.0, 1.0)) == pytest.approx(-45.0)
    assert twist_angle(axis_rotation("x", 60.0), (0.0, 0.0, 1.0)) == pytest.approx(0.0)


def test_rotate_around_pivot() -> None:
    position, rotation = rotate_around(np.array([0.0, -1.0, 0.0]), axis_rotation("z", 0.0), (0, 0, 0), (0, 0, 1), 90.0)
    assert position == pytest.approx([1.0, 0.0, 0.0])
    assert math.degrees(rotation.magnitude()) == pytest.approx(90.0)
