"""Gauge calibration: raw value -> needle angle and display text."""

from __future__ import annotations

from dataclasses import dataclass


def clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))


def angle_for(value: float, min_value: float, max_value: float, max_angle: float) -> float:
    """Needle angle in degrees for *value* on a ``[min_value, max_value]`` dial.

    The value is clamped first.  Increasing values turn the needle in the
    negative direction, so ``min_value`` reads ``0`` and ``max_value`` reads
    exactly ``-max_angle``.  A zero-width range always reads ``0``.
    """
    clamped = clamp_value(value, min_value, max_value)
    span = max_value - min_value
    if span == 0:
        return 0.0
    angle = -((clamped - min_value) / span) * max_angle
    return angle if angle != 0 else 0.0


def display_text(value: float, min_value: float, max_value: float) -> str:
    return f"{clamp_value(value, min_value, max_value):.1f}"


@dataclass(frozen=True)
class GaugeReading:
    value: float
    angle: float
    text: str

    @classmethod
    def compute(cls, value: float, min_value: float, max_value: float, max_angle: float) -> GaugeReading:
        return cls(
            value=clamp_value(value, min_value, max_value),
            angle=angle_for(value, min_value, max_value, max_angle),
            text=display_text(value, min_value, max_value),
        )
