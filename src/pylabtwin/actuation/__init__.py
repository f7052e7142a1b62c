"""Actuation: gauge calibration, transform writes and per-tick schedulers."""

from pylabtwin.actuation.calibration import GaugeReading, angle_for, display_text
from pylabtwin.actuation.schedulers import RotationScheduler, SmoothingScheduler
from pylabtwin.actuation.transform import TransformActuator

__all__ = [
    "GaugeReading",
    "RotationScheduler",
    "SmoothingScheduler",
    "TransformActuator",
    "angle_for",
    "display_text",
]
