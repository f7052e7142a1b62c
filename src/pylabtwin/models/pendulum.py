"""Pendulum parameter payloads and telemetry frames."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field

from pylabtwin.models._base import TwinBaseModel


class PendulumParams(TwinBaseModel):
    """Single pendulum parameters: ``{m?, alpha?, fs?, angle_init?}``.

    ``alpha`` drives the body's *linear* damping and ``fs`` is a dry
    friction torque applied through the joint motor.
    """

    m: float = Field(default=0.0, ge=0.0)
    alpha: float = Field(default=0.0, ge=0.0)
    fs: float = Field(default=0.0, ge=0.0)
    angle_init: float = 0.0

    def is_empty(self) -> bool:
        return not self.model_fields_set


class CoupledPendulumParams(TwinBaseModel):
    """Coupled pendulum parameters: ``{th1_i?, th2_i?, f?, C?, m1?, m2?}``."""

    th1_i: float = 0.0
    th2_i: float = 0.0
    f: float = Field(default=0.0, ge=0.0)
    """Linear damping shared by both bodies."""

    coupling: float = Field(default=0.0, validation_alias=AliasChoices("C", "coupling"))
    m1: float = Field(default=0.0, ge=0.0)
    m2: float = Field(default=0.0, ge=0.0)

    def touches_bodies(self) -> bool:
        """Whether any body parameter (anything but ``C``) was supplied."""
        return bool(self.model_fields_set - {"coupling"})


class PendulumTelemetry(TwinBaseModel):
    temps: float
    angle: float

    def to_payload(self) -> dict[str, Any]:
        return {"temps": round(self.temps, 4), "angle": round(self.angle, 4)}


class CoupledTelemetry(TwinBaseModel):
    temps: float
    theta1: float
    theta2: float

    def to_payload(self) -> dict[str, Any]:
        return {
            "temps": round(self.temps, 4),
            "theta1": round(self.theta1, 4),
            "theta2": round(self.theta2, 4),
        }
