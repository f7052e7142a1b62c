"""Generic object-update payloads (main inbound topic)."""

from __future__ import annotations

import math
from typing import ClassVar

import numpy as np
from pydantic import AliasChoices, Field, field_validator

from pylabtwin.models._base import TwinBaseModel


class Vec3(TwinBaseModel):
    """``{"x", "y", "z"}`` triple; missing components read as ``0``."""

    _non_finite_is_absent: ClassVar[bool] = False

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @field_validator("x", "y", "z")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("vector components must be finite")
        return value

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def is_zero(self) -> bool:
        return self.x == 0.0 and self.y == 0.0 and self.z == 0.0


class ObjectUpdate(TwinBaseModel):
    """Transform / gauge update for one named entity.

    Every field except ``target_name`` is optional and presence matters:
    ``rotation={0,0,0}`` resets orientation while an absent ``rotation``
    leaves it alone.  Use :meth:`has` to test presence.
    """

    target_name: str = Field(min_length=1)
    position: Vec3 = Field(default_factory=Vec3)
    rotation: Vec3 = Field(default_factory=Vec3)
    """Absolute orientation as Euler angles in degrees."""

    scale: Vec3 = Field(default_factory=Vec3)
    rotation_speed: Vec3 = Field(default_factory=Vec3)
    """Continuous rotation in degrees per second about the local axes."""

    gauge_value: float = Field(
        default=0.0,
        validation_alias=AliasChoices("gaugeValue", "gauge_value"),
    )
    temperature: float = 0.0
    pressure: float = 0.0
    use_gravity: bool = False

    @field_validator("target_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("targetName must be non-empty")
        return name

    def gauge_fields(self) -> list[tuple[str, float]]:
        """Present gauge-like fields in a stable order, as ``(field, value)``."""
        return [(name, getattr(self, name)) for name in ("gauge_value", "temperature", "pressure") if self.has(name)]
