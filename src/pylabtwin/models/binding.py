"""Static topic -> entity bindings."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pylabtwin.geometry import Axis


class GaugeType(StrEnum):
    """How a bound numeric value is interpreted."""

    GAUGE = "gauge"
    ROTATION_SPEED = "rotation_speed"
    ROTATION_ABSOLUTE = "rotation_absolute"

    @classmethod
    def _missing_(cls, value: object) -> GaugeType | None:
        # Accept the PascalCase spelling used by older binding files ("RotationSpeed").
        if not isinstance(value, str):
            return None
        folded = value.replace("_", "").lower()
        for member in cls:
            if member.value.replace("_", "") == folded:
                return member
        return None


class TopicBinding(BaseModel):
    """Maps a bus topic carrying a bare number onto a scene entity.

    For ``GAUGE`` bindings the calibration (``min_value``, ``max_value``,
    ``max_angle``) also overrides the built-in defaults when a generic
    update carries a gauge-like field for the same ``target_name``.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    topic: str = Field(min_length=1)
    target_name: str = Field(min_length=1, alias="targetName")
    gauge_type: GaugeType = Field(default=GaugeType.GAUGE, alias="gaugeType")
    min_value: float = Field(default=0.0, alias="minValue")
    max_value: float = Field(default=100.0, alias="maxValue")
    max_angle: float = Field(default=180.0, alias="maxAngle")
    value_child_name: str | None = Field(default=None, alias="valueChildName")
    """Child entity whose display text shows the clamped value."""

    axis: Axis = "z"
    """Axis the pointer (or the entity, for rotation bindings) turns about."""

    @model_validator(mode="after")
    def _check_range(self) -> TopicBinding:
        if self.max_value < self.min_value:
            raise ValueError("maxValue must be >= minValue")
        return self
