"""Wire models for pylabtwin payloads."""

from pylabtwin.models._base import TwinBaseModel
from pylabtwin.models.binding import GaugeType, TopicBinding
from pylabtwin.models.pendulum import (
    CoupledPendulumParams,
    CoupledTelemetry,
    PendulumParams,
    PendulumTelemetry,
)
from pylabtwin.models.updates import ObjectUpdate, Vec3

__all__ = [
    "CoupledPendulumParams",
    "CoupledTelemetry",
    "GaugeType",
    "ObjectUpdate",
    "PendulumParams",
    "PendulumTelemetry",
    "TopicBinding",
    "TwinBaseModel",
    "Vec3",
]
