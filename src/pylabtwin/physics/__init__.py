"""Pendulum controllers and angle measurement."""

from pylabtwin.physics.coupled import CoupledPendulumController, coupling_torque
from pylabtwin.physics.measure import PendulumRig, RigSpec
from pylabtwin.physics.pendulum import PendulumController, PendulumPhase, RigParams

__all__ = [
    "CoupledPendulumController",
    "PendulumController",
    "PendulumPhase",
    "PendulumRig",
    "RigParams",
    "RigSpec",
    "coupling_torque",
]
