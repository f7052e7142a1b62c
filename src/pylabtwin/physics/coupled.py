"""Coupled pendulums: shared reset state machine plus the spring coupling law."""

from __future__ import annotations

import json
import logging
import math
from typing import TYPE_CHECKING, Any

from pylabtwin.config import CoupledSettings
from pylabtwin.models.pendulum import CoupledPendulumParams, CoupledTelemetry
from pylabtwin.physics.measure import RigSpec
from pylabtwin.physics.pendulum import PendulumController, PendulumPhase, RigParams
from pylabtwin.registry import EntityRegistry
from pylabtwin.scene.base import Scene

if TYPE_CHECKING:
    from pylabtwin._mqtt import Bus

_logger = logging.getLogger(__name__)


def coupling_torque(
    coupling: float,
    theta1_deg: float,
    theta2_deg: float,
    *,
    limit: float = 10_000.0,
) -> float | None:
    """Spring torque ``-C * (θ1 - θ2)`` (radians), clamped to ``±limit``.

    Returns ``None`` when the result is not finite; callers skip the step.
    """
    try:
        torque = -coupling * (math.radians(theta1_deg) - math.radians(theta2_deg))
    except (OverflowError, ValueError):
        return None
    if not math.isfinite(torque):
        return None
    return max(-limit, min(limit, torque))


class CoupledPendulumController:
    """Two hinged bodies joined by a torsion spring of constant ``C``.

    Body parameters (``th1_i``, ``th2_i``, ``f``, ``m1``, ``m2``) go through a
    :class:`PendulumController` driving both bodies in lockstep.  ``C`` is
    applied immediately and never locks the bodies.
    """

    def __init__(
        self,
        scene: Scene,
        entities: EntityRegistry,
        settings: CoupledSettings,
        *,
        telemetry_topic: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._scene = scene
        self._settings = settings
        self._logger = logger or _logger
        self.coupling = settings.coupling_constant
        self._fsm = PendulumController(
            scene,
            entities,
            (RigSpec.from_coupled_body(settings.body1), RigSpec.from_coupled_body(settings.body2)),
            transition_duration=settings.transition_duration,
            publish_rate=settings.publish_rate,
            name="coupled",
            logger=self._logger,
        )
        self._telemetry_topic = telemetry_topic
        self._next_publish: float | None = None

    @property
    def phase(self) -> PendulumPhase:
        return self._fsm.phase

    @property
    def is_busy(self) -> bool:
        return self._fsm.is_busy

    def handle_params(self, params: CoupledPendulumParams) -> bool:
        """Apply a coupled-pendulum parameter message.

        Returns ``True`` when a reset was started.
        """
        if params.has("coupling"):
            self.coupling = params.coupling
            self._logger.info("Coupling constant set to %s", self.coupling)
        if not params.touches_bodies():
            return False

        damping = params.f if params.has("f") else None
        body1 = RigParams(
            mass=params.m1 if params.has("m1") else None,
            linear_damping=damping,
            target_angle=params.th1_i if params.has("th1_i") else None,
        )
        body2 = RigParams(
            mass=params.m2 if params.has("m2") else None,
            linear_damping=damping,
            target_angle=params.th2_i if params.has("th2_i") else None,
        )
        return self._fsm.request([body1, body2])

    def advance(self, dt: float) -> None:
        self._fsm.advance(dt)

    def on_physics_step(self) -> None:
        self._fsm.on_physics_step()

    def apply_coupling(self) -> float | None:
        """Add the coupling torque for this physics step; returns it when applied."""
        if self._fsm.is_busy:
            return None
        rigs = self._fsm.rigs()
        if rigs is None:
            return None
        first, second = rigs
        hinge1 = first.hinge(self._scene)
        hinge2 = second.hinge(self._scene)
        body1 = self._scene.get_body(first.body)
        body2 = self._scene.get_body(second.body)
        if hinge1 is None or hinge2 is None or body1 is None or body2 is None:
            return None
        if body1.is_kinematic or body2.is_kinematic:
            return None

        torque = coupling_torque(
            self.coupling,
            hinge1.angle,
            hinge2.angle,
            limit=self._settings.torque_limit,
        )
        if torque is None:
            self._logger.debug("Discarding non-finite coupling torque")
            return None
        self._scene.add_torque(first.body, hinge1.axis * torque)
        self._scene.add_torque(second.body, -hinge2.axis * torque)
        return torque

    def telemetry(self, now: float) -> dict[str, Any] | None:
        rigs = self._fsm.rigs()
        if rigs is None:
            return None
        first, second = rigs
        return CoupledTelemetry(
            temps=now,
            theta1=first.reported_angle(self._scene),
            theta2=second.reported_angle(self._scene),
        ).to_payload()

    def publish_telemetry(self, now: float, bus: Bus) -> bool:
        if self._telemetry_topic is None or self._settings.publish_rate <= 0:
            return False
        if self._next_publish is not None and now < self._next_publish:
            return False
        self._next_publish = now + self._settings.publish_rate
        frame = self.telemetry(now)
        if frame is None:
            return False
        bus.publish(self._telemetry_topic, json.dumps(frame).encode("utf-8"))
        return True
