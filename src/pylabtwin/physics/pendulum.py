"""Pendulum reset state machine.

A reset request moves every body of the controller through::

    FREE -> LOCKING -> REPARAMETERIZING -> [TRANSITIONING] -> RELEASING -> FREE

* LOCKING: velocities are zeroed *before* the body is made kinematic, then
  the machine waits for one physics step so the engine has seen the flag.
* REPARAMETERIZING: mass, linear damping and the friction-torque joint
  motor are written.
* TRANSITIONING (only with a target angle): damping is zeroed and the body
  is swept from its current angle to the target over a fixed window with
  smoothstep easing, one *delta* rotation per tick, then snapped exactly.
* RELEASING: kinematic off, velocities zeroed, damping restored, body woken.

The machine is advanced by :meth:`PendulumController.advance` (once per
tick) and :meth:`PendulumController.on_physics_step` (once per physics
step); it never blocks.

A request that arrives while a reset is in flight preempts it: the sweep
stops where it is, the bodies stay locked, parameters the cancelled request
had not applied yet are merged under the new ones, and the machine starts
over at LOCKING.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import numpy as np

from pylabtwin.geometry import delta_angle, lerp_angle, smoothstep
from pylabtwin.models.pendulum import PendulumParams, PendulumTelemetry
from pylabtwin.physics.measure import PendulumRig, RigSpec
from pylabtwin.registry import EntityRegistry
from pylabtwin.scene.base import JointMotor, Scene

if TYPE_CHECKING:
    from pylabtwin._mqtt import Bus

_logger = logging.getLogger(__name__)

#: Friction torques at or below this are treated as "no friction".
FRICTION_EPSILON = 1e-4


class PendulumPhase(StrEnum):
    FREE = "free"
    LOCKING = "locking"
    REPARAMETERIZING = "reparameterizing"
    TRANSITIONING = "transitioning"
    RELEASING = "releasing"


@dataclass(frozen=True)
class RigParams:
    """Requested changes for one body; ``None`` means "leave as is"."""

    mass: float | None = None
    linear_damping: float | None = None
    friction_torque: float | None = None
    target_angle: float | None = None
    """Target in reported-angle space (after offset and inversion)."""

    def overlay(self, newer: RigParams) -> RigParams:
        """Fields of *newer* win; fields it leaves out are kept from ``self``."""
        return RigParams(
            **{
                f.name: getattr(newer, f.name) if getattr(newer, f.name) is not None else getattr(self, f.name)
                for f in dataclasses.fields(self)
            }
        )

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in dataclasses.fields(self))

    @classmethod
    def from_pendulum_params(cls, params: PendulumParams) -> RigParams:
        return cls(
            mass=params.m if params.has("m") else None,
            linear_damping=params.alpha if params.has("alpha") else None,
            friction_torque=params.fs if params.has("fs") else None,
            target_angle=params.angle_init if params.has("angle_init") else None,
        )


@dataclass
class _RigTask:
    rig: PendulumRig
    params: RigParams
    restore_linear_damping: float
    restore_angular_damping: float
    applied: bool = False
    start_angle: float = 0.0
    raw_target: float = 0.0
    last_angle: float = 0.0


class PendulumController:
    """Reset state machine driving one or more pendulum bodies in lockstep."""

    def __init__(
        self,
        scene: Scene,
        entities: EntityRegistry,
        specs: Sequence[RigSpec],
        *,
        transition_duration: float = 2.0,
        publish_rate: float = 0.1,
        telemetry_topic: str | None = None,
        name: str = "pendulum",
        logger: logging.Logger | None = None,
    ) -> None:
        if transition_duration <= 0:
            raise ValueError("transition_duration must be > 0")
        self._scene = scene
        self._entities = entities
        self._specs = tuple(specs)
        self._transition_duration = transition_duration
        self._publish_rate = publish_rate
        self._telemetry_topic = telemetry_topic
        self._name = name
        self._logger = logger or _logger

        self._phase = PendulumPhase.FREE
        self._tasks: list[_RigTask] = []
        self._elapsed = 0.0
        self._next_publish: float | None = None
        self._warned_unresolved = False

    @property
    def phase(self) -> PendulumPhase:
        return self._phase

    @property
    def is_busy(self) -> bool:
        return self._phase != PendulumPhase.FREE

    # ------------------------------------------------------------------
    # Rig resolution
    # ------------------------------------------------------------------

    def rigs(self) -> list[PendulumRig] | None:
        """Resolve every body; ``None`` (with a one-time warning) if any is missing."""
        resolved: list[PendulumRig] = []
        for spec in self._specs:
            rig = spec.resolve(self._entities)
            if rig is None:
                if not self._warned_unresolved:
                    self._logger.warning(
                        "[%s] body '%s' not found; feature disabled until it exists",
                        self._name,
                        spec.body_name,
                    )
                    self._warned_unresolved = True
                return None
            resolved.append(rig)
        self._warned_unresolved = False
        return resolved

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def handle_params(self, params: PendulumParams) -> bool:
        """Start a reset from a single-pendulum parameter message."""
        return self.request([RigParams.from_pendulum_params(params)])

    def request(self, params: Sequence[RigParams]) -> bool:
        """Start (or preempt into) a reset with one :class:`RigParams` per body.

        Returns ``False`` when nothing was started (empty request or bodies
        missing).
        """
        if len(params) != len(self._specs):
            raise ValueError(f"expected {len(self._specs)} parameter sets, got {len(params)}")
        if all(p.is_empty() for p in params):
            return False
        rigs = self.rigs()
        if rigs is None:
            return False
        if any(self._scene.get_body(rig.body) is None for rig in rigs):
            self._logger.warning("[%s] body has no rigid body; reset ignored", self._name)
            return False

        if self._phase == PendulumPhase.FREE:
            tasks = []
            for rig, rig_params in zip(rigs, params, strict=True):
                body = self._scene.get_body(rig.body)
                assert body is not None
                tasks.append(
                    _RigTask(
                        rig=rig,
                        params=rig_params,
                        restore_linear_damping=body.linear_damping,
                        restore_angular_damping=body.angular_damping,
                    )
                )
        else:
            self._logger.info("[%s] new request preempts reset in phase %s", self._name, self._phase)
            tasks = [self._preempted(old, rig, new) for old, rig, new in zip(self._tasks, rigs, params, strict=True)]

        self._tasks = tasks
        self._elapsed = 0.0
        for task in self._tasks:
            self._lock(task)
        self._phase = PendulumPhase.LOCKING
        self._logger.debug("[%s] reset requested params=%s", self._name, [t.params for t in self._tasks])
        return True

    def _preempted(self, old: _RigTask, rig: PendulumRig, new: RigParams) -> _RigTask:
        if not old.applied:
            carried = old.params
        elif self._phase == PendulumPhase.TRANSITIONING:
            carried = RigParams(target_angle=old.params.target_angle)
        else:
            carried = RigParams()
        return _RigTask(
            rig=rig,
            params=carried.overlay(new),
            restore_linear_damping=old.restore_linear_damping,
            restore_angular_damping=old.restore_angular_damping,
        )

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def on_physics_step(self) -> None:
        if self._phase == PendulumPhase.LOCKING:
            self._phase = PendulumPhase.REPARAMETERIZING

    def advance(self, dt: float) -> None:
        """Advance the reset by one tick of *dt* seconds."""
        if self._phase in (PendulumPhase.FREE, PendulumPhase.LOCKING):
            return
        if any(not self._scene.is_alive(t.rig.body) for t in self._tasks):
            self._logger.warning("[%s] body disappeared during reset; abandoning it", self._name)
            for task in self._tasks:
                if self._scene.is_alive(task.rig.body):
                    self._release(task)
            self._tasks = []
            self._phase = PendulumPhase.FREE
            return

        if self._phase == PendulumPhase.REPARAMETERIZING:
            for task in self._tasks:
                self._reparameterize(task)
            if any(t.params.target_angle is not None for t in self._tasks):
                for task in self._tasks:
                    self._begin_sweep(task)
                self._elapsed = 0.0
                self._phase = PendulumPhase.TRANSITIONING
            else:
                self._phase = PendulumPhase.RELEASING
            return

        if self._phase == PendulumPhase.TRANSITIONING:
            self._elapsed += dt
            eased = smoothstep(self._elapsed / self._transition_duration)
            finished = self._elapsed >= self._transition_duration
            for task in self._tasks:
                if task.params.target_angle is None:
                    continue
                intended = lerp_angle(task.start_angle, task.raw_target, eased)
                task.rig.rotate(self._scene, delta_angle(task.last_angle, intended))
                task.last_angle = intended
                if finished:
                    # Remove the residual easing / integration error.
                    current = task.rig.raw_angle(self._scene)
                    task.rig.rotate(self._scene, delta_angle(current, task.raw_target))
            if finished:
                self._phase = PendulumPhase.RELEASING
            return

        if self._phase == PendulumPhase.RELEASING:
            for task in self._tasks:
                self._release(task)
            self._logger.info(
                "[%s] reset complete angles=%s",
                self._name,
                [round(t.rig.reported_angle(self._scene), 3) for t in self._tasks],
            )
            self._tasks = []
            self._phase = PendulumPhase.FREE

    def _lock(self, task: _RigTask) -> None:
        body = self._scene.get_body(task.rig.body)
        if body is None:
            return
        # Velocities must be cleared before the body turns kinematic.
        stopped = dataclasses.replace(body, linear_velocity=np.zeros(3), angular_velocity=np.zeros(3))
        self._scene.set_body(task.rig.body, stopped)
        self._scene.set_body(task.rig.body, dataclasses.replace(stopped, is_kinematic=True))

    def _reparameterize(self, task: _RigTask) -> None:
        params = task.params
        body = self._scene.get_body(task.rig.body)
        if body is not None:
            changes: dict[str, Any] = {}
            if params.mass is not None:
                changes["mass"] = params.mass
            if params.linear_damping is not None:
                changes["linear_damping"] = params.linear_damping
                task.restore_linear_damping = params.linear_damping
            if changes:
                self._scene.set_body(task.rig.body, dataclasses.replace(body, **changes))

        if params.friction_torque is not None:
            self._apply_friction(task.rig, params.friction_torque)
        task.applied = True

    def _apply_friction(self, rig: PendulumRig, friction_torque: float) -> None:
        motor = self._scene.get_joint_motor(rig.joint) if rig.joint is not None else None
        if rig.joint is None or motor is None:
            self._logger.warning("[%s] 'fs' received but no joint found for '%s'", self._name, rig.spec.body_name)
            return
        if friction_torque > FRICTION_EPSILON:
            # Dry friction: a braking motor holding zero velocity with bounded torque.
            self._scene.set_joint_motor(rig.joint, JointMotor(enabled=True, target_velocity=0.0, force=friction_torque))
        else:
            self._scene.set_joint_motor(rig.joint, dataclasses.replace(motor, enabled=False))

    def _begin_sweep(self, task: _RigTask) -> None:
        body = self._scene.get_body(task.rig.body)
        if body is not None:
            self._scene.set_body(task.rig.body, dataclasses.replace(body, linear_damping=0.0, angular_damping=0.0))
        task.start_angle = task.rig.raw_angle(self._scene)
        task.last_angle = task.start_angle
        if task.params.target_angle is not None:
            task.raw_target = task.rig.raw_target(task.params.target_angle)
            self._logger.debug(
                "[%s] sweeping '%s' %.1f -> %.1f",
                self._name,
                task.rig.spec.body_name,
                task.start_angle,
                task.raw_target,
            )

    def _release(self, task: _RigTask) -> None:
        body = self._scene.get_body(task.rig.body)
        if body is None:
            return
        self._scene.set_body(task.rig.body, dataclasses.replace(body, is_kinematic=False))
        body = self._scene.get_body(task.rig.body)
        assert body is not None
        self._scene.set_body(
            task.rig.body,
            dataclasses.replace(
                body,
                linear_velocity=np.zeros(3),
                angular_velocity=np.zeros(3),
                linear_damping=task.restore_linear_damping,
                angular_damping=task.restore_angular_damping,
            ),
        )
        self._scene.wake_body(task.rig.body)

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def telemetry(self, now: float) -> dict[str, Any] | None:
        """Telemetry frame for the current pose, or ``None`` when unresolved."""
        rigs = self.rigs()
        if rigs is None:
            return None
        return PendulumTelemetry(temps=now, angle=rigs[0].reported_angle(self._scene)).to_payload()

    def publish_telemetry(self, now: float, bus: Bus) -> bool:
        """Publish a telemetry frame if one is due at *now*."""
        if self._telemetry_topic is None or self._publish_rate <= 0:
            return False
        if self._next_publish is not None and now < self._next_publish:
            return False
        self._next_publish = now + self._publish_rate
        frame = self.telemetry(now)
        if frame is None:
            return False
        bus.publish(self._telemetry_topic, json.dumps(frame).encode("utf-8"))
        return True
