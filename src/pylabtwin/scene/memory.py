"""In-memory scene for headless runs and tests.

Implements :class:`pylabtwin.scene.base.Scene` with a flat entity table and
a deliberately small integrator: hinge-constrained bodies swing about their
anchor under gravity, joint-motor braking, damping and applied torques;
free bodies drift with their velocities.  It is not a physics engine.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import numpy as np
from scipy.spatial.transform import Rotation

from pylabtwin.geometry import euler_to_rotation, rotate_around, twist_angle, vec3
from pylabtwin.scene.base import BodyState, EntityId, HingeInfo, JointMotor, SceneListener, Transform

_logger = logging.getLogger(__name__)


@dataclass
class _Hinge:
    body: EntityId
    anchor: np.ndarray
    axis: np.ndarray
    rest_rotation: Rotation


@dataclass
class _Entity:
    name: str
    parent: EntityId | None
    transform: Transform
    body: BodyState | None = None
    hinge: _Hinge | None = None
    motor: JointMotor | None = None
    text: str | None = None
    pending_torque: np.ndarray = field(default_factory=lambda: np.zeros(3))
    wake_count: int = 0


class InMemoryScene:
    """Scene held in plain Python objects."""

    def __init__(self, *, gravity: float = 9.81) -> None:
        self._gravity = np.array([0.0, -gravity, 0.0])
        self._entities: dict[EntityId, _Entity] = {}
        self._next_id = 1
        self._listeners: list[SceneListener] = []
        self.physics_steps = 0
        self.inconsistency_warnings = 0

    # ------------------------------------------------------------------
    # Construction helpers (not part of the Scene protocol)
    # ------------------------------------------------------------------

    def add_listener(self, listener: SceneListener) -> None:
        self._listeners.append(listener)

    def create_entity(
        self,
        name: str,
        *,
        parent: EntityId | None = None,
        position: Sequence[float] | None = None,
        rotation: Rotation | Sequence[float] | None = None,
        scale: Sequence[float] | None = None,
    ) -> EntityId:
        """Create an entity; *rotation* may be a Rotation or Euler degrees."""
        if parent is not None and parent not in self._entities:
            raise KeyError(f"Unknown parent entity {parent}")
        entity_id = EntityId(self._next_id)
        self._next_id += 1
        if rotation is None:
            rot = Rotation.identity()
        elif isinstance(rotation, Rotation):
            rot = rotation
        else:
            rot = euler_to_rotation(rotation)
        self._entities[entity_id] = _Entity(
            name=name,
            parent=parent,
            transform=Transform(
                position=vec3(position),
                rotation=rot,
                scale=vec3(scale) if scale is not None else np.ones(3),
            ),
        )
        for listener in self._listeners:
            listener.on_created(name, entity_id)
        return entity_id

    def add_body(self, entity: EntityId, **fields: object) -> None:
        """Attach a rigid body; keyword arguments override :class:`BodyState` defaults."""
        record = self._entity(entity)
        body = BodyState(position=record.transform.position, rotation=record.transform.rotation)
        record.body = dataclasses.replace(body, **fields)  # type: ignore[arg-type]

    def add_hinge(
        self,
        joint_entity: EntityId,
        *,
        body: EntityId,
        anchor: Sequence[float],
        axis: Sequence[float],
    ) -> None:
        """Put a hinge on *joint_entity* constraining *body* about *anchor*/*axis*."""
        target = self._entity(body)
        direction = vec3(axis)
        direction /= np.linalg.norm(direction)
        self._entity(joint_entity).hinge = _Hinge(
            body=body,
            anchor=vec3(anchor),
            axis=direction,
            rest_rotation=target.transform.rotation,
        )

    def destroy_entity(self, entity: EntityId) -> None:
        """Remove *entity* and its children."""
        if entity not in self._entities:
            return
        for child_id in [eid for eid, rec in self._entities.items() if rec.parent == entity]:
            self.destroy_entity(child_id)
        del self._entities[entity]
        for listener in self._listeners:
            listener.on_destroyed(entity)

    def text(self, entity: EntityId) -> str | None:
        return self._entity(entity).text

    def pending_torque(self, entity: EntityId) -> np.ndarray:
        return self._entity(entity).pending_torque.copy()

    def wake_count(self, entity: EntityId) -> int:
        return self._entity(entity).wake_count

    def _entity(self, entity: EntityId) -> _Entity:
        try:
            return self._entities[entity]
        except KeyError:
            raise KeyError(f"Entity {entity} does not exist") from None

    # ------------------------------------------------------------------
    # Scene protocol
    # ------------------------------------------------------------------

    def list_entities(self) -> Iterable[tuple[str, EntityId]]:
        return [(rec.name, eid) for eid, rec in self._entities.items()]

    def find_entity(self, name: str) -> EntityId | None:
        for eid, rec in self._entities.items():
            if rec.name == name:
                return eid
        return None

    def is_alive(self, entity: EntityId) -> bool:
        return entity in self._entities

    def find_child(self, entity: EntityId, name: str) -> EntityId | None:
        for eid, rec in self._entities.items():
            if rec.parent == entity and rec.name == name:
                return eid
        return None

    def get_transform(self, entity: EntityId) -> Transform:
        return self._entity(entity).transform

    def set_transform(self, entity: EntityId, transform: Transform) -> None:
        record = self._entity(entity)
        record.transform = transform
        if record.body is not None:
            record.body = dataclasses.replace(record.body, position=transform.position, rotation=transform.rotation)

    def get_body(self, entity: EntityId) -> BodyState | None:
        return self._entity(entity).body

    def set_body(self, entity: EntityId, body: BodyState) -> None:
        record = self._entity(entity)
        previous = record.body
        moving = bool(np.any(body.linear_velocity) or np.any(body.angular_velocity))
        if previous is not None and previous.is_kinematic and body.is_kinematic and moving:
            # Engines reject velocity writes on kinematic bodies.
            self.inconsistency_warnings += 1
            _logger.warning("Setting velocity of kinematic body '%s' is not supported", record.name)
            body = dataclasses.replace(body, linear_velocity=np.zeros(3), angular_velocity=np.zeros(3))
        record.body = body
        record.transform = dataclasses.replace(record.transform, position=vec3(body.position), rotation=body.rotation)

    def wake_body(self, entity: EntityId) -> None:
        self._entity(entity).wake_count += 1

    def add_torque(self, entity: EntityId, torque: np.ndarray) -> None:
        record = self._entity(entity)
        record.pending_torque = record.pending_torque + vec3(torque)

    def get_hinge(self, entity: EntityId) -> HingeInfo | None:
        hinge = self._entity(entity).hinge
        if hinge is None or hinge.body not in self._entities:
            return None
        current = self._entities[hinge.body].transform.rotation
        angle = twist_angle(current * hinge.rest_rotation.inv(), hinge.axis)
        return HingeInfo(body=hinge.body, anchor=hinge.anchor.copy(), axis=hinge.axis.copy(), angle=angle)

    def get_joint_motor(self, entity: EntityId) -> JointMotor | None:
        record = self._entity(entity)
        if record.hinge is None:
            return None
        return record.motor or JointMotor()

    def set_joint_motor(self, entity: EntityId, motor: JointMotor) -> None:
        record = self._entity(entity)
        if record.hinge is None:
            raise ValueError(f"Entity '{record.name}' has no joint")
        record.motor = motor

    def set_text(self, entity: EntityId, text: str) -> None:
        self._entity(entity).text = text

    def simulate(self, dt: float) -> None:
        """Advance bodies by one fixed step of *dt* seconds."""
        hinges = {rec.hinge.body: rec for rec in self._entities.values() if rec.hinge is not None}
        for eid, record in self._entities.items():
            body = record.body
            if body is None:
                continue
            if body.is_kinematic:
                record.pending_torque = np.zeros(3)
                continue
            joint = hinges.get(eid)
            if joint is not None and joint.hinge is not None:
                body = self._step_hinged(record, body, joint, dt)
            else:
                body = self._step_free(record, body, dt)
            record.body = body
            record.transform = dataclasses.replace(record.transform, position=body.position, rotation=body.rotation)
            record.pending_torque = np.zeros(3)
        self.physics_steps += 1

    def _step_free(self, record: _Entity, body: BodyState, dt: float) -> BodyState:
        velocity = body.linear_velocity + (self._gravity * dt if body.use_gravity else 0.0)
        velocity = velocity / (1.0 + dt * body.linear_damping)
        spin = (body.angular_velocity + record.pending_torque * dt) / (1.0 + dt * body.angular_damping)
        return dataclasses.replace(
            body,
            position=body.position + velocity * dt,
            rotation=Rotation.from_rotvec(spin * dt) * body.rotation,
            linear_velocity=velocity,
            angular_velocity=spin,
        )

    def _step_hinged(self, record: _Entity, body: BodyState, joint: _Entity, dt: float) -> BodyState:
        hinge = joint.hinge
        assert hinge is not None
        axis = hinge.axis
        lever = body.position - hinge.anchor
        radius_sq = float(np.dot(lever, lever)) or 1.0

        omega = float(np.dot(body.angular_velocity, axis))
        accel = float(np.dot(record.pending_torque, axis))
        if body.use_gravity:
            accel += float(np.dot(np.cross(lever, self._gravity), axis)) / radius_sq
        omega += accel * dt

        motor = joint.motor
        if motor is not None and motor.enabled and motor.force > 0:
            inertia = max(body.mass * radius_sq, 1e-9)
            max_change = motor.force * dt / inertia
            target = math.radians(motor.target_velocity)
            omega += max(-max_change, min(max_change, target - omega))

        omega /= (1.0 + dt * body.linear_damping) * (1.0 + dt * body.angular_damping)
        position, rotation = rotate_around(body.position, body.rotation, hinge.anchor, axis, math.degrees(omega * dt))
        spin = axis * omega
        return dataclasses.replace(
            body,
            position=position,
            rotation=rotation,
            angular_velocity=spin,
            linear_velocity=np.cross(spin, position - hinge.anchor),
        )
