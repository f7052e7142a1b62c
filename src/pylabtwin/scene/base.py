"""Scene capability surface required by the actuation core.

The rendering/physics engine is an external collaborator.  The core only
talks to it through :class:`Scene`; any engine binding (or the bundled
:class:`pylabtwin.scene.memory.InMemoryScene`) implements this protocol.

Entities are addressed by stable integer ids (:data:`EntityId`).  An id is
never reused, and liveness is always asked of the scene
(:meth:`Scene.is_alive`) instead of relying on a nullable reference.

Transforms are expressed in the entity's parent frame (world frame for root
entities).  Hinge anchors and axes use the same frame as the hinged body.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import NewType, Protocol

import numpy as np
from scipy.spatial.transform import Rotation

EntityId = NewType("EntityId", int)


def _zeros() -> np.ndarray:
    return np.zeros(3)


def _ones() -> np.ndarray:
    return np.ones(3)


def _identity() -> Rotation:
    return Rotation.identity()


@dataclass(frozen=True, eq=False)
class Transform:
    """Visual transform of an entity."""

    position: np.ndarray = field(default_factory=_zeros)
    rotation: Rotation = field(default_factory=_identity)
    scale: np.ndarray = field(default_factory=_ones)


@dataclass(frozen=True, eq=False)
class BodyState:
    """Rigid-body state.  Writing position/rotation through a body teleports it."""

    position: np.ndarray = field(default_factory=_zeros)
    rotation: Rotation = field(default_factory=_identity)
    linear_velocity: np.ndarray = field(default_factory=_zeros)
    angular_velocity: np.ndarray = field(default_factory=_zeros)
    mass: float = 1.0
    linear_damping: float = 0.0
    angular_damping: float = 0.05
    is_kinematic: bool = False
    use_gravity: bool = True


@dataclass(frozen=True, eq=False)
class HingeInfo:
    """Single-axis joint: *body* turns about *axis* through *anchor*."""

    body: EntityId
    anchor: np.ndarray
    axis: np.ndarray
    angle: float
    """Current joint angle in degrees, in ``(-180, 180]``."""


@dataclass(frozen=True)
class JointMotor:
    enabled: bool = False
    target_velocity: float = 0.0
    force: float = 0.0


class SceneListener(Protocol):
    """Receives entity lifecycle notifications from a scene."""

    def on_created(self, name: str, entity: EntityId) -> None: ...

    def on_destroyed(self, entity: EntityId) -> None: ...


class Scene(Protocol):
    """Capabilities the core needs from the engine."""

    def list_entities(self) -> Iterable[tuple[str, EntityId]]: ...

    def find_entity(self, name: str) -> EntityId | None: ...

    def is_alive(self, entity: EntityId) -> bool: ...

    def find_child(self, entity: EntityId, name: str) -> EntityId | None: ...

    def get_transform(self, entity: EntityId) -> Transform: ...

    def set_transform(self, entity: EntityId, transform: Transform) -> None: ...

    def get_body(self, entity: EntityId) -> BodyState | None: ...

    def set_body(self, entity: EntityId, body: BodyState) -> None: ...

    def wake_body(self, entity: EntityId) -> None: ...

    def add_torque(self, entity: EntityId, torque: np.ndarray) -> None: ...

    def get_hinge(self, entity: EntityId) -> HingeInfo | None: ...

    def get_joint_motor(self, entity: EntityId) -> JointMotor | None: ...

    def set_joint_motor(self, entity: EntityId, motor: JointMotor) -> None: ...

    def set_text(self, entity: EntityId, text: str) -> None: ...

    def simulate(self, dt: float) -> None: ...
