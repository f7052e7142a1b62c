"""Per-tick schedulers: continuous rotation and smoothed orientation targets.

Both are keyed by :data:`pylabtwin.scene.base.EntityId` and prune entries
whose entity is no longer alive.
"""

from __future__ import annotations

import dataclasses
import logging

import numpy as np
from scipy.spatial.transform import Rotation

from pylabtwin.geometry import CONVERGENCE_EPSILON_DEG, angular_distance, euler_to_rotation, slerp, vec3
from pylabtwin.scene.base import EntityId, Scene

_logger = logging.getLogger(__name__)


class RotationScheduler:
    """Spins entities at a constant angular velocity (degrees per second)."""

    def __init__(self, scene: Scene) -> None:
        self._scene = scene
        self._tasks: dict[EntityId, np.ndarray] = {}

    def __contains__(self, entity: EntityId) -> bool:
        return entity in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def velocity(self, entity: EntityId) -> np.ndarray | None:
        velocity = self._tasks.get(entity)
        return None if velocity is None else velocity.copy()

    def set(self, entity: EntityId, velocity: np.ndarray) -> None:
        """Create or overwrite the task for *entity*."""
        self._tasks[entity] = vec3(velocity)

    def stop(self, entity: EntityId) -> bool:
        return self._tasks.pop(entity, None) is not None

    def advance(self, dt: float) -> None:
        for entity, velocity in list(self._tasks.items()):
            if not self._scene.is_alive(entity):
                del self._tasks[entity]
                continue
            transform = self._scene.get_transform(entity)
            # One combined Euler increment about the local axes.
            rotation = transform.rotation * euler_to_rotation(velocity * dt)
            self._scene.set_transform(entity, dataclasses.replace(transform, rotation=rotation))


class SmoothingScheduler:
    """Eases local orientations towards targets; entries end on convergence."""

    def __init__(self, scene: Scene, *, speed: float) -> None:
        if speed <= 0:
            raise ValueError("smoothing speed must be > 0")
        self._scene = scene
        self._speed = speed
        self._targets: dict[EntityId, Rotation] = {}

    def __contains__(self, entity: EntityId) -> bool:
        return entity in self._targets

    def __len__(self) -> int:
        return len(self._targets)

    def target(self, entity: EntityId) -> Rotation | None:
        return self._targets.get(entity)

    def set_target(self, entity: EntityId, rotation: Rotation) -> None:
        self._targets[entity] = rotation

    def cancel(self, entity: EntityId) -> None:
        self._targets.pop(entity, None)

    def advance(self, dt: float) -> None:
        factor = dt * self._speed
        for entity, target in list(self._targets.items()):
            if not self._scene.is_alive(entity):
                del self._targets[entity]
                continue
            transform = self._scene.get_transform(entity)
            current = slerp(transform.rotation, target, factor)
            if angular_distance(current, target) < CONVERGENCE_EPSILON_DEG:
                current = target
                del self._targets[entity]
                _logger.debug("Smoothing for entity %s converged", entity)
            self._scene.set_transform(entity, dataclasses.replace(transform, rotation=current))
