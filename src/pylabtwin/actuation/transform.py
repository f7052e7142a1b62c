"""Apply decoded updates to named scene entities."""

from __future__ import annotations

import dataclasses
import logging

from pylabtwin.actuation.calibration import GaugeReading
from pylabtwin.actuation.schedulers import RotationScheduler, SmoothingScheduler
from pylabtwin.exceptions import TwinTargetNotFoundError
from pylabtwin.geometry import Axis, axis_rotation, axis_vector, euler_to_rotation
from pylabtwin.models.binding import GaugeType, TopicBinding
from pylabtwin.models.updates import ObjectUpdate
from pylabtwin.registry import BindingRegistry, EntityRegistry
from pylabtwin.scene.base import EntityId, Scene

_logger = logging.getLogger(__name__)


class TransformActuator:
    """Writes transforms, rotation tasks and gauge needles for one message at a time.

    Field presence drives every effect:

    * ``position`` / ``rotation``: applied whenever present, zero included.
    * ``scale``: applied only when present and nonzero (zero means unset).
    * ``rotation_speed``: nonzero upserts a rotation task, zero removes it.
    * ``gauge_value`` / ``temperature`` / ``pressure``: drive the needle.
    """

    def __init__(
        self,
        scene: Scene,
        entities: EntityRegistry,
        bindings: BindingRegistry,
        rotations: RotationScheduler,
        smoothing: SmoothingScheduler,
        *,
        pointer_child_name: str = "Pointer",
        default_gauge_axis: Axis = "z",
        logger: logging.Logger | None = None,
    ) -> None:
        self._scene = scene
        self._entities = entities
        self._bindings = bindings
        self._rotations = rotations
        self._smoothing = smoothing
        self._pointer_child_name = pointer_child_name
        self._default_gauge_axis = default_gauge_axis
        self._logger = logger or _logger

    def _resolve(self, name: str) -> EntityId:
        entity = self._entities.resolve(name)
        if entity is None:
            raise TwinTargetNotFoundError(name)
        return entity

    def apply_update(self, update: ObjectUpdate) -> EntityId:
        """Apply *update* to its target and return the target id.

        Raises
        ------
        TwinTargetNotFoundError
            No entity called ``update.target_name`` exists; nothing is applied.
        """
        entity = self._resolve(update.target_name)

        body = self._scene.get_body(entity)
        if body is not None:
            # Teleport through the body so velocities and contacts stay consistent.
            changes: dict[str, object] = {}
            if update.has("position"):
                changes["position"] = update.position.as_array()
            if update.has("rotation"):
                changes["rotation"] = euler_to_rotation(update.rotation.as_array())
            if update.has("use_gravity"):
                changes["use_gravity"] = update.use_gravity
            if changes:
                self._scene.set_body(entity, dataclasses.replace(body, **changes))  # type: ignore[arg-type]
        elif update.has("position") or update.has("rotation"):
            transform = self._scene.get_transform(entity)
            if update.has("position"):
                transform = dataclasses.replace(transform, position=update.position.as_array())
            if update.has("rotation"):
                transform = dataclasses.replace(transform, rotation=euler_to_rotation(update.rotation.as_array()))
            self._scene.set_transform(entity, transform)

        # Zero scale is treated as "not provided"; rotation and position are not.
        if update.has("scale") and not update.scale.is_zero():
            transform = self._scene.get_transform(entity)
            self._scene.set_transform(entity, dataclasses.replace(transform, scale=update.scale.as_array()))

        if update.has("rotation_speed"):
            if update.rotation_speed.is_zero():
                self._rotations.stop(entity)
            else:
                self._rotations.set(entity, update.rotation_speed.as_array())

        for field_name, value in update.gauge_fields():
            min_value, max_value, max_angle = self._bindings.calibration_for(update.target_name, field_name)
            binding = self._bindings.resolve_by_target(update.target_name, GaugeType.GAUGE)
            self._apply_gauge(
                entity,
                update.target_name,
                value,
                min_value=min_value,
                max_value=max_value,
                max_angle=max_angle,
                axis=binding.axis if binding is not None else self._default_gauge_axis,
                label_name=binding.value_child_name if binding is not None else None,
            )

        self._wake_if_dynamic(entity)
        self._logger.debug("Updated object '%s' fields=%s", update.target_name, sorted(update.present_fields()))
        return entity

    def apply_binding_value(self, binding: TopicBinding, value: float) -> EntityId:
        """Apply a bare numeric value received on a bound topic."""
        entity = self._resolve(binding.target_name)

        if binding.gauge_type == GaugeType.GAUGE:
            self._apply_gauge(
                entity,
                binding.target_name,
                value,
                min_value=binding.min_value,
                max_value=binding.max_value,
                max_angle=binding.max_angle,
                axis=binding.axis,
                label_name=binding.value_child_name,
            )
        elif binding.gauge_type == GaugeType.ROTATION_SPEED:
            if value == 0:
                self._rotations.stop(entity)
            else:
                self._rotations.set(entity, axis_vector(binding.axis) * value)
        else:
            self._smoothing.set_target(entity, axis_rotation(binding.axis, value))

        self._logger.debug("Binding topic=%s -> '%s' value=%s", binding.topic, binding.target_name, value)
        return entity

    def _apply_gauge(
        self,
        entity: EntityId,
        target_name: str,
        value: float,
        *,
        min_value: float,
        max_value: float,
        max_angle: float,
        axis: Axis,
        label_name: str | None,
    ) -> GaugeReading:
        reading = GaugeReading.compute(value, min_value, max_value, max_angle)

        pointer = self._scene.find_child(entity, self._pointer_child_name)
        if pointer is None:
            self._logger.warning(
                "Gauge '%s' has no '%s' child; needle not moved",
                target_name,
                self._pointer_child_name,
            )
        else:
            self._smoothing.set_target(pointer, axis_rotation(axis, reading.angle))

        if label_name:
            label = self._scene.find_child(entity, label_name)
            if label is None:
                self._logger.warning("Gauge '%s' has no '%s' label child", target_name, label_name)
            else:
                self._scene.set_text(label, reading.text)
        return reading

    def _wake_if_dynamic(self, entity: EntityId) -> None:
        body = self._scene.get_body(entity)
        if body is not None and not body.is_kinematic:
            self._scene.wake_body(entity)
