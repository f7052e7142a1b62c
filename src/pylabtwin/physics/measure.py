"""Pendulum rigs and how their angle is measured and driven."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass

import numpy as np

from pylabtwin.config import CoupledBodySettings, MeasurementMode, PendulumSettings
from pylabtwin.geometry import Axis, axis_vector, rotate_around, twist_angle, wrap_angle
from pylabtwin.registry import EntityRegistry
from pylabtwin.scene.base import EntityId, HingeInfo, Scene


@dataclass(frozen=True)
class RigSpec:
    """Entity names and measurement settings of one pendulum body."""

    body_name: str
    pivot_name: str | None = None
    joint_name: str | None = None
    axis: Axis = "z"
    measurement: MeasurementMode = "position_vector"
    angle_offset: float = 0.0
    invert: bool = False

    @classmethod
    def from_pendulum(cls, settings: PendulumSettings) -> RigSpec:
        return cls(
            body_name=settings.body_name,
            pivot_name=settings.pivot_name,
            joint_name=settings.joint_name or settings.pivot_name,
            axis=settings.axis,
            measurement=settings.measurement,
            angle_offset=settings.angle_offset,
            invert=settings.invert,
        )

    @classmethod
    def from_coupled_body(cls, settings: CoupledBodySettings) -> RigSpec:
        # Each coupled body carries its own hinge.
        return cls(
            body_name=settings.body_name,
            joint_name=settings.body_name,
            axis=settings.axis,
            measurement="local_rotation",
            angle_offset=settings.angle_offset,
            invert=settings.invert,
        )

    def resolve(self, entities: EntityRegistry) -> PendulumRig | None:
        body = entities.resolve(self.body_name, lowercase_fallback=True)
        if body is None:
            return None
        pivot = entities.resolve(self.pivot_name, lowercase_fallback=True) if self.pivot_name else None
        joint = entities.resolve(self.joint_name, lowercase_fallback=True) if self.joint_name else None
        return PendulumRig(spec=self, body=body, pivot=pivot, joint=joint)


@dataclass(frozen=True)
class PendulumRig:
    """A :class:`RigSpec` resolved to live entity ids."""

    spec: RigSpec
    body: EntityId
    pivot: EntityId | None = None
    joint: EntityId | None = None

    @property
    def sign(self) -> float:
        return -1.0 if self.spec.invert else 1.0

    def hinge(self, scene: Scene) -> HingeInfo | None:
        if self.joint is None or not scene.is_alive(self.joint):
            return None
        return scene.get_hinge(self.joint)

    def raw_angle(self, scene: Scene) -> float:
        """Angle of the body in degrees, before offset and inversion.

        Hinge angle when the rig has a hinge; otherwise the pivot -> body
        direction (``position_vector`` mode); otherwise the local rotation
        projected onto the tracked axis.
        """
        hinge = self.hinge(scene)
        if hinge is not None:
            return hinge.angle

        body_pose = scene.get_transform(self.body)
        if self.spec.measurement == "position_vector" and self.pivot is not None and scene.is_alive(self.pivot):
            direction = body_pose.position - scene.get_transform(self.pivot).position
            if self.spec.axis == "z":
                return math.degrees(math.atan2(direction[0], -direction[1]))
            if self.spec.axis == "x":
                return math.degrees(math.atan2(-direction[2], -direction[1]))
            return math.degrees(math.atan2(direction[0], direction[2]))

        return twist_angle(body_pose.rotation, axis_vector(self.spec.axis))

    def reported_angle(self, scene: Scene) -> float:
        """Calibrated angle as published: ``wrap(sign * raw + offset)``."""
        return wrap_angle(self.sign * self.raw_angle(scene) + self.spec.angle_offset)

    def raw_target(self, reported: float) -> float:
        """Raw angle that will be reported as *reported*."""
        return wrap_angle(self.sign * (reported - self.spec.angle_offset))

    def sweep_frame(self, scene: Scene) -> tuple[np.ndarray, np.ndarray]:
        """Anchor point and axis the body is swept about."""
        hinge = self.hinge(scene)
        if hinge is not None:
            return hinge.anchor, hinge.axis
        axis = axis_vector(self.spec.axis)
        if self.pivot is not None and scene.is_alive(self.pivot):
            return scene.get_transform(self.pivot).position, axis
        return scene.get_transform(self.body).position, axis

    def rotate(self, scene: Scene, angle_deg: float) -> None:
        """Rotate the body about its sweep frame by *angle_deg*."""
        if angle_deg == 0:
            return
        anchor, axis = self.sweep_frame(scene)
        body = scene.get_body(self.body)
        if body is not None:
            position, rotation = rotate_around(body.position, body.rotation, anchor, axis, angle_deg)
            scene.set_body(self.body, dataclasses.replace(body, position=position, rotation=rotation))
            return
        transform = scene.get_transform(self.body)
        position, rotation = rotate_around(transform.position, transform.rotation, anchor, axis, angle_deg)
        scene.set_transform(self.body, dataclasses.replace(transform, position=position, rotation=rotation))
