from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import pytest

from pylabtwin.config import TwinConfig
from pylabtwin.dispatcher import Dispatcher
from pylabtwin.models.binding import TopicBinding
from pylabtwin.scene.memory import InMemoryScene


@dataclass
class FakeBus:
    messages: list[tuple[str, bytes]] = field(default_factory=list)

    def publish(self, topic: str, payload: bytes) -> None:
        self.messages.append((topic, payload))

    def payloads(self, topic: str) -> list[Any]:
        return [json.loads(payload) for t, payload in self.messages if t == topic]


def build_lab_scene() -> InMemoryScene:
    """Gauge, cube, single pendulum and coupled pendulums at rest."""
    scene = InMemoryScene()

    gauge = scene.create_entity("Manometre", position=(0.0, 1.0, 0.0))
    scene.create_entity("Pointer", parent=gauge)
    scene.create_entity("Valeur", parent=gauge)

    jauge = scene.create_entity("Jauge", position=(0.0, 1.0, 1.0))
    scene.create_entity("Pointer", parent=jauge)

    scene.create_entity("Cube", position=(5.0, 0.0, 0.0))

    crate = scene.create_entity("Crate", position=(0.0, 0.0, 5.0))
    scene.add_body(crate, use_gravity=False)

    pivot = scene.create_entity("Pivot", position=(0.0, 2.0, 0.0))
    bob = scene.create_entity("Pendule", position=(0.0, 1.0, 0.0))
    scene.add_body(bob, mass=1.0)
    scene.add_hinge(pivot, body=bob, anchor=(0.0, 2.0, 0.0), axis=(0.0, 0.0, 1.0))

    for name, x in (("Pendule1", -1.0), ("Pendule2", 1.0)):
        body = scene.create_entity(name, position=(x, 1.0, 0.0))
        scene.add_body(body, mass=1.0)
        scene.add_hinge(body, body=body, anchor=(x, 2.0, 0.0), axis=(0.0, 0.0, 1.0))
    return scene


def run_until_idle(dispatcher: Dispatcher, *, dt: float = 0.02, max_frames: int = 1000) -> int:
    """Alternate physics steps and ticks until both pendulum controllers are free."""
    frames = 0
    dispatcher.tick(dt)
    while dispatcher.pendulum.is_busy or dispatcher.coupled.is_busy:
        if frames >= max_frames:
            raise AssertionError("pendulum reset did not finish")
        dispatcher.physics_step(dt)
        dispatcher.tick(dt)
        frames += 1
    return frames


@pytest.fixture
def scene() -> InMemoryScene:
    return build_lab_scene()


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()


@pytest.fixture
def gauge_binding() -> TopicBinding:
    return TopicBinding(
        topic="lab/manometre",
        target_name="Manometre",
        max_value=10.0,
        value_child_name="Valeur",
    )


@pytest.fixture
def config(gauge_binding: TopicBinding) -> TwinConfig:
    return TwinConfig(bindings=(gauge_binding,))


@pytest.fixture
def dispatcher(config: TwinConfig, scene: InMemoryScene, bus: FakeBus) -> Dispatcher:
    return Dispatcher(config, scene, bus)
