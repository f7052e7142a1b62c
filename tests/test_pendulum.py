from __future__ import annotations

import json
import logging

import numpy as np
import pytest

from pylabtwin.config import PendulumSettings, TwinConfig
from pylabtwin.dispatcher import Dispatcher
from pylabtwin.physics.measure import RigSpec
from pylabtwin.physics.pendulum import PendulumController, PendulumPhase, RigParams
from pylabtwin.registry import EntityRegistry
from pylabtwin.scene.base import JointMotor
from pylabtwin.scene.memory import InMemoryScene
from conftest import FakeBus, run_until_idle

DT = 0.02


def _send(dispatcher: Dispatcher, document: dict) -> None:
    dispatcher.enqueue(dispatcher._config.topics.pendulum_in, json.dumps(document).encode())


def _angle(dispatcher: Dispatcher) -> float:
    frame = dispatcher.pendulum.telemetry(0.0)
    assert frame is not None
    return frame["angle"]


def test_reset_reaches_requested_angle_and_releases(dispatcher: Dispatcher, scene: InMemoryScene) -> None:
    bob = scene.find_entity("Pendule")
    assert bob is not None
    before = scene.get_body(bob)
    assert before is not None

    _send(dispatcher, {"angle_init": 30})
    run_until_idle(dispatcher, dt=DT)

    assert _angle(dispatcher) == pytest.approx(30.0, abs=1e-6)
    body = scene.get_body(bob)
    assert body is not None
    assert not body.is_kinematic
    assert not np.any(body.linear_velocity)
    assert not np.any(body.angular_velocity)
    assert body.linear_damping == before.linear_damping
    assert body.angular_damping == before.angular_damping
    assert scene.wake_count(bob) >= 1
    assert scene.inconsistency_warnings == 0


def test_sweep_is_monotonic(dispatcher: Dispatcher) -> None:
    _send(dispatcher, {"angle_init": -40})
    dispatcher.tick(DT)
    angles = []
    while dispatcher.pendulum.is_busy:
        dispatcher.physics_step(DT)
        dispatcher.tick(DT)
        angles.append(_angle(dispatcher))

    assert angles == sorted(angles, reverse=True)
    assert angles[-1] == pytest.approx(-40.0, abs=1e-6)
    # Smoothstep over two seconds: the sweep takes about 2 s of ticks.
    assert len(angles) >= int(2.0 / DT)


def test_body_locked_during_reset(dispatcher: Dispatcher, scene: InMemoryScene) -> None:
    bob = scene.find_entity("Pendule")
    assert bob is not None
    _send(dispatcher, {"angle_init": 10, "alpha": 0.5})
    dispatcher.tick(DT)
    assert dispatcher.pendulum.phase is PendulumPhase.LOCKING
    assert scene.get_body(bob).is_kinematic

    dispatcher.physics_step(DT)
    assert dispatcher.pendulum.phase is PendulumPhase.REPARAMETERIZING
    dispatcher.tick(DT)
    assert dispatcher.pendulum.phase is PendulumPhase.TRANSITIONING
    # Damping is zeroed for the sweep.
    assert scene.get_body(bob).linear_damping == 0.0
    assert scene.get_body(bob).angular_damping == 0.0


def test_parameters_applied(dispatcher: Dispatcher, scene: InMemoryScene) -> None:
    bob = scene.find_entity("Pendule")
    pivot = scene.find_entity("Pivot")
    assert bob is not None and pivot is not None

    _send(dispatcher, {"m": 2.5, "alpha": 0.3, "fs": 0.8, "angle_init": 15})
    run_until_idle(dispatcher, dt=DT)

    body = scene.get_body(bob)
    assert body is not None
    assert body.mass == 2.5
    # A requested damping replaces the restore value.
    assert body.linear_damping == 0.3
    assert body.angular_damping == 0.05
    assert scene.get_joint_motor(pivot) == JointMotor(enabled=True, target_velocity=0.0, force=0.8)


def test_tiny_friction_disables_motor(dispatcher: Dispatcher, scene: InMemoryScene) -> None:
    pivot = scene.find_entity("Pivot")
    assert pivot is not None
    scene.set_joint_motor(pivot, JointMotor(enabled=True, target_velocity=0.0, force=1.0))

    _send(dispatcher, {"fs": 0.00001})
    run_until_idle(dispatcher, dt=DT)
    motor = scene.get_joint_motor(pivot)
    assert motor is not None
    assert not motor.enabled


def test_parameters_without_angle_skip_sweep(dispatcher: Dispatcher, scene: InMemoryScene) -> None:
    bob = scene.find_entity("Pendule")
    assert bob is not None
    _send(dispatcher, {"m": 3})
    frames = run_until_idle(dispatcher, dt=DT)
    assert frames <= 3
    assert scene.get_body(bob).mass == 3.0


def test_preemption_during_lock_merges_parameters(dispatcher: Dispatcher, scene: InMemoryScene) -> None:
    bob = scene.find_entity("Pendule")
    assert bob is not None
    _send(dispatcher, {"alpha": 0.4, "angle_init": 25})
    dispatcher.tick(DT)
    assert dispatcher.pendulum.phase is PendulumPhase.LOCKING

    # Second request before the first was applied: both sets of fields survive.
    dispatcher.tick(1.0)
    _send(dispatcher, {"m": 2})
    run_until_idle(dispatcher, dt=DT)

    body = scene.get_body(bob)
    assert body is not None
    assert body.mass == 2.0
    assert body.linear_damping == 0.4
    assert _angle(dispatcher) == pytest.approx(25.0, abs=1e-6)
    assert scene.inconsistency_warnings == 0


def test_preemption_during_sweep_retargets(dispatcher: Dispatcher, scene: InMemoryScene) -> None:
    bob = scene.find_entity("Pendule")
    assert bob is not None
    _send(dispatcher, {"alpha": 0.2, "angle_init": 40})
    dispatcher.tick(DT)
    for _ in range(30):
        dispatcher.physics_step(DT)
        dispatcher.tick(DT)
    assert dispatcher.pendulum.phase is PendulumPhase.TRANSITIONING
    midway = _angle(dispatcher)
    assert 0.0 < midway < 40.0

    _send(dispatcher, {"angle_init": -10})
    dispatcher.tick(DT)
    # Cancelled where it stood and still locked.
    assert dispatcher.pendulum.phase is PendulumPhase.LOCKING
    assert scene.get_body(bob).is_kinematic
    assert _angle(dispatcher) == pytest.approx(midway, abs=1e-6)

    run_until_idle(dispatcher, dt=DT)
    body = scene.get_body(bob)
    assert body is not None
    assert _angle(dispatcher) == pytest.approx(-10.0, abs=1e-6)
    assert body.linear_damping == 0.2
    assert body.angular_damping == 0.05
    assert not body.is_kinematic


def test_empty_request_is_ignored(dispatcher: Dispatcher) -> None:
    _send(dispatcher, {})
    dispatcher.tick(DT)
    assert dispatcher.pendulum.phase is PendulumPhase.FREE


def test_pendulum_swings_after_release(dispatcher: Dispatcher) -> None:
    _send(dispatcher, {"angle_init": 30})
    run_until_idle(dispatcher, dt=DT)
    for _ in range(10):
        dispatcher.physics_step(DT)
        dispatcher.tick(DT)
    assert _angle(dispatcher) < 30.0


def test_missing_body_warns_once(caplog: pytest.LogCaptureFixture) -> None:
    scene = InMemoryScene()
    controller = PendulumController(
        scene,
        EntityRegistry(scene),
        (RigSpec.from_pendulum(PendulumSettings()),),
        telemetry_topic="out",
    )
    bus = FakeBus()
    with caplog.at_level(logging.WARNING):
        assert not controller.request([RigParams(target_angle=10.0)])
        assert not controller.publish_telemetry(0.0, bus)
        assert not controller.publish_telemetry(1.0, bus)
    assert bus.messages == []
    assert len([r for r in caplog.records if "not found" in r.message]) == 1


def test_telemetry_cadence(scene: InMemoryScene) -> None:
    controller = PendulumController(
        scene,
        EntityRegistry(scene),
        (RigSpec.from_pendulum(PendulumSettings()),),
        publish_rate=0.1,
        telemetry_topic="pendulum/out",
    )
    bus = FakeBus()
    published = [controller.publish_telemetry(now, bus) for now in (0.0, 0.05, 0.1, 0.15, 0.25)]
    assert published == [True, False, True, False, True]
    assert bus.payloads("pendulum/out")[0] == {"temps": 0.0, "angle": 0.0}


def test_dispatcher_publishes_pendulum_telemetry(scene: InMemoryScene) -> None:
    bus = FakeBus()
    dispatcher = Dispatcher(TwinConfig(), scene, bus)
    dispatcher.tick(0.05)
    frames = bus.payloads(TwinConfig().topics.pendulum_out)
    assert frames == [{"temps": 0.05, "angle": 0.0}]


def test_offset_and_inversion_apply_to_reported_angle(scene: InMemoryScene) -> None:
    settings = PendulumSettings(angle_offset=90.0, invert=True)
    controller = PendulumController(scene, EntityRegistry(scene), (RigSpec.from_pendulum(settings),))
    frame = controller.telemetry(0.0)
    assert frame == {"temps": 0.0, "angle": 90.0}

    assert controller.request([RigParams(target_angle=60.0)])
    controller.on_physics_step()
    for _ in range(200):
        controller.advance(DT)
        if not controller.is_busy:
            break
    assert controller.telemetry(0.0)["angle"] == pytest.approx(60.0, abs=1e-6)
