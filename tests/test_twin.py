from __future__ import annotations

import asyncio
import json

import pytest

from pylabtwin.config import TwinConfig
from pylabtwin.scene.memory import InMemoryScene
from pylabtwin.twin import MAX_STEPS_PER_TICK, LabTwin
from conftest import FakeBus


@pytest.mark.asyncio
async def test_run_applies_queued_messages(scene: InMemoryScene) -> None:
    bus = FakeBus()
    config = TwinConfig()
    async with LabTwin(config, scene, bus=bus) as twin:
        payload = json.dumps({"targetName": "Cube", "position": {"x": 2}}).encode()
        twin.dispatcher.enqueue(config.topics.main_in, payload)
        await twin.run(duration=0.05)

    assert scene.get_transform(scene.find_entity("Cube")).position.tolist() == [2.0, 0.0, 0.0]
    assert bus.payloads(config.topics.pendulum_out)
    assert bus.payloads(config.topics.coupled_out)


@pytest.mark.asyncio
async def test_stop_ends_run(scene: InMemoryScene) -> None:
    twin = LabTwin(TwinConfig(), scene, bus=FakeBus())
    asyncio.get_running_loop().call_later(0.05, twin.stop)
    await asyncio.wait_for(twin.run(), timeout=5.0)
    await twin.close()


def test_step_runs_fixed_physics_steps(scene: InMemoryScene) -> None:
    twin = LabTwin(TwinConfig(physics_step=0.02), scene, bus=FakeBus())
    twin.step(0.05)
    assert scene.physics_steps == 2
    twin.step(0.015)
    assert scene.physics_steps == 3


def test_step_caps_catch_up_after_stall(scene: InMemoryScene) -> None:
    twin = LabTwin(TwinConfig(physics_step=0.02), scene, bus=FakeBus())
    twin.step(5.0)
    assert scene.physics_steps == MAX_STEPS_PER_TICK
    twin.step(0.0)
    assert scene.physics_steps == MAX_STEPS_PER_TICK
