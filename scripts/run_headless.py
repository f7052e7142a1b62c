#!/usr/bin/env python3
"""Run pylabtwin against a small in-memory lab scene.

The scene holds a gauge (``Manometre`` with a ``Pointer`` and a ``Valeur``
label), a cube, a single pendulum (``Pivot`` + ``Pendule``) and two coupled
pendulums (``Pendule1``/``Pendule2``).  Handy together with
``twin_probe.py`` when no rendering host is available.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pylabtwin import InMemoryScene, LabTwin, TopicBinding, TwinConfig  # noqa: E402


def build_lab_scene() -> InMemoryScene:
    scene = InMemoryScene()

    gauge = scene.create_entity("Manometre", position=(0.0, 1.0, 0.0))
    scene.create_entity("Pointer", parent=gauge)
    scene.create_entity("Valeur", parent=gauge)

    cube = scene.create_entity("Cube", position=(2.0, 0.5, 0.0))
    scene.add_body(cube, use_gravity=False)

    pivot = scene.create_entity("Pivot", position=(0.0, 2.0, -2.0))
    bob = scene.create_entity("Pendule", position=(0.0, 1.0, -2.0))
    scene.add_body(bob, mass=1.0)
    scene.add_hinge(pivot, body=bob, anchor=(0.0, 2.0, -2.0), axis=(0.0, 0.0, 1.0))

    for name, x in (("Pendule1", -0.5), ("Pendule2", 0.5)):
        body = scene.create_entity(name, position=(x, 1.0, 2.0))
        scene.add_body(body, mass=1.0)
        scene.add_hinge(body, body=body, anchor=(x, 2.0, 2.0), axis=(0.0, 0.0, 1.0))
    return scene


async def _run(duration: float | None) -> None:
    config = TwinConfig.from_env(
        bindings=(
            TopicBinding(
                topic="FABLAB_21_22/Unity/Manometre/value",
                target_name="Manometre",
                gauge_type="gauge",
                max_value=10.0,
                value_child_name="Valeur",
            ),
        ),
    )
    async with LabTwin(config, build_lab_scene()) as twin:
        await twin.run(duration)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run pylabtwin on an in-memory scene.")
    parser.add_argument("--duration", type=float, default=0.0, help="Seconds to run (0 = until Ctrl+C)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(_run(args.duration or None))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
