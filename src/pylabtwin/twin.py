"""Top-level asyncio runner wiring the dispatcher to an MQTT bus."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from types import TracebackType

from pylabtwin._mqtt import Bus, TwinMqttRuntime
from pylabtwin._redact import redact_for_log
from pylabtwin.config import TwinConfig
from pylabtwin.dispatcher import Dispatcher
from pylabtwin.scene.base import Scene

_logger = logging.getLogger(__name__)

#: Upper bound on physics steps run in one tick after a stall.
MAX_STEPS_PER_TICK = 10


class LabTwin:
    """Drive a :class:`Scene` from MQTT messages.

    Usage::

        async with LabTwin(TwinConfig.from_env(), scene) as twin:
            await twin.run()

    Without *bus* a :class:`TwinMqttRuntime` is created and started on
    entry.  With an explicit *bus* (tests, alternative transports) the
    caller feeds messages through :meth:`Dispatcher.enqueue`.
    """

    def __init__(
        self,
        config: TwinConfig,
        scene: Scene,
        *,
        bus: Bus | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._scene = scene
        self._logger = logger or _logger
        self._runtime: TwinMqttRuntime | None = None
        self.dispatcher = Dispatcher(config, scene, bus, logger=self._logger)
        if bus is None:
            self._runtime = TwinMqttRuntime(config, on_message=self.dispatcher.enqueue, logger=self._logger)
            self.dispatcher.bus = self._runtime
        self._stop_event = asyncio.Event()
        self._physics_accumulator = 0.0

    async def __aenter__(self) -> LabTwin:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def start(self) -> None:
        self._logger.debug(
            "Starting twin broker=%s bindings=%d",
            redact_for_log(dataclasses.asdict(self._config.broker)),
            len(self._config.bindings),
        )
        if self._runtime is not None:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._runtime.start)

    async def close(self) -> None:
        self._stop_event.set()
        runtime = self._runtime
        if runtime is not None:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, runtime.stop)

    def stop(self) -> None:
        """Ask :meth:`run` to return after the current tick."""
        self._stop_event.set()

    def step(self, dt: float) -> int:
        """Run the fixed physics steps due within *dt*, then one tick."""
        step = self._config.physics_step
        self._physics_accumulator += dt
        steps = 0
        while self._physics_accumulator >= step and steps < MAX_STEPS_PER_TICK:
            self.dispatcher.physics_step(step)
            self._physics_accumulator -= step
            steps += 1
        if steps == MAX_STEPS_PER_TICK:
            self._physics_accumulator = 0.0
        return self.dispatcher.tick(dt)

    async def run(self, duration: float | None = None) -> None:
        """Tick until :meth:`stop` is called or *duration* seconds elapse."""
        self._stop_event.clear()
        started = last = time.monotonic()
        while not self._stop_event.is_set():
            now = time.monotonic()
            self.step(now - last)
            last = now
            if duration is not None and now - started >= duration:
                break
            await asyncio.sleep(self._config.tick_interval)
