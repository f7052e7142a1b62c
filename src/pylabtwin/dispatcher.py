"""Per-tick orchestration: drain, route, apply, advance, report."""

from __future__ import annotations

import logging
import math

from pylabtwin._mqtt import Bus
from pylabtwin._redact import payload_preview
from pylabtwin.actuation.schedulers import RotationScheduler, SmoothingScheduler
from pylabtwin.actuation.transform import TransformActuator
from pylabtwin.config import TwinConfig
from pylabtwin.exceptions import TwinBusError, TwinError, TwinPayloadError, TwinTargetNotFoundError
from pylabtwin.ingestion.decode import (
    decode_coupled_params,
    decode_number,
    decode_object_update,
    decode_pendulum_params,
    parse_json_object,
)
from pylabtwin.ingestion.queue import IngressQueue
from pylabtwin.ingestion.router import RoutedMessage, RouteKind, TopicRouter
from pylabtwin.physics.coupled import CoupledPendulumController
from pylabtwin.physics.measure import RigSpec
from pylabtwin.physics.pendulum import PendulumController
from pylabtwin.registry import BindingRegistry, EntityRegistry
from pylabtwin.scene.base import Scene

_logger = logging.getLogger(__name__)


class Dispatcher:
    """Owns every per-tick component and the order in which they run.

    A host calls :meth:`tick` once per rendered frame and
    :meth:`physics_step` once per fixed physics step, both from the same
    thread.  :meth:`enqueue` is the only method safe to call from other
    threads.
    """

    def __init__(
        self,
        config: TwinConfig,
        scene: Scene,
        bus: Bus | None = None,
        *,
        entities: EntityRegistry | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._scene = scene
        self.bus = bus
        self._logger = logger or _logger

        self.queue = IngressQueue(max_size=config.queue_max_size, logger=self._logger)
        self.bindings = BindingRegistry(config.bindings)
        self.entities = entities if entities is not None else EntityRegistry(scene)
        add_listener = getattr(scene, "add_listener", None)
        if entities is None and callable(add_listener):
            add_listener(self.entities)
        self.router = TopicRouter(config.topics, self.bindings)

        self.rotations = RotationScheduler(scene)
        self.smoothing = SmoothingScheduler(scene, speed=config.smoothing_speed)
        self.actuator = TransformActuator(
            scene,
            self.entities,
            self.bindings,
            self.rotations,
            self.smoothing,
            pointer_child_name=config.pointer_child_name,
            default_gauge_axis=config.default_gauge_axis,
            logger=self._logger,
        )
        self.pendulum = PendulumController(
            scene,
            self.entities,
            (RigSpec.from_pendulum(config.pendulum),),
            transition_duration=config.pendulum.transition_duration,
            publish_rate=config.pendulum.publish_rate,
            telemetry_topic=config.topics.pendulum_out,
            logger=self._logger,
        )
        self.coupled = CoupledPendulumController(
            scene,
            self.entities,
            config.coupled,
            telemetry_topic=config.topics.coupled_out,
            logger=self._logger,
        )

        self.now = 0.0
        self._last_drain = -math.inf

    def enqueue(self, topic: str, payload: bytes) -> None:
        """Thread-safe entry point for the bus."""
        self.queue.enqueue(topic, payload)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, dt: float) -> int:
        """Run one frame; returns the number of messages applied."""
        self.now += dt
        applied = 0
        if self._config.process_messages and self.now - self._last_drain >= self._config.min_update_interval:
            if not self.queue.is_empty():
                self._last_drain = self.now
                applied = self._drain()

        self.rotations.advance(dt)
        self.smoothing.advance(dt)
        self.pendulum.advance(dt)
        self.coupled.advance(dt)
        self._publish_telemetry()
        return applied

    def physics_step(self, dt: float) -> None:
        """Run one fixed physics step: coupling torque, simulate, then FSM bookkeeping."""
        self.coupled.apply_coupling()
        self._scene.simulate(dt)
        self.pendulum.on_physics_step()
        self.coupled.on_physics_step()

    def _drain(self) -> int:
        applied = 0
        for message in self.queue.drain_all():
            routed = self.router.route(message)
            if routed is None:
                continue
            try:
                self._apply(routed)
            except TwinTargetNotFoundError as exc:
                self._logger.warning("%s; message on %s ignored", exc, message.topic)
            except TwinPayloadError as exc:
                self._logger.warning(
                    "Discarding malformed message topic=%s payload=%s: %s",
                    message.topic,
                    payload_preview(message.payload),
                    exc,
                )
            except TwinError:
                self._logger.warning("Failed to apply message topic=%s", message.topic, exc_info=True)
            except Exception:
                self._logger.warning("Scene rejected message topic=%s", message.topic, exc_info=True)
            else:
                applied += 1
        return applied

    def _apply(self, routed: RoutedMessage) -> None:
        message = routed.message
        topic = message.topic

        if routed.kind == RouteKind.COUPLED_PENDULUM:
            document = routed.document or parse_json_object(message.payload, topic=topic)
            self.coupled.handle_params(decode_coupled_params(document, topic=topic))
            return

        if routed.kind == RouteKind.PENDULUM:
            document = routed.document or parse_json_object(message.payload, topic=topic)
            self.pendulum.handle_params(decode_pendulum_params(document, topic=topic))
            if "targetName" in document or "target_name" in document:
                self.actuator.apply_update(decode_object_update(document, topic=topic))
            return

        if routed.kind == RouteKind.BINDING_VALUE:
            assert routed.binding is not None
            self.actuator.apply_binding_value(routed.binding, decode_number(message.payload, topic=topic))
            return

        document = routed.document or parse_json_object(message.payload, topic=topic)
        self.actuator.apply_update(decode_object_update(document, topic=topic))

    def _publish_telemetry(self) -> None:
        if self.bus is None:
            return
        try:
            self.pendulum.publish_telemetry(self.now, self.bus)
            self.coupled.publish_telemetry(self.now, self.bus)
        except TwinBusError as exc:
            self._logger.debug("Telemetry not published: %s", exc)
