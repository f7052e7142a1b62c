"""Lookup tables: static topic bindings and the name -> entity id registry."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from pylabtwin.models.binding import GaugeType, TopicBinding
from pylabtwin.scene.base import EntityId, Scene

_logger = logging.getLogger(__name__)

#: Calibration ``(min, max, max_angle)`` used when no binding matches.
CALIBRATION_DEFAULTS: dict[str, tuple[float, float, float]] = {
    "gauge_value": (0.0, 100.0, 180.0),
    "temperature": (0.0, 30.0, 180.0),
    "pressure": (0.0, 10.0, 180.0),
}


class BindingRegistry:
    """Ordered, read-only collection of :class:`TopicBinding` records."""

    def __init__(self, bindings: Iterable[TopicBinding] = ()) -> None:
        self._bindings: tuple[TopicBinding, ...] = tuple(bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __iter__(self) -> Iterator[TopicBinding]:
        return iter(self._bindings)

    def topics(self) -> list[str]:
        seen: dict[str, None] = {}
        for binding in self._bindings:
            seen.setdefault(binding.topic, None)
        return list(seen)

    def resolve_by_topic(self, topic: str) -> TopicBinding | None:
        """First binding whose topic equals *topic*."""
        for binding in self._bindings:
            if binding.topic == topic:
                return binding
        return None

    def resolve_by_target(self, target_name: str, gauge_type: GaugeType = GaugeType.GAUGE) -> TopicBinding | None:
        """First binding of *gauge_type* addressing *target_name*."""
        for binding in self._bindings:
            if binding.target_name == target_name and binding.gauge_type == gauge_type:
                return binding
        return None

    def calibration_for(self, target_name: str, field_name: str) -> tuple[float, float, float]:
        """Calibration for a gauge-like *field_name* of *target_name*.

        A ``GAUGE`` binding on the same target wins over the per-field default.
        """
        binding = self.resolve_by_target(target_name, GaugeType.GAUGE)
        if binding is not None:
            return binding.min_value, binding.max_value, binding.max_angle
        return CALIBRATION_DEFAULTS[field_name]


class EntityRegistry:
    """Name -> :data:`EntityId` table kept in sync with the scene.

    Seeded from :meth:`Scene.list_entities` and updated through the
    :class:`pylabtwin.scene.base.SceneListener` callbacks.  Lookups verify
    liveness with the scene; a stale id is dropped and resolved again.
    """

    def __init__(self, scene: Scene) -> None:
        self._scene = scene
        self._by_name: dict[str, EntityId] = {}
        for name, entity in scene.list_entities():
            self._by_name.setdefault(name, entity)

    def __contains__(self, name: str) -> bool:
        return self.resolve(name) is not None

    def on_created(self, name: str, entity: EntityId) -> None:
        if name not in self._by_name or not self._scene.is_alive(self._by_name[name]):
            self._by_name[name] = entity

    def on_destroyed(self, entity: EntityId) -> None:
        for name in [key for key, value in self._by_name.items() if value == entity]:
            del self._by_name[name]

    def resolve(self, name: str, *, lowercase_fallback: bool = False) -> EntityId | None:
        """Return the live entity called *name*, or ``None``.

        With *lowercase_fallback* the scene is also queried for
        ``name.lower()`` (pendulum rigs are often authored as ``pendule``).
        """
        entity = self._by_name.get(name)
        if entity is not None:
            if self._scene.is_alive(entity):
                return entity
            del self._by_name[name]

        # Entities created behind our back (no listener hooked up).
        candidates = (name, name.lower()) if lowercase_fallback else (name,)
        for candidate in candidates:
            found = self._scene.find_entity(candidate)
            if found is not None:
                _logger.debug("Entity '%s' resolved by scene query", candidate)
                self._by_name[name] = found
                return found
        return None

    def is_alive(self, entity: EntityId) -> bool:
        return self._scene.is_alive(entity)
