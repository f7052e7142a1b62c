"""Topic / content based classification of inbound messages."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pylabtwin.config import TopicSettings
from pylabtwin.ingestion.decode import try_parse_json_object
from pylabtwin.ingestion.queue import InboundMessage
from pylabtwin.models.binding import TopicBinding
from pylabtwin.registry import BindingRegistry

_logger = logging.getLogger(__name__)


class RouteKind(StrEnum):
    COUPLED_PENDULUM = "coupled_pendulum"
    PENDULUM = "pendulum"
    BINDING_VALUE = "binding_value"
    OBJECT_UPDATE = "object_update"


@dataclass(frozen=True)
class RoutedMessage:
    kind: RouteKind
    message: InboundMessage
    binding: TopicBinding | None = None
    document: dict[str, Any] | None = None
    """Decoded JSON object when classification already needed it."""


class TopicRouter:
    """Classify messages; the first matching rule wins.

    1. coupled-pendulum input topic
    2. single-pendulum input topic, or any JSON object carrying ``angle_init``
    3. a bound numeric topic
    4. the main inbound topic
    Anything else is dropped.
    """

    def __init__(self, topics: TopicSettings, bindings: BindingRegistry) -> None:
        self._topics = topics
        self._bindings = bindings

    def route(self, message: InboundMessage) -> RoutedMessage | None:
        topic = message.topic
        if topic == self._topics.coupled_in:
            return RoutedMessage(RouteKind.COUPLED_PENDULUM, message)

        if topic == self._topics.pendulum_in:
            return RoutedMessage(RouteKind.PENDULUM, message)

        # Legacy dashboards post pendulum parameters on other topics.
        document = try_parse_json_object(message.payload)
        if document is not None and "angle_init" in document:
            return RoutedMessage(RouteKind.PENDULUM, message, document=document)

        binding = self._bindings.resolve_by_topic(topic)
        if binding is not None:
            return RoutedMessage(RouteKind.BINDING_VALUE, message, binding=binding)

        if topic == self._topics.main_in:
            return RoutedMessage(RouteKind.OBJECT_UPDATE, message, document=document)

        _logger.debug("Dropping message on unrouted topic=%s", topic)
        return None
