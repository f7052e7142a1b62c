"""Ingestion layer.

This package contains the path a message takes from the MQTT network thread
to the tick: the thread-safe queue, the payload decoders and the router.
"""

from pylabtwin.ingestion.queue import InboundMessage, IngressQueue
from pylabtwin.ingestion.router import RoutedMessage, RouteKind, TopicRouter

__all__ = ["InboundMessage", "IngressQueue", "RouteKind", "RoutedMessage", "TopicRouter"]
