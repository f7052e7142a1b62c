"""Thread-safe ingress queue between the MQTT network thread and the tick."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InboundMessage:
    """Raw message as delivered by the bus."""

    topic: str
    payload: bytes
    received_at: float = field(default_factory=time.monotonic, compare=False)


class IngressQueue:
    """Multi-producer / single-consumer FIFO.

    Producers call :meth:`enqueue` from any thread; exactly one consumer
    calls :meth:`drain_all`.  With ``max_size > 0`` the oldest message is
    dropped on overflow.
    """

    def __init__(self, *, max_size: int = 0, logger: logging.Logger | None = None) -> None:
        self._items: deque[InboundMessage] = deque()
        self._lock = threading.Lock()
        self._max_size = max_size
        self._logger = logger or _logger
        self._overflowing = False
        self.dropped = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def is_empty(self) -> bool:
        return len(self) == 0

    def enqueue(self, topic: str, payload: bytes) -> None:
        """Append a message.  Never raises."""
        try:
            message = InboundMessage(topic=str(topic), payload=bytes(payload))
        except Exception:
            self._logger.debug("Discarding unqueueable message on topic=%r", topic, exc_info=True)
            return

        warn = False
        with self._lock:
            self._items.append(message)
            if self._max_size and len(self._items) > self._max_size:
                self._items.popleft()
                self.dropped += 1
                warn = not self._overflowing
                self._overflowing = True
        if warn:
            self._logger.warning(
                "Ingress queue full (max_size=%d); dropping oldest messages until the consumer catches up",
                self._max_size,
            )

    def drain_all(self) -> list[InboundMessage]:
        """Remove and return every queued message in arrival order."""
        with self._lock:
            items = list(self._items)
            self._items.clear()
            self._overflowing = False
        return items
