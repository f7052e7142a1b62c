from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any

import pytest

from pylabtwin._mqtt import TwinMqttRuntime, subscription_topics
from pylabtwin.config import TwinConfig
from pylabtwin.exceptions import TwinBusError
from pylabtwin.ingestion.queue import IngressQueue
from pylabtwin.models.binding import TopicBinding


@dataclass
class _FakeClient:
    subscribed: list[tuple[str, int]] = field(default_factory=list)
    published: list[tuple[str, bytes]] = field(default_factory=list)

    def subscribe(self, topic: str, qos: int = 0) -> None:
        self.subscribed.append((topic, qos))

    def publish(self, topic: str, payload: bytes, qos: int = 0) -> Any:
        self.published.append((topic, payload))
        return SimpleNamespace(rc=0)


@pytest.fixture
def config() -> TwinConfig:
    return TwinConfig(
        bindings=(
            TopicBinding(topic="lab/a", target_name="A"),
            TopicBinding(topic="lab/a", target_name="B"),
            TopicBinding(topic="lab/b", target_name="C"),
        )
    )


def test_subscription_topics_deduplicated(config: TwinConfig) -> None:
    assert subscription_topics(config) == [
        config.topics.main_in,
        config.topics.pendulum_in,
        config.topics.coupled_in,
        "lab/a",
        "lab/b",
    ]


def test_on_connect_subscribes_and_says_hello(config: TwinConfig) -> None:
    runtime = TwinMqttRuntime(config, on_message=lambda topic, payload: None)
    client = _FakeClient()
    runtime._on_connect(client, None, None, SimpleNamespace(value=0), None)  # type: ignore[arg-type]

    assert [topic for topic, _ in client.subscribed] == subscription_topics(config)
    assert {qos for _, qos in client.subscribed} == {1}
    assert client.published == [(config.topics.main_out, b"Hello from pylabtwin")]


def test_failed_connect_subscribes_nothing(config: TwinConfig) -> None:
    runtime = TwinMqttRuntime(config, on_message=lambda topic, payload: None)
    client = _FakeClient()
    runtime._on_connect(client, None, None, SimpleNamespace(value=135), None)  # type: ignore[arg-type]
    assert client.subscribed == []
    assert client.published == []


def test_on_message_hands_off_to_queue(config: TwinConfig) -> None:
    queue = IngressQueue()
    runtime = TwinMqttRuntime(config, on_message=queue.enqueue)
    message = SimpleNamespace(topic="lab/a", payload=b"12.5")
    runtime._on_message(None, None, message)  # type: ignore[arg-type]

    drained = queue.drain_all()
    assert [(m.topic, m.payload) for m in drained] == [("lab/a", b"12.5")]


def test_on_message_never_raises(config: TwinConfig) -> None:
    def boom(topic: str, payload: bytes) -> None:
        raise RuntimeError("consumer broke")

    runtime = TwinMqttRuntime(config, on_message=boom)
    runtime._on_message(None, None, SimpleNamespace(topic="t", payload=b"x"))  # type: ignore[arg-type]


def test_publish_requires_connection(config: TwinConfig) -> None:
    runtime = TwinMqttRuntime(config, on_message=lambda topic, payload: None)
    assert not runtime.is_connected
    with pytest.raises(TwinBusError):
        runtime.publish("t", b"{}")
    runtime.stop()
