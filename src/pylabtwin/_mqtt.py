"""Internal MQTT runtime: the bus adapter between the broker and the tick."""

from __future__ import annotations

import dataclasses
import logging
import secrets
from collections.abc import Callable
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from pylabtwin._redact import payload_preview, redact_for_log
from pylabtwin.config import TwinConfig
from pylabtwin.exceptions import TwinBusError


class Bus(Protocol):
    """Outbound side of the message bus."""

    def publish(self, topic: str, payload: bytes) -> None: ...


def subscription_topics(config: TwinConfig) -> list[str]:
    """Every topic the twin listens on, without duplicates, in a stable order."""
    topics = [config.topics.main_in, config.topics.pendulum_in, config.topics.coupled_in]
    topics.extend(binding.topic for binding in config.bindings)
    return list(dict.fromkeys(topics))


class TwinMqttRuntime:
    """Threaded paho-mqtt runtime feeding raw messages to *on_message*.

    *on_message* is called on paho's network thread with ``(topic, payload)``
    and must be thread safe (normally :meth:`IngressQueue.enqueue`).
    Reconnection is left to paho with a back-off capped at
    ``BrokerSettings.reconnect_delay``.
    """

    def __init__(
        self,
        config: TwinConfig,
        *,
        on_message: Callable[[str, bytes], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._on_message_cb = on_message
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._topics = subscription_topics(config)

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    @property
    def is_connected(self) -> bool:
        client = self._client
        return client is not None and client.is_connected()

    @property
    def topics(self) -> list[str]:
        return list(self._topics)

    def start(self) -> None:
        """Create the client and start connecting in the background."""
        self.stop()
        broker = self._config.broker
        client_id = broker.client_id or f"pylabtwin-{secrets.token_hex(4)}"
        self._logger.debug(
            "MQTT runtime start requested broker=%s topics=%s",
            redact_for_log({**dataclasses.asdict(broker), "client_id": client_id}),
            self._topics,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if broker.username:
            client.username_pw_set(broker.username, broker.password or None)
        if broker.use_tls:
            client.tls_set()
        client.reconnect_delay_set(min_delay=1, max_delay=max(1, int(broker.reconnect_delay)))

        client.on_connect = self._on_connect
        client.on_message = self._on_message
        client.on_disconnect = self._on_disconnect

        client.connect_async(broker.host, broker.port, keepalive=broker.keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.info("Connecting to MQTT broker %s:%s", broker.host, broker.port)

    def stop(self) -> None:
        """Stop and disconnect the current client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def publish(self, topic: str, payload: bytes) -> None:
        """Publish *payload* on *topic* (QoS 0).

        Raises
        ------
        TwinBusError
            The client is not connected or paho refused the message.
        """
        client = self._client
        if client is None or not client.is_connected():
            raise TwinBusError(f"Cannot publish to {topic}: MQTT client not connected")
        info = client.publish(topic, payload, qos=0)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TwinBusError(f"Publish to {topic} failed: {mqtt.error_string(info.rc)}")

    def _on_connect(
        self,
        client: mqtt.Client,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        if reason_code.value != 0:
            self._logger.warning("MQTT connect failed: %s", reason_code)
            return
        self._logger.info("MQTT connected reason=%s", reason_code)
        for topic in self._topics:
            self._logger.debug("MQTT subscribing topic=%s", topic)
            client.subscribe(topic, qos=1)
        hello = self._config.broker.hello_message
        if hello:
            client.publish(self._config.topics.main_out, hello.encode("utf-8"), qos=0)

    def _on_message(self, _client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        try:
            self._logger.debug("Received PUBLISH topic=%s payload=%s", msg.topic, payload_preview(msg.payload))
            self._on_message_cb(msg.topic, msg.payload)
        except Exception:
            self._logger.debug("MQTT message hand-off failure topic=%s", msg.topic, exc_info=True)

    def _on_disconnect(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        _disconnect_flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        if self._running:
            self._logger.warning(
                "MQTT disconnected: %s; retrying within %.0fs",
                reason_code,
                self._config.broker.reconnect_delay,
            )
