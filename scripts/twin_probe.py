#!/usr/bin/env python3
"""Operator probe for a running pylabtwin scene.

Publishes the message shapes the dashboard sends and prints what the scene
reports back::

    twin_probe.py update Cube --position 1 2 3 --rotation 0 90 0
    twin_probe.py gauge Manometre 42.5
    twin_probe.py pendulum --angle-init 30 --alpha 0.2
    twin_probe.py coupled --th1 20 --th2 -20 --coupling 500
    twin_probe.py listen --duration 10

Broker settings come from the usual ``LABTWIN_*`` environment variables.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
import time
from pathlib import Path
from typing import Any, cast

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

import paho.mqtt.client as mqtt  # noqa: E402

from pylabtwin import TwinConfig  # noqa: E402
from pylabtwin._redact import payload_preview  # noqa: E402

_LOG = logging.getLogger("twin_probe")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Publish test messages to a pylabtwin scene.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    update = sub.add_parser("update", help="Send an object update on the main topic")
    update.add_argument("target", help="Entity name (targetName)")
    update.add_argument("--position", type=float, nargs=3, metavar=("X", "Y", "Z"))
    update.add_argument("--rotation", type=float, nargs=3, metavar=("X", "Y", "Z"))
    update.add_argument("--scale", type=float, nargs=3, metavar=("X", "Y", "Z"))
    update.add_argument("--rotation-speed", type=float, nargs=3, metavar=("X", "Y", "Z"))
    update.add_argument("--use-gravity", choices=("true", "false"))

    gauge = sub.add_parser("gauge", help="Send a gauge value on the main topic")
    gauge.add_argument("target", help="Gauge entity name")
    gauge.add_argument("value", type=float)
    gauge.add_argument("--field", choices=("gaugeValue", "temperature", "pressure"), default="gaugeValue")

    pendulum = sub.add_parser("pendulum", help="Reset the single pendulum")
    pendulum.add_argument("--m", type=float)
    pendulum.add_argument("--alpha", type=float)
    pendulum.add_argument("--fs", type=float)
    pendulum.add_argument("--angle-init", type=float)

    coupled = sub.add_parser("coupled", help="Reset the coupled pendulums")
    coupled.add_argument("--th1", type=float)
    coupled.add_argument("--th2", type=float)
    coupled.add_argument("--f", type=float)
    coupled.add_argument("--coupling", type=float, help="Coupling constant C")
    coupled.add_argument("--m1", type=float)
    coupled.add_argument("--m2", type=float)

    listen = sub.add_parser("listen", help="Print telemetry and hello messages")
    listen.add_argument("--duration", type=float, default=0.0, help="Seconds to listen (0 = until Ctrl+C)")
    return parser.parse_args()


def _vec(values: list[float] | None) -> dict[str, float] | None:
    if values is None:
        return None
    return {"x": values[0], "y": values[1], "z": values[2]}


def _compact(document: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in document.items() if value is not None}


def _build_message(args: argparse.Namespace, config: TwinConfig) -> tuple[str, dict[str, Any]]:
    topics = config.topics
    if args.command == "update":
        use_gravity = None if args.use_gravity is None else args.use_gravity == "true"
        return topics.main_in, _compact(
            {
                "targetName": args.target,
                "position": _vec(args.position),
                "rotation": _vec(args.rotation),
                "scale": _vec(args.scale),
                "rotationSpeed": _vec(args.rotation_speed),
                "useGravity": use_gravity,
            }
        )
    if args.command == "gauge":
        return topics.main_in, {"targetName": args.target, args.field: args.value}
    if args.command == "pendulum":
        return topics.pendulum_in, _compact(
            {"m": args.m, "alpha": args.alpha, "fs": args.fs, "angle_init": args.angle_init}
        )
    return topics.coupled_in, _compact(
        {"th1_i": args.th1, "th2_i": args.th2, "f": args.f, "C": args.coupling, "m1": args.m1, "m2": args.m2}
    )


def _client(config: TwinConfig) -> mqtt.Client:
    broker = config.broker
    client = mqtt.Client(
        callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
        client_id=f"twin-probe-{int(time.time())}",
        protocol=mqtt.MQTTv5,
    )
    client.enable_logger(_LOG)
    if broker.username:
        client.username_pw_set(broker.username, broker.password or None)
    if broker.use_tls:
        client.tls_set()
    return client


def _publish(config: TwinConfig, topic: str, document: dict[str, Any]) -> int:
    client = _client(config)
    client.connect(config.broker.host, config.broker.port, keepalive=config.broker.keepalive)
    client.loop_start()
    try:
        payload = json.dumps(document)
        info = client.publish(topic, payload.encode("utf-8"), qos=1)
        info.wait_for_publish(timeout=10)
        print(f"-> {topic} {payload}")
        return 0 if info.is_published() else 1
    finally:
        client.disconnect()
        client.loop_stop()


def _listen(config: TwinConfig, duration: float) -> int:
    topics = [config.topics.main_out, config.topics.pendulum_out, config.topics.coupled_out]
    done = threading.Event()
    client = _client(config)

    def on_connect(c: mqtt.Client, _userdata: Any, _flags: Any, reason_code: Any, _properties: Any) -> None:
        if reason_code.value != 0:
            _LOG.error("Connect failed: %s", reason_code)
            done.set()
            return
        for topic in topics:
            c.subscribe(topic, qos=0)
        print(f"Listening on {', '.join(topics)}")

    def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        print(f"<- {msg.topic} {payload_preview(msg.payload)}")

    client.on_connect = on_connect
    client.on_message = on_message
    client.connect(config.broker.host, config.broker.port, keepalive=config.broker.keepalive)
    client.loop_start()
    try:
        done.wait(timeout=duration if duration > 0 else None)
    except KeyboardInterrupt:
        pass
    finally:
        client.disconnect()
        client.loop_stop()
    return 0


def main() -> None:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = TwinConfig.from_env()
    if args.command == "listen":
        sys.exit(_listen(config, args.duration))
    topic, document = _build_message(args, config)
    sys.exit(_publish(config, topic, document))


if __name__ == "__main__":
    main()
