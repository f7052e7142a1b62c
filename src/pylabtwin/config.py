"""Configuration for pylabtwin.

All settings are frozen dataclasses passed explicitly at construction time
(:class:`pylabtwin.twin.LabTwin`, :class:`pylabtwin.dispatcher.Dispatcher`,
:class:`pylabtwin._mqtt.TwinMqttRuntime`); nothing is read from a global.
"""

from __future__ import annotations

import dataclasses
import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import TypeAdapter, ValidationError

from pylabtwin.exceptions import TwinConfigError
from pylabtwin.geometry import Axis
from pylabtwin.models.binding import TopicBinding

MeasurementMode = Literal["position_vector", "local_rotation"]

#: Broker ports on which TLS is switched on automatically.
TLS_PORTS = frozenset({8883, 8443})


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class BrokerSettings:
    """MQTT broker connection settings.

    Parameters
    ----------
    host : str
        Broker host name.
    port : int
        Broker port.  8883 and 8443 imply TLS.
    use_tls : bool
        Wrap the connection in TLS.
    username, password : str
        Broker credentials.  Empty username connects anonymously.
    client_id : str or None
        MQTT client id.  A random id is generated when ``None``.
    keepalive : int
        MQTT keepalive in seconds.
    reconnect_delay : float
        Upper bound, in seconds, of the automatic reconnect back-off.
    hello_message : str or None
        Text published on the main output topic after every successful
        connect.  ``None`` disables it.
    """

    host: str = "mqtt.univ-cotedazur.fr"
    port: int = 1883
    use_tls: bool = False
    username: str = ""
    password: str = ""
    client_id: str | None = None
    keepalive: int = 60
    reconnect_delay: float = 5.0
    hello_message: str | None = "Hello from pylabtwin"


@dataclasses.dataclass(frozen=True)
class TopicSettings:
    main_in: str = "FABLAB_21_22/Unity/metaquest/in"
    main_out: str = "FABLAB_21_22/Unity/metaquest/out"
    pendulum_in: str = "FABLAB_21_22/Unity/Pendule/in"
    pendulum_out: str = "FABLAB_21_22/Unity/Pendule/out"
    coupled_in: str = "FABLAB_21_22/Unity/PendulesCouples/in"
    coupled_out: str = "FABLAB_21_22/Unity/PendulesCouples/out"


@dataclasses.dataclass(frozen=True)
class PendulumSettings:
    """Single pendulum rig.

    ``joint_name`` names the entity carrying the hinge joint and its motor;
    it defaults to the pivot.  The reported angle comes from the hinge when
    there is one, otherwise from ``measurement``.
    """

    body_name: str = "Pendule"
    pivot_name: str | None = "Pivot"
    joint_name: str | None = None
    axis: Axis = "z"
    measurement: MeasurementMode = "position_vector"
    angle_offset: float = 0.0
    invert: bool = False
    publish_rate: float = 0.1
    transition_duration: float = 2.0


@dataclasses.dataclass(frozen=True)
class CoupledBodySettings:
    body_name: str
    axis: Axis = "z"
    angle_offset: float = 0.0
    invert: bool = False


@dataclasses.dataclass(frozen=True)
class CoupledSettings:
    body1: CoupledBodySettings = dataclasses.field(default_factory=lambda: CoupledBodySettings("Pendule1"))
    body2: CoupledBodySettings = dataclasses.field(default_factory=lambda: CoupledBodySettings("Pendule2"))
    coupling_constant: float = 500.0
    torque_limit: float = 10_000.0
    publish_rate: float = 0.1
    transition_duration: float = 2.0


@dataclasses.dataclass(frozen=True)
class TwinConfig:
    """Top-level configuration.

    Parameters
    ----------
    broker : BrokerSettings
        MQTT connection settings.
    topics : TopicSettings
        Inbound and outbound topic names.
    pendulum : PendulumSettings
        Single pendulum rig.
    coupled : CoupledSettings
        Coupled pendulum rig.
    bindings : tuple of TopicBinding
        Static numeric-topic bindings, in priority order.
    process_messages : bool
        When ``False`` inbound messages stay queued and are not applied.
    min_update_interval : float
        Minimum seconds between two queue drain passes.
    queue_max_size : int
        Ingress queue cap; the oldest message is dropped on overflow.
        ``0`` means unbounded.
    smoothing_speed : float
        Gauge pointer easing rate (per second).
    pointer_child_name : str
        Child entity of a gauge that carries the needle.
    default_gauge_axis : str
        Needle axis for gauges without an explicit binding.
    tick_interval : float
        Target seconds between two ticks of :class:`pylabtwin.twin.LabTwin`.
    physics_step : float
        Fixed physics step in seconds.
    """

    broker: BrokerSettings = dataclasses.field(default_factory=BrokerSettings)
    topics: TopicSettings = dataclasses.field(default_factory=TopicSettings)
    pendulum: PendulumSettings = dataclasses.field(default_factory=PendulumSettings)
    coupled: CoupledSettings = dataclasses.field(default_factory=CoupledSettings)
    bindings: tuple[TopicBinding, ...] = ()
    process_messages: bool = True
    min_update_interval: float = 0.05
    queue_max_size: int = 10_000
    smoothing_speed: float = 5.0
    pointer_child_name: str = "Pointer"
    default_gauge_axis: Axis = "z"
    tick_interval: float = 1.0 / 60.0
    physics_step: float = 0.02

    def __post_init__(self) -> None:
        if self.min_update_interval < 0:
            raise TwinConfigError("min_update_interval must be >= 0")
        if self.smoothing_speed <= 0:
            raise TwinConfigError("smoothing_speed must be > 0")
        if self.physics_step <= 0 or self.tick_interval <= 0:
            raise TwinConfigError("tick_interval and physics_step must be > 0")
        if self.queue_max_size < 0:
            raise TwinConfigError("queue_max_size must be >= 0")

    @classmethod
    def from_env(cls, **overrides: Any) -> TwinConfig:
        """Create configuration from ``LABTWIN_*`` environment variables.

        ``LABTWIN_SECRETS_FILE`` points at a ``secrets.json``
        (``mqttUser``/``mqttPassword``/``mqttPort``) and
        ``LABTWIN_BINDINGS_FILE`` at a JSON list of bindings.  Explicit
        ``LABTWIN_MQTT_*`` variables win over the secrets file, and keyword
        arguments win over everything.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TwinConfig
            Populated configuration.
        """
        env = os.environ

        broker_kwargs: dict[str, Any] = {}
        secrets_path = env.get("LABTWIN_SECRETS_FILE")
        if secrets_path:
            broker_kwargs.update(load_secrets(secrets_path))

        _ENV_BROKER_MAP = {
            "LABTWIN_MQTT_HOST": "host",
            "LABTWIN_MQTT_USERNAME": "username",
            "LABTWIN_MQTT_PASSWORD": "password",
            "LABTWIN_MQTT_CLIENT_ID": "client_id",
        }
        for env_key, field_name in _ENV_BROKER_MAP.items():
            val = env.get(env_key)
            if val is not None:
                broker_kwargs[field_name] = val

        try:
            port_env = env.get("LABTWIN_MQTT_PORT")
            if port_env is not None:
                broker_kwargs["port"] = int(port_env)
                broker_kwargs["use_tls"] = broker_kwargs["port"] in TLS_PORTS
            keepalive_env = env.get("LABTWIN_MQTT_KEEPALIVE")
            if keepalive_env is not None:
                broker_kwargs["keepalive"] = int(keepalive_env)
        except ValueError as exc:
            raise TwinConfigError(f"Invalid numeric MQTT setting: {exc}") from exc

        tls_env = env.get("LABTWIN_MQTT_TLS")
        if tls_env is not None:
            broker_kwargs["use_tls"] = _env_bool(tls_env, bool(broker_kwargs.get("use_tls", False)))

        # Allow overriding broker fields via a nested dict
        broker_overrides = overrides.pop("broker", None)
        if isinstance(broker_overrides, dict):
            broker_kwargs.update(broker_overrides)
        elif isinstance(broker_overrides, BrokerSettings):
            broker_kwargs = dataclasses.asdict(broker_overrides)

        config_kwargs: dict[str, Any] = {"broker": BrokerSettings(**broker_kwargs)}

        bindings_path = env.get("LABTWIN_BINDINGS_FILE")
        if bindings_path and "bindings" not in overrides:
            config_kwargs["bindings"] = load_bindings(bindings_path)

        interval_env = env.get("LABTWIN_MIN_UPDATE_INTERVAL")
        if interval_env is not None and "min_update_interval" not in overrides:
            try:
                config_kwargs["min_update_interval"] = float(interval_env)
            except ValueError as exc:
                raise TwinConfigError(f"Invalid LABTWIN_MIN_UPDATE_INTERVAL: {interval_env!r}") from exc

        if "process_messages" not in overrides:
            config_kwargs["process_messages"] = _env_bool(env.get("LABTWIN_PROCESS_MESSAGES"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)


def _read_json(path: str | Path) -> Any:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise TwinConfigError(f"Could not read {path}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise TwinConfigError(f"{path} is not valid JSON: {exc}") from exc


def load_secrets(path: str | Path) -> dict[str, Any]:
    """Read broker credentials from a ``secrets.json`` file.

    Returns :class:`BrokerSettings` keyword arguments.  A port in
    :data:`TLS_PORTS` switches TLS on.
    """
    data = _read_json(path)
    if not isinstance(data, dict):
        raise TwinConfigError(f"{path} must contain a JSON object")

    result: dict[str, Any] = {}
    user = data.get("mqttUser")
    if isinstance(user, str):
        result["username"] = user
    password = data.get("mqttPassword")
    if isinstance(password, str):
        result["password"] = password
    port = data.get("mqttPort")
    if port is not None:
        try:
            result["port"] = int(port)
        except (TypeError, ValueError) as exc:
            raise TwinConfigError(f"mqttPort must be an integer (got {port!r})") from exc
        result["use_tls"] = result["port"] in TLS_PORTS
    return result


def load_bindings(path: str | Path) -> tuple[TopicBinding, ...]:
    """Read a JSON list of :class:`TopicBinding` records."""
    data = _read_json(path)
    try:
        return tuple(TypeAdapter(list[TopicBinding]).validate_python(data))
    except ValidationError as exc:
        raise TwinConfigError(f"Invalid bindings in {path}: {exc}") from exc
