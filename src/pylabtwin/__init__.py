"""pylabtwin - MQTT-driven actuation core for a lab simulation scene."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pylabtwin")
except PackageNotFoundError:
    __version__ = "0+local"
from pylabtwin._mqtt import Bus, TwinMqttRuntime
from pylabtwin.config import (
    BrokerSettings,
    CoupledBodySettings,
    CoupledSettings,
    PendulumSettings,
    TopicSettings,
    TwinConfig,
    load_bindings,
    load_secrets,
)
from pylabtwin.dispatcher import Dispatcher
from pylabtwin.exceptions import (
    TwinBusError,
    TwinConfigError,
    TwinError,
    TwinPayloadError,
    TwinTargetNotFoundError,
)
from pylabtwin.models import (
    CoupledPendulumParams,
    CoupledTelemetry,
    GaugeType,
    ObjectUpdate,
    PendulumParams,
    PendulumTelemetry,
    TopicBinding,
    Vec3,
)
from pylabtwin.scene import InMemoryScene, Scene
from pylabtwin.twin import LabTwin

__all__ = [
    "__version__",
    "BrokerSettings",
    "Bus",
    "CoupledBodySettings",
    "CoupledPendulumParams",
    "CoupledSettings",
    "CoupledTelemetry",
    "Dispatcher",
    "GaugeType",
    "InMemoryScene",
    "LabTwin",
    "ObjectUpdate",
    "PendulumParams",
    "PendulumSettings",
    "PendulumTelemetry",
    "Scene",
    "TopicBinding",
    "TopicSettings",
    "TwinBusError",
    "TwinConfig",
    "TwinConfigError",
    "TwinError",
    "TwinMqttRuntime",
    "TwinPayloadError",
    "TwinTargetNotFoundError",
    "Vec3",
    "load_bindings",
    "load_secrets",
]
