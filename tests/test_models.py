from __future__ import annotations

import pytest
from pydantic import ValidationError

from pylabtwin.models import (
    CoupledPendulumParams,
    CoupledTelemetry,
    GaugeType,
    ObjectUpdate,
    PendulumParams,
    PendulumTelemetry,
    TopicBinding,
)


class TestObjectUpdatePresence:
    def test_zero_vector_is_present(self) -> None:
        update = ObjectUpdate.model_validate({"targetName": "Cube", "rotation": {"x": 0, "y": 0, "z": 0}})
        assert update.has("rotation")
        assert not update.has("position")
        assert not update.has("rotation_speed")
        assert update.present_fields() == {"target_name", "rotation"}

    def test_null_and_nan_read_as_absent(self) -> None:
        update = ObjectUpdate.model_validate(
            {"targetName": "Cube", "position": None, "gaugeValue": float("nan"), "pressure": float("inf")}
        )
        assert not update.has("position")
        assert not update.has("gauge_value")
        assert not update.has("pressure")

    def test_missing_vector_components_default_to_zero(self) -> None:
        update = ObjectUpdate.model_validate({"targetName": "Cube", "rotationSpeed": {"y": 45}})
        assert update.has("rotation_speed")
        assert update.rotation_speed.as_array().tolist() == [0.0, 45.0, 0.0]

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_vector_component_rejected(self, bad: float) -> None:
        with pytest.raises(ValidationError):
            ObjectUpdate.model_validate({"targetName": "Cube", "position": {"x": bad, "y": 1, "z": 2}})

    def test_null_vector_component_defaults_to_zero(self) -> None:
        update = ObjectUpdate.model_validate({"targetName": "Cube", "scale": {"x": None, "y": 2, "z": 2}})
        assert update.scale.as_array().tolist() == [0.0, 2.0, 2.0]

    def test_gauge_value_accepts_both_spellings(self) -> None:
        camel = ObjectUpdate.model_validate({"targetName": "G", "gaugeValue": 12})
        snake = ObjectUpdate.model_validate({"targetName": "G", "gauge_value": 12})
        assert camel.gauge_value == snake.gauge_value == 12.0
        assert camel.gauge_fields() == [("gauge_value", 12.0)]

    def test_use_gravity_from_dashboard(self) -> None:
        update = ObjectUpdate.model_validate({"targetName": "Crate", "useGravity": True})
        assert update.has("use_gravity")
        assert update.use_gravity is True

    def test_blank_target_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ObjectUpdate.model_validate({"targetName": "   "})
        with pytest.raises(ValidationError):
            ObjectUpdate.model_validate({"position": {"x": 1}})

    def test_unknown_field_name_raises(self) -> None:
        update = ObjectUpdate.model_validate({"targetName": "Cube"})
        with pytest.raises(AttributeError):
            update.has("colour")


def test_pendulum_params_presence_and_bounds() -> None:
    params = PendulumParams.model_validate({"angle_init": 0})
    assert params.has("angle_init")
    assert not params.has("m")
    assert PendulumParams.model_validate({}).is_empty()
    with pytest.raises(ValidationError):
        PendulumParams.model_validate({"fs": -1})


def test_coupled_params_coupling_alias() -> None:
    params = CoupledPendulumParams.model_validate({"C": 300})
    assert params.coupling == 300.0
    assert params.has("coupling")
    assert not params.touches_bodies()
    assert CoupledPendulumParams.model_validate({"C": 1, "m2": 2}).touches_bodies()


def test_telemetry_payloads_are_rounded() -> None:
    assert PendulumTelemetry(temps=1.234567, angle=-12.345678).to_payload() == {"temps": 1.2346, "angle": -12.3457}
    assert CoupledTelemetry(temps=0.1, theta1=1.0, theta2=-1.00004).to_payload() == {
        "temps": 0.1,
        "theta1": 1.0,
        "theta2": -1.0,
    }


class TestTopicBinding:
    def test_camel_case_file_format(self) -> None:
        binding = TopicBinding.model_validate(
            {
                "topic": "lab/speed",
                "targetName": "Fan",
                "gaugeType": "RotationSpeed",
                "axis": "y",
            }
        )
        assert binding.gauge_type is GaugeType.ROTATION_SPEED
        assert binding.max_value == 100.0

    def test_range_must_be_ordered(self) -> None:
        with pytest.raises(ValidationError):
            TopicBinding(topic="t", target_name="G", min_value=10.0, max_value=0.0)

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TopicBinding.model_validate({"topic": "t", "targetName": "G", "colour": "red"})
