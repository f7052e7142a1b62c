"""Payload decoders.

Each decoder turns raw bytes into a typed model or value and raises
:class:`pylabtwin.exceptions.TwinPayloadError` on anything malformed, so the
dispatcher can drop exactly one message and carry on.
"""

from __future__ import annotations

import json
import math
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from pylabtwin.exceptions import TwinPayloadError
from pylabtwin.models.pendulum import CoupledPendulumParams, PendulumParams
from pylabtwin.models.updates import ObjectUpdate

TModel = TypeVar("TModel", bound=BaseModel)


def parse_json_object(payload: bytes, *, topic: str = "") -> dict[str, Any]:
    """Decode *payload* as a UTF-8 JSON object."""
    try:
        decoded = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise TwinPayloadError(f"Payload is not valid JSON: {exc}", topic=topic) from exc
    if not isinstance(decoded, dict):
        raise TwinPayloadError("Payload is not a JSON object", topic=topic)
    return decoded


def try_parse_json_object(payload: bytes) -> dict[str, Any] | None:
    try:
        return parse_json_object(payload)
    except TwinPayloadError:
        return None


def _validate(model: type[TModel], document: dict[str, Any], *, topic: str) -> TModel:
    try:
        return model.model_validate(document)
    except ValidationError as exc:
        raise TwinPayloadError(f"Invalid {model.__name__} payload: {exc}", topic=topic) from exc


def decode_object_update(document: dict[str, Any], *, topic: str = "") -> ObjectUpdate:
    return _validate(ObjectUpdate, document, topic=topic)


def decode_pendulum_params(document: dict[str, Any], *, topic: str = "") -> PendulumParams:
    return _validate(PendulumParams, document, topic=topic)


def decode_coupled_params(document: dict[str, Any], *, topic: str = "") -> CoupledPendulumParams:
    return _validate(CoupledPendulumParams, document, topic=topic)


def decode_number(payload: bytes, *, topic: str = "") -> float:
    """Decode a bare decimal number payload (``"42.5"``)."""
    try:
        text = payload.decode("utf-8").strip()
        value = float(text)
    except (UnicodeDecodeError, ValueError) as exc:
        raise TwinPayloadError(f"Payload is not a number: {payload[:32]!r}", topic=topic) from exc
    if not math.isfinite(value):
        raise TwinPayloadError(f"Payload is not a finite number: {text!r}", topic=topic)
    return value
