"""Base model for inbound and outbound bus payloads.

Every wire model inherits from :class:`TwinBaseModel` which provides:

* ``alias_generator=to_camel`` so the dashboard's camelCase keys map
  automatically to snake_case fields (``populate_by_name`` keeps the
  snake_case spelling accepted too).
* A ``model_validator(mode="before")`` that strips values meaning "not
  provided" (``None``, NaN, infinities) so the field stays *unset*.  Vector
  components keep non-finite values so they fail validation instead.
* :meth:`TwinBaseModel.has`, an explicit per-field presence test backed by
  pydantic's ``model_fields_set``.  A field sent as ``0`` is present; a
  field left out is not.  Consumers must never compare against a default
  value to decide presence.
"""

from __future__ import annotations

import math
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


def _is_absent(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, float) and not math.isfinite(value)


class TwinBaseModel(BaseModel):
    """Base for wire payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    _non_finite_is_absent: ClassVar[bool] = True

    @model_validator(mode="before")
    @classmethod
    def _drop_absent_values(cls, values: Any) -> Any:
        """Remove null (and, unless disabled, non-finite) entries so they read as absent."""
        if not isinstance(values, dict):
            return values
        if not cls._non_finite_is_absent:
            return {key: value for key, value in values.items() if value is not None}
        return {key: value for key, value in values.items() if not _is_absent(value)}

    def has(self, field_name: str) -> bool:
        """Return ``True`` when *field_name* was present in the payload."""
        if field_name not in type(self).model_fields:
            raise AttributeError(f"{type(self).__name__} has no field {field_name!r}")
        return field_name in self.model_fields_set

    def present_fields(self) -> frozenset[str]:
        return frozenset(self.model_fields_set)
