"""Custom exception hierarchy for pylabtwin."""

from __future__ import annotations


class TwinError(Exception):
    """Base exception for all pylabtwin errors."""


class TwinConfigError(TwinError):
    """Invalid or missing configuration."""


class TwinPayloadError(TwinError):
    """Inbound payload could not be decoded (bad JSON, bad number, bad shape)."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class TwinTargetNotFoundError(TwinError):
    """A message addressed an entity that does not exist in the scene."""

    def __init__(self, target_name: str) -> None:
        self.target_name = target_name
        super().__init__(f"Target object '{target_name}' not found in scene")


class TwinBusError(TwinError):
    """Outbound publish failed (bus not connected, broker refused)."""
