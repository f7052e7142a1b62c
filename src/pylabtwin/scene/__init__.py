"""Scene collaborator protocol and the bundled in-memory scene."""

from pylabtwin.scene.base import BodyState, EntityId, HingeInfo, JointMotor, Scene, SceneListener, Transform
from pylabtwin.scene.memory import InMemoryScene

__all__ = [
    "BodyState",
    "EntityId",
    "HingeInfo",
    "InMemoryScene",
    "JointMotor",
    "Scene",
    "SceneListener",
    "Transform",
]
