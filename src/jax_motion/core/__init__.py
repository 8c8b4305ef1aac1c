"""Core data structures: poses, joints and tree frames."""

from .frame import Frame, FrameKind
from .joint import JointLimit, JointModel, JointType, MimicLink
from .pose import Pose

__all__ = [
    "Frame",
    "FrameKind",
    "JointLimit",
    "JointModel",
    "JointType",
    "MimicLink",
    "Pose",
]
