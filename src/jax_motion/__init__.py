"""
JAX Motion: robot joint kinematics, motion profiles and tool center points.

This library models an articulated robot as a tree of frames, computes world
poses from joint values with JAX, plans synchronized velocity, acceleration
and jerk limited joint trajectories, and resolves the tool center point.
"""

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import transforms
from . import core
from . import motion
from .chain import KinematicTree, forward_kinematics
from .core import JointLimit, JointModel, JointType, Pose
from .errors import (
    InvalidArityError,
    JaxMotionError,
    NoKinematicChainError,
    UnknownFrameError,
    UnknownJointError,
    UnknownTCPError,
)
from .motion import MotionLimits, MultiAxisProfiler, ProfileKind, ProfilerConfig, SyncPlan, plan
from .tcp import TCPRegistry, TCPResolver, ToolCenterPoint

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "motion",
    "KinematicTree",
    "forward_kinematics",
    "JointLimit",
    "JointModel",
    "JointType",
    "Pose",
    "InvalidArityError",
    "JaxMotionError",
    "NoKinematicChainError",
    "UnknownFrameError",
    "UnknownJointError",
    "UnknownTCPError",
    "MotionLimits",
    "MultiAxisProfiler",
    "ProfileKind",
    "ProfilerConfig",
    "SyncPlan",
    "plan",
    "TCPRegistry",
    "TCPResolver",
    "ToolCenterPoint",
]
