"""Motion profiles, multi-axis synchronization and playback."""

from .playback import TrajectoryPlayer, iter_samples
from .profiles import (
    MotionLimits,
    MotionProfile,
    ProfileKind,
    plan,
    plan_profile,
    plan_scurve,
    plan_trapezoidal,
    static_profile,
)
from .synchronize import AxisPlan, MultiAxisProfiler, ProfilerConfig, SyncPlan

__all__ = [
    "AxisPlan",
    "MotionLimits",
    "MotionProfile",
    "MultiAxisProfiler",
    "ProfileKind",
    "ProfilerConfig",
    "SyncPlan",
    "TrajectoryPlayer",
    "iter_samples",
    "plan",
    "plan_profile",
    "plan_scurve",
    "plan_trapezoidal",
    "static_profile",
]
