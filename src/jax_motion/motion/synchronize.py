"""Multi-axis synchronization: plan several joints so they finish together."""

from dataclasses import dataclass, field
from logging import getLogger
from typing import Dict, List, Mapping, Optional, Tuple, Union

from flax import struct

from .profiles import (
    DISTANCE_EPSILON,
    MotionLimits,
    MotionProfile,
    ProfileKind,
    plan_profile,
    static_profile,
)

logger = getLogger(__name__)


@dataclass(frozen=True)
class ProfilerConfig:
    """Settings shared by every trajectory a ``MultiAxisProfiler`` plans.

    Attributes:
        kind: Profile family used for moving joints.
        default_limits: Limits for joints without an entry in the limit map.
        epsilon: Displacements below this leave a joint static.
    """

    kind: Union[ProfileKind, str] = ProfileKind.TRAPEZOIDAL
    default_limits: MotionLimits = field(default_factory=MotionLimits)
    epsilon: float = DISTANCE_EPSILON

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", ProfileKind(self.kind))
        if self.kind is ProfileKind.STATIC:
            raise ValueError("a profiler cannot plan static profiles only")
        if not self.epsilon > 0.0:
            raise ValueError(f"epsilon must be positive, got {self.epsilon}")


@struct.dataclass
class AxisPlan:
    """Profile of one joint together with its start and goal values."""
    profile: MotionProfile
    current: float
    target: float

    @property
    def is_static(self) -> bool:
        return self.profile.is_static


@struct.dataclass
class SyncPlan:
    """Synchronized plan: one ``AxisPlan`` per joint and the shared duration.

    Attributes:
        axes: Joint name to ``AxisPlan``, in request order.
        total_time: Duration shared by all moving joints (0 when none move).
    """
    axes: Dict[str, AxisPlan]
    total_time: float

    def __getitem__(self, name: str) -> AxisPlan:
        return self.axes[name]

    def __contains__(self, name: str) -> bool:
        return name in self.axes

    def __len__(self) -> int:
        return len(self.axes)

    @property
    def joint_names(self) -> List[str]:
        return list(self.axes)

    @property
    def moving_joints(self) -> List[str]:
        return [name for name, axis in self.axes.items() if not axis.is_static]


class MultiAxisProfiler:
    """Plans time-synchronized joint trajectories.

    Every moving joint is first planned on its own limits. The slowest one
    fixes the shared duration ``T``; the others are replanned with limits
    scaled by ``r = duration / T`` (velocity ``r``, acceleration ``r**2``,
    jerk ``r**3``) which stretches their profile to exactly ``T`` while
    keeping its shape.

    Example::

        profiler = MultiAxisProfiler(ProfilerConfig(kind="s-curve"))
        plan = profiler.synchronize({"j1": 0.0}, {"j1": 1.2, "j2": -0.4},
                                    {"j1": MotionLimits(1.0, 2.0, 8.0)})
        values = profiler.sample(plan, 0.5)
    """

    def __init__(self, config: Optional[ProfilerConfig] = None) -> None:
        self.config = config if config is not None else ProfilerConfig()

    def synchronize(
        self,
        current: Mapping[str, float],
        target: Mapping[str, float],
        limits: Optional[Mapping[str, MotionLimits]] = None,
    ) -> SyncPlan:
        """Plan every joint of ``target`` from ``current`` (missing joints start at 0)."""
        limits = limits or {}
        kind = self.config.kind

        starts: Dict[str, Tuple[float, float]] = {}
        profiles: Dict[str, MotionProfile] = {}
        for name, goal in target.items():
            start, goal = float(current.get(name, 0.0)), float(goal)
            starts[name] = (start, goal)
            distance = goal - start
            if abs(distance) < self.config.epsilon:
                profiles[name] = static_profile(distance)
            else:
                profiles[name] = plan_profile(distance, self._limits(limits, name), kind)

        total_time = max((p.duration for p in profiles.values()), default=0.0)

        axes: Dict[str, AxisPlan] = {}
        for name, profile in profiles.items():
            start, goal = starts[name]
            if 0.0 < profile.duration < total_time:
                ratio = profile.duration / total_time
                scaled = self._limits(limits, name).time_scaled(ratio)
                profile = plan_profile(goal - start, scaled, kind)
            axes[name] = AxisPlan(profile=profile, current=start, target=goal)

        plan = SyncPlan(axes=axes, total_time=total_time)
        logger.debug(
            "Synchronized %d joint(s), %d moving, total time %.4fs",
            len(axes),
            len(plan.moving_joints),
            total_time,
        )
        return plan

    def sample(self, plan: SyncPlan, t: float) -> Dict[str, float]:
        """Joint values at time ``t``. Pure: the same ``t`` always gives the same map."""
        t = min(float(t), plan.total_time)
        values: Dict[str, float] = {}
        for name, axis in plan.axes.items():
            if axis.is_static or t >= min(plan.total_time, axis.profile.duration):
                values[name] = axis.target
            else:
                values[name] = axis.current + float(axis.profile.position(t))
        return values

    def progress(self, plan: SyncPlan, t: float) -> float:
        """Fraction of the plan elapsed at ``t``, in ``[0, 1]``."""
        if plan.total_time <= 0.0:
            return 1.0
        return min(max(float(t), 0.0) / plan.total_time, 1.0)

    def is_complete(self, plan: SyncPlan, t: float) -> bool:
        return float(t) >= plan.total_time

    def _limits(self, limits: Mapping[str, MotionLimits], name: str) -> MotionLimits:
        return limits.get(name, self.config.default_limits)
