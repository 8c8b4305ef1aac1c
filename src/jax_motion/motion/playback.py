"""Caller-clocked playback of a ``SyncPlan`` onto a ``KinematicTree``.

Nothing here owns a clock or a thread: the caller advances time with
``step``/``seek`` (e.g. from a render loop) and the player samples the plan,
writes the values into the tree and reports each tick.
"""

import math
from logging import getLogger
from typing import Callable, Dict, Iterator, Optional, Tuple

from ..chain import KinematicTree
from ..errors import InvalidArityError
from .synchronize import MultiAxisProfiler, SyncPlan

logger = getLogger(__name__)

TickCallback = Callable[[float, Dict[str, float]], None]


class TrajectoryPlayer:
    """Drives a tree's joints along a synchronized plan.

    Args:
        tree: Tree whose joints are written on every tick.
        plan: Plan produced by ``profiler.synchronize``.
        profiler: Profiler used to sample the plan.
        on_tick: Optional ``on_tick(t, values)`` called after each applied tick.
    """

    def __init__(
        self,
        tree: KinematicTree,
        plan: SyncPlan,
        profiler: Optional[MultiAxisProfiler] = None,
        on_tick: Optional[TickCallback] = None,
    ) -> None:
        self.tree = tree
        self.plan = plan
        self.profiler = profiler if profiler is not None else MultiAxisProfiler()
        self.on_tick = on_tick
        self._elapsed = 0.0
        self._running = False
        self._done = False

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def running(self) -> bool:
        return self._running

    @property
    def done(self) -> bool:
        return self._done

    @property
    def progress(self) -> float:
        return self.profiler.progress(self.plan, self._elapsed)

    def start(self) -> Dict[str, float]:
        """Validate the plan against the tree and apply the values at ``t = 0``.

        Raises:
            UnknownJointError: if a planned joint is missing from the tree.
            InvalidArityError: if a planned joint is not single-valued.
        """
        for name in self.plan.joint_names:
            joint = self.tree.joint(name)
            if joint.arity != 1:
                raise InvalidArityError(name, joint.arity, 1)

        self._elapsed = 0.0
        self._running = True
        self._done = False
        return self._tick()

    def step(self, dt: float) -> Dict[str, float]:
        """Advance by ``dt`` seconds and apply the sampled values."""
        if dt < 0.0:
            raise ValueError(f"dt must be non-negative, got {dt}")
        self._require_running()
        self._elapsed = min(self._elapsed + dt, self.plan.total_time)
        return self._tick()

    def seek(self, t: float) -> Dict[str, float]:
        """Jump to time ``t`` (clamped to the plan) and apply the sampled values."""
        self._require_running()
        self._elapsed = min(max(float(t), 0.0), self.plan.total_time)
        return self._tick()

    def cancel(self) -> None:
        """Stop playback; joints keep the values of the last applied tick."""
        if self._running:
            logger.info("Trajectory cancelled at t=%.4fs", self._elapsed)
        self._running = False

    def _require_running(self) -> None:
        if not self._running:
            raise RuntimeError("trajectory is not running; call start() first")

    def _tick(self) -> Dict[str, float]:
        values = self.profiler.sample(self.plan, self._elapsed)
        self.tree.set_joint_values(values)
        if self.on_tick is not None:
            self.on_tick(self._elapsed, values)
        if self.profiler.is_complete(self.plan, self._elapsed):
            self._running = False
            self._done = True
            logger.info("Trajectory complete after %.4fs", self.plan.total_time)
        return values


def iter_samples(
    profiler: MultiAxisProfiler, plan: SyncPlan, rate_hz: float = 60.0
) -> Iterator[Tuple[float, Dict[str, float]]]:
    """Yield ``(t, values)`` every ``1 / rate_hz`` seconds, ending exactly at ``total_time``."""
    if not rate_hz > 0.0:
        raise ValueError(f"rate_hz must be positive, got {rate_hz}")
    total_time = plan.total_time
    dt = 1.0 / rate_hz
    for k in range(math.ceil(total_time * rate_hz - 1e-9)):
        t = k * dt
        yield t, profiler.sample(plan, t)
    yield total_time, profiler.sample(plan, total_time)
