"""Tests for multi-axis synchronization."""

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from jax_motion.motion import (
    MotionLimits,
    MultiAxisProfiler,
    ProfileKind,
    ProfilerConfig,
    plan_trapezoidal,
)


def test_synchronized_durations():
    """Joints needing 1.0 s, 2.5 s and 0.4 s all finish at 2.5 s."""
    lim = MotionLimits(max_velocity=10.0, max_acceleration=1.0)
    # Triangular moves take 2 * sqrt(d / a): pick d = (duration / 2) ** 2.
    target = {"j1": 0.25, "j2": 1.5625, "j3": -0.04}
    for name, duration in zip(target, (1.0, 2.5, 0.4)):
        assert plan_trapezoidal(target[name], 10.0, 1.0).duration == pytest.approx(duration)

    profiler = MultiAxisProfiler()
    plan = profiler.synchronize({}, target, {name: lim for name in target})

    assert plan.total_time == pytest.approx(2.5)
    for name, goal in target.items():
        axis = plan[name]
        assert axis.current == 0.0
        assert axis.profile.duration == pytest.approx(2.5)
        assert float(axis.profile.position(2.5)) == pytest.approx(goal, abs=1e-9)


def test_shorter_joint_is_slowed_down():
    """Displacements 0.5 and 2.0 with equal limits: the short joint peaks below v_max."""
    lim = MotionLimits(max_velocity=1.0, max_acceleration=1.0)
    profiler = MultiAxisProfiler()
    plan = profiler.synchronize({"a": 0.0, "b": 0.0}, {"a": 0.5, "b": 2.0}, {"a": lim, "b": lim})

    assert plan.total_time == pytest.approx(plan_trapezoidal(2.0, 1.0, 1.0).duration)
    assert plan.total_time == pytest.approx(3.0)
    assert plan["a"].profile.peak_velocity < 1.0
    assert plan["b"].profile.peak_velocity == pytest.approx(1.0)


def test_static_joints_excluded_from_timing():
    """Joints already at their target stay static and report the target."""
    profiler = MultiAxisProfiler()
    plan = profiler.synchronize({"a": 1.0, "b": 0.3}, {"a": 1.00005, "b": 1.3})

    assert plan["a"].is_static
    assert plan.moving_joints == ["b"]
    assert plan.total_time == pytest.approx(plan_trapezoidal(1.0, 1.0, 2.0).duration)
    for t in (0.0, 0.3, plan.total_time):
        assert profiler.sample(plan, t)["a"] == 1.00005


def test_all_static_plan_is_complete():
    """With nothing to move, the plan is complete immediately."""
    profiler = MultiAxisProfiler()
    plan = profiler.synchronize({"a": 0.5}, {"a": 0.5})

    assert plan.total_time == 0.0
    assert profiler.progress(plan, 0.0) == 1.0
    assert profiler.is_complete(plan, 0.0)
    assert profiler.sample(plan, 0.0) == {"a": 0.5}


def test_missing_current_and_limits_use_defaults():
    """Joints absent from current start at 0; absent from limits use the defaults."""
    default = MotionLimits(max_velocity=0.5, max_acceleration=0.5)
    profiler = MultiAxisProfiler(ProfilerConfig(default_limits=default))
    plan = profiler.synchronize({}, {"x": 2.0})

    assert plan["x"].current == 0.0
    assert plan.total_time == pytest.approx(plan_trapezoidal(2.0, 0.5, 0.5).duration)


def test_sample_progress_and_purity():
    """sample starts at current, ends at target and is idempotent for a given t."""
    profiler = MultiAxisProfiler()
    plan = profiler.synchronize({"a": 1.0, "b": -1.0}, {"a": -0.5, "b": 0.5})

    assert profiler.sample(plan, 0.0) == pytest.approx({"a": 1.0, "b": -1.0})
    assert profiler.sample(plan, plan.total_time) == {"a": -0.5, "b": 0.5}
    assert profiler.sample(plan, plan.total_time + 5.0) == {"a": -0.5, "b": 0.5}

    mid = plan.total_time / 2
    first = profiler.sample(plan, mid)
    profiler.sample(plan, plan.total_time)
    assert profiler.sample(plan, mid) == first
    assert first["a"] == pytest.approx(0.25)

    assert profiler.progress(plan, mid) == pytest.approx(0.5)
    assert profiler.progress(plan, -1.0) == 0.0
    assert profiler.progress(plan, 2 * plan.total_time) == 1.0
    assert not profiler.is_complete(plan, mid)


def test_scurve_synchronization():
    """S-curve plans are stretched to the shared duration as well."""
    lim = MotionLimits(1.0, 2.0, 10.0)
    profiler = MultiAxisProfiler(ProfilerConfig(kind="s-curve"))
    plan = profiler.synchronize({}, {"a": 0.3, "b": 3.0, "c": -1.2}, {"a": lim, "b": lim, "c": lim})

    for axis in plan.axes.values():
        assert axis.profile.kind is ProfileKind.S_CURVE
        assert axis.profile.duration == pytest.approx(plan.total_time)
        assert float(axis.profile.position(plan.total_time)) == pytest.approx(axis.target)


def test_profiler_config_validation():
    """Static-only profilers and non-positive epsilons are rejected."""
    with pytest.raises(ValueError):
        ProfilerConfig(kind="static")
    with pytest.raises(ValueError):
        ProfilerConfig(epsilon=0.0)
    assert ProfilerConfig(kind="s-curve").kind is ProfileKind.S_CURVE


@given(
    st.lists(st.floats(min_value=-3.0, max_value=3.0), min_size=1, max_size=6),
    st.sampled_from([ProfileKind.TRAPEZOIDAL, ProfileKind.S_CURVE]),
)
@settings(deadline=None, max_examples=30)
def test_every_joint_arrives_together(displacements, kind):
    """Every moving joint shares the plan's duration and lands on its target."""
    profiler = MultiAxisProfiler(ProfilerConfig(kind=kind))
    target = {f"j{i}": d for i, d in enumerate(displacements)}
    plan = profiler.synchronize({}, target)

    final = profiler.sample(plan, plan.total_time)
    assert final == target
    for name in plan.moving_joints:
        profile = plan[name].profile
        assert profile.duration == pytest.approx(plan.total_time, rel=1e-9)
        np.testing.assert_allclose(float(profile.position(plan.total_time - 1e-9)), target[name], atol=1e-6)
