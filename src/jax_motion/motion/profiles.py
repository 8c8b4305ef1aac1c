"""Closed-form motion profiles: trapezoidal, triangular and S-curve.

A profile is planned once from a displacement and kinematic limits and then
evaluated as a pure time law. Internally every profile is a table of
constant-jerk segments; each segment stores its start time and the position,
velocity and acceleration reached at that time, so evaluating any phase is a
single cubic in elapsed-phase time and continuity across phase boundaries
holds by construction.

Planning runs in plain Python (it branches on the profile shape); evaluation
uses ``jax.numpy`` and accepts scalar or array ``t``, so ``position`` /
``velocity`` can be vectorized or jitted.
"""

import math
from dataclasses import dataclass
from enum import Enum
from logging import getLogger
from typing import List, Optional, Sequence, Tuple, Union

import jax.numpy as jnp
from jax import Array
from flax import struct

logger = getLogger(__name__)

# Displacements below this are treated as "already there".
DISTANCE_EPSILON = 1e-4


class ProfileKind(str, Enum):
    STATIC = "static"
    TRAPEZOIDAL = "trapezoidal"
    TRIANGULAR = "triangular"
    S_CURVE = "s-curve"


@dataclass(frozen=True)
class MotionLimits:
    """Kinematic limits of one axis.

    Attributes:
        max_velocity: Velocity bound (rad/s or m/s).
        max_acceleration: Acceleration bound.
        max_jerk: Jerk bound, used by S-curve profiles only.
    """

    max_velocity: float = 1.0
    max_acceleration: float = 2.0
    max_jerk: float = 10.0

    def __post_init__(self) -> None:
        for field_name in ("max_velocity", "max_acceleration", "max_jerk"):
            value = getattr(self, field_name)
            if not value > 0.0:
                raise ValueError(f"{field_name} must be positive, got {value}")

    def time_scaled(self, ratio: float) -> "MotionLimits":
        """Limits that stretch a profile's duration by ``1 / ratio``.

        Velocity scales with ``ratio``, acceleration with ``ratio**2`` and jerk
        with ``ratio**3``.
        """
        return MotionLimits(
            max_velocity=self.max_velocity * ratio,
            max_acceleration=self.max_acceleration * ratio**2,
            max_jerk=self.max_jerk * ratio**3,
        )


# (duration, acceleration at segment start, jerk)
Segment = Tuple[float, float, float]


@struct.dataclass
class MotionProfile:
    """Immutable time law ``t -> (position, velocity, acceleration)``.

    Positions are displacements from the start of the move and carry the sign
    of ``distance``. ``t`` is clamped to ``[0, duration]``.

    Attributes:
        distance: Signed displacement covered by the profile.
        duration: Total time of the move in seconds.
        peak_velocity: Largest speed reached (unsigned).
        direction: +1.0 or -1.0, the sign of ``distance``.
        starts: (n,) segment start times.
        p0, v0, a0: (n,) unsigned position, velocity and acceleration at each
            segment start.
        jerk: (n,) constant jerk inside each segment.
        kind: Shape of the profile.
    """
    distance: float
    duration: float
    peak_velocity: float
    direction: float
    starts: Array
    p0: Array
    v0: Array
    a0: Array
    jerk: Array
    kind: ProfileKind = struct.field(pytree_node=False)

    @property
    def is_static(self) -> bool:
        return self.kind is ProfileKind.STATIC

    def _locate(self, t) -> Tuple[Array, Array, Array]:
        t = jnp.clip(jnp.asarray(t, dtype=jnp.float64), 0.0, self.duration)
        idx = jnp.clip(jnp.searchsorted(self.starts, t, side="right") - 1, 0, self.starts.shape[0] - 1)
        return t, idx, t - self.starts[idx]

    def position(self, t) -> Array:
        """Signed displacement at time ``t``; constantly zero for static profiles."""
        t, i, tau = self._locate(t)
        if self.is_static:
            return jnp.zeros_like(t)
        p = self.p0[i] + self.v0[i] * tau + 0.5 * self.a0[i] * tau**2 + self.jerk[i] * tau**3 / 6.0
        p = jnp.where(t >= self.duration, abs(self.distance), p)
        return self.direction * p

    def velocity(self, t) -> Array:
        """Signed velocity at time ``t``; zero once the move is complete."""
        t, i, tau = self._locate(t)
        v = self.v0[i] + self.a0[i] * tau + 0.5 * self.jerk[i] * tau**2
        v = jnp.where(t >= self.duration, 0.0, v)
        return self.direction * v

    def acceleration(self, t) -> Array:
        """Signed acceleration at time ``t``; zero once the move is complete."""
        t, i, tau = self._locate(t)
        a = self.a0[i] + self.jerk[i] * tau
        a = jnp.where(t >= self.duration, 0.0, a)
        return self.direction * a


def _build(kind: ProfileKind, distance: float, segments: Sequence[Segment]) -> MotionProfile:
    """Integrate a list of constant-jerk segments into a ``MotionProfile``."""
    segments = [s for s in segments if s[0] > 0.0] or [(0.0, 0.0, 0.0)]

    starts: List[float] = []
    p0: List[float] = []
    v0: List[float] = []
    a0: List[float] = []
    jerk: List[float] = []

    t = p = v = 0.0
    peak = 0.0
    for duration, a, j in segments:
        starts.append(t)
        p0.append(p)
        v0.append(v)
        a0.append(a)
        jerk.append(j)
        p += v * duration + 0.5 * a * duration**2 + j * duration**3 / 6.0
        v += a * duration + 0.5 * j * duration**2
        t += duration
        peak = max(peak, v)

    return MotionProfile(
        distance=float(distance),
        duration=t,
        peak_velocity=peak,
        direction=-1.0 if distance < 0 else 1.0,
        starts=jnp.array(starts, dtype=jnp.float64),
        p0=jnp.array(p0, dtype=jnp.float64),
        v0=jnp.array(v0, dtype=jnp.float64),
        a0=jnp.array(a0, dtype=jnp.float64),
        jerk=jnp.array(jerk, dtype=jnp.float64),
        kind=kind,
    )


def static_profile(distance: float = 0.0) -> MotionProfile:
    """Zero-duration profile for a displacement too small to move."""
    return _build(ProfileKind.STATIC, distance, [])


def plan_trapezoidal(distance: float, v_max: float, a_max: float) -> MotionProfile:
    """Plan a trapezoidal (or triangular) profile with zero start/end velocity.

    When accelerating to ``v_max`` and braking back to rest fits within the
    distance, a constant-velocity phase covers the remainder (a remainder of
    exactly zero still yields a trapezoidal profile). Otherwise the profile
    is triangular with peak velocity ``sqrt(a_max * |distance|)``.
    """
    MotionLimits(v_max, a_max)
    d = abs(float(distance))
    if d < DISTANCE_EPSILON:
        logger.debug("Distance %.3g below threshold; using a static profile", distance)
        return static_profile(distance)

    t_acc = v_max / a_max
    d_acc = 0.5 * a_max * t_acc**2
    d_dec = v_max * t_acc - 0.5 * a_max * t_acc**2

    if d_acc + d_dec <= d:
        t_const = (d - d_acc - d_dec) / v_max
        return _build(
            ProfileKind.TRAPEZOIDAL,
            distance,
            [(t_acc, a_max, 0.0), (t_const, 0.0, 0.0), (t_acc, -a_max, 0.0)],
        )

    v_peak = math.sqrt(a_max * d)
    t_ramp = v_peak / a_max
    return _build(
        ProfileKind.TRIANGULAR,
        distance,
        [(t_ramp, a_max, 0.0), (t_ramp, -a_max, 0.0)],
    )


def _scurve_timing(d: float, v: float, a: float, j: float) -> Tuple[float, float, float]:
    """Jerk ramp, constant-acceleration and cruise durations of a symmetric S-curve."""

    def ramps(v_peak: float) -> Tuple[float, float]:
        if v_peak * j >= a * a:
            return a / j, max(v_peak / a - a / j, 0.0)
        # v_peak is reached before the acceleration saturates
        return math.sqrt(v_peak / j), 0.0

    t_j, t_a = ramps(v)
    d_acc = 0.5 * v * (2.0 * t_j + t_a)
    if 2.0 * d_acc <= d:
        return t_j, t_a, (d - 2.0 * d_acc) / v

    # Too short to cruise: lower the peak velocity until the cruise vanishes.
    v_peak = 0.5 * a * (-(a / j) + math.sqrt((a / j) ** 2 + 4.0 * d / a))
    if v_peak * j < a * a:
        v_peak = (0.5 * d * math.sqrt(j)) ** (2.0 / 3.0)
    t_j, t_a = ramps(v_peak)
    return t_j, t_a, 0.0


def plan_scurve(distance: float, v_max: float, a_max: float, j_max: float) -> MotionProfile:
    """Plan a jerk-limited seven-segment S-curve with zero start/end velocity.

    Segments: jerk up, constant acceleration, jerk down, cruise, and the
    mirrored deceleration. Short moves drop the cruise and, if needed, the
    constant-acceleration phases.
    """
    MotionLimits(v_max, a_max, j_max)
    d = abs(float(distance))
    if d < DISTANCE_EPSILON:
        logger.debug("Distance %.3g below threshold; using a static profile", distance)
        return static_profile(distance)

    t_j, t_a, t_v = _scurve_timing(d, v_max, a_max, j_max)
    a_peak = j_max * t_j
    return _build(
        ProfileKind.S_CURVE,
        distance,
        [
            (t_j, 0.0, j_max),
            (t_a, a_peak, 0.0),
            (t_j, a_peak, -j_max),
            (t_v, 0.0, 0.0),
            (t_j, 0.0, -j_max),
            (t_a, -a_peak, 0.0),
            (t_j, -a_peak, j_max),
        ],
    )


def plan(distance: float, v_max: float, a_max: float, j_max: Optional[float] = None) -> MotionProfile:
    """Plan a profile for ``distance``: S-curve when ``j_max`` is given, else trapezoidal."""
    if j_max is None:
        return plan_trapezoidal(distance, v_max, a_max)
    return plan_scurve(distance, v_max, a_max, j_max)


def plan_profile(
    distance: float,
    limits: MotionLimits,
    kind: Union[ProfileKind, str] = ProfileKind.TRAPEZOIDAL,
) -> MotionProfile:
    """Plan a profile of the requested family from a ``MotionLimits`` bundle."""
    kind = ProfileKind(kind)
    if kind in (ProfileKind.TRAPEZOIDAL, ProfileKind.TRIANGULAR):
        return plan_trapezoidal(distance, limits.max_velocity, limits.max_acceleration)
    if kind is ProfileKind.S_CURVE:
        return plan_scurve(distance, limits.max_velocity, limits.max_acceleration, limits.max_jerk)
    raise ValueError(f"cannot plan a '{kind.value}' profile")
