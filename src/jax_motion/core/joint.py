"""Joint model: type, limits, axis and value(s) of a single joint.

A ``JointModel`` stores its value as a tuple of Python floats whose length is
fixed by the joint type, and computes the joint frame's local transform from
that value and the joint's rest origin. The tree that owns the joint is
responsible for staleness bookkeeping and mimic propagation.
"""

import math
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import jax.numpy as jnp
from jax import Array

from ..errors import InvalidArityError
from ..transforms import se3, so3

Component = Optional[float]
Components = Union[float, Sequence[Component]]


class JointType(str, Enum):
    """Closed set of supported joint types."""

    FIXED = "fixed"
    CONTINUOUS = "continuous"
    REVOLUTE = "revolute"
    PRISMATIC = "prismatic"
    PLANAR = "planar"
    FLOATING = "floating"

    @property
    def arity(self) -> int:
        """Number of value components: 0, 1, 3 ([x, y, theta]) or 6 ([x, y, z, r, p, y])."""
        return _ARITY[self]


_ARITY = {
    JointType.FIXED: 0,
    JointType.CONTINUOUS: 1,
    JointType.REVOLUTE: 1,
    JointType.PRISMATIC: 1,
    JointType.PLANAR: 3,
    JointType.FLOATING: 6,
}


@dataclass(frozen=True)
class JointLimit:
    """Closed interval of admissible values (radians or meters)."""

    lower: float = 0.0
    upper: float = 0.0

    def __post_init__(self) -> None:
        if self.lower > self.upper:
            raise ValueError(
                f"lower limit {self.lower} is greater than upper limit {self.upper}"
            )

    def clamp(self, value: float) -> float:
        return min(self.upper, max(self.lower, value))


@dataclass(frozen=True)
class MimicLink:
    """Handle from a driving joint to one of its followers.

    Attributes:
        follower: Arena index of the follower joint frame in the owning tree.
        multiplier: Factor applied to each driving component.
        offset: Constant added after scaling.
    """

    follower: int
    multiplier: float = 1.0
    offset: float = 0.0

    def apply(self, components: Sequence[Component]) -> Tuple[Component, ...]:
        return tuple(
            None if c is None else c * self.multiplier + self.offset for c in components
        )


class JointModel:
    """One joint of a kinematic tree.

    Args:
        name: Joint name, unique within its tree.
        joint_type: A ``JointType`` (or its string value).
        axis: Joint axis; normalized here. Defaults to X, or Z for planar joints
            (the plane normal).
        limit: Limit applied to revolute and prismatic joints.
        ignore_limits: Disable clamping of revolute/prismatic/planar values.
        field_limits: Optional per-component limits for planar joints.
    """

    def __init__(
        self,
        name: str,
        joint_type: Union[JointType, str] = JointType.FIXED,
        axis: Optional[Sequence[float]] = None,
        limit: Optional[JointLimit] = None,
        ignore_limits: bool = False,
        field_limits: Optional[Sequence[Optional[JointLimit]]] = None,
    ) -> None:
        self.name = name
        self.joint_type = JointType(joint_type)
        if axis is None:
            axis = (0.0, 0.0, 1.0) if self.joint_type is JointType.PLANAR else (1.0, 0.0, 0.0)
        self.axis = _normalize(axis, name)
        self.limit = limit if limit is not None else JointLimit()
        self.ignore_limits = ignore_limits

        if field_limits is not None:
            if self.joint_type is not JointType.PLANAR:
                raise ValueError(f"field_limits are only supported on planar joints ('{name}')")
            if len(field_limits) != 3:
                raise ValueError(f"planar joint '{name}' needs 3 field limits, got {len(field_limits)}")
            field_limits = tuple(field_limits)
        self.field_limits: Optional[Tuple[Optional[JointLimit], ...]] = field_limits

        self._value: Tuple[float, ...] = self.zero_value()
        # Rest transform, captured on the first value-set and never changed afterwards.
        self.origin: Optional[Array] = None
        self.mimics: List[MimicLink] = []
        # Arena index of the joint driving this one, when it is a mimic follower.
        self.driver: Optional[int] = None

    def __repr__(self) -> str:
        return f"JointModel(name={self.name!r}, type={self.joint_type.value!r}, value={self._value})"

    @property
    def arity(self) -> int:
        return self.joint_type.arity

    @property
    def is_movable(self) -> bool:
        return self.joint_type is not JointType.FIXED

    @property
    def value(self) -> Tuple[float, ...]:
        return self._value

    @property
    def angle(self) -> float:
        """First value component (angle or offset of 1-DOF joints)."""
        if not self._value:
            raise ValueError(f"fixed joint '{self.name}' has no value")
        return self._value[0]

    def zero_value(self) -> Tuple[float, ...]:
        return (0.0,) * self.arity

    def coerce(self, components: Components) -> Tuple[Component, ...]:
        """Normalize ``components`` to a tuple of floats/None of the joint's arity.

        Raises:
            InvalidArityError: if the number of components does not match.
        """
        if isinstance(components, Real) or getattr(components, "ndim", None) == 0:
            components = (components,)
        components = tuple(None if c is None else float(c) for c in components)
        if len(components) != self.arity:
            raise InvalidArityError(self.name, self.arity, len(components))
        return components

    def clamp(self, components: Sequence[Component]) -> Tuple[Component, ...]:
        """Apply the joint's limits to ``components`` (``None`` entries pass through)."""
        jt = self.joint_type
        if self.ignore_limits or jt in (JointType.CONTINUOUS, JointType.FLOATING, JointType.FIXED):
            return tuple(components)
        if jt is JointType.PLANAR:
            if self.field_limits is None:
                return tuple(components)
            return tuple(
                c if c is None or lim is None else lim.clamp(c)
                for c, lim in zip(components, self.field_limits)
            )
        return tuple(None if c is None else self.limit.clamp(c) for c in components)

    def set_value(self, components: Components) -> bool:
        """Store new value component(s).

        ``None`` components leave that degree of freedom untouched. Fixed joints
        ignore the call.

        Returns:
            True iff at least one stored component changed after clamping.

        Raises:
            InvalidArityError: before any mutation, on a component count mismatch.
        """
        if not self.is_movable:
            return False
        clamped = self.clamp(self.coerce(components))
        new_value = tuple(old if c is None else c for old, c in zip(self._value, clamped))
        if new_value == self._value:
            return False
        self._value = new_value
        return True

    def capture_origin(self, local_transform: Array) -> None:
        """Remember the rest transform the first time it is offered."""
        if self.origin is None:
            self.origin = jnp.asarray(local_transform, dtype=jnp.float64)

    def local_transform(self, origin: Optional[Array] = None) -> Array:
        """Joint frame transform relative to its parent for the current value.

        Args:
            origin: Rest transform to use; defaults to the captured origin or
                identity when none has been captured yet.
        """
        if origin is None:
            origin = self.origin if self.origin is not None else se3.identity()
        return _LOCAL_TRANSFORMS[self.joint_type](self, origin)


def _normalize(axis: Sequence[float], name: str) -> Tuple[float, float, float]:
    if len(axis) != 3:
        raise ValueError(f"axis of joint '{name}' must have 3 components, got {len(axis)}")
    norm = math.sqrt(sum(float(a) * float(a) for a in axis))
    if norm < 1e-12:
        raise ValueError(f"axis of joint '{name}' must be non-zero")
    return tuple(float(a) / norm for a in axis)


def _fixed_transform(joint: JointModel, origin: Array) -> Array:
    return origin


def _rotational_transform(joint: JointModel, origin: Array) -> Array:
    # origin rotation followed by a rotation of `angle` about the joint axis
    twist = jnp.concatenate([jnp.zeros(3), jnp.asarray(joint.axis) * joint.value[0]])
    return se3.multiply(origin, se3.exp(twist))


def _prismatic_transform(joint: JointModel, origin: Array) -> Array:
    # offset along the axis expressed in the joint's orientation
    twist = jnp.concatenate([jnp.asarray(joint.axis) * joint.value[0], jnp.zeros(3)])
    return se3.multiply(origin, se3.exp(twist))


def _planar_transform(joint: JointModel, origin: Array) -> Array:
    x, y, theta = joint.value
    delta = se3.from_position_and_rotation(
        jnp.array([x, y, 0.0]), so3.from_axis_angle(joint.axis, theta)
    )
    return se3.multiply(delta, origin)


def _floating_transform(joint: JointModel, origin: Array) -> Array:
    x, y, z, roll, pitch, yaw = joint.value
    delta = se3.from_position_and_rotation(
        jnp.array([x, y, z]), so3.from_euler_xyz(roll, pitch, yaw)
    )
    return se3.multiply(delta, origin)


_LOCAL_TRANSFORMS: Dict[JointType, Callable[[JointModel, Array], Array]] = {
    JointType.FIXED: _fixed_transform,
    JointType.CONTINUOUS: _rotational_transform,
    JointType.REVOLUTE: _rotational_transform,
    JointType.PRISMATIC: _prismatic_transform,
    JointType.PLANAR: _planar_transform,
    JointType.FLOATING: _floating_transform,
}
