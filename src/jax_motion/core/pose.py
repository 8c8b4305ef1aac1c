"""Pose PyTree: a world or local position + orientation.

Poses are immutable and registered as JAX PyTrees so they can be passed
through ``jax.jit`` / ``jax.tree_util`` like any other array container.
"""

from typing import Sequence

import jax
import jax.numpy as jnp
from jax import Array
from flax import struct

from ..transforms import se3, so3


@struct.dataclass
class Pose:
    """Position and orientation of a frame.

    Attributes:
        position: Array of shape (3,) in meters.
        orientation: Unit quaternion of shape (4,) in (w, x, y, z) order.
    """
    position: Array
    orientation: Array

    @classmethod
    def identity(cls) -> "Pose":
        return cls(
            position=jnp.zeros(3, dtype=jnp.float64),
            orientation=jnp.array([1.0, 0.0, 0.0, 0.0], dtype=jnp.float64),
        )

    @classmethod
    def from_matrix(cls, matrix: Array) -> "Pose":
        """Build a pose from a 4x4 homogeneous transform."""
        matrix = jnp.asarray(matrix, dtype=jnp.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"matrix must have shape (4, 4), got {matrix.shape}")
        return cls(
            position=se3.get_position(matrix),
            orientation=so3.to_quaternion(se3.get_rotation(matrix)),
        )

    @classmethod
    def from_xyz_rpy(
        cls,
        xyz: Sequence[float] = (0.0, 0.0, 0.0),
        rpy: Sequence[float] = (0.0, 0.0, 0.0),
    ) -> "Pose":
        """Build a pose from URDF-style origin values.

        The URDF convention is ``T = Translation(xyz) @ Rz(yaw) @ Ry(pitch) @ Rx(roll)``.
        """
        roll, pitch, yaw = rpy
        R = so3.from_rpy(roll, pitch, yaw)
        return cls(
            position=jnp.asarray(xyz, dtype=jnp.float64),
            orientation=so3.to_quaternion(R),
        )

    @property
    def rotation(self) -> Array:
        """(3, 3) rotation matrix of the orientation."""
        return so3.from_quaternion(self.orientation)

    def to_matrix(self) -> Array:
        """4x4 homogeneous transform."""
        return se3.from_position_and_rotation(self.position, self.rotation)

    def transform_point(self, point: Array) -> Array:
        """Map a point from this pose's frame into the parent frame."""
        return so3.apply(self.rotation, jnp.asarray(point, dtype=jnp.float64)) + self.position


def as_matrix(origin) -> jax.Array:
    """Coerce a ``Pose``, a 4x4 matrix or ``None`` (identity) into a 4x4 matrix."""
    if origin is None:
        return se3.identity()
    if isinstance(origin, Pose):
        return origin.to_matrix()
    matrix = jnp.asarray(origin, dtype=jnp.float64)
    if matrix.shape != (4, 4):
        raise ValueError(f"origin must be a Pose or a (4, 4) matrix, got shape {matrix.shape}")
    return matrix
