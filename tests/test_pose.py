"""Tests for the Pose PyTree."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from jax_motion.core import Pose
from jax_motion.core.pose import as_matrix
from jax_motion.transforms import se3, so3


def test_pose_matrix_roundtrip():
    """Pose -> matrix -> Pose preserves position and orientation."""
    pose = Pose.from_xyz_rpy((0.1, -0.2, 0.3), (0.4, -0.5, 0.6))
    again = Pose.from_matrix(pose.to_matrix())
    np.testing.assert_allclose(again.position, pose.position, atol=1e-12)
    np.testing.assert_allclose(again.orientation, pose.orientation, atol=1e-12)
    np.testing.assert_allclose(pose.rotation, so3.from_rpy(0.4, -0.5, 0.6), atol=1e-12)


def test_transform_point():
    """transform_point rotates then translates."""
    pose = Pose.from_xyz_rpy((1.0, 0.0, 0.0), (0.0, 0.0, jnp.pi / 2))
    np.testing.assert_allclose(pose.transform_point([1.0, 0.0, 0.0]), [1.0, 1.0, 0.0], atol=1e-12)


def test_pose_is_pytree():
    """Poses flatten into their two arrays and pass through jit."""
    pose = Pose.identity()
    leaves = jax.tree_util.tree_leaves(pose)
    assert len(leaves) == 2

    moved = jax.jit(lambda p: p.replace(position=p.position + 1.0))(pose)
    np.testing.assert_allclose(moved.position, jnp.ones(3))


def test_as_matrix_inputs():
    """Origins may be None, a Pose or a 4x4 matrix."""
    np.testing.assert_allclose(as_matrix(None), jnp.eye(4))
    T = se3.from_position_and_rotation(jnp.array([1.0, 2.0, 3.0]), jnp.eye(3))
    np.testing.assert_allclose(as_matrix(Pose.from_matrix(T)), T, atol=1e-12)
    np.testing.assert_allclose(as_matrix(T), T)
    with pytest.raises(ValueError):
        as_matrix(jnp.eye(3))
    with pytest.raises(ValueError):
        Pose.from_matrix(jnp.eye(3))
