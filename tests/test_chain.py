"""Tests for the kinematic tree and forward kinematics."""

import logging

import jax.numpy as jnp
import numpy as np
import pytest

from jax_motion.chain import KinematicTree, forward_kinematics
from jax_motion.core import FrameKind, Pose
from jax_motion.errors import InvalidArityError, UnknownFrameError, UnknownJointError
from jax_motion.transforms import se3, so3


def make_arm() -> KinematicTree:
    """Two revolute joints about Z with 1 m links along X, plus a gripper."""
    tree = KinematicTree("base_link")
    tree.add_joint("shoulder", "base_link", "revolute", axis=(0, 0, 1), limit=(-3.0, 3.0))
    tree.add_link("upper_arm", "shoulder")
    tree.add_joint(
        "elbow", "upper_arm", "revolute", axis=(0, 0, 1), limit=(-3.0, 3.0),
        origin=Pose.from_xyz_rpy((1.0, 0.0, 0.0)),
    )
    tree.add_link("forearm", "elbow")
    tree.add_joint("wrist_mount", "forearm", "fixed", origin=Pose.from_xyz_rpy((1.0, 0.0, 0.0)))
    tree.add_visual("gripper", "wrist_mount", extent=((0.0, -0.05, -0.05), (0.2, 0.05, 0.05)))
    return tree


def test_zero_configuration():
    """All joints at zero: links are laid out along X."""
    tree = make_arm()
    np.testing.assert_allclose(tree.world_pose("forearm").position, [1.0, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(tree.world_pose("gripper").position, [2.0, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(tree.world_pose("gripper").orientation, [1.0, 0.0, 0.0, 0.0], atol=1e-12)


def test_planar_arm_positions():
    """World poses follow the composed joint rotations."""
    tree = make_arm()
    assert tree.set_joint_values({"shoulder": jnp.pi / 2, "elbow": -jnp.pi / 2})

    np.testing.assert_allclose(tree.world_pose("forearm").position, [0.0, 1.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(tree.world_pose("gripper").position, [1.0, 1.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(tree.world_pose("gripper").rotation, jnp.eye(3), atol=1e-12)


def test_world_pose_is_valid_se3():
    """Every world matrix has an orthonormal rotation and a homogeneous last row."""
    tree = make_arm()
    poses = forward_kinematics(tree, {"shoulder": 0.4, "elbow": -1.1})

    assert set(poses) == {f.name for f in tree.traverse()}
    for T in poses.values():
        assert T.shape == (4, 4)
        np.testing.assert_allclose(T[3, :], jnp.array([0, 0, 0, 1]), atol=1e-12)
        R = T[:3, :3]
        np.testing.assert_allclose(R @ R.T, jnp.eye(3), atol=1e-9)


def test_only_stale_frames_are_recomputed():
    """Changing a joint marks only its subtree dirty."""
    tree = make_arm()
    tree.world_matrix("gripper")
    assert not any(f.dirty for f in tree.traverse())

    tree.set_joint_value("elbow", 0.3)
    assert not tree.frame("shoulder").dirty
    assert not tree.frame("upper_arm").dirty
    assert tree.frame("elbow").dirty
    assert tree.frame("forearm").dirty
    assert tree.frame("gripper").dirty

    tree.world_matrix("forearm")
    assert not tree.frame("forearm").dirty
    assert tree.frame("gripper").dirty


def test_set_joint_value_returns_change_flag():
    """set_joint_value returns True only when a stored value changes."""
    tree = make_arm()
    assert tree.set_joint_value("shoulder", 0.5)
    assert not tree.set_joint_value("shoulder", 0.5)
    assert not tree.set_joint_value("wrist_mount", 1.0)
    assert tree.get_joint_value("shoulder") == (0.5,)


def test_unknown_joint_is_reported(caplog):
    """Unknown names return False and log a warning."""
    tree = make_arm()
    with caplog.at_level(logging.WARNING, logger="jax_motion.chain"):
        assert tree.set_joint_value("nope", 1.0) is False
        assert tree.set_joint_values({"nope": 1.0, "shoulder": 0.2}) is True
    assert "nope" in caplog.text
    assert tree.get_joint_value("shoulder") == (0.2,)

    with pytest.raises(UnknownJointError):
        tree.get_joint_value("nope")
    with pytest.raises(UnknownFrameError):
        tree.world_pose("nope")


def test_set_joint_values_is_all_or_nothing():
    """An arity error anywhere in the batch leaves every joint untouched."""
    tree = make_arm()
    with pytest.raises(InvalidArityError):
        tree.set_joint_values({"shoulder": 1.0, "elbow": [1.0, 2.0]})
    assert tree.joint_values() == {"shoulder": (0.0,), "elbow": (0.0,)}


def test_mimic_propagation():
    """A follower with multiplier 2 and offset 0.1 reads 0.1 + 2 * 0.3."""
    tree = make_arm()
    tree.add_joint("finger", "gripper", "prismatic", axis=(0, 1, 0), limit=(-1.0, 1.0))
    tree.add_joint("finger_mirror", "gripper", "prismatic", axis=(0, 1, 0), limit=(-1.0, 1.0))
    tree.add_mimic("finger_mirror", "finger", multiplier=2.0, offset=0.1)
    assert tree.get_joint_value("finger_mirror") == pytest.approx((0.1,))

    assert tree.set_joint_value("finger", 0.3)
    assert tree.get_joint_value("finger_mirror")[0] == pytest.approx(0.1 + 2 * 0.3, abs=1e-9)


def test_mimic_chain_and_follower_limits():
    """Mimic updates propagate through chains and respect follower limits."""
    tree = KinematicTree()
    for name in ("a", "b", "c"):
        tree.add_joint(name, "base_link", "revolute", limit=(-1.0, 1.0))
    tree.add_mimic("b", "a", multiplier=-1.0)
    tree.add_mimic("c", "b", multiplier=3.0)

    tree.set_joint_value("a", 0.2)
    assert tree.get_joint_value("b")[0] == pytest.approx(-0.2)
    assert tree.get_joint_value("c")[0] == pytest.approx(-0.6)

    tree.set_joint_value("a", -0.5)
    assert tree.get_joint_value("c") == (1.0,)


def test_mimic_validation():
    """Mimic links reject fixed joints, arity mismatches and cycles."""
    tree = KinematicTree()
    tree.add_joint("a", "base_link", "revolute")
    tree.add_joint("b", "base_link", "revolute")
    tree.add_joint("p", "base_link", "planar")
    tree.add_joint("f", "base_link", "fixed")

    with pytest.raises(ValueError):
        tree.add_mimic("f", "a")
    with pytest.raises(InvalidArityError):
        tree.add_mimic("p", "a")
    tree.add_mimic("b", "a")
    with pytest.raises(ValueError):
        tree.add_mimic("a", "b")


def test_reset_all_rederives_followers():
    """reset_all zeroes drivers and recomputes mimic followers from them."""
    tree = KinematicTree()
    tree.add_joint("a", "base_link", "revolute", limit=(-1.0, 1.0))
    tree.add_joint("b", "base_link", "revolute", limit=(-1.0, 1.0))
    tree.add_mimic("b", "a", offset=0.25)
    tree.set_joint_value("a", 0.5)

    assert tree.reset_all()
    assert tree.get_joint_value("a") == (0.0,)
    assert tree.get_joint_value("b") == (0.25,)
    assert not tree.reset_all()


def test_multi_dof_joints_in_tree():
    """Planar and floating joints place their subtrees."""
    tree = KinematicTree("world")
    tree.add_joint("base", "world", "planar")
    tree.add_link("chassis", "base")
    tree.add_joint("drone", "world", "floating")
    tree.add_link("body", "drone")

    tree.set_joint_value("base", [1.0, 2.0, None])
    tree.set_joint_value("drone", [0.0, 0.0, 3.0, 0.0, 0.0, jnp.pi / 2])

    np.testing.assert_allclose(tree.world_pose("chassis").position, [1.0, 2.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(tree.world_pose("body").position, [0.0, 0.0, 3.0], atol=1e-12)
    np.testing.assert_allclose(tree.world_pose("body").rotation, so3.rot_z(jnp.pi / 2), atol=1e-12)


def test_structure_edits():
    """Removing a subtree drops its frames and bumps the structure version."""
    tree = make_arm()
    version = tree.structure_version
    assert tree.joint_names == ["shoulder", "elbow"]

    removed = tree.remove_frame("elbow")
    assert removed == ["elbow", "forearm", "wrist_mount", "gripper"]
    assert "gripper" not in tree
    assert tree.structure_version > version
    assert tree.joint_names == ["shoulder"]
    assert [f.name for f in tree.children("upper_arm")] == []

    with pytest.raises(ValueError):
        tree.add_link("upper_arm", "base_link")
    with pytest.raises(UnknownFrameError):
        tree.add_link("orphan", "missing")
    with pytest.raises(ValueError):
        tree.remove_frame("base_link")


def test_set_frame_origin_moves_subtree():
    """Placing the root elsewhere moves every world pose."""
    tree = make_arm()
    tree.world_matrix("gripper")
    tree.set_frame_origin("base_link", se3.from_position_and_rotation(jnp.array([0.0, 0.0, 1.0]), jnp.eye(3)))
    assert tree.frame("gripper").dirty
    np.testing.assert_allclose(tree.world_pose("gripper").position, [2.0, 0.0, 1.0], atol=1e-12)

    tree.set_joint_value("shoulder", 0.1)
    with pytest.raises(ValueError):
        tree.set_frame_origin("shoulder", Pose.identity())


def test_traversal_and_ancestors():
    """Traversal is depth-first pre-order; ancestors run up to the root."""
    tree = make_arm()
    names = [f.name for f in tree.traverse()]
    assert names == ["base_link", "shoulder", "upper_arm", "elbow", "forearm", "wrist_mount", "gripper"]
    assert [f.name for f in tree.ancestors("forearm")] == ["elbow", "upper_arm", "shoulder", "base_link"]
    assert tree.frame("gripper").kind is FrameKind.VISUAL
    assert tree.frame("gripper").corners().shape == (8, 3)
