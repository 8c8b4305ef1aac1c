"""SE(3) rigid body transforms in JAX.

Transforms are (..., 4, 4) homogeneous matrices and twists are 6D vectors
``[vx, vy, vz, wx, wy, wz]``. All functions are pure and operate on JAX arrays.
"""


import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def identity() -> Array:
    """4x4 identity transform."""
    return jnp.eye(4, dtype=jnp.float64)


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Construct SE(3) transform from position and rotation.

    Args:
        p: (..., 3) position vector
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    p = jnp.asarray(p, dtype=jnp.float64)
    R = jnp.asarray(R, dtype=jnp.float64)
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))

    T = jnp.zeros(batch_shape + (4, 4), dtype=p.dtype)
    T = T.at[..., :3, :3].set(R)
    T = T.at[..., :3, 3].set(p)
    T = T.at[..., 3, 3].set(1.0)

    return T


def exp(twist: Array) -> Array:
    """
    SE(3) exponential map: convert twist to transformation matrix.

    A joint's motion is ``exp(screw_axis * value)``: a pure angular twist for
    revolute joints, a pure linear twist for prismatic joints. Small angles use
    Taylor approximations to avoid division by zero.

    Args:
        twist: (..., 6) array of twists [vx, vy, vz, wx, wy, wz].

    Returns:
        (..., 4, 4) array of transformation matrices.
    """
    twist = jnp.asarray(twist, dtype=jnp.float64)
    v, w = twist[..., :3], twist[..., 3:]
    angle = jnp.linalg.norm(w, axis=-1, keepdims=True)
    eps = jnp.finfo(twist.dtype).eps

    R = so3.exp(w)

    angle_sq = angle * angle
    is_small_angle = angle < 1e-6

    # A = (1 - cos(theta)) / theta^2
    A = jnp.where(is_small_angle, 0.5 - angle_sq / 24.0, (1.0 - jnp.cos(angle)) / (angle_sq + eps))
    # B = (theta - sin(theta)) / theta^3
    B = jnp.where(is_small_angle, 1.0 / 6.0 - angle_sq / 120.0, (angle - jnp.sin(angle)) / (angle_sq * angle + eps))

    K = so3.skew_symmetric(w)
    I = jnp.broadcast_to(jnp.eye(3, dtype=twist.dtype), K.shape)

    # V = I + A*K + B*K^2
    V = I + A[..., None] * K + B[..., None] * jnp.matmul(K, K)
    t = jnp.einsum("...ij,...j->...i", V, v)

    return from_position_and_rotation(t, R)


def multiply(T1: Array, T2: Array) -> Array:
    """Compose two transforms: ``T1 @ T2`` (apply T2 first)."""
    return jnp.matmul(T1, T2)


def apply(T: Array, points: Array) -> Array:
    """
    Apply SE(3) transformation to points.

    Args:
        T: (4, 4) transformation matrix
        points: (3,) or (N, 3) points to transform

    Returns:
        (3,) or (N, 3) transformed points
    """
    points = jnp.asarray(points, dtype=T.dtype)
    return so3.apply(T[..., :3, :3], points) + (
        T[..., :3, 3] if points.ndim == T.ndim - 1 else T[..., None, :3, 3]
    )


def get_position(T: Array) -> Array:
    """(..., 3) translation part of a transform."""
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    """(..., 3, 3) rotation part of a transform."""
    return T[..., :3, :3]
