"""SO(3) rotation helpers in JAX.

Rotations are represented as (..., 3, 3) matrices and quaternions use the
(w, x, y, z) convention. All functions are pure and operate on JAX arrays.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def exp(log_r: Array) -> Array:
    """
    SO(3) exponential map: convert an axis-angle vector to a rotation matrix.

    Implements Rodrigues' formula. Revolute joints use it with
    ``axis * angle`` to build their joint rotation.

    Args:
        log_r: (..., 3) array of axis-angle vectors

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    log_r = jnp.asarray(log_r, dtype=jnp.float64)
    angle = jnp.linalg.norm(log_r, axis=-1, keepdims=True)

    small_angle = angle < 1e-8

    # Taylor expansion near zero
    cos_angle = jnp.where(small_angle, 1.0 - 0.5 * angle**2, jnp.cos(angle))
    sin_angle = jnp.where(small_angle, angle - angle**3 / 6.0, jnp.sin(angle))

    axis = jnp.where(angle > 1e-8, log_r / jnp.where(angle > 1e-8, angle, 1.0), log_r)
    K = skew_symmetric(axis)

    # R = I + sin(θ) * K + (1 - cos(θ)) * K²
    I = jnp.broadcast_to(jnp.eye(3, dtype=log_r.dtype), log_r.shape[:-1] + (3, 3))
    return I + sin_angle[..., None] * K + (1.0 - cos_angle)[..., None] * jnp.matmul(K, K)


def from_axis_angle(axis: Array, angle) -> Array:
    """Rotation of ``angle`` radians about ``axis`` (normalized here)."""
    axis = jnp.asarray(axis, dtype=jnp.float64)
    axis = axis / jnp.linalg.norm(axis, axis=-1, keepdims=True)
    return exp(axis * jnp.asarray(angle, dtype=jnp.float64)[..., None])


def rot_x(theta) -> Array:
    """3x3 rotation about X. theta in radians."""
    c, s = jnp.cos(theta), jnp.sin(theta)
    return jnp.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])


def rot_y(theta) -> Array:
    """3x3 rotation about Y. theta in radians."""
    c, s = jnp.cos(theta), jnp.sin(theta)
    return jnp.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


def rot_z(theta) -> Array:
    """3x3 rotation about Z. theta in radians."""
    c, s = jnp.cos(theta), jnp.sin(theta)
    return jnp.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def from_rpy(roll, pitch, yaw) -> Array:
    """
    Rotation from URDF roll-pitch-yaw angles.

    The URDF convention is ``R = Rz(yaw) @ Ry(pitch) @ Rx(roll)``.
    """
    return rot_z(yaw) @ rot_y(pitch) @ rot_x(roll)


def from_euler_xyz(roll, pitch, yaw) -> Array:
    """
    Rotation from intrinsic X-Y-Z Euler angles: ``Rx(roll) @ Ry(pitch) @ Rz(yaw)``.

    This is the fixed axis order used for the angular part of floating joints.
    """
    return rot_x(roll) @ rot_y(pitch) @ rot_z(yaw)


def apply(R: Array, v: Array) -> Array:
    """
    Apply rotation to vector(s).

    Args:
        R: (..., 3, 3) rotation matrix
        v: (..., 3) or (..., N, 3) vector(s) to rotate

    Returns:
        (..., 3) or (..., N, 3) rotated vector(s)
    """
    v = jnp.asarray(v, dtype=R.dtype)
    if v.ndim == R.ndim - 1:
        return jnp.einsum('...ij,...j->...i', R, v)
    return jnp.einsum('...ij,...nj->...ni', R, v)


def skew_symmetric(v: Array) -> Array:
    """
    Convert 3D vector to skew-symmetric matrix.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) skew-symmetric matrix
    """
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


def from_quaternion(quaternions: Array) -> Array:
    """
    Convert quaternions to rotation matrices.

    Args:
        quaternions: (..., 4) array of quaternions in (w, x, y, z) format

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    quaternions = jnp.asarray(quaternions, dtype=jnp.float64)
    quaternions = quaternions / jnp.linalg.norm(quaternions, axis=-1, keepdims=True)

    w, x, y, z = jnp.moveaxis(quaternions, -1, 0)

    xx, yy, zz = x*x, y*y, z*z
    wx, wy, wz = w*x, w*y, w*z
    xy, xz, yz = x*y, x*z, y*z

    return jnp.stack([
        jnp.stack([1 - 2*(yy + zz), 2*(xy - wz), 2*(xz + wy)], axis=-1),
        jnp.stack([2*(xy + wz), 1 - 2*(xx + zz), 2*(yz - wx)], axis=-1),
        jnp.stack([2*(xz - wy), 2*(yz + wx), 1 - 2*(xx + yy)], axis=-1)
    ], axis=-2)


def to_quaternion(matrix: Array) -> Array:
    """
    Convert rotation matrices to quaternions (w, x, y, z).

    The four Shepperd candidates are computed for the whole batch and the
    numerically best one is selected per element. The scalar part of the
    result is non-negative.

    Args:
        matrix: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 4) array of quaternions in (w, x, y, z) format
    """
    m00, m01, m02 = matrix[..., 0, 0], matrix[..., 0, 1], matrix[..., 0, 2]
    m10, m11, m12 = matrix[..., 1, 0], matrix[..., 1, 1], matrix[..., 1, 2]
    m20, m21, m22 = matrix[..., 2, 0], matrix[..., 2, 1], matrix[..., 2, 2]

    trace = m00 + m11 + m22
    eps = jnp.finfo(matrix.dtype).eps

    candidates = [
        (jnp.stack([trace + 1.0, m21 - m12, m02 - m20, m10 - m01], axis=-1),
         1.0 + trace),
        (jnp.stack([m21 - m12, m00 - m11 - m22 + 1.0, m01 + m10, m02 + m20], axis=-1),
         1.0 + m00 - m11 - m22),
        (jnp.stack([m02 - m20, m01 + m10, m11 - m00 - m22 + 1.0, m12 + m21], axis=-1),
         1.0 + m11 - m00 - m22),
        (jnp.stack([m10 - m01, m02 + m20, m12 + m21, m22 - m00 - m11 + 1.0], axis=-1),
         1.0 + m22 - m00 - m11),
    ]
    scaled = [0.5 * q / jnp.sqrt(jnp.maximum(s, eps))[..., None] for q, s in candidates]

    mask0 = trace > 0
    mask1 = (~mask0) & (m00 > m11) & (m00 > m22)
    mask2 = (~mask0) & (~mask1) & (m11 > m22)
    mask3 = (~mask0) & (~mask1) & (~mask2)

    quaternion = sum(
        jnp.where(mask[..., None], q, 0.0)
        for mask, q in zip((mask0, mask1, mask2, mask3), scaled)
    )

    quaternion = jnp.where(quaternion[..., 0:1] < 0, -quaternion, quaternion)
    return quaternion / jnp.linalg.norm(quaternion, axis=-1, keepdims=True)
