"""SE(3) rigid body transforms in JAX.

Transforms are (..., 4, 4) homogeneous matrices; twists are 6D vectors
[vx, vy, vz, wx, wy, wz]. All functions are pure, JIT-able, and operate on
JAX arrays.
"""


import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Construct SE(3) transform from position and rotation.

    Args:
        p: (..., 3) position vector
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    # Ensure consistent batch shapes
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))

    T = jnp.zeros(batch_shape + (4, 4), dtype=p.dtype)
    T = T.at[..., :3, :3].set(R)
    T = T.at[..., :3, 3].set(p)
    T = T.at[..., 3, 3].set(1.0)

    return T


def from_xyz_rpy(xyz: Array, rpy: Array) -> Array:
    """
    Construct SE(3) transform from a URDF-style ``origin``.

    Args:
        xyz: (..., 3) translation
        rpy: (..., 3) roll-pitch-yaw angles in radians

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    return from_position_and_rotation(xyz, so3.from_rpy(rpy))


def identity(dtype=jnp.float64) -> Array:
    """The (4, 4) identity transform."""
    return jnp.eye(4, dtype=dtype)


def exp(twist: Array) -> Array:
    """
    SE(3) exponential map: convert twist to transformation matrix.

    Uses Taylor series approximations for small angles to avoid division
    by zero.

    Args:
        twist: (..., 6) array of twists [vx, vy, vz, wx, wy, wz].

    Returns:
        (..., 4, 4) array of transformation matrices.
    """
    v, w = twist[..., :3], twist[..., 3:]
    angle = jnp.linalg.norm(w, axis=-1, keepdims=True)

    eps = jnp.finfo(twist.dtype).eps

    R = so3.exp(w)

    angle_sq = angle * angle
    is_small_angle = angle < 1e-6

    # A = (1 - cos(theta)) / theta^2, Taylor: 1/2 - theta^2/24
    A = jnp.where(is_small_angle, 0.5 - angle_sq / 24.0, (1.0 - jnp.cos(angle)) / (angle_sq + eps))

    # B = (theta - sin(theta)) / theta^3, Taylor: 1/6 - theta^2/120
    B = jnp.where(is_small_angle, 1.0 / 6.0 - angle_sq / 120.0, (angle - jnp.sin(angle)) / (angle_sq * angle + eps))

    K = so3.skew_symmetric(w)
    K_sq = jnp.matmul(K, K)

    I = jnp.eye(3, dtype=twist.dtype)
    I = jnp.broadcast_to(I, K.shape)

    # V = I + A*K + B*K^2
    V = I + A[..., None] * K + B[..., None] * K_sq

    t = jnp.einsum("...ij,...j->...i", V, v)

    return from_position_and_rotation(t, R)


def multiply(T1: Array, T2: Array) -> Array:
    """
    Multiply two SE(3) transformation matrices.

    Args:
        T1: (..., 4, 4) first transformation matrix
        T2: (..., 4, 4) second transformation matrix

    Returns:
        (..., 4, 4) result of T1 @ T2
    """
    return jnp.matmul(T1, T2)


def apply(T: Array, points: Array) -> Array:
    """
    Apply SE(3) transformation to points.

    Args:
        T: (..., 4, 4) transformation matrix
        points: (..., 3) or (..., N, 3) points to transform

    Returns:
        (..., 3) or (..., N, 3) transformed points
    """
    # Homogeneous coordinates work for both (..., 3) and (..., N, 3)
    ones = jnp.ones_like(points[..., 0:1])
    points_h = jnp.concatenate([points, ones], axis=-1)

    transformed_h = jnp.einsum("...ij,...j->...i", T, points_h)

    # The homogeneous coordinate is always 1 for SE(3) transforms
    return transformed_h[..., :3]
