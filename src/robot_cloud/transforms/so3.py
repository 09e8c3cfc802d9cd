"""SO(3) rotation helpers in JAX.

Rotation matrices are built from the two parameterisations a robot description
uses: axis-angle vectors (joint motion) and roll-pitch-yaw triples (URDF
``origin`` elements). All functions are pure, JIT-able, and operate on JAX arrays.
"""

import jax
import jax.numpy as jnp

Array = jax.Array


def exp(log_r: Array) -> Array:
    """
    SO(3) exponential map: convert axis-angle vector to rotation matrix.

    Implements Rodrigues' formula. This is what turns a revolute joint's
    axis scaled by its position into the joint's rotation.

    Args:
        log_r: (..., 3) array of axis-angle vectors

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    angle = jnp.linalg.norm(log_r, axis=-1, keepdims=True)

    # Handle near-zero angles for numerical stability
    small_angle = angle < 1e-8

    cos_angle = jnp.where(small_angle, 1.0 - 0.5 * angle**2, jnp.cos(angle))
    sin_angle = jnp.where(small_angle, angle - angle**3 / 6.0, jnp.sin(angle))

    # Normalized axis (handle zero angle case)
    axis = jnp.where(angle > 1e-8, log_r / jnp.where(small_angle, 1.0, angle), log_r)

    K = skew_symmetric(axis)

    # Rodrigues formula: R = I + sin(θ) * K + (1 - cos(θ)) * K²
    I = jnp.eye(3, dtype=log_r.dtype)
    I = jnp.broadcast_to(I, log_r.shape[:-1] + (3, 3))

    R = (I +
         sin_angle[..., None] * K +
         (1.0 - cos_angle)[..., None] * jnp.matmul(K, K))

    return R


def from_rpy(rpy: Array) -> Array:
    """
    Convert roll-pitch-yaw angles to a rotation matrix.

    Uses the URDF convention: fixed-axis rotations about X (roll), then
    Y (pitch), then Z (yaw), i.e. ``R = Rz(yaw) @ Ry(pitch) @ Rx(roll)``.

    Args:
        rpy: (..., 3) array of [roll, pitch, yaw] angles in radians

    Returns:
        (..., 3, 3) rotation matrix
    """
    roll, pitch, yaw = jnp.moveaxis(rpy, -1, 0)

    cr, sr = jnp.cos(roll), jnp.sin(roll)
    cp, sp = jnp.cos(pitch), jnp.sin(pitch)
    cy, sy = jnp.cos(yaw), jnp.sin(yaw)

    return jnp.stack([
        jnp.stack([cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr], axis=-1),
        jnp.stack([sy * cp, sy * sp * sr + cy * cr, sy * sp * cr - cy * sr], axis=-1),
        jnp.stack([-sp, cp * sr, cp * cr], axis=-1)
    ], axis=-2)


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
