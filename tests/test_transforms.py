"""Tests for the transforms module."""

import hypothesis
import jax
import jax.numpy as jnp
import numpy as np
from hypothesis import given, settings
from hypothesis import strategies as st

from robot_cloud.transforms import se3, so3

# Use hypothesis profile for CI
hypothesis.settings.register_profile("ci", max_examples=10, deadline=None)


def _random_transform(seed):
    key = jax.random.PRNGKey(seed)
    k1, k2 = jax.random.split(key)
    rpy = jax.random.uniform(k1, (3,), minval=-jnp.pi, maxval=jnp.pi, dtype=jnp.float64)
    xyz = jax.random.normal(k2, (3,), dtype=jnp.float64)
    return se3.from_xyz_rpy(xyz, rpy)


def test_so3_exp_identity():
    """A zero axis-angle vector is the identity rotation."""
    R = so3.exp(jnp.zeros(3))
    np.testing.assert_allclose(R, jnp.eye(3), rtol=1e-12, atol=1e-12)


def test_so3_exp_quarter_turn_z():
    """Rotating by pi/2 about Z maps X onto Y."""
    R = so3.exp(jnp.array([0.0, 0.0, jnp.pi / 2]))
    np.testing.assert_allclose(R @ jnp.array([1.0, 0.0, 0.0]), jnp.array([0.0, 1.0, 0.0]), atol=1e-12)


def test_so3_exp_matches_from_rpy():
    """Single-axis rotations agree between axis-angle and roll-pitch-yaw."""
    for axis in range(3):
        vec = jnp.zeros(3).at[axis].set(0.7)
        np.testing.assert_allclose(so3.exp(vec), so3.from_rpy(vec), atol=1e-12)


def test_so3_from_rpy_convention():
    """URDF rpy composes as Rz(yaw) @ Ry(pitch) @ Rx(roll)."""
    roll, pitch, yaw = 0.3, -0.5, 1.1
    expected = (
        so3.exp(jnp.array([0.0, 0.0, yaw]))
        @ so3.exp(jnp.array([0.0, pitch, 0.0]))
        @ so3.exp(jnp.array([roll, 0.0, 0.0]))
    )
    np.testing.assert_allclose(so3.from_rpy(jnp.array([roll, pitch, yaw])), expected, atol=1e-12)


def test_so3_skew_symmetric():
    """skew(v) @ u equals the cross product v x u."""
    v = jnp.array([1.0, 2.0, 3.0])
    u = jnp.array([-0.5, 0.25, 2.0])
    np.testing.assert_allclose(so3.skew_symmetric(v) @ u, jnp.cross(v, u), atol=1e-12)


def test_se3_from_position_and_rotation():
    """Test SE(3) construction from position and rotation."""
    p = jnp.array([1.0, 2.0, 3.0])
    R = so3.from_rpy(jnp.array([0.1, 0.2, 0.3]))
    T = se3.from_position_and_rotation(p, R)

    assert T.shape == (4, 4)
    np.testing.assert_allclose(T[:3, :3], R)
    np.testing.assert_allclose(T[:3, 3], p)
    np.testing.assert_allclose(T[3, :], jnp.array([0.0, 0.0, 0.0, 1.0]))


def test_se3_exp_identity():
    """A zero twist is the identity transform."""
    np.testing.assert_allclose(se3.exp(jnp.zeros(6)), jnp.eye(4), atol=1e-12)


def test_se3_exp_pure_translation():
    """A purely linear twist translates without rotating."""
    T = se3.exp(jnp.array([0.25, 0.0, 0.0, 0.0, 0.0, 0.0]))
    np.testing.assert_allclose(T, se3.from_position_and_rotation(jnp.array([0.25, 0.0, 0.0]), jnp.eye(3)), atol=1e-12)


def test_se3_exp_pure_rotation():
    """A purely angular twist rotates about the origin."""
    T = se3.exp(jnp.array([0.0, 0.0, 0.0, 0.0, 0.0, jnp.pi / 2]))
    np.testing.assert_allclose(T[:3, 3], jnp.zeros(3), atol=1e-12)
    np.testing.assert_allclose(T[:3, :3], so3.from_rpy(jnp.array([0.0, 0.0, jnp.pi / 2])), atol=1e-12)


def test_se3_apply():
    """Rotation then translation: (1,0,0) under Rz(90) + (0,0,1) is (0,1,1)."""
    T = se3.from_xyz_rpy(jnp.array([0.0, 0.0, 1.0]), jnp.array([0.0, 0.0, jnp.pi / 2]))
    np.testing.assert_allclose(se3.apply(T, jnp.array([1.0, 0.0, 0.0])), jnp.array([0.0, 1.0, 1.0]), atol=1e-12)


def test_se3_apply_multiple_points():
    """Applying to an (N, 3) array transforms every row."""
    T = se3.from_position_and_rotation(jnp.array([1.0, -1.0, 2.0]), jnp.eye(3))
    points = jnp.array([[0.0, 0.0, 0.0], [1.0, 2.0, 3.0], [-1.0, 0.5, 0.0]])
    transformed = se3.apply(T, points)
    assert transformed.shape == (3, 3)
    np.testing.assert_allclose(transformed, points + jnp.array([1.0, -1.0, 2.0]))


def test_se3_apply_identity_is_exact():
    """The identity transform returns vertices bit for bit."""
    points = jnp.array([[0.1, 0.2, 0.3], [1e-9, -7.5, 3.25]])
    np.testing.assert_array_equal(se3.apply(se3.identity(), points), points)


def test_se3_multiply():
    """multiply composes: applying T1 @ T2 equals applying T2 then T1."""
    T1 = _random_transform(1)
    T2 = _random_transform(2)
    p = jnp.array([0.3, -0.2, 0.9])
    np.testing.assert_allclose(
        se3.apply(se3.multiply(T1, T2), p), se3.apply(T1, se3.apply(T2, p)), atol=1e-12
    )


def test_se3_jit_compatibility():
    """Test that SE(3) helpers can be JIT compiled."""
    T = jax.jit(se3.from_xyz_rpy)(jnp.array([1.0, 0.0, 0.0]), jnp.array([0.0, 0.0, 0.5]))
    points = jax.jit(se3.apply)(T, jnp.ones((4, 3)))
    assert points.shape == (4, 3)


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_se3_apply_preserves_distances(seed):
    """Rigid transforms keep pairwise distances between points."""
    T = _random_transform(seed)
    points = jax.random.normal(jax.random.PRNGKey(seed + 1000), (5, 3), dtype=jnp.float64)
    transformed = se3.apply(T, points)

    before = jnp.linalg.norm(points[:, None] - points[None], axis=-1)
    after = jnp.linalg.norm(transformed[:, None] - transformed[None], axis=-1)
    np.testing.assert_allclose(after, before, rtol=1e-9, atol=1e-9)


@given(st.integers(min_value=0, max_value=100))
@settings(deadline=None)
def test_so3_from_rpy_is_rotation(seed):
    """from_rpy returns an orthonormal matrix with determinant +1."""
    rpy = jax.random.uniform(jax.random.PRNGKey(seed), (3,), minval=-jnp.pi, maxval=jnp.pi, dtype=jnp.float64)
    R = so3.from_rpy(rpy)
    np.testing.assert_allclose(R @ R.T, jnp.eye(3), atol=1e-12)
    np.testing.assert_allclose(jnp.linalg.det(R), 1.0, atol=1e-12)
