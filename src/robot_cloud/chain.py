"""Forward kinematics over a parsed RobotModel.

This is the engine behind the joint-state monitor: it resolves the world pose
of every link from a vector of actuated joint positions. The cloud builder
never calls it directly; it only consumes the resulting transforms.
"""

from typing import Dict

import jax
import jax.numpy as jnp
from jax import Array

from .core import RobotModel
from .transforms import se3


def forward_kinematics(robot: RobotModel, q: Array) -> Dict[str, Array]:
    """Compute forward kinematics for all links in the robot.

    Args:
        robot: RobotModel containing the robot's kinematic structure
        q: Joint positions of shape (num_dof,) for actuated joints only

    Returns:
        Dictionary mapping link names to their 4x4 SE(3) world poses
    """
    world_transforms = forward_kinematics_world(robot, q)
    return {name: world_transforms[i] for i, name in enumerate(robot.link_names)}


def forward_kinematics_world(robot: RobotModel, q: Array) -> Array:
    """FK returning an array of world transforms, one per link.

    Args:
        robot: RobotModel containing the robot's kinematic structure
        q: Joint positions of shape (num_dof,) for actuated joints only

    Returns:
        Array of shape (num_links, 4, 4) with world poses for all links
    """
    num_links = len(robot.link_names)
    q = jnp.asarray(q, dtype=robot.joint_transforms.dtype)

    # Scatter the actuated values into a per-link vector; fixed joints stay zero.
    q_full = jnp.zeros(num_links, dtype=q.dtype)
    q_full = q_full.at[robot.actuated_joint_to_link_idx].set(q)

    world_transforms = jnp.broadcast_to(
        jnp.identity(4, dtype=q.dtype), (num_links, 4, 4)
    )

    def scan_body(carry, i):
        """Processes link `i` using its parent's world pose from `carry`."""
        T_world_to_parent = carry[robot.parent_indices[i]]

        T_joint_motion = se3.exp(robot.joint_axes[i] * q_full[i])
        T_parent_to_child = se3.multiply(robot.joint_transforms[i], T_joint_motion)

        carry = carry.at[i].set(se3.multiply(T_world_to_parent, T_parent_to_child))
        return carry, None

    # Links are ordered breadth-first, so every parent is resolved before its
    # children. The root (index 0) keeps the identity pose.
    final_transforms, _ = jax.lax.scan(scan_body, world_transforms, jnp.arange(1, num_links))

    return final_transforms
