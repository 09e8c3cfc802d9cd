"""RobotModel PyTree data structure for JAX-native robot representation.

This module defines the immutable description of a robot: its kinematic
tree (used to resolve link poses) and the collision geometry attached to
each link.
"""

from jax import Array
from flax import struct
from typing import Optional, Tuple

from .geometry import Mesh, Shape


@struct.dataclass
class Link:
    """A rigid body together with its collision geometry (if any)."""
    name: str = struct.field(pytree_node=False)
    geometry: Optional[Shape] = None


@struct.dataclass
class RobotModel:
    """Immutable PyTree representation of a robot's kinematic structure.

    The robot is a flattened tree using integer indices for parent-child
    relationships, ordered breadth-first from the root link. All kinematic
    data is stored in JAX arrays.

    Attributes:
        link_names: Tuple of all link names. Index corresponds to link ID.
                    Marked as a static field for JIT compilation.
        joint_names: Tuple of all actuated (non-fixed) joint names, in the
                     order joint positions are expected.
        parent_indices: Array of shape (num_links,) where parent_indices[i]
                       is the parent link index of link i. Root link parents itself.
        joint_transforms: Array of shape (num_links, 4, 4) containing SE(3)
                         transformations from each link to its parent.
        joint_axes: Array of shape (num_links, 6) containing 6D se(3) twist
                   vectors for each joint. [vx,vy,vz,wx,wy,wz] format.
        actuated_joint_to_link_idx: Array of shape (num_dof,) mapping each
                   actuated joint to the index of its child link.
        collision_geometry: Tuple of length num_links; the collision shape of
                   each link or None.
    """
    link_names: Tuple[str, ...] = struct.field(pytree_node=False)
    joint_names: Tuple[str, ...] = struct.field(pytree_node=False)
    parent_indices: Array
    joint_transforms: Array
    joint_axes: Array
    actuated_joint_to_link_idx: Array
    collision_geometry: Tuple[Optional[Shape], ...]

    @property
    def root_link_name(self) -> str:
        return self.link_names[0]

    @property
    def num_dof(self) -> int:
        return len(self.joint_names)

    def links(self) -> Tuple[Link, ...]:
        """All links in model order, paired with their collision geometry."""
        return tuple(
            Link(name=name, geometry=geometry)
            for name, geometry in zip(self.link_names, self.collision_geometry)
        )

    def links_with_collision_geometry(self) -> Tuple[Link, ...]:
        return tuple(link for link in self.links() if link.geometry is not None)

    def total_mesh_vertices(self) -> int:
        return sum(
            geometry.vertex_count
            for geometry in self.collision_geometry
            if isinstance(geometry, Mesh)
        )
