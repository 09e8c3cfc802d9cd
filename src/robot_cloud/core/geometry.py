"""Collision shape variants attached to robot links.

A link's collision geometry is one of a closed set of shapes. Only
:class:`Mesh` carries points; the other variants are kept so a model can be
described faithfully, and consumers skip them.
"""

from typing import Tuple, Union

import jax.numpy as jnp
from jax import Array
from flax import struct


@struct.dataclass
class Mesh:
    """Unique mesh vertices expressed in the owning link's body frame.

    Attributes:
        vertices: Array of shape (num_vertices, 3). Any collision ``origin``
                  and mesh ``scale`` are already applied.
        source: Resolved filename the vertices were loaded from.
    """
    vertices: Array
    source: str = struct.field(pytree_node=False, default="")

    @property
    def vertex_count(self) -> int:
        return self.vertices.shape[0]


@struct.dataclass
class Primitive:
    """Analytic shape (box, sphere, cylinder, capsule) and its dimensions."""
    kind: str = struct.field(pytree_node=False)
    dimensions: Tuple[float, ...] = struct.field(pytree_node=False, default=())


@struct.dataclass
class UnknownShape:
    """Collision element whose geometry type is not recognised."""
    kind: str = struct.field(pytree_node=False)


Shape = Union[Mesh, Primitive, UnknownShape]


def mesh_from_vertices(vertices, source: str = "") -> Mesh:
    """Build a :class:`Mesh` from any (N, 3) array-like of vertex coordinates."""
    vertices = jnp.asarray(vertices, dtype=jnp.float64).reshape(-1, 3)
    return Mesh(vertices=vertices, source=source)
