"""Core robot model data structures.

Immutable, JAX-native descriptions of a robot's kinematic tree and the
collision shapes attached to its links.
"""

from .geometry import Mesh, Primitive, Shape, UnknownShape, mesh_from_vertices
from .robot_model import Link, RobotModel

__all__ = [
    "Link",
    "Mesh",
    "Primitive",
    "RobotModel",
    "Shape",
    "UnknownShape",
    "mesh_from_vertices",
]
