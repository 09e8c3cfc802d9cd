"""I/O utilities: robot descriptions in, joint states in.

This module provides the URDF loader that produces RobotModel structures and
the reader that feeds joint states from a JSON-lines stream.
"""

from .joint_states import JointStateReader, parse_joint_state
from .urdf_parser import load_urdf, load_urdf_string, resolve_mesh_filename

__all__ = [
    "JointStateReader",
    "load_urdf",
    "load_urdf_string",
    "parse_joint_state",
    "resolve_mesh_filename",
]
