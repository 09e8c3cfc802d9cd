"""URDF parser for loading robot models into JAX-native data structures.

This module parses the kinematic tree and the collision geometry of a URDF
robot description and converts them into a RobotModel PyTree. Collision meshes
are loaded with trimesh and stored as unique vertices in the link body frame.
"""

import logging
import os
from collections import deque
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

import jax.numpy as jnp
import numpy as np
import trimesh
from lxml import etree

from robot_cloud.core.geometry import Mesh, Primitive, Shape, UnknownShape
from robot_cloud.core.robot_model import RobotModel
from robot_cloud.errors import ModelError
from robot_cloud.transforms import se3

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

PACKAGE_PREFIX = "package://"
FILE_PREFIX = "file://"

ACTUATED_JOINT_TYPES = ("revolute", "continuous", "prismatic")


def load_urdf(
    urdf_path: PathLike,
    package_paths: Optional[Mapping[str, PathLike]] = None,
) -> RobotModel:
    """Load a URDF file and convert it to a RobotModel PyTree.

    Args:
        urdf_path: Path to the URDF file to load.
        package_paths: Optional mapping of ROS package names to directories,
            used to resolve ``package://`` mesh filenames.

    Returns:
        RobotModel: A JAX-native robot representation.
    """
    urdf_path = Path(urdf_path)
    try:
        tree = etree.parse(str(urdf_path))
    except (OSError, etree.XMLSyntaxError) as exc:
        raise ModelError(f"Could not read robot description '{urdf_path}': {exc}") from exc
    return _build_model(tree.getroot(), urdf_path.parent, package_paths)


def load_urdf_string(
    urdf_xml: str,
    base_dir: Optional[PathLike] = None,
    package_paths: Optional[Mapping[str, PathLike]] = None,
) -> RobotModel:
    """Parse an inline URDF document.

    Args:
        urdf_xml: The URDF XML text.
        base_dir: Directory that relative mesh filenames are resolved against.
            Defaults to the current working directory.
        package_paths: See :func:`load_urdf`.
    """
    try:
        root = etree.fromstring(urdf_xml.encode("utf-8"))
    except etree.XMLSyntaxError as exc:
        raise ModelError(f"Robot description is not valid XML: {exc}") from exc
    return _build_model(root, Path(base_dir) if base_dir else Path.cwd(), package_paths)


def _build_model(root, base_dir: Path, package_paths) -> RobotModel:
    # First pass: topology
    link_elems: Dict[str, etree._Element] = {}
    for link in root.findall('link'):
        link_elems[link.get('name')] = link

    joints_info = []
    child_to_parent_map: Dict[str, str] = {}
    for joint in root.findall('joint'):
        parent_elem = joint.find('parent')
        child_elem = joint.find('child')
        if parent_elem is None or child_elem is None:
            continue

        child_name = child_elem.get('link')
        child_to_parent_map[child_name] = parent_elem.get('link')
        joints_info.append({
            'name': joint.get('name'),
            'type': joint.get('type'),
            'parent': parent_elem.get('link'),
            'child': child_name,
            'joint_elem': joint,
        })

    # The root link is the only link that is never a child
    root_links = set(link_elems) - set(child_to_parent_map)
    if len(root_links) != 1:
        raise ModelError(f"Expected exactly one root link, found: {sorted(root_links)}")
    root_link = root_links.pop()

    # Breadth-first ordering so every parent precedes its children
    ordered_links: List[str] = []
    queue = deque([root_link])
    visited = set()
    while queue:
        current_link = queue.popleft()
        if current_link in visited:
            continue
        visited.add(current_link)
        ordered_links.append(current_link)
        for joint_info in joints_info:
            if joint_info['parent'] == current_link and joint_info['child'] not in visited:
                queue.append(joint_info['child'])

    link_map = {name: i for i, name in enumerate(ordered_links)}

    # Actuated joints keep document order; that is the order positions arrive in
    actuated = [
        joint_info for joint_info in joints_info
        if joint_info['type'] in ACTUATED_JOINT_TYPES and joint_info['child'] in link_map
    ]
    joint_by_child = {joint_info['child']: joint_info for joint_info in joints_info}

    # Second pass: populate data arrays
    parent_indices_list = []
    joint_transforms_list = []
    joint_axes_list = []
    collision_geometry = []

    for i, link_name in enumerate(ordered_links):
        if link_name == root_link:
            parent_indices_list.append(i)  # Root parents itself
        else:
            parent_indices_list.append(link_map[child_to_parent_map[link_name]])

        if link_name in joint_by_child:
            joint_info = joint_by_child[link_name]
            joint_elem = joint_info['joint_elem']
            joint_transforms_list.append(_parse_origin(joint_elem.find('origin')))
            joint_axes_list.append(_parse_axis(joint_elem, joint_info['type']))
        else:
            # Root link has identity transform and zero axis
            joint_transforms_list.append(se3.identity())
            joint_axes_list.append(jnp.zeros(6))

        link_elem = link_elems.get(link_name)
        collision_geometry.append(
            _parse_collision(link_elem, base_dir, package_paths) if link_elem is not None else None
        )

    logger.info(
        "Loaded robot '%s': %d links, %d actuated joints, %d links with collision geometry",
        root.get('name', ''),
        len(ordered_links),
        len(actuated),
        sum(geometry is not None for geometry in collision_geometry),
    )

    return RobotModel(
        link_names=tuple(ordered_links),
        joint_names=tuple(joint_info['name'] for joint_info in actuated),
        parent_indices=jnp.array(parent_indices_list, dtype=jnp.int32),
        joint_transforms=jnp.stack(joint_transforms_list),
        joint_axes=jnp.stack(joint_axes_list),
        actuated_joint_to_link_idx=jnp.array(
            [link_map[joint_info['child']] for joint_info in actuated], dtype=jnp.int32
        ),
        collision_geometry=tuple(collision_geometry),
    )


def _parse_vector(text: Optional[str], default: str) -> np.ndarray:
    text = default if text is None else text
    try:
        values = np.array([float(x) for x in text.split()], dtype=np.float64)
    except ValueError as exc:
        raise ModelError(f"Invalid numeric attribute '{text}'") from exc
    if values.shape != (3,):
        raise ModelError(f"Expected three values, got '{text}'")
    return values


def _parse_float(elem, attribute: str) -> float:
    try:
        return float(elem.get(attribute, 0.0))
    except ValueError as exc:
        raise ModelError(f"Invalid {attribute} '{elem.get(attribute)}'") from exc


def _parse_origin(origin_elem) -> jnp.ndarray:
    """SE(3) transform of an ``<origin xyz=... rpy=...>`` element (identity if absent)."""
    if origin_elem is None:
        return se3.identity()
    xyz = _parse_vector(origin_elem.get('xyz'), '0 0 0')
    rpy = _parse_vector(origin_elem.get('rpy'), '0 0 0')
    return se3.from_xyz_rpy(jnp.array(xyz), jnp.array(rpy))


def _parse_axis(joint_elem, joint_type: str) -> jnp.ndarray:
    if joint_type not in ACTUATED_JOINT_TYPES:
        return jnp.zeros(6)

    axis_elem = joint_elem.find('axis')
    axis_xyz = jnp.array(_parse_vector(
        axis_elem.get('xyz') if axis_elem is not None else None, '1 0 0'
    ))

    if joint_type == 'prismatic':
        # Prismatic: [vx, vy, vz, 0, 0, 0]
        return jnp.concatenate([axis_xyz, jnp.zeros(3)])
    # Revolute: [0, 0, 0, wx, wy, wz]
    return jnp.concatenate([jnp.zeros(3), axis_xyz])


def _parse_collision(link_elem, base_dir: Path, package_paths) -> Optional[Shape]:
    """Collision shape of a link, taken from its first ``<collision>`` element."""
    collisions = link_elem.findall('collision')
    if not collisions:
        return None
    if len(collisions) > 1:
        logger.debug(
            "Link '%s' has %d collision elements, using the first",
            link_elem.get('name'), len(collisions),
        )

    collision = collisions[0]
    geometry_elem = collision.find('geometry')
    shapes = [] if geometry_elem is None else [
        child for child in geometry_elem if isinstance(child.tag, str)
    ]
    if not shapes:
        return None

    shape_elem = shapes[0]
    kind = shape_elem.tag
    if kind == 'mesh':
        origin = _parse_origin(collision.find('origin'))
        return _load_mesh(shape_elem, origin, base_dir, package_paths)
    if kind == 'box':
        return Primitive(kind='box', dimensions=tuple(float(v) for v in _parse_vector(shape_elem.get('size'), '0 0 0')))
    if kind == 'sphere':
        return Primitive(kind='sphere', dimensions=(_parse_float(shape_elem, 'radius'),))
    if kind in ('cylinder', 'capsule'):
        return Primitive(
            kind=kind,
            dimensions=(_parse_float(shape_elem, 'radius'), _parse_float(shape_elem, 'length')),
        )

    logger.warning("Link '%s' has unsupported collision geometry '%s'", link_elem.get('name'), kind)
    return UnknownShape(kind=str(kind))


def _load_mesh(mesh_elem, origin: jnp.ndarray, base_dir: Path, package_paths) -> Mesh:
    filename = resolve_mesh_filename(mesh_elem.get('filename', ''), base_dir, package_paths)
    scale = _parse_vector(mesh_elem.get('scale'), '1 1 1')
    if not filename.is_file():
        raise ModelError(f"Collision mesh '{filename}' does not exist")

    try:
        loaded = trimesh.load(str(filename), force='mesh', process=False)
    except (OSError, ValueError) as exc:
        raise ModelError(f"Could not load collision mesh '{filename}': {exc}") from exc

    # Identical corners are joined, then scale and collision origin baked in
    # so the vertices live in the link body frame.
    loaded.merge_vertices()
    unique = np.asarray(loaded.vertices, dtype=np.float64).reshape(-1, 3)
    vertices = jnp.asarray(unique * scale)
    vertices = se3.apply(origin, vertices)

    logger.debug("Loaded %d vertices from %s", vertices.shape[0], filename)
    return Mesh(vertices=vertices.reshape(-1, 3), source=str(filename))


def resolve_mesh_filename(
    filename: str,
    base_dir: Path,
    package_paths: Optional[Mapping[str, PathLike]] = None,
) -> Path:
    """Turn a URDF mesh ``filename`` attribute into a filesystem path.

    ``package://name/rest`` is looked up in ``package_paths`` first, then in
    each directory of ``ROS_PACKAGE_PATH``. ``file://`` URIs and absolute paths
    are used as is; anything else is relative to ``base_dir``.
    """
    if not filename:
        raise ModelError("Collision mesh without a filename")

    if filename.startswith(FILE_PREFIX):
        return Path(filename[len(FILE_PREFIX):])

    if filename.startswith(PACKAGE_PREFIX):
        package, _, relative = filename[len(PACKAGE_PREFIX):].partition('/')
        if package_paths and package in package_paths:
            return Path(package_paths[package]) / relative
        for search_dir in os.environ.get('ROS_PACKAGE_PATH', '').split(os.pathsep):
            if not search_dir:
                continue
            candidate = Path(search_dir) / package
            if candidate.is_dir():
                return candidate / relative
        raise ModelError(f"Cannot resolve package '{package}' for mesh '{filename}'")

    path = Path(filename)
    return path if path.is_absolute() else base_dir / path
