"""Cloud builder: robot collision meshes to a world-frame point cloud.

This module implements the per-cycle geometry pipeline. Every link that
carries a collision mesh contributes its vertices, mapped from the link body
frame into the root frame by the link's current world transform.
"""

import logging
import time
from typing import Callable, Optional, Sequence, Tuple, Union

import jax.numpy as jnp
from jax import Array
from flax import struct

from .core import Link, Mesh, Primitive, Shape, UnknownShape
from .errors import MissingTransform
from .transforms import se3

logger = logging.getLogger(__name__)

TransformLookup = Callable[[str], Optional[Array]]
LinkLike = Union[Link, Tuple[str, Optional[Shape]]]


@struct.dataclass
class PointCloudFrame:
    """One complete, timestamped set of world-frame points.

    Attributes:
        frame_id: Name of the frame the points are expressed in.
        timestamp: Capture time in seconds.
        points: Array of shape (num_points, 3), ordered by link, then by vertex.
    """
    frame_id: str = struct.field(pytree_node=False)
    timestamp: float = struct.field(pytree_node=False)
    points: Array

    @property
    def num_points(self) -> int:
        return self.points.shape[0]


def build(
    links: Sequence[LinkLike],
    transform_lookup: TransformLookup,
    root_frame_name: str,
    timestamp: Optional[float] = None,
    clock: Callable[[], float] = time.time,
) -> PointCloudFrame:
    """Transform every collision mesh vertex into the root frame.

    Args:
        links: Links in model order, as :class:`Link` or ``(name, shape)`` pairs.
        transform_lookup: Returns the (4, 4) world transform of a link, or
            None when it is not available.
        root_frame_name: ``frame_id`` of the resulting cloud.
        timestamp: Stamp of the cloud. When omitted, ``clock`` is read once
            after all links are processed.
        clock: Time source used when ``timestamp`` is omitted.

    Returns:
        PointCloudFrame whose point count is the sum of the vertex counts of
        all mesh links.

    Raises:
        MissingTransform: a link with a mesh has no transform. No frame is
            produced for the cycle.
    """
    blocks = []
    for link in links:
        name, shape = (link.name, link.geometry) if isinstance(link, Link) else link
        points = _link_points(name, shape, transform_lookup)
        if points is not None:
            blocks.append(points)

    if blocks:
        points = jnp.concatenate(blocks, axis=0)
    else:
        points = jnp.zeros((0, 3), dtype=jnp.float64)

    if timestamp is None:
        timestamp = clock()

    return PointCloudFrame(frame_id=root_frame_name, timestamp=float(timestamp), points=points)


def _link_points(name: str, shape: Optional[Shape], transform_lookup: TransformLookup) -> Optional[Array]:
    if isinstance(shape, Mesh):
        transform = transform_lookup(name)
        if transform is None:
            raise MissingTransform(name)
        logger.debug("Link %s: %d vertices", name, shape.vertex_count)
        return se3.apply(jnp.asarray(transform, dtype=jnp.float64), shape.vertices)
    if isinstance(shape, (Primitive, UnknownShape)) or shape is None:
        return None
    raise TypeError(f"Unsupported collision shape for link '{name}': {type(shape).__name__}")


class CloudBuilder:
    """Binds the fixed root frame name and clock used for every cycle."""

    def __init__(self, root_frame_name: str, clock: Callable[[], float] = time.time) -> None:
        self._root_frame_name = root_frame_name
        self._clock = clock

    @property
    def root_frame_name(self) -> str:
        return self._root_frame_name

    def build(self, links: Sequence[LinkLike], transform_lookup: TransformLookup) -> PointCloudFrame:
        return build(links, transform_lookup, self._root_frame_name, clock=self._clock)
