"""Interfaces to the collaborators around the cloud builder.

The publish loop only talks to a model provider (which links carry collision
geometry), a state provider (current link transforms) and a sink (where frames
go). Concrete implementations are injected at startup.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Sequence

from jax import Array

from robot_cloud.core import Link, RobotModel

if TYPE_CHECKING:
    from robot_cloud.cloud import PointCloudFrame
    from robot_cloud.state import StateSnapshot


class ModelProvider(ABC):
    @abstractmethod
    def links_with_collision_geometry(self) -> Sequence[Link]:
        raise NotImplementedError

    @abstractmethod
    def root_link_name(self) -> str:
        raise NotImplementedError


class StateProvider(ABC):
    @abstractmethod
    def wait_for_fresh_state(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds; True once a fresh state is available."""
        raise NotImplementedError

    @abstractmethod
    def current_state(self) -> StateSnapshot:
        raise NotImplementedError

    def current_world_transform(self, link_name: str) -> Optional[Array]:
        return self.current_state().world_transform(link_name)

    def interrupt(self) -> None:
        """Wake any pending :meth:`wait_for_fresh_state` so shutdown is observed."""


class CloudSink(ABC):
    @abstractmethod
    def publish(self, frame: PointCloudFrame) -> None:
        raise NotImplementedError


class UrdfModelProvider(ModelProvider):
    """Model provider backed by a parsed :class:`RobotModel`."""

    def __init__(self, robot: RobotModel) -> None:
        self._robot = robot
        self._links = robot.links_with_collision_geometry()

    @property
    def robot(self) -> RobotModel:
        return self._robot

    def links_with_collision_geometry(self) -> Sequence[Link]:
        return self._links

    def root_link_name(self) -> str:
        return self._robot.root_link_name
