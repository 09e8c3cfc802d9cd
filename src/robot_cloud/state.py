"""Joint-state monitoring and per-cycle transform snapshots."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional

import jax
import jax.numpy as jnp
from jax import Array

from robot_cloud.chain import forward_kinematics_world
from robot_cloud.core import RobotModel
from robot_cloud.providers import StateProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateSnapshot:
    """World transforms of every link, captured at one instant."""
    timestamp: float
    transforms: Mapping[str, Array] = field(default_factory=dict)

    def world_transform(self, link_name: str) -> Optional[Array]:
        return self.transforms.get(link_name)


class JointStateMonitor(StateProvider):
    """State provider fed with joint positions from any thread.

    A state counts as fresh once every actuated joint of the model has a
    position and at least one update arrived after the last snapshot was
    taken. Snapshots run forward kinematics once over a copy of the positions,
    so later updates never leak into a snapshot already handed out.
    """

    def __init__(self, robot: RobotModel, clock: Callable[[], float] = time.time) -> None:
        self._robot = robot
        self._clock = clock
        self._joint_index: Dict[str, int] = {name: i for i, name in enumerate(robot.joint_names)}
        self._positions: Dict[str, float] = {}
        self._stamp = 0.0
        self._seq = 0
        self._consumed_seq = 0
        self._interrupted = False
        self._cond = threading.Condition()
        self._fk = jax.jit(lambda q: forward_kinematics_world(robot, q))

    @property
    def robot(self) -> RobotModel:
        return self._robot

    def update(self, positions: Mapping[str, float], stamp: Optional[float] = None) -> None:
        """Record new joint positions. Names unknown to the model are ignored."""
        known = {name: float(value) for name, value in positions.items() if name in self._joint_index}
        ignored = set(positions) - set(known)
        if ignored:
            logger.debug("Ignoring joints not in the model: %s", sorted(ignored))
        with self._cond:
            self._positions.update(known)
            self._stamp = self._clock() if stamp is None else float(stamp)
            self._seq += 1
            self._cond.notify_all()

    def missing_joints(self) -> List[str]:
        """Actuated joints that have not received a position yet."""
        with self._cond:
            return [name for name in self._robot.joint_names if name not in self._positions]

    def _is_fresh(self) -> bool:
        return self._seq > self._consumed_seq and len(self._positions) == len(self._joint_index)

    def wait_for_fresh_state(self, timeout: float) -> bool:
        with self._cond:
            self._cond.wait_for(lambda: self._interrupted or self._is_fresh(), timeout=timeout)
            return not self._interrupted and self._is_fresh()

    def interrupt(self) -> None:
        """Wake pending waits. Until :meth:`resume`, every wait reports no fresh state."""
        with self._cond:
            self._interrupted = True
            self._cond.notify_all()

    def resume(self) -> None:
        """Clear a previous :meth:`interrupt` so waits can succeed again."""
        with self._cond:
            self._interrupted = False
            self._cond.notify_all()

    def current_state(self) -> StateSnapshot:
        with self._cond:
            q = [self._positions.get(name, 0.0) for name in self._robot.joint_names]
            stamp = self._stamp
            self._consumed_seq = self._seq

        world = self._fk(jnp.array(q, dtype=jnp.float64))
        transforms = {name: world[i] for i, name in enumerate(self._robot.link_names)}
        return StateSnapshot(timestamp=stamp, transforms=transforms)
