"""Publish loop: wait for state, build the cloud, hand it to the sink."""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from robot_cloud.cloud import CloudBuilder
from robot_cloud.errors import MissingTransform
from robot_cloud.providers import CloudSink, ModelProvider, StateProvider

logger = logging.getLogger(__name__)


class LoopState(enum.Enum):
    """Where the publish loop is in its cycle. ``STOPPED`` is terminal."""
    WAITING_FOR_STATE = "waiting_for_state"
    BUILDING = "building"
    PUBLISHED = "published"
    STOPPED = "stopped"


@dataclass
class PublishLoopConfig:
    """Tuning for :class:`PublishLoop`.

    Attributes:
        wait_timeout_s: Upper bound on one wait for fresh state, in seconds.
        frame_id: Output frame; defaults to the model's root link.
        state_channel: Name of the state source, used in "waiting" log lines.
    """
    wait_timeout_s: float = 1.0
    frame_id: Optional[str] = None
    state_channel: str = "joint states"


@dataclass
class LoopStats:
    """Counters of published frames, abandoned cycles and timed-out waits."""
    published: int = 0
    abandoned: int = 0
    waits: int = 0


class PublishLoop:
    """Turns fresh robot state into point clouds, one frame per cycle.

    Each cycle waits for fresh state, takes a single snapshot, builds the cloud
    from the model's collision meshes and hands it to the sink. A cycle with a
    missing link transform publishes nothing. :meth:`stop` ends :meth:`run`.
    """

    def __init__(
        self,
        model: ModelProvider,
        state: StateProvider,
        sink: CloudSink,
        config: Optional[PublishLoopConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._model = model
        self._state = state
        self._sink = sink
        self._config = config or PublishLoopConfig()
        self._builder = CloudBuilder(self._config.frame_id or model.root_link_name(), clock)
        self._shutdown = threading.Event()
        self._current = LoopState.WAITING_FOR_STATE
        self.stats = LoopStats()

    @property
    def current_state(self) -> LoopState:
        return self._current

    @property
    def frame_id(self) -> str:
        return self._builder.root_frame_name

    def stop(self) -> None:
        """Request shutdown; safe to call from any thread or a signal handler."""
        self._shutdown.set()
        self._state.interrupt()

    def step(self) -> LoopState:
        """Run one cycle and return the state it ended in."""
        if self._current is LoopState.STOPPED:
            return self._current

        self._current = LoopState.WAITING_FOR_STATE
        fresh = self._state.wait_for_fresh_state(self._config.wait_timeout_s)
        if self._shutdown.is_set():
            logger.info("Shutdown requested, stopping publish loop")
            self._current = LoopState.STOPPED
            return self._current
        if not fresh:
            self.stats.waits += 1
            logger.info("Waiting for %s to be broadcast", self._config.state_channel)
            return self._current

        self._current = LoopState.BUILDING
        snapshot = self._state.current_state()
        links = self._model.links_with_collision_geometry()
        try:
            frame = self._builder.build(links, snapshot.world_transform)
        except MissingTransform as exc:
            self.stats.abandoned += 1
            logger.warning("Skipping cycle: %s", exc)
            self._current = LoopState.WAITING_FOR_STATE
            return self._current

        self._sink.publish(frame)
        self.stats.published += 1
        logger.debug("Published %d points in frame %s", frame.num_points, frame.frame_id)
        self._current = LoopState.PUBLISHED
        return self._current

    def run(self) -> LoopStats:
        logger.info("Publishing robot cloud in frame '%s'", self.frame_id)
        while self.step() is not LoopState.STOPPED:
            pass
        return self.stats
