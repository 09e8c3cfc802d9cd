"""Joint states from a JSON-lines stream.

Each line holds one message shaped like sensor_msgs/JointState::

    {"name": ["joint1", "joint2"], "position": [0.1, -0.4], "stamp": 12.5}

``stamp`` is optional; the receiving monitor stamps messages without one.
"""

import json
import logging
import threading
from typing import IO, Dict, Optional, Tuple

from robot_cloud.state import JointStateMonitor

logger = logging.getLogger(__name__)


def parse_joint_state(line: str) -> Tuple[Dict[str, float], Optional[float]]:
    """Parse one JSON line into ``(positions, stamp)``.

    Raises:
        ValueError: the line is not a valid joint state message.
    """
    message = json.loads(line)
    if not isinstance(message, dict):
        raise ValueError("joint state message must be a JSON object")

    names = message.get("name", [])
    positions = message.get("position", [])
    if len(names) != len(positions):
        raise ValueError(
            f"joint state has {len(names)} names but {len(positions)} positions"
        )

    stamp = message.get("stamp")
    return (
        {str(name): float(value) for name, value in zip(names, positions)},
        None if stamp is None else float(stamp),
    )


class JointStateReader:
    """Background thread pushing every parsed line of ``stream`` into a monitor."""

    def __init__(self, stream: IO[str], monitor: JointStateMonitor) -> None:
        self._stream = stream
        self._monitor = monitor
        self._thread: Optional[threading.Thread] = None
        self.received = 0
        self.rejected = 0

    def start(self) -> None:
        self._thread = threading.Thread(target=self.run, name="joint-state-reader", daemon=True)
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread:
            self._thread.join(timeout)

    def run(self) -> None:
        for line in self._stream:
            line = line.strip()
            if not line:
                continue
            try:
                positions, stamp = parse_joint_state(line)
            except (ValueError, TypeError) as exc:
                self.rejected += 1
                logger.warning("Discarding malformed joint state: %s", exc)
                continue
            self._monitor.update(positions, stamp)
            self.received += 1
        logger.info("Joint state stream closed after %d messages", self.received)
