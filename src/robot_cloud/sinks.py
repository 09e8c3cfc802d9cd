"""Transport sinks and wire encoding for published clouds."""

from __future__ import annotations

import base64
import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, IO, List, Optional, Tuple, Union

import numpy as np

from robot_cloud.cloud import PointCloudFrame
from robot_cloud.providers import CloudSink

FLOAT32 = 7  # sensor_msgs/PointField datatype code

POINTS_ENCODING = "points"
POINTCLOUD2_ENCODING = "pointcloud2"
ENCODINGS = (POINTS_ENCODING, POINTCLOUD2_ENCODING)


@dataclass(frozen=True)
class PointField:
    name: str
    offset: int
    datatype: int = FLOAT32
    count: int = 1


@dataclass(frozen=True)
class PointCloud2:
    """Unorganised x/y/z cloud laid out like sensor_msgs/PointCloud2."""
    frame_id: str
    stamp: float
    width: int
    data: bytes
    height: int = 1
    fields: Tuple[PointField, ...] = field(
        default=(PointField("x", 0), PointField("y", 4), PointField("z", 8))
    )
    is_bigendian: bool = False
    point_step: int = 12
    is_dense: bool = True

    @property
    def row_step(self) -> int:
        return self.point_step * self.width

    def points(self) -> np.ndarray:
        return np.frombuffer(self.data, dtype="<f4").reshape(-1, 3)


def to_pointcloud2(frame: PointCloudFrame) -> PointCloud2:
    points = np.asarray(frame.points, dtype="<f4").reshape(-1, 3)
    return PointCloud2(
        frame_id=frame.frame_id,
        stamp=frame.timestamp,
        width=points.shape[0],
        data=points.tobytes(),
    )


class CallbackSink(CloudSink):
    """Forwards every frame to a callable, e.g. a middleware publisher."""

    def __init__(self, callback: Callable[[PointCloudFrame], None]) -> None:
        self._callback = callback

    def publish(self, frame: PointCloudFrame) -> None:
        self._callback(frame)


class CollectingSink(CloudSink):
    """Keeps every published frame in memory."""

    def __init__(self) -> None:
        self.frames: List[PointCloudFrame] = []

    def publish(self, frame: PointCloudFrame) -> None:
        self.frames.append(frame)


def pointcloud2_record(message: PointCloud2) -> dict:
    """JSON-friendly form of a PointCloud2 message, ``data`` base64 encoded."""
    record = asdict(message)
    record["row_step"] = message.row_step
    record["data"] = base64.b64encode(message.data).decode("ascii")
    return record


class JsonlSink(CloudSink):
    """Writes one JSON object per frame to a file or stream.

    With the ``points`` encoding each record holds the float64 point list.
    With ``pointcloud2`` each record holds the PointCloud2 fields of the frame,
    float32 x/y/z packed into base64 ``data``.
    """

    def __init__(self, output: Union[Path, IO[str]], encoding: str = POINTS_ENCODING) -> None:
        if encoding not in ENCODINGS:
            raise ValueError(f"Unknown cloud encoding '{encoding}', expected one of {ENCODINGS}")
        self._output = output
        self._encoding = encoding
        self._handle: Optional[IO[str]] = None
        self._owns_handle = False

    @property
    def encoding(self) -> str:
        return self._encoding

    def start(self) -> None:
        if isinstance(self._output, Path):
            self._output.parent.mkdir(parents=True, exist_ok=True)
            self._handle = self._output.open("w", encoding="utf-8")
            self._owns_handle = True
        else:
            self._handle = self._output

    def _record(self, frame: PointCloudFrame) -> dict:
        if self._encoding == POINTCLOUD2_ENCODING:
            return pointcloud2_record(to_pointcloud2(frame))
        return {
            "frame_id": frame.frame_id,
            "stamp": frame.timestamp,
            "points": np.asarray(frame.points).tolist(),
        }

    def publish(self, frame: PointCloudFrame) -> None:
        if self._handle is None:
            raise RuntimeError("JsonlSink.publish called before start()")
        self._handle.write(json.dumps(self._record(frame)) + "\n")
        self._handle.flush()

    def stop(self) -> None:
        if self._handle is not None and self._owns_handle:
            self._handle.close()
        self._handle = None
