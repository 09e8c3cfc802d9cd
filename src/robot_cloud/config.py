"""Startup configuration for the robot cloud node."""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence

from robot_cloud.errors import StartupConfigMissing
from robot_cloud.io import load_urdf, load_urdf_string
from robot_cloud.core import RobotModel
from robot_cloud.sinks import ENCODINGS, POINTS_ENCODING

logger = logging.getLogger(__name__)

ROBOT_DESCRIPTION_ENV = "ROBOT_DESCRIPTION"
JOINT_STATES_ENV = "ROBOT_CLOUD_JOINT_STATES"
DEFAULT_JOINT_STATES = "-"
STDIO = "-"


@dataclass
class CloudNodeConfig:
    robot_description: str
    joint_states: str = DEFAULT_JOINT_STATES
    output: str = STDIO
    output_format: str = POINTS_ENCODING
    wait_timeout_s: float = 1.0
    frame_id: Optional[str] = None
    package_paths: Dict[str, Path] = field(default_factory=dict)

    def load_model(self) -> RobotModel:
        """Load the robot description, either inline URDF XML or a file path."""
        if self.robot_description.lstrip().startswith("<"):
            return load_urdf_string(self.robot_description, package_paths=self.package_paths)
        return load_urdf(self.robot_description, package_paths=self.package_paths)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="robot-cloud",
        description="Publish the robot's own collision meshes as a world-frame point cloud.",
    )
    parser.add_argument(
        "--robot-description",
        help=f"URDF file or inline URDF XML (default: ${ROBOT_DESCRIPTION_ENV}).",
    )
    parser.add_argument(
        "--joint-states",
        help=f"JSON-lines joint state stream, '-' for stdin (default: ${JOINT_STATES_ENV} or '-').",
    )
    parser.add_argument("--output", default=STDIO, help="JSON-lines cloud output, '-' for stdout.")
    parser.add_argument(
        "--format",
        choices=ENCODINGS,
        default=POINTS_ENCODING,
        help="Record layout: float64 point lists or PointCloud2 fields with base64 data.",
    )
    parser.add_argument("--wait-timeout", type=float, default=1.0, help="Seconds to wait for a fresh state.")
    parser.add_argument("--frame-id", help="Output frame id (default: the model's root link).")
    parser.add_argument(
        "--package-path",
        action="append",
        default=[],
        metavar="NAME=DIR",
        help="Directory of a ROS package referenced by package:// mesh URIs. Repeatable.",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    return parser


def parse_package_paths(entries: Sequence[str]) -> Dict[str, Path]:
    paths = {}
    for entry in entries:
        name, sep, directory = entry.partition("=")
        if not sep or not name or not directory:
            raise ValueError(f"Invalid package path '{entry}', expected NAME=DIR")
        paths[name] = Path(directory)
    return paths


def load_config(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> CloudNodeConfig:
    """Resolve the node configuration from parsed arguments and the environment.

    Raises:
        StartupConfigMissing: no robot description was given.
    """
    environ = os.environ if environ is None else environ

    robot_description = args.robot_description or environ.get(ROBOT_DESCRIPTION_ENV)
    if not robot_description:
        raise StartupConfigMissing(
            f"No robot description: pass --robot-description or set ${ROBOT_DESCRIPTION_ENV}"
        )

    joint_states = args.joint_states or environ.get(JOINT_STATES_ENV)
    if not joint_states:
        joint_states = DEFAULT_JOINT_STATES
        logger.warning("Joint states channel will be set to default: %s", joint_states)

    return CloudNodeConfig(
        robot_description=robot_description,
        joint_states=joint_states,
        output=args.output,
        output_format=args.format,
        wait_timeout_s=args.wait_timeout,
        frame_id=args.frame_id,
        package_paths=parse_package_paths(args.package_path),
    )
