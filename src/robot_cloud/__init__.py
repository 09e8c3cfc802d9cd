"""
Robot Cloud: turns a robot's own collision geometry into a world-frame point cloud.

Each cycle the current link transforms of a kinematic model are applied to the
vertices of every collision mesh, producing one timestamped cloud in the same
representation external depth sensors publish.
"""

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import transforms
from . import core
from . import io
from .cloud import CloudBuilder, PointCloudFrame, build
from .errors import MissingTransform, ModelError, RobotCloudError, StartupConfigMissing
from .loop import LoopState, PublishLoop, PublishLoopConfig

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "io",
    "CloudBuilder",
    "LoopState",
    "MissingTransform",
    "ModelError",
    "PointCloudFrame",
    "PublishLoop",
    "PublishLoopConfig",
    "RobotCloudError",
    "StartupConfigMissing",
    "build",
]
