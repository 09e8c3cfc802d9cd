"""Exceptions raised by robot_cloud."""


class RobotCloudError(Exception):
    """Base class for all robot_cloud errors."""


class StartupConfigMissing(RobotCloudError):
    """A required startup input (the robot description) is unavailable."""


class ModelError(RobotCloudError):
    """The robot description could not be turned into a model."""


class MissingTransform(RobotCloudError):
    """A link carries a mesh but its world transform is not available."""

    def __init__(self, link_name: str):
        super().__init__(f"No world transform available for link '{link_name}'")
        self.link_name = link_name
