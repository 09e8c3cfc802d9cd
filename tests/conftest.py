"""Shared fixtures for the robot_cloud test suite."""

from pathlib import Path

import pytest

from robot_cloud.io import load_urdf

FIXTURES = Path(__file__).parent / "fixtures"
TEST_ARM_URDF = FIXTURES / "test_arm.urdf"
PACKAGE_PATHS = {"test_arm_description": FIXTURES / "test_arm_description"}


@pytest.fixture
def test_arm():
    """The fixture arm: box base, meshed link1/link2, sphere sensor, bare tool."""
    return load_urdf(TEST_ARM_URDF, package_paths=PACKAGE_PATHS)
