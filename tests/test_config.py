"""Tests for startup configuration and the command-line entry point."""

import base64
import json
import logging
import signal
import threading
import time
from pathlib import Path

import pytest

from robot_cloud.cli import build_sink, main
from robot_cloud.config import (
    DEFAULT_JOINT_STATES,
    JOINT_STATES_ENV,
    ROBOT_DESCRIPTION_ENV,
    build_parser,
    load_config,
    parse_package_paths,
)
from robot_cloud.errors import StartupConfigMissing
from robot_cloud.sinks import POINTCLOUD2_ENCODING, POINTS_ENCODING

from conftest import PACKAGE_PATHS, TEST_ARM_URDF


def _args(*argv):
    return build_parser().parse_args(list(argv))


def test_missing_robot_description_is_fatal():
    with pytest.raises(StartupConfigMissing):
        load_config(_args(), environ={})


def test_robot_description_from_environment():
    config = load_config(_args("--joint-states", "states.jsonl"), environ={ROBOT_DESCRIPTION_ENV: "robot.urdf"})
    assert config.robot_description == "robot.urdf"
    assert config.joint_states == "states.jsonl"


def test_joint_states_default_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="robot_cloud.config"):
        config = load_config(_args("--robot-description", "robot.urdf"), environ={})
    assert config.joint_states == DEFAULT_JOINT_STATES
    assert "default" in caplog.text


def test_joint_states_from_environment(caplog):
    with caplog.at_level(logging.WARNING, logger="robot_cloud.config"):
        config = load_config(
            _args("--robot-description", "robot.urdf"), environ={JOINT_STATES_ENV: "/tmp/js.jsonl"}
        )
    assert config.joint_states == "/tmp/js.jsonl"
    assert caplog.text == ""


def test_command_line_options():
    config = load_config(
        _args(
            "--robot-description", "robot.urdf",
            "--joint-states", "-",
            "--wait-timeout", "0.25",
            "--frame-id", "world",
            "--package-path", "arm=/opt/arm",
        ),
        environ={},
    )
    assert config.wait_timeout_s == 0.25
    assert config.frame_id == "world"
    assert config.package_paths == {"arm": Path("/opt/arm")}


def test_parse_package_paths_rejects_bad_entries():
    with pytest.raises(ValueError):
        parse_package_paths(["no-equals-sign"])


def test_load_model_from_path_and_inline_xml():
    by_path = load_config(
        _args("--robot-description", str(TEST_ARM_URDF), "--joint-states", "-"), environ={}
    )
    by_path.package_paths = dict(PACKAGE_PATHS)
    assert by_path.load_model().total_mesh_vertices() == 7

    inline = load_config(
        _args("--joint-states", "-"),
        environ={ROBOT_DESCRIPTION_ENV: '<robot name="r"><link name="only"/></robot>'},
    )
    assert inline.load_model().link_names == ("only",)


def test_main_exits_without_robot_description(monkeypatch):
    monkeypatch.delenv(ROBOT_DESCRIPTION_ENV, raising=False)
    assert main(["--joint-states", "-"]) == 1


def test_main_exits_on_unreadable_model(tmp_path):
    assert main(["--robot-description", str(tmp_path / "missing.urdf"), "--joint-states", "-"]) == 1


def test_output_format_option(tmp_path):
    default = load_config(_args("--robot-description", "robot.urdf", "--joint-states", "-"), environ={})
    assert default.output_format == POINTS_ENCODING

    config = load_config(
        _args(
            "--robot-description", "robot.urdf",
            "--joint-states", "-",
            "--output", str(tmp_path / "clouds.jsonl"),
            "--format", "pointcloud2",
        ),
        environ={},
    )
    assert config.output_format == POINTCLOUD2_ENCODING
    assert build_sink(config).encoding == POINTCLOUD2_ENCODING


def test_main_publishes_pointcloud2_records(tmp_path, monkeypatch):
    """The entry point streams PointCloud2 records until a shutdown signal arrives."""
    states = tmp_path / "states.jsonl"
    states.write_text(json.dumps({"name": ["joint1", "joint2"], "position": [0.0, 0.0], "stamp": 4.0}) + "\n")
    output = tmp_path / "clouds.jsonl"

    handlers = {}
    monkeypatch.setattr(signal, "signal", lambda signum, handler: handlers.__setitem__(signum, handler))

    def _shutdown_after_first_cloud():
        deadline = time.monotonic() + 30.0
        while time.monotonic() < deadline:
            if output.exists() and output.read_text(encoding="utf-8").strip():
                break
            time.sleep(0.01)
        handlers[signal.SIGTERM](signal.SIGTERM, None)

    stopper = threading.Thread(target=_shutdown_after_first_cloud, daemon=True)
    stopper.start()
    status = main([
        "--robot-description", str(TEST_ARM_URDF),
        "--package-path", f"test_arm_description={PACKAGE_PATHS['test_arm_description']}",
        "--joint-states", str(states),
        "--output", str(output),
        "--format", "pointcloud2",
        "--wait-timeout", "0.05",
    ])
    stopper.join()

    assert status == 0
    record = json.loads(output.read_text(encoding="utf-8").splitlines()[0])
    assert record["frame_id"] == "base_link"
    assert record["width"] == 7
    assert record["height"] == 1
    assert len(base64.b64decode(record["data"])) == 7 * 12
