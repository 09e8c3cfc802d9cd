"""Command-line entry point: wire model, joint states and sink into a publish loop."""

from __future__ import annotations

import logging
import signal
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Optional, Sequence

from robot_cloud.config import STDIO, CloudNodeConfig, build_parser, load_config
from robot_cloud.errors import RobotCloudError
from robot_cloud.io import JointStateReader
from robot_cloud.loop import PublishLoop, PublishLoopConfig
from robot_cloud.providers import UrdfModelProvider
from robot_cloud.sinks import JsonlSink
from robot_cloud.state import JointStateMonitor

logger = logging.getLogger("robot_cloud")


def build_sink(config: CloudNodeConfig) -> JsonlSink:
    output = sys.stdout if config.output == STDIO else Path(config.output)
    return JsonlSink(output, encoding=config.output_format)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    logger.info("Loading robot description")
    try:
        config = load_config(args)
        robot = config.load_model()
    except (RobotCloudError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    monitor = JointStateMonitor(robot)
    sink = build_sink(config)
    loop = PublishLoop(
        UrdfModelProvider(robot),
        monitor,
        sink,
        PublishLoopConfig(
            wait_timeout_s=config.wait_timeout_s,
            frame_id=config.frame_id,
            state_channel=config.joint_states,
        ),
    )

    def _request_shutdown(signum, _frame):
        logger.info("Received signal %d", signum)
        loop.stop()

    signal.signal(signal.SIGINT, _request_shutdown)
    signal.signal(signal.SIGTERM, _request_shutdown)

    with ExitStack() as stack:
        if config.joint_states == STDIO:
            stream = sys.stdin
        else:
            try:
                stream = stack.enter_context(open(config.joint_states, "r", encoding="utf-8"))
            except OSError as exc:
                logger.error("Cannot open joint states %s: %s", config.joint_states, exc)
                return 1
        reader = JointStateReader(stream, monitor)
        reader.start()

        sink.start()
        stack.callback(sink.stop)
        stats = loop.run()

    logger.info(
        "Published %d clouds (%d cycles abandoned, %d waits)",
        stats.published, stats.abandoned, stats.waits,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
