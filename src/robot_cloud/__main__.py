import sys

from robot_cloud.cli import main

sys.exit(main())
