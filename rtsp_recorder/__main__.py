"""Allow ``python -m rtsp_recorder`` to launch the recorder."""

from __future__ import annotations

import sys


def main() -> None:
    from rtsp_recorder import run
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
