"""Integration test fixtures for multi-component testing.

These tests run the recorder end to end against a stand-in ffmpeg: a small
Python script that accepts the recorder's argument list, writes the
playlist it was asked for, then records until it is terminated.

This file provides:
- fake_ffmpeg: path to the stand-in executable
- fresh_shutdown_coordinator: isolates the process-wide coordinator
"""

from __future__ import annotations

import stat
import sys
from pathlib import Path

import pytest

FAKE_FFMPEG = """#!{python}
import json
import os
import pathlib
import sys
import time

playlist = pathlib.Path(sys.argv[-1])
(playlist.parent / "argv.json").write_text(json.dumps({{"pid": os.getpid(), "argv": sys.argv[1:]}}))
playlist.write_text("#EXTM3U\\n")
print("fake ffmpeg recording to", playlist, flush=True)
time.sleep(60)
"""


@pytest.fixture(scope="function")
def fake_ffmpeg(tmp_path: Path) -> Path:
    """Executable that behaves like a healthy, long-running ffmpeg recorder."""
    path = tmp_path / "bin" / "ffmpeg"
    path.parent.mkdir()
    path.write_text(FAKE_FFMPEG.format(python=sys.executable))
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture(scope="function")
def fresh_shutdown_coordinator():
    from rtsp_recorder.core.shutdown_coordinator import (
        get_shutdown_coordinator,
        reset_shutdown_coordinator,
    )

    reset_shutdown_coordinator()
    yield get_shutdown_coordinator
    reset_shutdown_coordinator()
