"""Centralized path constants for the recorder."""

from __future__ import annotations

import os
from pathlib import Path

# Recordings land in <root>/<camera-id>/<stream-id>/combined.m3u8
_RECORDINGS_ENV = os.environ.get("RTSP_RECORDER_ROOT")
DEFAULT_RECORDINGS_ROOT = Path(_RECORDINGS_ENV).expanduser() if _RECORDINGS_ENV else Path("/var/recordings")
PLAYLIST_FILENAME = "combined.m3u8"

DEFAULT_FFMPEG_PATH = os.environ.get("RTSP_RECORDER_FFMPEG", "ffmpeg")


def stream_output_dir(recordings_root: Path, camera_id: str, stream_id: str) -> Path:
    return Path(recordings_root) / camera_id / stream_id


def stream_playlist_path(recordings_root: Path, camera_id: str, stream_id: str) -> Path:
    return stream_output_dir(recordings_root, camera_id, stream_id) / PLAYLIST_FILENAME


__all__ = [
    'DEFAULT_RECORDINGS_ROOT',
    'DEFAULT_FFMPEG_PATH',
    'PLAYLIST_FILENAME',
    'stream_output_dir',
    'stream_playlist_path',
]
