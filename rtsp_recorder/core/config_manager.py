"""Loads camera/stream definitions from one or more TOML files.

Files are merged in the order given; tables merge recursively and later
values win, so a site-specific file can add cameras or override the
credentials of a camera declared in a shared file::

    [recorder]
    recordings_root = "/var/recordings"

    [cameras.cam1]
    username = "viewer"
    password = "secret"

    [cameras.cam1.streams.front]
    source_url = "rtsp://10.0.0.20/live"
"""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import aiofiles

from rtsp_recorder.core.logging_utils import get_module_logger

from .recorder.models import Camera, Stream

PathLike = Union[str, Path]


class ConfigError(Exception):
    """Configuration files are missing, unreadable or malformed."""


@dataclass(frozen=True)
class RecorderConfig:
    cameras: Mapping[str, Camera] = field(default_factory=dict)
    recordings_root: Optional[Path] = None
    ffmpeg_path: Optional[str] = None

    @property
    def stream_count(self) -> int:
        return sum(len(camera.streams) for camera in self.cameras.values())


def merge_tables(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = merge_tables(current, value)
        else:
            merged[key] = value
    return merged


class ConfigManager:

    def __init__(self):
        self.logger = get_module_logger("ConfigManager")

    # ------------------------------------------------------------------
    # Internal helpers

    def _parse_toml(self, text: str, config_path: Path) -> Dict[str, Any]:
        try:
            return tomllib.loads(text)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    @staticmethod
    def _optional_str(table: Mapping[str, Any], key: str, where: str) -> Optional[str]:
        value = table.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            raise ConfigError(f"{where}.{key} must be a string")
        return value

    def _build_camera(self, camera_id: str, table: Any) -> Camera:
        where = f"cameras.{camera_id}"
        if not isinstance(table, Mapping):
            raise ConfigError(f"{where} must be a table")

        streams_table = table.get("streams", {})
        if not isinstance(streams_table, Mapping):
            raise ConfigError(f"{where}.streams must be a table")

        streams: Dict[str, Stream] = {}
        for stream_id, stream_table in streams_table.items():
            stream_where = f"{where}.streams.{stream_id}"
            if not isinstance(stream_table, Mapping):
                raise ConfigError(f"{stream_where} must be a table")
            source_url = self._optional_str(stream_table, "source_url", stream_where)
            if not source_url:
                raise ConfigError(f"{stream_where}.source_url is required")
            streams[stream_id] = Stream(source_url=source_url)

        if not streams:
            self.logger.warning("Camera %s has no streams configured", camera_id)

        return Camera(
            username=self._optional_str(table, "username", where),
            password=self._optional_str(table, "password", where),
            streams=streams,
        )

    def build_config(self, data: Mapping[str, Any]) -> RecorderConfig:
        """Turn merged TOML data into a RecorderConfig."""
        cameras_table = data.get("cameras", {})
        if not isinstance(cameras_table, Mapping):
            raise ConfigError("cameras must be a table")

        cameras = {
            camera_id: self._build_camera(camera_id, table)
            for camera_id, table in sorted(cameras_table.items())
        }

        recorder_table = data.get("recorder", {})
        if not isinstance(recorder_table, Mapping):
            raise ConfigError("recorder must be a table")
        recordings_root = self._optional_str(recorder_table, "recordings_root", "recorder")

        config = RecorderConfig(
            cameras=cameras,
            recordings_root=Path(recordings_root).expanduser() if recordings_root else None,
            ffmpeg_path=self._optional_str(recorder_table, "ffmpeg_path", "recorder"),
        )
        self.logger.debug(
            "Loaded %d camera(s) with %d stream(s)", len(config.cameras), config.stream_count
        )
        return config

    # ------------------------------------------------------------------
    # Public API

    def read_config(self, config_paths: Iterable[PathLike]) -> RecorderConfig:
        merged: Dict[str, Any] = {}
        for raw_path in config_paths:
            config_path = Path(raw_path)
            try:
                text = config_path.read_text(encoding="utf-8")
            except OSError as e:
                raise ConfigError(f"Failed to read config {config_path}: {e}") from e
            merged = merge_tables(merged, self._parse_toml(text, config_path))
            self.logger.debug("Read config %s", config_path)
        return self.build_config(merged)

    async def read_config_async(self, config_paths: Iterable[PathLike]) -> RecorderConfig:
        """Async version for use inside the running event loop."""
        merged: Dict[str, Any] = {}
        for raw_path in config_paths:
            config_path = Path(raw_path)
            try:
                async with aiofiles.open(config_path, "r", encoding="utf-8") as f:
                    text = await f.read()
            except OSError as e:
                raise ConfigError(f"Failed to read config {config_path}: {e}") from e
            merged = merge_tables(merged, self._parse_toml(text, config_path))
            self.logger.debug("Read config %s", config_path)
        return self.build_config(merged)


_config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    return _config_manager


__all__ = [
    "ConfigError",
    "ConfigManager",
    "RecorderConfig",
    "get_config_manager",
    "merge_tables",
]
