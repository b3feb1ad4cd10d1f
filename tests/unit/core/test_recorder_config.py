"""Unit tests for TOML configuration loading and merging."""

from pathlib import Path

import pytest

BASE_CONFIG = """
[recorder]
recordings_root = "/srv/recordings"

[cameras.cam1]
username = "viewer"
password = "secret"

[cameras.cam1.streams.front]
source_url = "rtsp://10.0.0.20/live"

[cameras.cam1.streams.sub]
source_url = "rtsp://10.0.0.20/sub"
"""

SITE_CONFIG = """
[recorder]
ffmpeg_path = "/usr/local/bin/ffmpeg"

[cameras.cam1]
password = "rotated"

[cameras.cam2.streams.main]
source_url = "rtsp://10.0.0.21/main"
"""


@pytest.fixture
def config_files(tmp_path):
    base = tmp_path / "base.toml"
    base.write_text(BASE_CONFIG)
    site = tmp_path / "site.toml"
    site.write_text(SITE_CONFIG)
    return base, site


class TestMergeTables:
    """Test recursive table merging."""

    def test_nested_tables_merge(self):
        from rtsp_recorder.core.config_manager import merge_tables

        merged = merge_tables(
            {"cameras": {"a": {"username": "x", "password": "y"}}},
            {"cameras": {"a": {"password": "z"}, "b": {}}},
        )

        assert merged == {"cameras": {"a": {"username": "x", "password": "z"}, "b": {}}}

    def test_base_not_mutated(self):
        from rtsp_recorder.core.config_manager import merge_tables

        base = {"recorder": {"ffmpeg_path": "ffmpeg"}}
        merge_tables(base, {"recorder": {"ffmpeg_path": "/opt/ffmpeg"}})

        assert base == {"recorder": {"ffmpeg_path": "ffmpeg"}}

    def test_scalar_replaces_table(self):
        from rtsp_recorder.core.config_manager import merge_tables

        assert merge_tables({"a": {"b": 1}}, {"a": 2}) == {"a": 2}


class TestReadConfig:
    """Test ConfigManager.read_config."""

    def test_single_file(self, config_files):
        from rtsp_recorder.core.config_manager import ConfigManager

        config = ConfigManager().read_config([config_files[0]])

        assert list(config.cameras) == ["cam1"]
        camera = config.cameras["cam1"]
        assert camera.username == "viewer"
        assert camera.password == "secret"
        assert list(camera.streams) == ["front", "sub"]
        assert camera.streams["front"].source_url == "rtsp://10.0.0.20/live"
        assert config.recordings_root == Path("/srv/recordings")
        assert config.ffmpeg_path is None
        assert config.stream_count == 2

    def test_later_files_override(self, config_files):
        from rtsp_recorder.core.config_manager import ConfigManager

        config = ConfigManager().read_config(config_files)

        assert sorted(config.cameras) == ["cam1", "cam2"]
        assert config.cameras["cam1"].username == "viewer"
        assert config.cameras["cam1"].password == "rotated"
        assert config.cameras["cam2"].username is None
        assert config.ffmpeg_path == "/usr/local/bin/ffmpeg"
        assert config.recordings_root == Path("/srv/recordings")
        assert config.stream_count == 3

    def test_missing_file(self, tmp_path):
        from rtsp_recorder.core.config_manager import ConfigError, ConfigManager

        with pytest.raises(ConfigError, match="Failed to read config"):
            ConfigManager().read_config([tmp_path / "absent.toml"])

    def test_invalid_toml(self, tmp_path):
        from rtsp_recorder.core.config_manager import ConfigError, ConfigManager

        broken = tmp_path / "broken.toml"
        broken.write_text("[cameras.cam1\nusername = ")

        with pytest.raises(ConfigError, match="Invalid TOML"):
            ConfigManager().read_config([broken])

    def test_empty_file_gives_no_cameras(self, tmp_path):
        from rtsp_recorder.core.config_manager import ConfigManager

        empty = tmp_path / "empty.toml"
        empty.write_text("")

        config = ConfigManager().read_config([empty])

        assert dict(config.cameras) == {}
        assert config.stream_count == 0


class TestBuildConfig:
    """Test validation of merged data."""

    def test_stream_without_source_url(self):
        from rtsp_recorder.core.config_manager import ConfigError, ConfigManager

        data = {"cameras": {"cam1": {"streams": {"front": {}}}}}

        with pytest.raises(ConfigError, match="cameras.cam1.streams.front.source_url is required"):
            ConfigManager().build_config(data)

    def test_non_string_password(self):
        from rtsp_recorder.core.config_manager import ConfigError, ConfigManager

        data = {"cameras": {"cam1": {"password": 1234, "streams": {}}}}

        with pytest.raises(ConfigError, match="cameras.cam1.password must be a string"):
            ConfigManager().build_config(data)

    def test_camera_must_be_table(self):
        from rtsp_recorder.core.config_manager import ConfigError, ConfigManager

        with pytest.raises(ConfigError, match="cameras.cam1 must be a table"):
            ConfigManager().build_config({"cameras": {"cam1": "rtsp://host/live"}})

    def test_camera_without_streams_warns(self, caplog):
        import logging

        from rtsp_recorder.core.config_manager import ConfigManager

        with caplog.at_level(logging.WARNING, logger="rtsp_recorder"):
            config = ConfigManager().build_config({"cameras": {"idle": {"username": "x"}}})

        assert list(config.cameras["idle"].streams) == []
        assert any("Camera idle has no streams configured" in r.getMessage() for r in caplog.records)

    def test_recordings_root_expands_user(self, monkeypatch, tmp_path):
        from rtsp_recorder.core.config_manager import ConfigManager

        monkeypatch.setenv("HOME", str(tmp_path))
        config = ConfigManager().build_config({"recorder": {"recordings_root": "~/rec"}})

        assert config.recordings_root == tmp_path / "rec"


class TestReadConfigAsync:
    """Test the aiofiles-based reader."""

    @pytest.mark.asyncio
    async def test_matches_sync_reader(self, config_files):
        from rtsp_recorder.core.config_manager import ConfigManager

        manager = ConfigManager()
        sync_config = manager.read_config(config_files)
        async_config = await manager.read_config_async(config_files)

        assert async_config.recordings_root == sync_config.recordings_root
        assert async_config.ffmpeg_path == sync_config.ffmpeg_path
        assert {k: dict(v.streams) for k, v in async_config.cameras.items()} == {
            k: dict(v.streams) for k, v in sync_config.cameras.items()
        }

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        from rtsp_recorder.core.config_manager import ConfigError, ConfigManager

        with pytest.raises(ConfigError):
            await ConfigManager().read_config_async([tmp_path / "absent.toml"])

    def test_singleton(self):
        from rtsp_recorder.core.config_manager import get_config_manager

        assert get_config_manager() is get_config_manager()
