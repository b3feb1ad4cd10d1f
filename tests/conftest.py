"""Shared pytest configuration and fixtures for the recorder test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "ffmpeg: mark test as requiring a real ffmpeg binary"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-ffmpeg",
        action="store_true",
        default=False,
        help="Run tests that launch a real ffmpeg binary",
    )


def pytest_collection_modifyitems(config, items):
    """Skip ffmpeg tests unless --run-ffmpeg is specified."""
    if config.getoption("--run-ffmpeg"):
        return

    skip_ffmpeg = pytest.mark.skip(reason="Need --run-ffmpeg option to run")
    for item in items:
        if "ffmpeg" in item.keywords:
            item.add_marker(skip_ffmpeg)


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def recordings_root(tmp_path) -> Path:
    """Return an empty recordings root inside the test's temp directory."""
    return tmp_path / "recordings"


@pytest.fixture
def plain_camera():
    """Camera ``cam1`` style entry without credentials and one ``front`` stream."""
    from rtsp_recorder.core.recorder.models import Camera, Stream
    return Camera(streams={"front": Stream(source_url="rtsp://host/live")})


@pytest.fixture
def secured_camera():
    """Camera with username ``u`` / password ``p`` and one ``front`` stream."""
    from rtsp_recorder.core.recorder.models import Camera, Stream
    return Camera(
        username="u",
        password="p",
        streams={"front": Stream(source_url="rtsp://host/live")},
    )


@pytest.fixture
def reset_logging_config():
    """Let tests call configure_logging without leaking handlers."""
    import logging

    from _pytest.logging import LogCaptureHandler

    import rtsp_recorder.core.logging_config as logging_config

    root = logging.getLogger()
    asyncio_logger = logging.getLogger("asyncio")
    saved_handlers = list(root.handlers)
    saved_level = root.level
    saved_asyncio_level = asyncio_logger.level
    saved_configured = logging_config._configured
    yield logging_config
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    # pytest re-adds its per-phase capture handlers itself
    for handler in saved_handlers:
        if handler not in root.handlers and not isinstance(handler, LogCaptureHandler):
            root.addHandler(handler)
    root.setLevel(saved_level)
    asyncio_logger.setLevel(saved_asyncio_level)
    logging_config._configured = saved_configured
