"""Unit test fixtures for isolated, fast test execution.

Fixtures in this file complement the root conftest.py fixtures. The root
conftest provides project_root, recordings_root and the sample cameras;
this file provides supervision helpers:

- fast_backoff: restart/setup delays short enough for real-time tests
- stop_event: the shared stop signal handed to supervisors
- launcher_factory: builds MockProcessLauncher instances wired to stop_event
- supervisor_factory: builds StreamSupervisor instances around a mock launcher
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable

import pytest

from tests.infrastructure.mocks.recorder_mocks import MockProcessLauncher

FAST_RESTART = 0.05
FAST_SETUP_RETRY = 0.2


@pytest.fixture(scope="function")
def fast_backoff():
    """FixedBackoff with restart/setup-retry delays scaled down for tests."""
    from rtsp_recorder.core.recorder.backoff import FixedBackoff
    return FixedBackoff(restart=FAST_RESTART, setup_retry=FAST_SETUP_RETRY)


@pytest.fixture(scope="function")
def stop_event() -> asyncio.Event:
    return asyncio.Event()


@pytest.fixture(scope="function")
def launcher_factory(stop_event) -> Callable[..., MockProcessLauncher]:
    """Factory for MockProcessLauncher sharing the test's stop_event.

    Example:
        def test_restarts(launcher_factory):
            launcher = launcher_factory(stop_after=3)
    """
    def factory(**kwargs) -> MockProcessLauncher:
        kwargs.setdefault("stop_event", stop_event)
        return MockProcessLauncher(**kwargs)

    return factory


@pytest.fixture(scope="function")
def supervisor_factory(recordings_root: Path, plain_camera, fast_backoff, stop_event):
    """Factory for StreamSupervisor bound to camera ``cam1`` stream ``front``."""
    from rtsp_recorder.core.recorder.stream_supervisor import StreamSupervisor

    def factory(launcher, *, camera=None, **kwargs):
        kwargs.setdefault("backoff", fast_backoff)
        kwargs.setdefault("stop_event", stop_event)
        return StreamSupervisor(
            "cam1",
            "front",
            camera or plain_camera,
            recordings_root,
            launcher=launcher,
            **kwargs,
        )

    return factory
