"""Mock implementations of recorder processes and launchers."""

from tests.infrastructure.mocks.recorder_mocks import MockProcessLauncher, MockRecorderProcess

__all__ = ["MockProcessLauncher", "MockRecorderProcess"]
