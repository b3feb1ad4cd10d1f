"""
Per-stream recorder supervision.

One StreamSupervisor per (camera, stream) pair keeps an ffmpeg process
recording that stream into a rolling HLS playlist, restarting it forever.
"""

from .backoff import BackoffPolicy, ExponentialBackoff, FixedBackoff
from .models import Camera, Stream, StreamTarget, merge_credentials, redact_credentials
from .output_relay import OutputRelay
from .process_launcher import (
    DirectoryCreationError,
    LaunchError,
    ProcessLauncher,
    RecorderProcess,
    RecordingProfile,
)
from .stream_supervisor import StreamSupervisor, SupervisorState
from .supervisor_set import SupervisorSet, build_stream_targets

__all__ = [
    # Data
    'Camera',
    'Stream',
    'StreamTarget',
    'merge_credentials',
    'redact_credentials',
    # Backoff
    'BackoffPolicy',
    'ExponentialBackoff',
    'FixedBackoff',
    # Process
    'DirectoryCreationError',
    'LaunchError',
    'ProcessLauncher',
    'RecorderProcess',
    'RecordingProfile',
    'OutputRelay',
    # Supervision
    'StreamSupervisor',
    'SupervisorState',
    'SupervisorSet',
    'build_stream_targets',
]
