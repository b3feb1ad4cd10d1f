from .config_manager import ConfigError, ConfigManager, RecorderConfig, get_config_manager
from .recorder import (
    Camera,
    ProcessLauncher,
    RecordingProfile,
    Stream,
    StreamSupervisor,
    StreamTarget,
    SupervisorSet,
    SupervisorState,
)
from .shutdown_coordinator import ShutdownCoordinator, get_shutdown_coordinator

__all__ = [
    'Camera',
    'ConfigError',
    'ConfigManager',
    'ProcessLauncher',
    'RecorderConfig',
    'RecordingProfile',
    'ShutdownCoordinator',
    'Stream',
    'StreamSupervisor',
    'StreamTarget',
    'SupervisorSet',
    'SupervisorState',
    'get_config_manager',
    'get_shutdown_coordinator',
]
