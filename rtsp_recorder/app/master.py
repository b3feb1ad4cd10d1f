import argparse
import asyncio
import logging
import signal
from pathlib import Path
from typing import Callable, Optional

from rtsp_recorder import __version__
from rtsp_recorder.core import (
    ConfigError,
    ProcessLauncher,
    RecordingProfile,
    ShutdownCoordinator,
    SupervisorSet,
    get_config_manager,
    get_shutdown_coordinator,
)
from rtsp_recorder.core.asyncio_utils import create_logged_task
from rtsp_recorder.core.logging_config import configure_logging
from rtsp_recorder.core.logging_utils import get_module_logger
from rtsp_recorder.core.orphan_cleanup import cleanup_orphaned_recorders
from rtsp_recorder.core.paths import DEFAULT_FFMPEG_PATH, DEFAULT_RECORDINGS_ROOT


logger = get_module_logger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="rtsp-recorder",
        description="Records RTSP streams into rolling HLS playlists, restarting ffmpeg whenever it exits.",
    )

    parser.add_argument(
        "-c", "--config",
        dest="config",
        action="extend",
        nargs="+",
        type=Path,
        required=True,
        metavar="FILE",
        help="TOML file with camera config; may be repeated, later files override earlier ones",
    )

    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        help="Print debug log information",
    )

    parser.add_argument(
        "--recordings-root",
        type=Path,
        default=None,
        help=f"Directory that receives <camera>/<stream>/ playlists (default: {DEFAULT_RECORDINGS_ROOT})",
    )

    parser.add_argument(
        "--ffmpeg",
        dest="ffmpeg_path",
        default=None,
        help=f"ffmpeg executable to launch (default: {DEFAULT_FFMPEG_PATH})",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this rotating file",
    )

    console_group = parser.add_mutually_exclusive_group()
    console_group.add_argument(
        "--console",
        dest="console_output",
        action="store_true",
        default=True,
        help="Log to stdout (default)",
    )
    console_group.add_argument(
        "--no-console",
        dest="console_output",
        action="store_false",
        help="Log to file only",
    )

    parser.add_argument(
        "--skip-orphan-cleanup",
        action="store_true",
        help="Do not reap ffmpeg recorders left behind by a previous run",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


def _make_signal_handler(
    coordinator: ShutdownCoordinator,
    pending: set[asyncio.Task],
) -> Callable[[signal.Signals], None]:
    def signal_handler(sig: signal.Signals) -> None:
        if coordinator.is_shutting_down or coordinator.is_complete or pending:
            logger.info("Received %s, shutdown already underway", sig.name)
            return
        logger.info("Received %s, shutting down", sig.name)
        create_logged_task(
            coordinator.initiate_shutdown(f"signal {sig.name}"),
            logger=logger,
            context=f"shutdown:{sig.name}",
            pending=pending,
        )

    return signal_handler


def _install_signal_handlers(
    coordinator: ShutdownCoordinator,
    pending: set[asyncio.Task],
) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed = []
    signal_handler = _make_signal_handler(coordinator, pending)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler, sig)
            installed.append(sig)
        except NotImplementedError:
            pass  # Windows doesn't support add_signal_handler

    return installed


async def run_supervisors(
    supervisor_set: SupervisorSet,
    coordinator: Optional[ShutdownCoordinator] = None,
) -> int:
    """Run every stream supervisor until a shutdown is requested."""
    coordinator = coordinator or get_shutdown_coordinator()
    coordinator.register_cleanup(supervisor_set.stop)

    shutdown_tasks: set[asyncio.Task] = set()
    installed = _install_signal_handlers(coordinator, shutdown_tasks)
    loop = asyncio.get_running_loop()

    supervisor_set.start()
    try:
        await coordinator.wait_for_shutdown()
    finally:
        if shutdown_tasks:
            await asyncio.gather(*shutdown_tasks, return_exceptions=True)
        if not coordinator.is_complete:
            await coordinator.initiate_shutdown("finally block")
        for sig in installed:
            loop.remove_signal_handler(sig)

    return 0


async def main(argv: Optional[list[str]] = None) -> int:
    """
    Entry point for the recorder.

    Reads the camera config, reaps recorders orphaned by an earlier crash,
    then runs one supervisor per (camera, stream) until SIGINT/SIGTERM.
    Returns 1 when the configuration cannot be loaded, 0 after shutdown.
    """
    args = parse_args(argv)

    configure_logging(
        logging.DEBUG if args.debug else logging.INFO,
        force=True,
        console=args.console_output,
        log_file=args.log_file,
    )

    try:
        config = await get_config_manager().read_config_async(args.config)
    except ConfigError as e:
        logger.error("%s", e)
        return 1

    recordings_root = args.recordings_root or config.recordings_root or DEFAULT_RECORDINGS_ROOT
    ffmpeg_path = args.ffmpeg_path or config.ffmpeg_path or DEFAULT_FFMPEG_PATH

    logger.info("=" * 60)
    logger.info("RTSP Recorder %s starting", __version__)
    logger.info("Config files: %s", ", ".join(str(p) for p in args.config))
    logger.info("Recordings root: %s", recordings_root)
    logger.info("Cameras: %d, streams: %d", len(config.cameras), config.stream_count)
    logger.info("=" * 60)

    if not args.skip_orphan_cleanup:
        try:
            reaped = await asyncio.to_thread(cleanup_orphaned_recorders, recordings_root, ffmpeg_path)
            if reaped:
                logger.info("Reaped %d orphaned recorder(s)", reaped)
        except Exception as e:
            logger.warning("Orphan cleanup failed: %s", e)

    launcher = ProcessLauncher(RecordingProfile(ffmpeg_path=ffmpeg_path))
    supervisor_set = SupervisorSet(config.cameras, recordings_root, launcher=launcher)
    return await run_supervisors(supervisor_set)
