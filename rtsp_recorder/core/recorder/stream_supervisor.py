import asyncio
import contextlib
from enum import Enum
from pathlib import Path
from typing import Optional

from rtsp_recorder.core.logging_utils import get_module_logger

from .backoff import DEFAULT_BACKOFF, BackoffPolicy
from .models import Camera, StreamTarget
from .output_relay import OutputRelay
from .process_launcher import DirectoryCreationError, LaunchError, ProcessLauncher, RecorderProcess

# A recorder that stayed up this long resets the consecutive-failure count
HEALTHY_RUNTIME = 60.0
TERMINATE_TIMEOUT = 5.0


class SupervisorState(Enum):
    PREPARING = "preparing"
    LAUNCHING = "launching"
    STREAMING = "streaming"
    COOLDOWN = "cooldown"
    STOPPED = "stopped"


class StreamSupervisor:
    """Keeps one recorder process alive for a single (camera, stream) pair.

    Each cycle runs Preparing -> Launching -> Streaming -> Cooldown and starts
    over. Failures at any step are logged and retried after the backoff
    policy's delay; the loop only ends when ``stop_event`` is set or the task
    running :meth:`run` is cancelled. Either way the child process is
    terminated before the supervisor returns.
    """

    def __init__(
        self,
        camera_id: str,
        stream_id: str,
        camera: Camera,
        recordings_root: Path,
        *,
        launcher: Optional[ProcessLauncher] = None,
        backoff: Optional[BackoffPolicy] = None,
        stop_event: Optional[asyncio.Event] = None,
        healthy_runtime: float = HEALTHY_RUNTIME,
        terminate_timeout: float = TERMINATE_TIMEOUT,
    ):
        if stream_id not in camera.streams:
            raise KeyError(f"Camera {camera_id} has no stream {stream_id}")

        self.camera_id = camera_id
        self.stream_id = stream_id
        self.camera = camera
        self.recordings_root = Path(recordings_root)
        self.launcher = launcher or ProcessLauncher()
        self.backoff = backoff or DEFAULT_BACKOFF
        self.healthy_runtime = healthy_runtime
        self.terminate_timeout = terminate_timeout

        self.logger = get_module_logger(f"StreamSupervisor.{camera_id}.{stream_id}")
        self.relay = OutputRelay(camera_id, stream_id)

        self._stop_event = stop_event or asyncio.Event()
        self.state = SupervisorState.STOPPED
        self.target = self._resolve_target()
        self.process: Optional[RecorderProcess] = None
        self.launch_count = 0
        self.last_exit_code: Optional[int] = None
        self._restart_failures = 0
        self._setup_failures = 0

    # ------------------------------------------------------------------
    # Queries

    @property
    def stop_event(self) -> asyncio.Event:
        return self._stop_event

    def get_state(self) -> SupervisorState:
        return self.state

    def is_streaming(self) -> bool:
        return self.process is not None and self.process.is_running()

    # ------------------------------------------------------------------
    # Supervision loop

    async def run(self) -> None:
        self.logger.info(
            "Supervising camera %s stream %s from %s into %s",
            self.camera_id, self.stream_id, self.target.redacted_url, self.target.output_path,
        )
        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_once()
                except Exception:
                    self._restart_failures += 1
                    self.logger.exception(
                        "Unexpected error supervising camera %s, stream %s",
                        self.camera_id, self.stream_id,
                    )
                    await self._cooldown(self.backoff.restart_delay(self._restart_failures))
        finally:
            self._set_state(SupervisorState.STOPPED)
            self.logger.info("Stopped supervising camera %s stream %s", self.camera_id, self.stream_id)

    async def run_once(self) -> None:
        """Run a single Preparing -> Launching -> Streaming -> Cooldown cycle."""
        self._set_state(SupervisorState.PREPARING)
        # Re-resolved every cycle so nothing stale carries across restarts
        target = self._resolve_target()
        self.target = target

        try:
            self.launcher.prepare(target)
        except DirectoryCreationError as e:
            self._setup_failures += 1
            self.logger.error(
                "Failed to create directory %s for recordings; error: %s", e.path, e.cause
            )
            await self._sleep(self.backoff.setup_retry_delay(self._setup_failures))
            return
        self._setup_failures = 0
        if self._stop_event.is_set():
            return

        self._set_state(SupervisorState.LAUNCHING)
        try:
            process = await self.launcher.launch(target)
        except LaunchError as e:
            self._restart_failures += 1
            if e.resource_exhausted:
                self.logger.critical("%s (host out of resources)", e)
            else:
                self.logger.error("%s", e)
            await self._cooldown(self.backoff.restart_delay(self._restart_failures))
            return

        self.launch_count += 1
        self._set_state(SupervisorState.STREAMING)
        loop = asyncio.get_running_loop()
        started = loop.time()
        self.process = process
        try:
            self.last_exit_code = await self._stream(process)
        finally:
            self.process = None

        if loop.time() - started >= self.healthy_runtime:
            self._restart_failures = 0
        self._restart_failures += 1

        if not self._stop_event.is_set():
            self.logger.warning(
                "Recorder process for camera %s, stream %s exited with code %s",
                self.camera_id, self.stream_id, self.last_exit_code,
            )
        await self._cooldown(self.backoff.restart_delay(self._restart_failures))

    # ------------------------------------------------------------------
    # Internal helpers

    def _resolve_target(self) -> StreamTarget:
        return StreamTarget.resolve(self.camera_id, self.stream_id, self.camera, self.recordings_root)

    def _set_state(self, state: SupervisorState) -> None:
        if state is not self.state:
            self.logger.debug("State %s -> %s", self.state.value, state.value)
        self.state = state

    async def _stream(self, process: RecorderProcess) -> int:
        watcher = asyncio.create_task(self._terminate_on_stop(process))
        try:
            await self.relay.relay(process.lines())
            return await process.wait()
        finally:
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher
            if process.is_running():
                await process.terminate(self.terminate_timeout)

    async def _terminate_on_stop(self, process: RecorderProcess) -> None:
        await self._stop_event.wait()
        self.logger.info(
            "Stopping recorder for camera %s stream %s (pid %d)",
            self.camera_id, self.stream_id, process.pid,
        )
        await process.terminate(self.terminate_timeout)

    async def _cooldown(self, delay: float) -> None:
        self._set_state(SupervisorState.COOLDOWN)
        await self._sleep(delay)

    async def _sleep(self, delay: float) -> None:
        """Wait ``delay`` seconds, returning early once stop is requested."""
        if delay <= 0 or self._stop_event.is_set():
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass


__all__ = ["HEALTHY_RUNTIME", "StreamSupervisor", "SupervisorState", "TERMINATE_TIMEOUT"]
