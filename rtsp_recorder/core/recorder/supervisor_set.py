import asyncio
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from rtsp_recorder.core.asyncio_utils import cancel_and_wait, create_logged_task
from rtsp_recorder.core.logging_utils import get_module_logger

from ..paths import DEFAULT_RECORDINGS_ROOT
from .backoff import BackoffPolicy
from .models import Camera, StreamTarget
from .process_launcher import ProcessLauncher
from .stream_supervisor import StreamSupervisor

SupervisorKey = Tuple[str, str]


def build_stream_targets(cameras: Mapping[str, Camera], recordings_root: Path) -> List[StreamTarget]:
    """One StreamTarget per (camera, stream) pair, sorted by camera then stream id."""
    return [
        StreamTarget.resolve(camera_id, stream_id, cameras[camera_id], recordings_root)
        for camera_id in sorted(cameras)
        for stream_id in cameras[camera_id].streams
    ]


class SupervisorSet:
    """Runs one independent StreamSupervisor per configured (camera, stream) pair.

    Supervisors share nothing but the stop event and the launcher, which holds
    no per-stream state. There is no way to stop or reconfigure a
    single stream: :meth:`stop` ends all of them.
    """

    def __init__(
        self,
        cameras: Mapping[str, Camera],
        recordings_root: Path = DEFAULT_RECORDINGS_ROOT,
        *,
        launcher: Optional[ProcessLauncher] = None,
        backoff: Optional[BackoffPolicy] = None,
        stop_event: Optional[asyncio.Event] = None,
    ):
        self.recordings_root = Path(recordings_root)
        self.launcher = launcher or ProcessLauncher()
        self.stop_event = stop_event or asyncio.Event()
        self.logger = get_module_logger("SupervisorSet")

        self.supervisors: Dict[SupervisorKey, StreamSupervisor] = {}
        for target in build_stream_targets(cameras, self.recordings_root):
            self.supervisors[(target.camera_id, target.stream_id)] = StreamSupervisor(
                target.camera_id,
                target.stream_id,
                cameras[target.camera_id],
                self.recordings_root,
                launcher=self.launcher,
                backoff=backoff,
                stop_event=self.stop_event,
            )

        self._tasks: Dict[SupervisorKey, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self.supervisors)

    @property
    def tasks(self) -> List[asyncio.Task]:
        return list(self._tasks.values())

    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    def start(self) -> List[asyncio.Task]:
        if self._tasks:
            self.logger.warning("Supervisors already started")
            return self.tasks

        if not self.supervisors:
            self.logger.warning("No streams configured; nothing to record")

        for key, supervisor in self.supervisors.items():
            camera_id, stream_id = key
            self.logger.info("Starting recorder for camera %s stream %s", camera_id, stream_id)
            self._tasks[key] = create_logged_task(
                supervisor.run(),
                logger=self.logger,
                context=f"recorder:{camera_id}/{stream_id}",
            )

        self.logger.info("Started %d stream supervisor(s)", len(self._tasks))
        return self.tasks

    async def run(self) -> None:
        """Start every supervisor and wait until all of them have stopped."""
        tasks = self.start()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def stop(self, timeout: float = 10.0) -> None:
        """Signal every supervisor to stop and wait for their recorders to exit."""
        self.logger.info("Stopping %d stream supervisor(s)", len(self._tasks))
        self.stop_event.set()

        pending = [task for task in self._tasks.values() if not task.done()]
        if pending:
            done, still_running = await asyncio.wait(pending, timeout=timeout)
            if still_running:
                self.logger.warning(
                    "%d supervisor(s) did not stop within %.1fs, cancelling",
                    len(still_running), timeout,
                )
                await cancel_and_wait(still_running)

        self.logger.info("All stream supervisors stopped")


__all__ = ["SupervisorSet", "build_stream_targets"]
