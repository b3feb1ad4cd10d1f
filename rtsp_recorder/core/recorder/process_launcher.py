import asyncio
import errno
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

from rtsp_recorder.core.logging_utils import get_module_logger

from ..paths import DEFAULT_FFMPEG_PATH
from .models import StreamTarget, redact_credentials

# asyncio's default 64 KiB line limit is too small for some ffmpeg dumps
STREAM_LIMIT = 1024 * 1024

_RESOURCE_ERRNOS = frozenset({errno.EAGAIN, errno.ENOMEM, errno.EMFILE, errno.ENFILE})


class DirectoryCreationError(Exception):
    """The destination directory for a stream could not be created."""

    def __init__(self, path: Path, cause: OSError):
        super().__init__(f"Failed to create directory {path}: {cause}")
        self.path = path
        self.cause = cause


class LaunchError(Exception):
    """The recorder process could not be spawned at all."""

    def __init__(self, target: StreamTarget, cause: BaseException):
        super().__init__(
            f"Failed to spawn recorder process for camera {target.camera_id}, "
            f"stream {target.stream_id}: {redact_credentials(str(cause))}"
        )
        self.target = target
        self.cause = cause

    @property
    def resource_exhausted(self) -> bool:
        return isinstance(self.cause, OSError) and self.cause.errno in _RESOURCE_ERRNOS


@dataclass(frozen=True)
class RecordingProfile:
    """Fixed ffmpeg invocation template: stream copy into a rolling HLS playlist."""

    ffmpeg_path: str = DEFAULT_FFMPEG_PATH
    log_level: str = "warning"
    rtsp_transport: str = "tcp"
    gop_size: int = 30
    segment_seconds: int = 10
    playlist_size: int = 60480
    hls_flags: Tuple[str, ...] = ("append_list", "delete_segments")
    strftime: bool = True


class RecorderProcess:
    """Handle for one running recorder; stderr is merged into stdout."""

    def __init__(self, process: asyncio.subprocess.Process, target: StreamTarget):
        self._process = process
        self.target = target
        self.logger = get_module_logger(f"RecorderProcess.{target.camera_id}.{target.stream_id}")

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    def is_running(self) -> bool:
        return self._process.returncode is None

    async def lines(self) -> AsyncIterator[str]:
        """Yield decoded output lines until the process closes its output.

        A line longer than the reader's limit is dropped whole, up to and
        including its newline.
        """
        stdout = self._process.stdout
        if stdout is None:
            return

        discarding = False
        while True:
            try:
                raw = await stdout.readuntil(b"\n")
            except asyncio.IncompleteReadError as e:
                # EOF; whatever is left is an unterminated last line
                if e.partial and not discarding:
                    yield e.partial.decode("utf-8", errors="replace")
                break
            except asyncio.LimitOverrunError as e:
                if not discarding:
                    self.logger.debug("Dropping oversized output line from pid %d", self.pid)
                discarding = True
                await stdout.readexactly(e.consumed)
                continue

            if discarding:
                # Tail of the oversized line
                discarding = False
                continue
            yield raw.decode("utf-8", errors="replace")

    async def wait(self) -> int:
        return await self._process.wait()

    async def terminate(self, timeout: float = 5.0) -> int:
        """Stop the process, escalating to SIGKILL after ``timeout`` seconds."""
        if self._process.returncode is not None:
            return self._process.returncode

        try:
            self._process.terminate()
        except ProcessLookupError:
            return await self._process.wait()

        try:
            return await asyncio.wait_for(self._process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.warning("Recorder pid %d did not exit after SIGTERM, killing...", self.pid)
            try:
                self._process.kill()
            except ProcessLookupError:
                pass
            return await self._process.wait()


class ProcessLauncher:
    """Builds the ffmpeg command for a StreamTarget and starts it."""

    def __init__(self, profile: Optional[RecordingProfile] = None, *, stream_limit: int = STREAM_LIMIT):
        self.profile = profile or RecordingProfile()
        self.stream_limit = stream_limit
        self.logger = get_module_logger("ProcessLauncher")

    def build_command(self, target: StreamTarget) -> List[str]:
        profile = self.profile
        cmd = [
            profile.ffmpeg_path,
            "-loglevel", profile.log_level,
            # TCP avoids "frame size not set" on some container builds
            "-rtsp_transport", profile.rtsp_transport,
            "-i", target.source_url,
        ]
        if profile.strftime:
            cmd.extend(["-strftime", "1"])
        cmd.extend([
            "-c", "copy",
            "-flags", "+cgop", "-g", str(profile.gop_size),
            "-hls_time", str(profile.segment_seconds),
            "-hls_list_size", str(profile.playlist_size),
            "-hls_flags", "+".join(profile.hls_flags),
            str(target.output_path),
        ])
        return cmd

    def prepare(self, target: StreamTarget) -> Path:
        """Create the destination directory; safe to call before every launch."""
        output_dir = target.output_dir
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryCreationError(output_dir, e) from e
        return output_dir

    async def launch(self, target: StreamTarget) -> RecorderProcess:
        cmd = self.build_command(target)
        self.logger.debug("Command: %s", redact_credentials(" ".join(cmd)))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                limit=self.stream_limit,
            )
        except (OSError, ValueError) as e:
            raise LaunchError(target, e) from e

        self.logger.info(
            "Started recorder for camera %s stream %s with PID: %d",
            target.camera_id, target.stream_id, process.pid,
        )
        return RecorderProcess(process, target)


__all__ = [
    "DirectoryCreationError",
    "LaunchError",
    "ProcessLauncher",
    "RecorderProcess",
    "RecordingProfile",
    "STREAM_LIMIT",
]
