from typing import AsyncIterable

from rtsp_recorder.core.logging_utils import get_module_logger

from .models import redact_credentials


class OutputRelay:
    """Forwards recorder output lines to the log, tagged with camera and stream.

    Lines are opaque diagnostic text. The only rewriting is masking URL
    credentials, since ffmpeg echoes its input URL in most connection errors.
    """

    def __init__(self, camera_id: str, stream_id: str):
        self.camera_id = camera_id
        self.stream_id = stream_id
        self.logger = get_module_logger(f"Recorder.{camera_id}.{stream_id}")

    def format(self, line: str) -> str:
        text = line.rstrip()
        if "@" in text:
            text = redact_credentials(text)
        return f"Camera {self.camera_id} stream {self.stream_id}: {text}"

    def forward(self, line: str) -> None:
        self.logger.info(self.format(line))

    async def relay(self, lines: AsyncIterable[str]) -> int:
        """Forward every line in order; returns how many were forwarded."""
        count = 0
        async for line in lines:
            self.forward(line)
            count += 1
        return count


__all__ = ["OutputRelay"]
