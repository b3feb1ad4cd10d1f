"""Camera/stream configuration records and the resolved per-stream target."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from ..paths import stream_playlist_path

CameraId = str
StreamId = str

# scheme://user[:password]@ inside arbitrary text (ffmpeg diagnostics included)
_USERINFO_PATTERN = re.compile(r"(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*://)(?P<userinfo>[^\s/?#]+)@")
REDACTED_USERINFO = "***:***"


def merge_credentials(
    url: str,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> str:
    """Return ``url`` with camera credentials written into its userinfo.

    A credential the camera sets replaces the one already in the URL; one it
    leaves unset keeps whatever the URL carries. Everything after the
    authority (path, query, fragment) is passed through untouched.
    """
    if username is None and password is None:
        return url

    parts = urlsplit(url)
    userinfo, _, hostport = parts.netloc.rpartition("@")
    current_user, colon, current_password = userinfo.partition(":")

    new_user = quote(username, safe="") if username is not None else current_user
    if password is not None:
        new_password = quote(password, safe="")
        colon = ":"
    else:
        new_password = current_password

    merged = f"{new_user}{colon}{new_password}"
    netloc = f"{merged}@{hostport}" if merged else hostport
    return urlunsplit(parts._replace(netloc=netloc))


def redact_credentials(text: str) -> str:
    """Mask every ``scheme://user:pass@`` occurrence in ``text``."""
    return _USERINFO_PATTERN.sub(rf"\g<scheme>{REDACTED_USERINFO}@", text)


@dataclass(frozen=True)
class Stream:
    source_url: str


@dataclass(frozen=True)
class Camera:
    username: Optional[str] = None
    password: Optional[str] = None
    streams: Mapping[StreamId, Stream] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Ordered by id so startup logs come out the same every run
        ordered = {stream_id: self.streams[stream_id] for stream_id in sorted(self.streams)}
        object.__setattr__(self, "streams", MappingProxyType(ordered))

    def resolve_source_url(self, stream_id: StreamId) -> str:
        return merge_credentials(self.streams[stream_id].source_url, self.username, self.password)


@dataclass(frozen=True)
class StreamTarget:
    """Everything needed to launch the recorder for one (camera, stream) pair."""

    camera_id: CameraId
    stream_id: StreamId
    source_url: str = field(repr=False)
    output_path: Path

    @classmethod
    def resolve(
        cls,
        camera_id: CameraId,
        stream_id: StreamId,
        camera: Camera,
        recordings_root: Path,
    ) -> "StreamTarget":
        return cls(
            camera_id=camera_id,
            stream_id=stream_id,
            source_url=camera.resolve_source_url(stream_id),
            output_path=stream_playlist_path(recordings_root, camera_id, stream_id),
        )

    @property
    def output_dir(self) -> Path:
        return self.output_path.parent

    @property
    def redacted_url(self) -> str:
        return redact_credentials(self.source_url)

    @property
    def label(self) -> str:
        return f"{self.camera_id}/{self.stream_id}"


__all__ = [
    "Camera",
    "CameraId",
    "Stream",
    "StreamId",
    "StreamTarget",
    "merge_credentials",
    "redact_credentials",
]
