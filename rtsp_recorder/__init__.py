"""Top-level package for the RTSP recorder."""

from __future__ import annotations

import asyncio
from importlib import metadata
from typing import Optional, Sequence

try:
    __version__ = metadata.version("rtsp-recorder")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.1.0"

from .app.master import main  # noqa: E402


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Run the async entry point; returns the process exit code."""
    return asyncio.run(main(list(argv) if argv is not None else None))


__all__ = ["__version__", "main", "run"]
