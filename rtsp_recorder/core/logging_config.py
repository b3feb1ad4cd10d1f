"""Root logging configuration for the recorder process."""

from __future__ import annotations

import contextlib
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, List, Optional, Union

# file:line [LEVEL] HH:MM:SS.mmm - message
LOG_FORMAT = "%(filename)s:%(lineno)d [%(levelname)s] %(asctime)s.%(msecs)03d - %(message)s"
LOG_DATEFMT = "%H:%M:%S"
_DEFAULT_MAX_BYTES = 5 * 1024 * 1024  # ffmpeg output is chatty on flaky links
_DEFAULT_BACKUP_COUNT = 3

_configured = False


def coerce_level(level: Union[int, str]) -> int:
    if not isinstance(level, str):
        return int(level)
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level '{level}'")
    return numeric


def _build_handlers(
    console: bool,
    log_file: Optional[Union[str, Path]],
    max_bytes: int,
    backup_count: int,
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        ))
    if not handlers:
        # Nothing requested; records still need somewhere to go
        handlers.append(logging.StreamHandler(sys.stderr))
    return handlers


def _detach_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        root.removeHandler(handler)
        with contextlib.suppress(Exception):
            handler.close()


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    force: bool = False,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = _DEFAULT_MAX_BYTES,
    backup_count: int = _DEFAULT_BACKUP_COUNT,
    suppressed_loggers: Iterable[str] = ("asyncio",),
) -> None:
    """Install the recorder's handlers on the root logger.

    A second call without ``force`` only changes the level and keeps the
    handlers installed by the first call.

    Args:
        level: Logging level as an int or a name such as "debug".
        force: Replace existing handlers even if already configured.
        console: Emit to stdout.
        log_file: Also write to this rotating file.
        max_bytes: Size at which the log file rotates.
        backup_count: Rotated files to keep.
        suppressed_loggers: Logger names kept at WARNING or above.
    """

    global _configured
    numeric_level = coerce_level(level)
    root = logging.getLogger()
    root.setLevel(numeric_level)

    if _configured and not force:
        return

    _detach_handlers(root)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    for handler in _build_handlers(console, log_file, max_bytes, backup_count):
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    quiet_level = max(numeric_level, logging.WARNING)
    for name in suppressed_loggers:
        logging.getLogger(name).setLevel(quiet_level)

    _configured = True


__all__ = ["configure_logging", "coerce_level", "LOG_FORMAT", "LOG_DATEFMT"]
