"""Cleanup of recorder processes orphaned by a previous run.

If the recorder is killed without a chance to stop its children, the ffmpeg
processes keep appending to the playlists. A fresh start would then run two
writers per stream, so they are reaped on startup.
"""

import os
from pathlib import Path
from typing import List

import psutil

from rtsp_recorder.core.logging_utils import get_module_logger

from .recorder.models import redact_credentials

logger = get_module_logger("OrphanCleanup")


def _is_recorder_cmdline(cmdline: List[str], recordings_root: Path, ffmpeg_name: str) -> bool:
    if not cmdline:
        return False
    if Path(cmdline[0]).name != ffmpeg_name:
        return False
    if "-hls_flags" not in cmdline:
        return False
    root = str(recordings_root).rstrip("/") + "/"
    return any(arg.startswith(root) for arg in cmdline)


def find_orphaned_recorders(recordings_root: Path, ffmpeg_path: str = "ffmpeg") -> List[psutil.Process]:
    """Find ffmpeg recorders writing under ``recordings_root`` whose parent is gone.

    A process re-parented to PID 1 (or with no parent at all) is treated as
    orphaned. Recorders owned by a live supervisor are left alone.
    """
    orphaned = []
    current_pid = os.getpid()
    ffmpeg_name = Path(ffmpeg_path).name

    for proc in psutil.process_iter(['pid', 'cmdline']):
        try:
            if proc.pid == current_pid:
                continue

            cmdline = proc.info.get('cmdline') or []
            if not _is_recorder_cmdline(cmdline, recordings_root, ffmpeg_name):
                continue

            try:
                parent = proc.parent()
            except psutil.NoSuchProcess:
                parent = None

            if parent is None or parent.pid == 1:
                orphaned.append(proc)
                logger.debug(
                    "Found orphaned recorder: pid=%d, cmd=%s",
                    proc.pid, redact_credentials(' '.join(cmdline))[:120],
                )

        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue

    return orphaned


def cleanup_orphaned_recorders(
    recordings_root: Path,
    ffmpeg_path: str = "ffmpeg",
    timeout: float = 5.0,
) -> int:
    """Terminate orphaned recorders, killing any that outlive ``timeout``.

    Returns:
        Number of processes signalled
    """
    orphaned = find_orphaned_recorders(recordings_root, ffmpeg_path)
    if not orphaned:
        return 0

    logger.info("Found %d orphaned recorder process(es)", len(orphaned))

    signalled = []
    for proc in orphaned:
        try:
            logger.warning("Terminating orphaned recorder: pid=%d", proc.pid)
            proc.terminate()
            signalled.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    if signalled:
        gone, alive = psutil.wait_procs(signalled, timeout=timeout)
        if gone:
            logger.debug("Gracefully terminated %d process(es)", len(gone))

        for proc in alive:
            try:
                logger.warning("Force killing unresponsive recorder: pid=%d", proc.pid)
                proc.kill()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                pass

        if alive:
            psutil.wait_procs(alive, timeout=1.0)

    return len(signalled)


__all__ = ["cleanup_orphaned_recorders", "find_orphaned_recorders"]
