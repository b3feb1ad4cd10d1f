"""
Shutdown Coordinator - single point of control for process-wide shutdown.

Signals, keyboard interrupts and fatal errors all funnel into
``initiate_shutdown``; the registered cleanup callbacks run exactly once,
in registration order.
"""

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from rtsp_recorder.core.logging_utils import get_module_logger


class ShutdownState(Enum):
    RUNNING = "running"
    REQUESTED = "requested"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class ShutdownCoordinator:

    def __init__(self):
        self.logger = get_module_logger("ShutdownCoordinator")
        self._state = ShutdownState.RUNNING
        self._shutdown_event = asyncio.Event()
        self._cleanup_callbacks: List[Callable[[], Awaitable[None]]] = []
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ShutdownState:
        return self._state

    @property
    def is_shutting_down(self) -> bool:
        return self._state in (ShutdownState.REQUESTED, ShutdownState.IN_PROGRESS)

    @property
    def is_complete(self) -> bool:
        return self._state == ShutdownState.COMPLETE

    def register_cleanup(self, callback: Callable[[], Awaitable[None]]) -> None:
        self._cleanup_callbacks.append(callback)
        self.logger.debug("Registered cleanup callback: %s", _callback_name(callback))

    async def initiate_shutdown(self, source: str = "unknown") -> None:
        """Run every cleanup callback once; later requests are ignored."""
        shutdown_start = time.monotonic()

        async with self._lock:
            if self._state != ShutdownState.RUNNING:
                self.logger.debug(
                    "Shutdown already initiated (state=%s), ignoring request from %s",
                    self._state.value, source,
                )
                return
            self.logger.info("Shutdown initiated by: %s", source)
            self._state = ShutdownState.REQUESTED

        await self._execute_cleanup()

        async with self._lock:
            self._state = ShutdownState.COMPLETE
            self._shutdown_event.set()

        self.logger.info("Shutdown complete in %.3fs", time.monotonic() - shutdown_start)

    async def _execute_cleanup(self) -> None:
        async with self._lock:
            self._state = ShutdownState.IN_PROGRESS

        total = len(self._cleanup_callbacks)
        for i, callback in enumerate(self._cleanup_callbacks, 1):
            name = _callback_name(callback)
            callback_start = time.monotonic()
            try:
                self.logger.info("Running cleanup %d/%d: %s", i, total, name)
                await callback()
                self.logger.debug("Completed %s in %.3fs", name, time.monotonic() - callback_start)
            except Exception as e:
                self.logger.error("Error in cleanup callback %s: %s", name, e, exc_info=True)

    async def wait_for_shutdown(self) -> None:
        await self._shutdown_event.wait()


def _callback_name(callback: Callable) -> str:
    return getattr(callback, "__qualname__", None) or getattr(callback, "__name__", repr(callback))


_coordinator: Optional[ShutdownCoordinator] = None


def get_shutdown_coordinator() -> ShutdownCoordinator:
    global _coordinator
    if _coordinator is None:
        _coordinator = ShutdownCoordinator()
    return _coordinator


def reset_shutdown_coordinator() -> None:
    """Drop the global coordinator (used by tests)."""
    global _coordinator
    _coordinator = None


__all__ = [
    "ShutdownCoordinator",
    "ShutdownState",
    "get_shutdown_coordinator",
    "reset_shutdown_coordinator",
]
