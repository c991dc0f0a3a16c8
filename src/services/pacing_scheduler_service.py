"""
Pacing Scheduler Service
Cancellable waits between conversation steps (message pacing and delay nodes).
"""
import asyncio
from typing import Set

from utils.log_utils import LogUtil


class PacingScheduler:
    """
    Realizes pacing pauses as asyncio tasks so that a run being replaced can
    drop every pending pause at once. With enabled=False every wait returns
    immediately, which is how tests drive the engine synchronously.
    """

    def __init__(self, log_util: LogUtil, enabled: bool = True):
        self.log_util = log_util
        self.enabled = enabled
        self._pending: Set[asyncio.Task] = set()

    async def wait(self, milliseconds: int) -> bool:
        """
        Sleep for the given number of milliseconds.

        Returns:
            True when the pause elapsed, False when it was cancelled
        """
        if not self.enabled or milliseconds <= 0:
            return True

        task = asyncio.create_task(asyncio.sleep(milliseconds / 1000))
        self._pending.add(task)
        try:
            await asyncio.wait({task})
        finally:
            self._pending.discard(task)
            if not task.done():
                task.cancel()
        return not task.cancelled()

    def cancel(self) -> int:
        """
        Cancel every pending pause. Returns how many were cancelled.
        """
        cancelled = 0
        for task in list(self._pending):
            if not task.done():
                task.cancel()
                cancelled += 1
        if cancelled:
            self.log_util.debug(
                service_name="PacingScheduler",
                message=f"Cancelled {cancelled} pending pause(s)"
            )
        return cancelled

    @property
    def pending_count(self) -> int:
        return len([task for task in self._pending if not task.done()])
