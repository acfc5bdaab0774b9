# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import threading
import time
from typing import Callable, Optional

from gateway_sync.errors import OperationCancelled

class RunContext:
    """
    Cancellation token threaded through every remote call of a run.

    Waits go through sleep() so that cancel() interrupts them instead of
    letting a backoff run its full course.
    """

    def __init__(self, timeout: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._cancelled = threading.Event()
        self._reason = "cancelled"
        self.deadline = clock() + timeout if timeout is not None else None

    def cancel(self, reason: str = "cancelled") -> None:
        """Cancel the run, waking any pending sleep."""
        self._reason = reason
        self._cancelled.set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - self.clock())

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self.deadline is not None and self.clock() >= self.deadline

    def check(self) -> None:
        """Raise OperationCancelled if the run was cancelled or timed out."""
        if self._cancelled.is_set():
            raise OperationCancelled(self._reason)
        if self.deadline is not None and self.clock() >= self.deadline:
            raise OperationCancelled("deadline exceeded")

    def sleep(self, seconds: float) -> None:
        """Sleep for up to `seconds`, raising OperationCancelled as soon as the run is cancelled."""
        self.check()
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._cancelled.wait(max(0.0, seconds))
        self.check()
