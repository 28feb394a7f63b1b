"""
Cancellation context for long-running external commands.

A Context carries an optional deadline and an explicit cancel flag.
Commands that shell out poll it and tear the child process down once
it is done, so a caller-supplied timeout or Ctrl-C never leaves a
VM manager invocation running behind the CLI's back.
"""

import threading
import time
from typing import Optional


class Context:
    """Cancellation token with an optional deadline."""

    def __init__(self, timeout: Optional[float] = None):
        self._cancelled = threading.Event()
        self.deadline: Optional[float] = None
        if timeout is not None:
            self.deadline = time.monotonic() + timeout

    @classmethod
    def background(cls) -> "Context":
        """A context that is never cancelled unless cancel() is called."""
        return cls()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())
