"""
Cancellation token with an optional deadline.
Every blocking call in the runtime receives one and polls it.
"""
from __future__ import annotations

import threading
import time
from typing import Optional


class PromptCancelledError(Exception):
    """Raised when a token was cancelled explicitly."""


class DeadlineExceeded(TimeoutError):
    """Raised when a token's deadline has passed."""


class CancelToken:
    def __init__(self, timeout: Optional[float] = None, parent: Optional["CancelToken"] = None):
        self._event = threading.Event()
        self._parent = parent
        deadline = time.monotonic() + timeout if timeout and timeout > 0 else None
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self, fallback: Optional[float] = None) -> Optional[float]:
        """Seconds left before the deadline, bounded by fallback when given."""
        if self.deadline is None:
            return fallback
        left = max(0.0, self.deadline - time.monotonic())
        return left if fallback is None else min(left, fallback)

    def raise_if_done(self):
        if self.cancelled:
            raise PromptCancelledError("cancelled")
        if self.expired:
            raise DeadlineExceeded("deadline exceeded")

    def child(self, timeout: Optional[float] = None) -> "CancelToken":
        return CancelToken(timeout=timeout, parent=self)
