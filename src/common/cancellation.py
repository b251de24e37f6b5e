"""Cooperative cancellation shared by the resolution and install phases.

A single :class:`CancellationToken` is created per CLI run and handed to every
worker. Workers never get interrupted; instead every HTTP call checks the
token before it starts and derives its read timeout from the remaining
deadline, and streaming downloads check it between chunks.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from errors import Cancelled


class CancellationToken:
    """Thread-safe cancellation token with an optional deadline.

    Examples:
        >>> token = CancellationToken(timeout=60)
        >>> token.raise_if_cancelled()  # in a worker, before blocking I/O
        >>> token.cancel()  # from another thread, e.g. a SIGINT handler
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline: Optional[float] = None
        if timeout is not None:
            self._deadline = time.monotonic() + timeout

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        self._event.set()

    def is_cancelled(self) -> bool:
        """Return True once cancelled or past the deadline."""
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline, or None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def timeout(self, default: float) -> float:
        """Clamp a per-request timeout to the remaining deadline."""
        left = self.remaining()
        if left is None:
            return default
        return max(0.001, min(default, left))

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled():
            if self._deadline is not None and self.remaining() == 0.0:
                raise Cancelled("deadline exceeded")
            raise Cancelled("operation cancelled")


def ensure_token(token: Optional[CancellationToken]) -> CancellationToken:
    """Return ``token`` or a fresh token without deadline."""
    return token if token is not None else CancellationToken()
