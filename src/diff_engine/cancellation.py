"""Cooperative cancellation for long diff computations."""

import threading
import time
from typing import Optional

from src.core.errors import DiffCancelledError


class CancellationToken:
    """Signals a running diff to stop.

    The token is cancelled explicitly with ``cancel()`` (from any thread) or
    implicitly once its optional deadline has passed. Diff code polls
    ``raise_if_cancelled()`` between units of work and discards partial
    results when it raises.

    Example:
        >>> token = CancellationToken(timeout=5.0)
        >>> engine.diff(a, b, cancel_token=token)
    """

    def __init__(self, timeout: Optional[float] = None):
        """Create a token.

        Args:
            timeout: Seconds from now after which the token counts as cancelled
        """
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self.timeout = timeout

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self) -> None:
        """Raise DiffCancelledError if the token was cancelled or timed out."""
        if self._event.is_set():
            raise DiffCancelledError("Diff computation cancelled by caller")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise DiffCancelledError(f"Diff computation exceeded {self.timeout}s timeout")
