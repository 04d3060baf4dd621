"""Cancellation and deadline propagation for a single logical call."""

import threading
import time

from src.features.client.errors import RequestCancelledError


_MAX_WAIT_SLICE_SECONDS = 86400.0


class RequestContext:
    """Carries a cancellation signal and an optional deadline.

    One context is shared by every attempt of a logical call. Cancelling it
    from another thread wakes any retry sleep immediately.
    """

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize the context.

        Args:
            timeout: Seconds until the deadline, or None for no deadline.
        """
        self._cancelled = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    @classmethod
    def background(cls) -> "RequestContext":
        """Create a context that is never cancelled by itself."""
        return cls()

    def cancel(self) -> None:
        """Cancel the call."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        """Whether cancel() was called."""
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def error(self) -> RequestCancelledError | None:
        """Return the reason the context is done, or None if it is still live."""
        if self._cancelled.is_set():
            return RequestCancelledError("context canceled")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            return RequestCancelledError("context deadline exceeded")
        return None

    def raise_if_done(self) -> None:
        """Raise RequestCancelledError if the context is done."""
        error = self.error()
        if error is not None:
            raise error

    def wait(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless the context ends first.

        Args:
            seconds: Intended sleep duration.

        Returns:
            True if the full duration elapsed, False if the context ended.
        """
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._wait_cancelled(remaining)
            return False
        return not self._wait_cancelled(seconds)

    def _wait_cancelled(self, seconds: float) -> bool:
        # Event.wait overflows on very large timeouts, so block in slices
        left = max(0.0, seconds)
        while True:
            step = min(left, _MAX_WAIT_SLICE_SECONDS)
            if self._cancelled.wait(step):
                return True
            left -= step
            if left <= 0:
                return False
