"""Cooperative cancellation signal with an optional linked deadline."""

import threading
import time

from .errors import DeadlineExceeded, OperationCancelled


class CancellationToken:
    """Event-backed cancellation flag.

    A token may be linked to a parent: cancelling the parent cancels every
    child. A child may also carry a monotonic deadline, after which it
    reports itself as timed out. Caller cancellation and the deadline share
    the same propagation path through ``raise_if_cancelled``.
    """

    def __init__(self, parent: "CancellationToken | None" = None, timeout: float | None = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: list[CancellationToken] = []
        self._deadline = None if timeout is None else time.monotonic() + max(0.0, float(timeout))
        if parent is not None and parent._deadline is not None:
            if self._deadline is None or parent._deadline < self._deadline:
                self._deadline = parent._deadline
        self._parent = parent
        if parent is not None:
            parent._attach(self)

    @classmethod
    def linked(cls, parent: "CancellationToken | None", timeout: float | None) -> "CancellationToken":
        return cls(parent=parent, timeout=timeout)

    def _attach(self, child: "CancellationToken") -> None:
        with self._lock:
            self._children.append(child)
            cancelled = self._event.is_set()
        if cancelled:
            child.cancel()

    def detach(self) -> None:
        """Unlink from the parent so a finished call does not keep growing it."""
        parent = self._parent
        if parent is None:
            return
        with parent._lock:
            try:
                parent._children.remove(self)
            except ValueError:
                pass
        self._parent = None

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            children = list(self._children)
        for child in children:
            child.cancel()

    @property
    def cancel_requested(self) -> bool:
        return self._event.is_set()

    @property
    def timed_out(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self.cancel_requested or self.timed_out

    def remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("Operation was cancelled")
        if self.timed_out:
            raise DeadlineExceeded("Operation exceeded its processing deadline")

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True as soon as the token is cancelled."""
        seconds = max(0.0, float(seconds))
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(remaining)
            # Event.wait may wake a hair before the deadline.
            while not self._event.is_set() and not self.timed_out:
                self._event.wait(0.001)
            return True
        return self._event.wait(seconds) or self.timed_out


class _NeverCancelled(CancellationToken):
    def _attach(self, child: CancellationToken) -> None:
        child._parent = None

    def cancel(self) -> None:
        raise RuntimeError("The shared NONE token cannot be cancelled")


NONE = _NeverCancelled()


def ensure_token(token: CancellationToken | None) -> CancellationToken:
    return NONE if token is None else token


__all__ = ["CancellationToken", "NONE", "ensure_token"]
