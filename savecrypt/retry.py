"""Retry with exponential backoff for transient I/O failures."""

from typing import Callable, TypeVar

from .cancel import CancellationToken, ensure_token
from .errors import OperationCancelled

T = TypeVar("T")

MAX_DELAY = 5.0

_PERMANENT_OS_ERRORS = (FileNotFoundError, IsADirectoryError, NotADirectoryError)


def is_transient_io_error(exc: BaseException) -> bool:
    """I/O, permission and timeout errors are worth another try; a missing file is not."""
    if isinstance(exc, OperationCancelled):
        return False
    return isinstance(exc, OSError) and not isinstance(exc, _PERMANENT_OS_ERRORS)


def backoff_delays(base_delay: float, retries: int, max_delay: float = MAX_DELAY) -> list[float]:
    delays = []
    delay = max(0.0, float(base_delay))
    for _ in range(max(0, retries)):
        delays.append(min(delay, max_delay))
        delay *= 2
    return delays


def retry_call(
    operation: Callable[[], T],
    *,
    attempts: int,
    base_delay: float,
    token: CancellationToken | None = None,
    is_retryable: Callable[[BaseException], bool] = is_transient_io_error,
    max_delay: float = MAX_DELAY,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
) -> T:
    """Call ``operation`` until it succeeds, allowing up to ``attempts`` retries.

    The first call is not a retry, so the operation runs at most
    ``attempts + 1`` times. Between tries the delay starts at ``base_delay``
    and doubles up to ``max_delay``. The token is checked before every try
    and ends a pending delay at once. Non-retryable errors and the error
    from the final try propagate unchanged.
    """
    token = ensure_token(token)
    delays = backoff_delays(base_delay, attempts, max_delay)
    for attempt in range(attempts + 1):
        token.raise_if_cancelled()
        try:
            return operation()
        except OperationCancelled:
            raise
        except Exception as exc:
            if attempt >= attempts or not is_retryable(exc):
                raise
            delay = delays[attempt]
            if on_retry is not None:
                on_retry(attempt + 1, exc, delay)
        if token.wait(delay):
            token.raise_if_cancelled()
    raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["MAX_DELAY", "backoff_delays", "is_transient_io_error", "retry_call"]
