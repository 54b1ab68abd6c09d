"""Shared byte buffer pool with rent/return accounting."""

import contextlib
import threading


class BufferPool:
    """Hands out reusable ``bytearray`` buffers.

    Rented buffers are rounded up to a power of two, so a buffer may be
    longer than requested and may still hold bytes from a previous renter.
    Callers must only look at the prefix they wrote.
    """

    MIN_BUCKET = 256
    MAX_RETAINED_BYTES = 64 * 1024 * 1024

    def __init__(self, max_per_bucket: int = 4):
        self.max_per_bucket = max(0, int(max_per_bucket))
        self._buckets: dict[int, list[bytearray]] = {}
        self._outstanding: set[int] = set()
        self._lock = threading.Lock()
        self.rented = 0
        self.returned = 0

    @classmethod
    def _bucket_size(cls, minimum: int) -> int:
        size = cls.MIN_BUCKET
        while size < minimum:
            size <<= 1
        return size

    def rent(self, minimum: int) -> bytearray:
        if minimum < 0:
            raise ValueError("Buffer size cannot be negative")
        size = self._bucket_size(minimum)
        with self._lock:
            free = self._buckets.get(size)
            buf = free.pop() if free else None
            if buf is None:
                buf = bytearray(size)
            self._outstanding.add(id(buf))
            self.rented += 1
        return buf

    def give_back(self, buf: bytearray) -> None:
        with self._lock:
            try:
                self._outstanding.remove(id(buf))
            except KeyError:
                raise ValueError("Buffer was not rented from this pool") from None
            self.returned += 1
            if len(buf) > self.MAX_RETAINED_BYTES:
                return
            free = self._buckets.setdefault(len(buf), [])
            if len(free) < self.max_per_bucket:
                free.append(buf)

    @contextlib.contextmanager
    def lease(self, minimum: int):
        buf = self.rent(minimum)
        try:
            yield buf
        finally:
            self.give_back(buf)

    @property
    def outstanding(self) -> int:
        with self._lock:
            return len(self._outstanding)

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()


SHARED_POOL = BufferPool()


__all__ = ["BufferPool", "SHARED_POOL"]
