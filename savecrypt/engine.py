"""Cipher transform engine: repeating-key XOR over byte buffers.

The save format XORs every byte with a fixed 17-byte key, cycling the key
from the start of the file. XOR is its own inverse, so the same transform
both encrypts and decrypts. This is obfuscation, not encryption.
"""

import importlib
import itertools
import operator

import numpy as np

from .cancel import CancellationToken, ensure_token
from .options import CipherOptions
from .pool import SHARED_POOL, BufferPool

KEY = bytes((
    0xAC, 0x73, 0xFE, 0xF2, 0xAA, 0xBA, 0x6D, 0xAB,
    0x30, 0x3A, 0x8B, 0xA7, 0xDE, 0x0D, 0x15, 0x21, 0x4A,
))
CHECK_INTERVAL = 16 * 1024  # bytes between cancellation checks
VECTOR_WIDTH = 64  # bytes; shorter inputs always take the scalar loop


def _detect_vector_support() -> bool:
    # numpy picks its SIMD kernels at import time; ask it what it found.
    for name in ("numpy._core._multiarray_umath", "numpy.core._multiarray_umath"):
        try:
            module = importlib.import_module(name)
        except ImportError:
            continue
        features = getattr(module, "__cpu_features__", None)
        if features:
            return any(features.values())
        break
    return True


VECTOR_SUPPORTED = _detect_vector_support()

_KEY_ARRAY = np.frombuffer(KEY, dtype=np.uint8)
# Long enough that any block of CHECK_INTERVAL bytes can take its keystream
# as a plain slice starting at (position % len(KEY)).
_KEY_TILE = np.resize(_KEY_ARRAY, CHECK_INTERVAL + len(KEY))


class XorCipher:
    KEY = KEY
    CHECK_INTERVAL = CHECK_INTERVAL
    VECTOR_WIDTH = VECTOR_WIDTH

    def __init__(self, options: CipherOptions | None = None, pool: BufferPool | None = None):
        self.options = options or CipherOptions()
        self.pool = pool or SHARED_POOL

    def with_options(self, options: CipherOptions) -> "XorCipher":
        return XorCipher(options, self.pool)

    def uses_vector_path(self, length: int) -> bool:
        return self.options.use_vectorized and VECTOR_SUPPORTED and length > VECTOR_WIDTH

    def transform(
        self,
        data,
        token: CancellationToken | None = None,
        *,
        offset: int = 0,
    ) -> bytes:
        """XOR ``data`` with the key, starting at absolute key position ``offset``.

        Large outputs are built in a pooled buffer and copied out at exactly
        ``len(data)`` bytes; the buffer goes back to the pool on every exit
        path, including cancellation.
        """
        src = memoryview(data).cast("B")
        n = len(src)
        if n == 0:
            return b""
        if n <= self.options.pooling_threshold:
            out = bytearray(n)
            self.transform_into(src, out, offset=offset, token=token)
            return bytes(out)
        buf = self.pool.rent(n)
        try:
            view = memoryview(buf)[:n]
            self.transform_into(src, view, offset=offset, token=token)
            return bytes(view)
        finally:
            self.pool.give_back(buf)

    encrypt = transform
    decrypt = transform

    def transform_into(
        self,
        src,
        out,
        *,
        offset: int = 0,
        token: CancellationToken | None = None,
    ) -> int:
        """Write the transform of ``src`` into the first ``len(src)`` bytes of ``out``."""
        if offset < 0:
            raise ValueError("Offset cannot be negative")
        src = memoryview(src).cast("B")
        n = len(src)
        if n == 0:
            return 0
        dst = memoryview(out).cast("B")
        if len(dst) < n:
            raise ValueError(f"Output buffer too small: {len(dst)} < {n}")
        if dst.readonly:
            raise ValueError("Output buffer is read-only")
        token = ensure_token(token)
        if self.uses_vector_path(n):
            self._xor_vectorized(src, dst[:n], offset, token)
        else:
            self._xor_scalar(src, dst[:n], offset, token)
        return n

    @staticmethod
    def _xor_scalar(src: memoryview, dst: memoryview, offset: int, token: CancellationToken) -> None:
        klen = len(KEY)
        n = len(src)
        for start in range(0, n, CHECK_INTERVAL):
            token.raise_if_cancelled()
            end = min(n, start + CHECK_INTERVAL)
            shift = (offset + start) % klen
            keystream = itertools.cycle(KEY[shift:] + KEY[:shift])
            dst[start:end] = bytes(map(operator.xor, src[start:end], keystream))

    @staticmethod
    def _xor_vectorized(src: memoryview, dst: memoryview, offset: int, token: CancellationToken) -> None:
        klen = len(KEY)
        n = len(src)
        src_arr = np.frombuffer(src, dtype=np.uint8)
        dst_arr = np.frombuffer(dst, dtype=np.uint8)
        for start in range(0, n, CHECK_INTERVAL):
            token.raise_if_cancelled()
            end = min(n, start + CHECK_INTERVAL)
            shift = (offset + start) % klen
            np.bitwise_xor(
                src_arr[start:end],
                _KEY_TILE[shift:shift + (end - start)],
                out=dst_arr[start:end],
            )


def xor_transform(data, token: CancellationToken | None = None, *, offset: int = 0) -> bytes:
    return XorCipher().transform(data, token, offset=offset)


__all__ = ["CHECK_INTERVAL", "KEY", "VECTOR_SUPPORTED", "VECTOR_WIDTH", "XorCipher", "xor_transform"]
