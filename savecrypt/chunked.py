"""File-level reader/writer that applies the XOR transform in chunks."""

import os
import pathlib
import stat
import warnings

import numpy as np

from .cancel import CancellationToken, ensure_token
from .engine import XorCipher
from .errors import ShortReadWarning, VerificationFailed, classify_os_error
from .options import CipherOptions
from .pool import BufferPool
from .progress import human_readable_size


def _existing_file_size(path: pathlib.Path) -> int:
    try:
        info = path.stat()
    except FileNotFoundError:
        raise FileNotFoundError(f"Input file not found: {path}") from None
    if not stat.S_ISREG(info.st_mode):
        raise FileNotFoundError(f"Input file not found: {path}")
    return info.st_size


def first_mismatch(expected, actual) -> int | None:
    """Index of the first differing byte of two equal-length buffers, or None."""
    if not len(expected):
        return None
    left = np.frombuffer(expected, dtype=np.uint8)
    right = np.frombuffer(actual, dtype=np.uint8)
    diff = np.flatnonzero(left != right)
    return int(diff[0]) if diff.size else None


class ChunkedFileCipher:
    """Reads and writes save files, decrypting or encrypting on the way.

    Files below ``chunked_io_threshold`` are handled in one read and one
    transform. Larger files stream through a leased buffer of
    ``buffer_size`` bytes; each chunk is transformed with its absolute file
    offset so the key stays aligned with the file.
    """

    def __init__(
        self,
        cipher: XorCipher | None = None,
        options: CipherOptions | None = None,
        pool: BufferPool | None = None,
    ):
        if cipher is None:
            cipher = XorCipher(options, pool)
        elif options is not None and options != cipher.options:
            cipher = cipher.with_options(options)
        self.cipher = cipher
        self.options = cipher.options
        self.pool = pool or cipher.pool

    def with_options(self, options: CipherOptions) -> "ChunkedFileCipher":
        return ChunkedFileCipher(self.cipher.with_options(options), pool=self.pool)

    def _use_streaming(self, size: int) -> bool:
        return self.options.use_chunked_io and size >= self.options.chunked_io_threshold

    def load_and_decrypt(self, path, token: CancellationToken | None = None) -> bytes:
        path = pathlib.Path(path)
        token = ensure_token(token)
        token.raise_if_cancelled()
        try:
            size = _existing_file_size(path)
            if not self._use_streaming(size):
                data = path.read_bytes()
                if len(data) < size:
                    warnings.warn(
                        f"Read {len(data)} of {size} expected bytes from {path}; result truncated",
                        ShortReadWarning,
                        stacklevel=2,
                    )
                return self.cipher.transform(data, token)
            with open(path, "rb") as handle:
                return self._read_stream(handle, path, 0, size, token)
        except FileNotFoundError:
            raise
        except OSError as exc:
            raise classify_os_error(exc, path, "reading") from exc

    def load_and_decrypt_chunk(
        self,
        path,
        offset: int,
        count: int = -1,
        token: CancellationToken | None = None,
    ) -> bytes:
        """Decrypt ``count`` bytes starting at ``offset`` (``-1`` reads to the end)."""
        if offset < 0:
            raise ValueError("Offset cannot be negative")
        path = pathlib.Path(path)
        token = ensure_token(token)
        token.raise_if_cancelled()
        try:
            size = _existing_file_size(path)
            if offset >= size:
                return b""
            available = size - offset
            count = available if count < 0 else min(count, available)
            if count == 0:
                return b""
            with open(path, "rb") as handle:
                handle.seek(offset)
                return self._read_stream(handle, path, offset, count, token)
        except FileNotFoundError:
            raise
        except OSError as exc:
            raise classify_os_error(exc, path, "reading") from exc

    def _read_stream(self, handle, path, offset: int, count: int, token: CancellationToken) -> bytes:
        out = bytearray(count)
        out_view = memoryview(out)
        bs = self.options.buffer_size
        done = 0
        with self.pool.lease(bs) as buf:
            chunk = memoryview(buf)[:bs]
            while done < count:
                token.raise_if_cancelled()
                want = min(bs, count - done)
                got = handle.readinto(chunk[:want])
                if not got:
                    break
                self.cipher.transform_into(
                    chunk[:got],
                    out_view[done:done + got],
                    offset=offset + done,
                    token=token,
                )
                done += got
        if done < count:
            warnings.warn(
                f"Read {done} of {count} expected bytes from {path}; result truncated",
                ShortReadWarning,
                stacklevel=3,
            )
            return out_view[:done].tobytes()
        return bytes(out)

    def save_and_encrypt(self, path, data, token: CancellationToken | None = None) -> None:
        """Encrypt ``data`` to ``path``, creating parent directories as needed.

        The ciphertext goes to a temporary sibling first and replaces the
        target only once fully written. With ``verify_writes`` the target is
        read back, decrypted and compared; any difference raises
        ``VerificationFailed``.
        """
        path = pathlib.Path(path)
        src = memoryview(data).cast("B")
        token = ensure_token(token)
        token.raise_if_cancelled()
        temp_path = path.with_name(f"{path.stem}._tmp{path.suffix}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            try:
                with open(temp_path, "wb") as handle:
                    if self._use_streaming(len(src)):
                        self._write_stream(handle, src, token)
                    else:
                        handle.write(self.cipher.transform(src, token))
                os.replace(temp_path, path)
            finally:
                if temp_path.exists():
                    temp_path.unlink()
        except OSError as exc:
            raise classify_os_error(exc, path, "writing") from exc
        if self.options.verify_writes:
            self.verify(path, src, token)

    def _write_stream(self, handle, src: memoryview, token: CancellationToken) -> None:
        bs = self.options.buffer_size
        with self.pool.lease(bs) as buf:
            chunk = memoryview(buf)
            for start in range(0, len(src), bs):
                token.raise_if_cancelled()
                written = self.cipher.transform_into(src[start:start + bs], chunk, offset=start, token=token)
                handle.write(chunk[:written])

    def verify(self, path, expected, token: CancellationToken | None = None) -> None:
        expected = memoryview(expected).cast("B")
        actual = self.load_and_decrypt(path, token)
        if len(actual) != len(expected):
            raise VerificationFailed(
                f"Verification failed for {path}: wrote {human_readable_size(len(expected))} "
                f"but read back {human_readable_size(len(actual))}",
            )
        position = first_mismatch(expected, actual)
        if position is not None:
            raise VerificationFailed(
                f"Verification failed for {path}: content differs at byte {position}",
                position,
            )


__all__ = ["ChunkedFileCipher", "first_mismatch"]
