"""Save file validation: size limits, boundary markers and root structure.

``SaveFileValidator.validate`` never raises for a bad file. Every failure,
including I/O trouble, a timeout or a cancellation, comes back as a
``ValidationOutcome`` whose ``status`` names what went wrong.
"""

import dataclasses
import enum
import io
import os
import pathlib
import time
import warnings

from .cancel import CancellationToken
from .engine import XorCipher
from .errors import BypassWarning, DeadlineExceeded, OperationCancelled, ShortReadWarning
from .options import ValidationOptions
from .pool import BufferPool
from .progress import NULL_PROGRESS, ProgressEvent, human_readable_size
from .retry import retry_call
from .signature import SignatureDetector

SAVE_EXTENSION = ".dat"


class ValidationStatus(enum.Enum):
    VALID = "valid"
    VALID_WITH_WARNINGS = "valid_with_warnings"
    INVALID_FORMAT = "invalid_format"
    INVALID_STRUCTURE = "invalid_structure"
    DECRYPTION_ERROR = "decryption_error"
    FILE_TOO_LARGE = "file_too_large"
    ACCESS_ERROR = "access_error"
    PROCESSING_TIME_EXCEEDED = "processing_time_exceeded"
    CANCELLED = "cancelled"
    UNKNOWN_ERROR = "unknown_error"


BYPASSABLE = frozenset({
    ValidationStatus.INVALID_FORMAT,
    ValidationStatus.INVALID_STRUCTURE,
    ValidationStatus.DECRYPTION_ERROR,
})

_DESCRIPTIONS = {
    ValidationStatus.VALID: "The save file is valid.",
    ValidationStatus.VALID_WITH_WARNINGS: (
        "The save file did not pass every check but can still be opened. Review it before saving."
    ),
    ValidationStatus.INVALID_FORMAT: "The file does not look like a save file: the root markers are missing.",
    ValidationStatus.INVALID_STRUCTURE: "The save file's root markers are unbalanced or repeated.",
    ValidationStatus.DECRYPTION_ERROR: "The save file could not be decrypted.",
    ValidationStatus.FILE_TOO_LARGE: "The file is larger than the maximum allowed save file size.",
    ValidationStatus.ACCESS_ERROR: "The file could not be opened or read. Check that it exists and is not in use.",
    ValidationStatus.PROCESSING_TIME_EXCEEDED: "Validation took too long and was stopped.",
    ValidationStatus.CANCELLED: "Validation was cancelled.",
    ValidationStatus.UNKNOWN_ERROR: "An unexpected error occurred while validating the file.",
}


def describe_status(status: ValidationStatus) -> str:
    return _DESCRIPTIONS[status]


def has_save_extension(path) -> bool:
    return pathlib.Path(str(path)).suffix.lower() == SAVE_EXTENSION


@dataclasses.dataclass(frozen=True)
class FileInfo:
    name: str
    size: int
    path: str | None = None
    modified: float | None = None

    @classmethod
    def from_path(cls, path) -> "FileInfo | None":
        path = pathlib.Path(path)
        try:
            stat = path.stat()
        except OSError:
            return None
        return cls(path.name, stat.st_size, str(path), stat.st_mtime)


@dataclasses.dataclass(frozen=True)
class ValidationOutcome:
    status: ValidationStatus
    message: str
    error: BaseException | None = None
    elapsed: float = 0.0
    file_info: FileInfo | None = None
    bypassed_status: ValidationStatus | None = None
    bypassable: bool = dataclasses.field(default=True, repr=False, compare=False)

    @classmethod
    def success(cls, message: str = "Validation completed successfully") -> "ValidationOutcome":
        return cls(ValidationStatus.VALID, message)

    @classmethod
    def failure(
        cls,
        status: ValidationStatus,
        message: str,
        error: BaseException | None = None,
        *,
        bypassable: bool = True,
    ) -> "ValidationOutcome":
        return cls(status, message, error, bypassable=bypassable)

    @property
    def ok(self) -> bool:
        return self.status in (ValidationStatus.VALID, ValidationStatus.VALID_WITH_WARNINGS)

    @property
    def description(self) -> str:
        return describe_status(self.status)

    def replace(self, **changes) -> "ValidationOutcome":
        return dataclasses.replace(self, **changes)


class PathSource:
    """File source backed by a path on disk."""

    def __init__(self, path):
        self.path = pathlib.Path(path)
        self.name = self.path.name

    def open(self):
        return open(self.path, "rb")

    def file_info(self) -> FileInfo | None:
        return FileInfo.from_path(self.path)

    def __repr__(self):
        return f"PathSource({str(self.path)!r})"


class BytesSource:
    """File source over an in-memory buffer."""

    def __init__(self, data, name: str = "<memory>"):
        self.data = bytes(data)
        self.name = name
        self.path = None

    def open(self):
        return io.BytesIO(self.data)

    def file_info(self) -> FileInfo | None:
        return FileInfo(self.name, len(self.data))

    def __repr__(self):
        return f"BytesSource({self.name!r}, {len(self.data)} bytes)"


def as_source(source):
    if isinstance(source, (str, os.PathLike)):
        return PathSource(source)
    if isinstance(source, (bytes, bytearray, memoryview)):
        return BytesSource(source)
    return source


def _stream_size(handle) -> int:
    size = handle.seek(0, os.SEEK_END)
    handle.seek(0)
    return size


class SaveFileValidator:
    """Checks that a file decrypts to a ``<root>...</root>`` document.

    Files below ``large_file_threshold`` are read and decrypted whole.
    Larger files only have a header window and a footer window decrypted;
    the footer window grows on each retry so trailing padding does not hide
    the closing marker.

    With ``bypass_validation_failures`` enabled, format, structure and
    decryption failures come back as ``VALID_WITH_WARNINGS``. Size, access,
    timeout and cancellation outcomes are never bypassed.
    """

    def __init__(
        self,
        options: ValidationOptions | None = None,
        cipher: XorCipher | None = None,
        pool: BufferPool | None = None,
    ):
        self.options = options or ValidationOptions()
        self.cipher = cipher or XorCipher(pool=pool)
        self.pool = pool or self.cipher.pool
        self.detector = SignatureDetector.from_options(self.options)

    def with_options(self, options: ValidationOptions) -> "SaveFileValidator":
        return SaveFileValidator(options, self.cipher, self.pool)

    def is_valid(self, source, token: CancellationToken | None = None) -> bool:
        return self.validate(source, token).ok

    def validate(self, source, token: CancellationToken | None = None, progress=None) -> ValidationOutcome:
        source = as_source(source)
        progress = progress or NULL_PROGRESS
        started = time.perf_counter()
        info = None
        scoped = CancellationToken.linked(token, self.options.max_processing_time)
        try:
            info = self._file_info(source)
            progress.start(source.name, info.size if info else None)
            outcome = self._run(source, scoped, progress)
        except OperationCancelled as exc:
            if token is not None and token.cancel_requested:
                outcome = ValidationOutcome.failure(
                    ValidationStatus.CANCELLED, "Validation was cancelled by user request", exc,
                )
            elif isinstance(exc, DeadlineExceeded) or scoped.timed_out:
                outcome = ValidationOutcome.failure(
                    ValidationStatus.PROCESSING_TIME_EXCEEDED,
                    f"Validation timed out after {self.options.max_processing_time:g} seconds",
                    exc,
                )
            else:
                outcome = ValidationOutcome.failure(ValidationStatus.CANCELLED, str(exc), exc)
        except OSError as exc:
            outcome = ValidationOutcome.failure(
                ValidationStatus.ACCESS_ERROR, f"Error accessing {source.name}: {exc}", exc,
            )
        except Exception as exc:
            outcome = ValidationOutcome.failure(
                ValidationStatus.UNKNOWN_ERROR, f"Unexpected error: {exc}", exc,
            )
        finally:
            scoped.detach()
        outcome = self._apply_bypass(outcome, progress)
        outcome = outcome.replace(elapsed=time.perf_counter() - started, file_info=info)
        progress.complete(outcome)
        return outcome

    @staticmethod
    def _file_info(source) -> FileInfo | None:
        lookup = getattr(source, "file_info", None)
        return lookup() if lookup is not None else None

    def _apply_bypass(self, outcome: ValidationOutcome, progress) -> ValidationOutcome:
        if not (
            self.options.bypass_validation_failures
            and outcome.bypassable
            and outcome.status in BYPASSABLE
        ):
            return outcome
        warnings.warn(
            f"Bypassing {outcome.status.value} failure: {outcome.message}",
            BypassWarning,
            stacklevel=3,
        )
        progress.report(ProgressEvent(100, "Validation bypassed"))
        return outcome.replace(
            status=ValidationStatus.VALID_WITH_WARNINGS,
            message=f"{outcome.message} (bypassed)",
            bypassed_status=outcome.status,
        )

    @staticmethod
    def _report(progress, token: CancellationToken, percent: int, message: str) -> None:
        token.raise_if_cancelled()
        progress.report(ProgressEvent(percent, message))

    def _retry(self, operation, token: CancellationToken):
        return retry_call(
            operation,
            attempts=self.options.retry_attempts,
            base_delay=self.options.retry_delay,
            token=token,
        )

    def _read_at(self, handle, position: int, view: memoryview, token: CancellationToken) -> int:
        def read():
            handle.seek(position)
            total = 0
            while total < len(view):
                got = handle.readinto(view[total:])
                if not got:
                    break
                total += got
            return total

        return self._retry(read, token)

    def _run(self, source, token: CancellationToken, progress) -> ValidationOutcome:
        opts = self.options
        handle = self._retry(source.open, token)
        with handle:
            size = _stream_size(handle)
            self._report(progress, token, 10, "File opened, checking size constraints")
            if size > opts.max_file_size:
                return ValidationOutcome.failure(
                    ValidationStatus.FILE_TOO_LARGE,
                    f"File size ({human_readable_size(size)}) exceeds the maximum allowed size "
                    f"({human_readable_size(opts.max_file_size)})",
                )
            minimum = len(opts.header_bytes) + len(opts.footer_bytes)
            if size < minimum:
                return ValidationOutcome.failure(
                    ValidationStatus.INVALID_FORMAT,
                    f"File is too small ({size} bytes) to contain a header and footer",
                    bypassable=False,
                )
            self._report(progress, token, 20, "Size validation passed, beginning content validation")
            if size < opts.large_file_threshold:
                self._report(progress, token, 30, "Small file detected, validating whole content")
                return self._validate_whole(handle, size, token, progress)
            self._report(progress, token, 30, "Large file detected, validating header and footer")
            return self._validate_windows(handle, size, token, progress)

    def _validate_whole(self, handle, size: int, token: CancellationToken, progress) -> ValidationOutcome:
        self._report(progress, token, 40, "Reading file content")
        with self.pool.lease(size) as buf:
            view = memoryview(buf)[:size]
            got = self._read_at(handle, 0, view, token)
            if not got:
                return ValidationOutcome.failure(ValidationStatus.ACCESS_ERROR, "No data read from file")
            if got < size:
                warnings.warn(f"Read {got} of {size} bytes while validating", ShortReadWarning, stacklevel=4)
            self._report(progress, token, 60, "Decrypting file content")
            try:
                plain = self.cipher.transform(view[:got], token)
            except OperationCancelled:
                raise
            except Exception as exc:
                return ValidationOutcome.failure(
                    ValidationStatus.DECRYPTION_ERROR, f"Failed to decrypt file content: {exc}", exc,
                )
        return self._check_content(plain, token, progress)

    def _check_content(self, plain: bytes, token: CancellationToken, progress) -> ValidationOutcome:
        opts = self.options
        if not plain:
            return ValidationOutcome.failure(ValidationStatus.DECRYPTION_ERROR, "Decryption produced empty content")
        self._report(progress, token, 80, "Checking file signature")
        if not self.detector.has_valid_signature(plain):
            return ValidationOutcome.failure(
                ValidationStatus.INVALID_FORMAT,
                f"The file does not have the expected structure ({opts.expected_header} and "
                f"{opts.expected_footer} markers)",
            )
        if opts.validate_structure:
            self._report(progress, token, 90, "Checking root structure")
            if not self.detector.has_balanced_root(plain.decode("utf-8")):
                return ValidationOutcome.failure(
                    ValidationStatus.INVALID_STRUCTURE, "The file contains unbalanced root markers",
                )
        self._report(progress, token, 100, "Validation completed successfully")
        return ValidationOutcome.success()

    def _validate_windows(self, handle, size: int, token: CancellationToken, progress) -> ValidationOutcome:
        opts = self.options
        bs = opts.buffer_size
        if size < bs + len(opts.header_bytes) + len(opts.footer_bytes):
            return self._validate_whole(handle, size, token, progress)
        attempts = opts.footer_probe_attempts
        largest = bs + (attempts - 1) * (bs // 2)
        with self.pool.lease(largest) as buf:
            view = memoryview(buf)
            self._report(progress, token, 40, "Reading file header")
            got = self._read_at(handle, 0, view[:bs], token)
            if not got:
                return ValidationOutcome.failure(
                    ValidationStatus.ACCESS_ERROR, "Unable to read file header: no bytes read",
                )
            self._report(progress, token, 50, "Decrypting file header")
            try:
                head = self.cipher.transform(view[:got], token, offset=0)
            except OperationCancelled:
                raise
            except Exception as exc:
                return ValidationOutcome.failure(
                    ValidationStatus.DECRYPTION_ERROR, f"Failed to decrypt file header: {exc}", exc,
                )
            if not self.detector.starts_with_header(head):
                return ValidationOutcome.failure(
                    ValidationStatus.INVALID_FORMAT,
                    f"The file header does not contain the expected {opts.expected_header} marker",
                )

            self._report(progress, token, 70, "Reading file footer")
            for attempt in range(attempts):
                window = min(size, bs + attempt * (bs // 2))
                position = size - window
                got = self._read_at(handle, position, view[:window], token)
                if not got:
                    continue
                self._report(
                    progress, token, min(95, 80 + attempt * 5),
                    f"Decrypting file footer (attempt {attempt + 1}/{attempts})",
                )
                try:
                    tail = self.cipher.transform(view[:got], token, offset=position)
                except OperationCancelled:
                    raise
                except Exception as exc:
                    return ValidationOutcome.failure(
                        ValidationStatus.DECRYPTION_ERROR, f"Failed to decrypt file footer: {exc}", exc,
                    )
                if self.detector.ends_with_footer(tail):
                    self._report(progress, token, 100, "Validation completed successfully")
                    return ValidationOutcome.success()
        return ValidationOutcome.failure(
            ValidationStatus.INVALID_FORMAT,
            f"The file footer does not contain the expected {opts.expected_footer} marker",
        )


__all__ = [
    "BYPASSABLE",
    "BytesSource",
    "FileInfo",
    "PathSource",
    "SAVE_EXTENSION",
    "SaveFileValidator",
    "ValidationOutcome",
    "ValidationStatus",
    "as_source",
    "describe_status",
    "has_save_extension",
]
