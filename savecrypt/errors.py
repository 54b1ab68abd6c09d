"""Exceptions and warnings raised by savecrypt."""

import errno


class SaveFileError(Exception):
    """Base class for every error raised by this package."""


class OperationCancelled(SaveFileError):
    pass


class DeadlineExceeded(OperationCancelled):
    pass


class SaveFileIOError(SaveFileError, OSError):
    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = None if path is None else str(path)


class SaveFilePermissionError(SaveFileIOError):
    pass


class SaveFileInUseError(SaveFileIOError):
    pass


class VerificationFailed(SaveFileError):
    def __init__(self, message: str, position: int | None = None):
        super().__init__(message)
        self.position = position


class InvalidSaveFile(SaveFileError):
    def __init__(self, outcome):
        super().__init__(outcome.message)
        self.outcome = outcome


class SaveContentError(SaveFileError, ValueError):
    pass


class SaveFileWarning(UserWarning):
    pass


class ShortReadWarning(SaveFileWarning):
    pass


class BoundaryWarning(SaveFileWarning):
    pass


class BypassWarning(SaveFileWarning):
    pass


class BackupWarning(SaveFileWarning):
    pass


# Windows reports sharing/lock violations through winerror, POSIX through errno.
_WIN_SHARING_VIOLATIONS = frozenset({32, 33})
_POSIX_BUSY = frozenset(
    code for code in (getattr(errno, "EBUSY", None), getattr(errno, "ETXTBSY", None)) if code is not None
)


def is_file_in_use(exc: OSError) -> bool:
    if getattr(exc, "winerror", None) in _WIN_SHARING_VIOLATIONS:
        return True
    return exc.errno in _POSIX_BUSY


def classify_os_error(exc: OSError, path, action: str) -> SaveFileIOError:
    """Map an ``OSError`` to the matching package error for ``action`` on ``path``."""
    if isinstance(exc, SaveFileIOError):
        return exc
    if isinstance(exc, PermissionError) or exc.errno in (errno.EACCES, errno.EPERM):
        return SaveFilePermissionError(f"Access denied while {action} {path}: check file permissions", path)
    if is_file_in_use(exc):
        return SaveFileInUseError(f"{path} is in use by another process", path)
    return SaveFileIOError(f"I/O error while {action} {path}: {exc}", path)


__all__ = [
    "BackupWarning",
    "BoundaryWarning",
    "BypassWarning",
    "DeadlineExceeded",
    "InvalidSaveFile",
    "OperationCancelled",
    "SaveContentError",
    "SaveFileError",
    "SaveFileIOError",
    "SaveFileInUseError",
    "SaveFilePermissionError",
    "SaveFileWarning",
    "ShortReadWarning",
    "VerificationFailed",
    "classify_os_error",
    "is_file_in_use",
]
