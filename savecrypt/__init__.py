"""
savecrypt - save file cipher and validation pipeline for Sheltered 2 saves

Save files are UTF-8 XML wrapped in <root>...</root> and XORed with a fixed
17-byte key. This package decrypts, validates and re-encrypts them.
"""

from .api_files import (
    backup_save,
    decrypt_file,
    encrypt_file,
    is_valid_save,
    load_save,
    save_save,
    validate_save,
)
from .cancel import NONE, CancellationToken
from .chunked import ChunkedFileCipher
from .engine import KEY, XorCipher, xor_transform
from .errors import (
    BackupWarning,
    BoundaryWarning,
    BypassWarning,
    DeadlineExceeded,
    InvalidSaveFile,
    OperationCancelled,
    SaveContentError,
    SaveFileError,
    SaveFileInUseError,
    SaveFileIOError,
    SaveFilePermissionError,
    SaveFileWarning,
    ShortReadWarning,
    VerificationFailed,
)
from .options import CipherOptions, ValidationOptions
from .pool import SHARED_POOL, BufferPool
from .progress import NULL_PROGRESS, NullProgress, ProgressEvent, RecordingProgress, TerminalProgress
from .service import SaveFileService
from .signature import SignatureDetector
from .validator import (
    BytesSource,
    FileInfo,
    PathSource,
    SaveFileValidator,
    ValidationOutcome,
    ValidationStatus,
    describe_status,
    has_save_extension,
)
from .version import FORMAT_VERSION, __version__

__all__ = [
    "BackupWarning",
    "BoundaryWarning",
    "BufferPool",
    "BypassWarning",
    "BytesSource",
    "CancellationToken",
    "ChunkedFileCipher",
    "CipherOptions",
    "DeadlineExceeded",
    "FORMAT_VERSION",
    "FileInfo",
    "InvalidSaveFile",
    "KEY",
    "NONE",
    "NULL_PROGRESS",
    "NullProgress",
    "OperationCancelled",
    "PathSource",
    "ProgressEvent",
    "RecordingProgress",
    "SHARED_POOL",
    "SaveContentError",
    "SaveFileError",
    "SaveFileIOError",
    "SaveFileInUseError",
    "SaveFilePermissionError",
    "SaveFileService",
    "SaveFileValidator",
    "SaveFileWarning",
    "ShortReadWarning",
    "SignatureDetector",
    "TerminalProgress",
    "ValidationOptions",
    "ValidationOutcome",
    "ValidationStatus",
    "VerificationFailed",
    "XorCipher",
    "__version__",
    "backup_save",
    "decrypt_file",
    "describe_status",
    "encrypt_file",
    "has_save_extension",
    "is_valid_save",
    "load_save",
    "save_save",
    "validate_save",
    "xor_transform",
]
