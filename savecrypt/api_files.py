"""File-oriented convenience wrappers around a default ``SaveFileService``."""

from .cancel import CancellationToken
from .chunked import ChunkedFileCipher
from .options import CipherOptions, ValidationOptions
from .service import SaveFileService
from .validator import SaveFileValidator, ValidationOutcome, has_save_extension


def _service(
    cipher_options: CipherOptions | None = None,
    validation_options: ValidationOptions | None = None,
) -> SaveFileService:
    return SaveFileService(cipher_options=cipher_options, validation_options=validation_options)


def load_save(
    path,
    token: CancellationToken | None = None,
    *,
    options: ValidationOptions | None = None,
    progress=None,
) -> str:
    """Validate and decrypt a save file.

    Args:
        path: Save file on disk
        token: Optional cancellation token
        options: Validation settings (defaults apply when omitted)
        progress: Optional progress sink

    Returns:
        The decrypted XML text

    Raises:
        InvalidSaveFile: validation rejected the file
        OperationCancelled: the token was cancelled or the deadline passed
    """
    return _service(validation_options=options).load_and_decrypt(path, token, progress)


def save_save(
    path,
    text: str,
    token: CancellationToken | None = None,
    *,
    backup: bool = True,
    verify: bool = True,
):
    """Encrypt ``text`` to ``path`` and return the backup path (or None)."""
    options = CipherOptions(verify_writes=verify)
    return _service(cipher_options=options).encrypt_and_save(path, text, token, backup=backup)


def validate_save(
    path,
    token: CancellationToken | None = None,
    *,
    options: ValidationOptions | None = None,
    progress=None,
) -> ValidationOutcome:
    return SaveFileValidator(options).validate(path, token, progress)


def is_valid_save(path, token: CancellationToken | None = None) -> bool:
    return SaveFileValidator().is_valid(path, token)


def decrypt_file(path, token: CancellationToken | None = None) -> bytes:
    return ChunkedFileCipher().load_and_decrypt(path, token)


def encrypt_file(path, data, token: CancellationToken | None = None, *, verify: bool = True) -> None:
    ChunkedFileCipher(options=CipherOptions(verify_writes=verify)).save_and_encrypt(path, data, token)


def backup_save(path, token: CancellationToken | None = None):
    return _service().create_backup(path, token)


__all__ = [
    "backup_save",
    "decrypt_file",
    "encrypt_file",
    "has_save_extension",
    "is_valid_save",
    "load_save",
    "save_save",
    "validate_save",
]
