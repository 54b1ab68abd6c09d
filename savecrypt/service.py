"""Text-level load/save of save files, with validation and backups."""

import datetime
import pathlib
import shutil
import warnings

from .cancel import CancellationToken, ensure_token
from .chunked import ChunkedFileCipher
from .errors import BackupWarning, DeadlineExceeded, InvalidSaveFile, OperationCancelled, SaveContentError
from .options import CipherOptions, ValidationOptions
from .pool import BufferPool
from .validator import SaveFileValidator, ValidationOutcome, ValidationStatus

MAX_BACKUP_SUFFIX = 1000


class SaveFileService:
    """Glue between the chunked file cipher and the validator.

    ``load_and_decrypt`` validates first and refuses files the validator
    rejects; ``encrypt_and_save`` checks the root envelope, backs up the
    existing file and writes with read-back verification.
    """

    def __init__(
        self,
        files: ChunkedFileCipher | None = None,
        validator: SaveFileValidator | None = None,
        *,
        cipher_options: CipherOptions | None = None,
        validation_options: ValidationOptions | None = None,
        pool: BufferPool | None = None,
        clock=None,
    ):
        self.files = files or ChunkedFileCipher(options=cipher_options, pool=pool)
        self.validator = validator or SaveFileValidator(validation_options, self.files.cipher, self.files.pool)
        self.clock = clock or datetime.datetime.now

    @property
    def header(self) -> str:
        return self.validator.options.expected_header

    @property
    def footer(self) -> str:
        return self.validator.options.expected_footer

    def validate(self, path, token: CancellationToken | None = None, progress=None) -> ValidationOutcome:
        return self.validator.validate(path, token, progress)

    def load_with_outcome(
        self,
        path,
        token: CancellationToken | None = None,
        progress=None,
    ) -> tuple[str, ValidationOutcome]:
        outcome = self.validator.validate(path, token, progress)
        if outcome.status is ValidationStatus.CANCELLED:
            raise OperationCancelled(outcome.message) from outcome.error
        if outcome.status is ValidationStatus.PROCESSING_TIME_EXCEEDED:
            raise DeadlineExceeded(outcome.message) from outcome.error
        if not outcome.ok:
            raise InvalidSaveFile(outcome)
        data = self.files.load_and_decrypt(path, token)
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SaveContentError(f"{pathlib.Path(path).name} does not decrypt to UTF-8 text") from exc
        return text, outcome

    def load_and_decrypt(self, path, token: CancellationToken | None = None, progress=None) -> str:
        text, _ = self.load_with_outcome(path, token, progress)
        return text

    def check_content(self, text: str) -> None:
        if not isinstance(text, str):
            raise TypeError(f"Save content must be str, not {type(text).__name__}")
        if not text:
            raise SaveContentError("Save content cannot be empty")
        if self.header not in text or self.footer not in text:
            raise SaveContentError(
                f"Save content must contain the {self.header} and {self.footer} markers"
            )

    def encrypt_and_save(
        self,
        path,
        text: str,
        token: CancellationToken | None = None,
        *,
        backup: bool = True,
    ) -> pathlib.Path | None:
        """Encrypt ``text`` to ``path``; returns the backup path, if one was made."""
        self.check_content(text)
        path = pathlib.Path(path)
        token = ensure_token(token)
        backup_path = None
        if backup and path.is_file():
            backup_path = self.create_backup(path, token)
        self.files.save_and_encrypt(path, text.encode("utf-8"), token)
        return backup_path

    def _backup_candidates(self, path: pathlib.Path):
        stamp = self.clock().strftime("%Y%m%d_%H%M%S")
        base = f"{path.stem}_backup_{stamp}"
        yield path.with_name(f"{base}{path.suffix}")
        for index in range(1, MAX_BACKUP_SUFFIX):
            yield path.with_name(f"{base}_{index}{path.suffix}")

    def create_backup(self, path, token: CancellationToken | None = None) -> pathlib.Path | None:
        """Copy ``path`` next to itself under a timestamped name.

        Backups are best effort: on failure a ``BackupWarning`` is issued and
        ``None`` returned. Cancellation still propagates.
        """
        path = pathlib.Path(path)
        ensure_token(token).raise_if_cancelled()
        try:
            with open(path, "rb") as source:
                for candidate in self._backup_candidates(path):
                    try:
                        target = open(candidate, "xb")
                    except FileExistsError:
                        continue
                    try:
                        with target:
                            shutil.copyfileobj(source, target)
                        shutil.copystat(path, candidate)
                    except OSError:
                        candidate.unlink(missing_ok=True)
                        raise
                    return candidate
            raise FileExistsError(f"No free backup name left for {path.name}")
        except OSError as exc:
            warnings.warn(f"Could not back up {path}: {exc}", BackupWarning, stacklevel=2)
            return None


__all__ = ["SaveFileService"]
