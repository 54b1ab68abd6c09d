"""Command line front end: ``python -m savecrypt``."""

import argparse
import os
import pathlib
import sys
import warnings

from .cancel import CancellationToken
from .engine import XorCipher
from .errors import OperationCancelled, SaveFileError, SaveFileWarning
from .options import CipherOptions, ValidationOptions
from .progress import NULL_PROGRESS, TerminalProgress
from .service import SaveFileService
from .validator import ValidationStatus, has_save_extension
from .version import __version__

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_WARNINGS = 2
EXIT_INTERRUPTED = 130


def _cli_plain_mode() -> bool:
    if os.getenv("SAVECRYPT_CLI_PLAIN"):
        return True
    if os.getenv("NO_COLOR"):
        return True
    return not sys.stdout.isatty()


class _CliTheme:
    def __init__(self, plain: bool):
        self.plain = plain
        self.reset = "" if plain else "\033[0m"
        self.bold = "" if plain else "\033[1m"
        self.red = "" if plain else "\033[31m"
        self.green = "" if plain else "\033[32m"
        self.yellow = "" if plain else "\033[33m"
        self.cyan = "" if plain else "\033[36m"

    def _wrap(self, msg: str, color: str, emoji: str | None = None) -> str:
        if self.plain:
            return msg
        prefix = f"{emoji} " if emoji else ""
        return f"{self.bold}{color}{prefix}{msg}{self.reset}"

    def ok(self, msg: str) -> str:
        return self._wrap(msg, self.green, "✅")

    def warn(self, msg: str) -> str:
        return self._wrap(msg, self.yellow, "⚠️")

    def err(self, msg: str) -> str:
        return self._wrap(msg, self.red, "❌")

    def info(self, msg: str) -> str:
        return self._wrap(msg, self.cyan, "✨")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="savecrypt", description="Sheltered 2 save file cipher and validator")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_validation_flags(sub):
        sub.add_argument(
            "--strict",
            action="store_true",
            help="Fail on format/structure problems instead of downgrading them to warnings",
        )
        sub.add_argument(
            "--no-structure",
            dest="validate_structure",
            action="store_false",
            help="Skip the balanced root marker check",
        )
        sub.add_argument("--timeout", type=float, default=None, help="Validation time limit in seconds")
        sub.add_argument("--progress", action="store_true", help="Show a progress bar on stderr")

    decrypt = subparsers.add_parser("decrypt", help="Validate and decrypt a save file")
    decrypt.add_argument("save", help="Encrypted save file")
    decrypt.add_argument("-o", "--output", help="Write the XML here instead of stdout")
    add_validation_flags(decrypt)

    encrypt = subparsers.add_parser("encrypt", help="Encrypt an XML file into a save file")
    encrypt.add_argument("xml", help="Plain XML input")
    encrypt.add_argument("-o", "--output", required=True, help="Save file to write")
    encrypt.add_argument("--no-backup", dest="backup", action="store_false", help="Do not back up an existing save")
    encrypt.add_argument("--no-verify", dest="verify", action="store_false", help="Skip read-back verification")

    validate = subparsers.add_parser("validate", help="Check a save file without decrypting it to disk")
    validate.add_argument("save", help="Encrypted save file")
    validate.add_argument(
        "--fail-on-warnings",
        action="store_true",
        help="Exit with status 2 when validation only passed with warnings",
    )
    add_validation_flags(validate)

    roundtrip = subparsers.add_parser("roundtrip", help="Decrypt and re-encrypt in memory and compare")
    roundtrip.add_argument("save", help="Encrypted save file")
    return parser


def _validation_options(args) -> ValidationOptions:
    changes = {
        "bypass_validation_failures": not args.strict,
        "validate_structure": args.validate_structure,
    }
    if args.timeout is not None:
        changes["max_processing_time"] = args.timeout
    return ValidationOptions(**changes)


def _progress(args):
    return TerminalProgress(sys.stderr) if args.progress else NULL_PROGRESS


def _cmd_decrypt(args, theme: _CliTheme, token: CancellationToken) -> int:
    service = SaveFileService(validation_options=_validation_options(args))
    text, outcome = service.load_with_outcome(args.save, token, _progress(args))
    if outcome.status is ValidationStatus.VALID_WITH_WARNINGS:
        print(theme.warn(f"{args.save}: {outcome.message}"), file=sys.stderr)
    if args.output:
        pathlib.Path(args.output).write_text(text, encoding="utf-8")
        print(theme.ok(f"Decrypted {args.save} -> {args.output}"))
    else:
        sys.stdout.write(text)
        sys.stdout.flush()
    return EXIT_OK


def _cmd_encrypt(args, theme: _CliTheme, token: CancellationToken) -> int:
    text = pathlib.Path(args.xml).read_text(encoding="utf-8")
    if not has_save_extension(args.output):
        print(theme.warn(f"{args.output} does not use the .dat save extension"), file=sys.stderr)
    service = SaveFileService(cipher_options=CipherOptions(verify_writes=args.verify))
    backup_path = service.encrypt_and_save(args.output, text, token, backup=args.backup)
    if backup_path is not None:
        print(theme.info(f"Backup written to {backup_path}"))
    print(theme.ok(f"Encrypted {args.xml} -> {args.output}"))
    return EXIT_OK


def _cmd_validate(args, theme: _CliTheme, token: CancellationToken) -> int:
    service = SaveFileService(validation_options=_validation_options(args))
    outcome = service.validate(args.save, token, _progress(args))
    detail = f"{args.save}: {outcome.description} {outcome.message} ({outcome.elapsed:.3f}s)"
    if outcome.status is ValidationStatus.VALID:
        print(theme.ok(detail))
        return EXIT_OK
    if outcome.status is ValidationStatus.VALID_WITH_WARNINGS:
        print(theme.warn(detail))
        return EXIT_WARNINGS if args.fail_on_warnings else EXIT_OK
    if outcome.status is ValidationStatus.CANCELLED:
        print(theme.info(detail))
        return EXIT_INTERRUPTED
    print(theme.err(detail))
    return EXIT_FAILED


def _cmd_roundtrip(args, theme: _CliTheme, token: CancellationToken) -> int:
    path = pathlib.Path(args.save)
    if not path.is_file():
        raise FileNotFoundError(f"Input file not found: {path}")
    original = path.read_bytes()
    cipher = XorCipher()
    plain = cipher.transform(original, token)
    again = cipher.transform(plain, token)
    if again != original:
        print(theme.err(f"{path}: round trip changed the file content"))
        return EXIT_FAILED
    print(theme.ok(f"{path}: round trip reproduced all {len(original)} bytes"))
    return EXIT_OK


_COMMANDS = {
    "decrypt": _cmd_decrypt,
    "encrypt": _cmd_encrypt,
    "validate": _cmd_validate,
    "roundtrip": _cmd_roundtrip,
}


def cli(argv=None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    theme = _CliTheme(_cli_plain_mode())
    token = CancellationToken()
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", SaveFileWarning)
        try:
            status = _COMMANDS[args.command](args, theme, token)
        except OperationCancelled as exc:
            print(theme.info(str(exc)), file=sys.stderr)
            status = EXIT_INTERRUPTED
        except (SaveFileError, OSError, ValueError) as exc:
            print(theme.err(str(exc)), file=sys.stderr)
            status = EXIT_FAILED
    for record in caught:
        if issubclass(record.category, SaveFileWarning):
            print(theme.warn(str(record.message)), file=sys.stderr)
        else:
            warnings.showwarning(record.message, record.category, record.filename, record.lineno)
    return status


def main(argv=None) -> int:
    try:
        return cli(argv)
    except KeyboardInterrupt:
        print("Exiting...")
        return EXIT_INTERRUPTED


__all__ = ["cli", "main"]
