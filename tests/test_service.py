import datetime
import sys
import unittest
import warnings
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import mock

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import savecrypt  # noqa: E402
from savecrypt.cancel import CancellationToken  # noqa: E402
from savecrypt.engine import XorCipher  # noqa: E402
from savecrypt.errors import (  # noqa: E402
    BackupWarning,
    BypassWarning,
    InvalidSaveFile,
    OperationCancelled,
    SaveContentError,
    VerificationFailed,
)
from savecrypt.options import ValidationOptions  # noqa: E402
from savecrypt.service import SaveFileService  # noqa: E402
from savecrypt.validator import ValidationStatus  # noqa: E402

SAVE_TEXT = "<root><characters><c name=\"Ana\" str=\"7\"/></characters></root>"
FIXED_NOW = datetime.datetime(2024, 1, 2, 3, 4, 5)


class SaveFileServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = TemporaryDirectory()
        self.tmp_path = Path(self.tmpdir.name)
        self.service = SaveFileService(clock=lambda: FIXED_NOW)
        self.strict = SaveFileService(
            validation_options=ValidationOptions(bypass_validation_failures=False),
            clock=lambda: FIXED_NOW,
        )
        self.save_path = self.tmp_path / "slot1.dat"

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def test_disk_roundtrip(self):
        self.assertIsNone(self.service.encrypt_and_save(self.save_path, SAVE_TEXT))
        self.assertEqual(self.save_path.read_bytes(), XorCipher().transform(SAVE_TEXT.encode()))
        self.assertEqual(self.service.load_and_decrypt(self.save_path), SAVE_TEXT)

    def test_small_valid_scenario(self):
        self.save_path.write_bytes(XorCipher().transform(b"<root><a>1</a></root>"))
        self.assertIs(self.service.validate(self.save_path).status, ValidationStatus.VALID)
        self.assertEqual(self.service.load_and_decrypt(self.save_path), "<root><a>1</a></root>")

    def test_non_ascii_text_roundtrip(self):
        text = "<root><note>café ✓ ünïcode</note></root>"
        self.service.encrypt_and_save(self.save_path, text)
        self.assertEqual(self.service.load_and_decrypt(self.save_path), text)

    def test_content_must_have_root_markers(self):
        with self.assertRaises(SaveContentError):
            self.service.encrypt_and_save(self.save_path, "<characters/>")
        with self.assertRaises(SaveContentError):
            self.service.encrypt_and_save(self.save_path, "")
        with self.assertRaises(TypeError):
            self.service.encrypt_and_save(self.save_path, SAVE_TEXT.encode())
        self.assertFalse(self.save_path.exists())

    def test_backup_of_existing_file(self):
        self.service.encrypt_and_save(self.save_path, SAVE_TEXT)
        old_bytes = self.save_path.read_bytes()
        backup = self.service.encrypt_and_save(self.save_path, SAVE_TEXT.replace("7", "9"))
        self.assertEqual(backup, self.tmp_path / "slot1_backup_20240102_030405.dat")
        self.assertEqual(backup.read_bytes(), old_bytes)
        self.assertIn('str="9"', self.service.load_and_decrypt(self.save_path))

    def test_backup_names_do_not_collide(self):
        self.service.encrypt_and_save(self.save_path, SAVE_TEXT)
        first = self.service.create_backup(self.save_path)
        second = self.service.create_backup(self.save_path)
        third = self.service.create_backup(self.save_path)
        self.assertEqual(first.name, "slot1_backup_20240102_030405.dat")
        self.assertEqual(second.name, "slot1_backup_20240102_030405_1.dat")
        self.assertEqual(third.name, "slot1_backup_20240102_030405_2.dat")

    def test_backup_can_be_skipped(self):
        self.service.encrypt_and_save(self.save_path, SAVE_TEXT)
        self.assertIsNone(self.service.encrypt_and_save(self.save_path, SAVE_TEXT, backup=False))
        self.assertEqual([p.name for p in self.tmp_path.iterdir()], ["slot1.dat"])

    def test_backup_failure_is_not_fatal(self):
        with self.assertWarns(BackupWarning):
            self.assertIsNone(self.service.create_backup(self.tmp_path / "absent.dat"))
        self.service.encrypt_and_save(self.save_path, SAVE_TEXT)
        with mock.patch("savecrypt.service.shutil.copyfileobj", side_effect=OSError("disk full")):
            with self.assertWarns(BackupWarning):
                self.assertIsNone(self.service.create_backup(self.save_path))
        self.assertEqual([p.name for p in self.tmp_path.iterdir()], ["slot1.dat"])

    def test_backup_respects_cancellation(self):
        self.service.encrypt_and_save(self.save_path, SAVE_TEXT)
        token = CancellationToken()
        token.cancel()
        with self.assertRaises(OperationCancelled):
            self.service.create_backup(self.save_path, token)

    def test_invalid_file_is_refused_when_strict(self):
        self.save_path.write_bytes(XorCipher().transform(b"<rooot><a/></root>"))
        with self.assertRaises(InvalidSaveFile) as ctx:
            self.strict.load_and_decrypt(self.save_path)
        self.assertIs(ctx.exception.outcome.status, ValidationStatus.INVALID_FORMAT)

    def test_bypassed_file_still_loads(self):
        self.save_path.write_bytes(XorCipher().transform(b"<rooot><a/></root>"))
        with self.assertWarns(BypassWarning):
            text, outcome = self.service.load_with_outcome(self.save_path)
        self.assertEqual(text, "<rooot><a/></root>")
        self.assertIs(outcome.status, ValidationStatus.VALID_WITH_WARNINGS)

    def test_undecodable_content(self):
        self.save_path.write_bytes(XorCipher().transform(b"<root>\xff\xfe</root>"))
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", BypassWarning)
            with self.assertRaises(SaveContentError):
                self.service.load_and_decrypt(self.save_path)

    def test_oversized_file_is_refused_even_with_bypass(self):
        service = SaveFileService(validation_options=ValidationOptions(max_file_size=16))
        self.save_path.write_bytes(XorCipher().transform(SAVE_TEXT.encode()))
        with self.assertRaises(InvalidSaveFile) as ctx:
            service.load_and_decrypt(self.save_path)
        self.assertIs(ctx.exception.outcome.status, ValidationStatus.FILE_TOO_LARGE)

    def test_cancelled_load(self):
        self.service.encrypt_and_save(self.save_path, SAVE_TEXT)
        token = CancellationToken()
        token.cancel()
        with self.assertRaises(OperationCancelled):
            self.service.load_and_decrypt(self.save_path, token)

    def test_verification_failure_is_fatal(self):
        with mock.patch.object(self.service.files, "load_and_decrypt", return_value=b"<root></root>"):
            with self.assertRaises(VerificationFailed):
                self.service.encrypt_and_save(self.save_path, SAVE_TEXT)


class ApiFilesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = TemporaryDirectory()
        self.tmp_path = Path(self.tmpdir.name)

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def test_save_and_load(self):
        path = self.tmp_path / "slot.dat"
        self.assertIsNone(savecrypt.save_save(path, SAVE_TEXT))
        self.assertEqual(savecrypt.load_save(path), SAVE_TEXT)
        self.assertTrue(savecrypt.is_valid_save(path))
        self.assertIs(savecrypt.validate_save(path).status, ValidationStatus.VALID)
        backup = savecrypt.backup_save(path)
        self.assertTrue(backup.name.startswith("slot_backup_"))

    def test_raw_bytes(self):
        path = self.tmp_path / "raw.dat"
        savecrypt.encrypt_file(path, b"\x00\x01payload")
        self.assertEqual(savecrypt.decrypt_file(path), b"\x00\x01payload")
        self.assertEqual(path.read_bytes(), savecrypt.xor_transform(b"\x00\x01payload"))


if __name__ == "__main__":
    unittest.main()
