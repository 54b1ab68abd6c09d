import io
import os
import subprocess
import sys
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from tempfile import TemporaryDirectory

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from savecrypt.cli import cli  # noqa: E402
from savecrypt.engine import XorCipher  # noqa: E402

SAVE_TEXT = "<root><a>1</a></root>"


class CliTests(unittest.TestCase):
    """Smoke tests for ``python -m savecrypt``."""

    def setUp(self) -> None:
        self.tmpdir = TemporaryDirectory()
        self.tmp_path = Path(self.tmpdir.name)
        self.repo_root = REPO_ROOT
        self.xml_path = self.tmp_path / "save.xml"
        self.xml_path.write_text(SAVE_TEXT, encoding="utf-8")
        self.save_path = self.tmp_path / "save.dat"

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def _run_cli(self, *args: str) -> subprocess.CompletedProcess:
        env = os.environ.copy()
        env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(self.repo_root), env.get("PYTHONPATH")]))
        env["NO_COLOR"] = "1"
        return subprocess.run(
            [sys.executable, "-m", "savecrypt", *args],
            cwd=self.repo_root,
            capture_output=True,
            text=True,
            encoding="utf-8",
            env=env,
        )

    def _write_corrupted(self) -> None:
        self.save_path.write_bytes(XorCipher().transform(b"<rxot><a>1</a></root>"))

    def test_encrypt_validate_decrypt(self):
        result = self._run_cli("encrypt", str(self.xml_path), "-o", str(self.save_path))
        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertEqual(self.save_path.read_bytes(), XorCipher().transform(SAVE_TEXT.encode()))

        result = self._run_cli("validate", str(self.save_path))
        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn("The save file is valid.", result.stdout)

        out_path = self.tmp_path / "out.xml"
        result = self._run_cli("decrypt", str(self.save_path), "-o", str(out_path))
        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertEqual(out_path.read_text(encoding="utf-8"), SAVE_TEXT)

    def test_decrypt_to_stdout(self):
        self.save_path.write_bytes(XorCipher().transform(SAVE_TEXT.encode()))
        result = self._run_cli("decrypt", str(self.save_path))
        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertEqual(result.stdout, SAVE_TEXT)

    def test_encrypt_twice_makes_backup(self):
        self._run_cli("encrypt", str(self.xml_path), "-o", str(self.save_path))
        result = self._run_cli("encrypt", str(self.xml_path), "-o", str(self.save_path))
        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn("Backup written to", result.stdout)
        backups = list(self.tmp_path.glob("save_backup_*.dat"))
        self.assertEqual(len(backups), 1)

    def test_encrypt_rejects_xml_without_root(self):
        self.xml_path.write_text("<characters/>", encoding="utf-8")
        result = self._run_cli("encrypt", str(self.xml_path), "-o", str(self.save_path))
        self.assertEqual(result.returncode, 1)
        self.assertIn("<root>", result.stderr)
        self.assertFalse(self.save_path.exists())

    def test_validate_exit_codes_for_corrupted_file(self):
        self._write_corrupted()
        self.assertEqual(self._run_cli("validate", str(self.save_path)).returncode, 0)
        warned = self._run_cli("validate", str(self.save_path), "--fail-on-warnings")
        self.assertEqual(warned.returncode, 2)
        self.assertIn("Bypassing invalid_format failure", warned.stderr)
        self.assertEqual(self._run_cli("validate", str(self.save_path), "--strict").returncode, 1)

    def test_decrypt_strict_refuses_corrupted_file(self):
        self._write_corrupted()
        result = self._run_cli("decrypt", str(self.save_path), "--strict")
        self.assertEqual(result.returncode, 1)
        self.assertEqual(result.stdout, "")

    def test_missing_file(self):
        result = self._run_cli("decrypt", str(self.tmp_path / "absent.dat"))
        self.assertEqual(result.returncode, 1)
        result = self._run_cli("roundtrip", str(self.tmp_path / "absent.dat"))
        self.assertEqual(result.returncode, 1)
        self.assertIn("Input file not found", result.stderr)

    def test_roundtrip(self):
        self.save_path.write_bytes(os.urandom(5000))
        result = self._run_cli("roundtrip", str(self.save_path))
        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn("5000 bytes", result.stdout)

    def test_bad_timeout(self):
        self.save_path.write_bytes(XorCipher().transform(SAVE_TEXT.encode()))
        result = self._run_cli("validate", str(self.save_path), "--timeout", "0")
        self.assertEqual(result.returncode, 1)

    def test_in_process_validate_with_progress(self):
        self.save_path.write_bytes(XorCipher().transform(SAVE_TEXT.encode()))
        stdout, stderr = io.StringIO(), io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            status = cli(["validate", str(self.save_path), "--progress"])
        self.assertEqual(status, 0)
        self.assertIn("100%", stderr.getvalue())
        self.assertIn("save.dat", stdout.getvalue())


if __name__ == "__main__":
    unittest.main()
