from __future__ import annotations

import os
import subprocess
import sys
import tempfile
import unittest
import zipfile
from pathlib import Path
from typing import Dict, Tuple

from riffpack.constants import DEFAULT_DECRYPTED_PATH, DEFAULT_PACK_PATH, MANIFEST_NAME
from riffpack.encryption import _HAS_CRYPTODOME, derive_key
from riffpack.pack import read_pack


def _build_fixture_tree(root: Path) -> Dict[Tuple[int, int, str], bytes]:
    riffs: Dict[Tuple[int, int, str], bytes] = {}
    render = root / "RiffCollection120BPM" / "Render"
    render.mkdir(parents=True)
    for name, key in (("120~1~A~.mp3", (120, 1, "A")), ("120~2~B~1.mp3", (120, 2, "B"))):
        data = os.urandom(2048)
        (render / name).write_bytes(data)
        riffs[key] = data
    (render / "not-a-riff.mp3").write_bytes(b"skip me")
    (root / "RiffCollection140BPM").mkdir()
    return riffs


@unittest.skipUnless(_HAS_CRYPTODOME, "PyCryptodomex required")
class CLIIntegrationTests(unittest.TestCase):
    def run_cli(self, args, *, expect: int | None = 0, cwd: Path | None = None, entry: str = "main"):
        code = f"import sys; from riffpack.cli import {entry}; {entry}(sys.argv[1:])"
        cmd = [sys.executable, "-c", code] + list(args)
        env = os.environ.copy()
        repo_root = Path(__file__).resolve().parent
        existing = env.get("PYTHONPATH", "")
        env["PYTHONPATH"] = str(repo_root) if not existing else f"{repo_root}{os.pathsep}{existing}"
        proc = subprocess.run(
            cmd,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=env,
        )
        if expect is not None and proc.returncode != expect:
            raise AssertionError(
                f"CLI exited {proc.returncode}, expected {expect}\nCommand: {' '.join(cmd)}\nSTDOUT:\n{proc.stdout}\nSTDERR:\n{proc.stderr}"
            )
        return proc

    def make_workspace(self) -> Path:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        return Path(tmp.name)

    def test_pack_writes_default_outputs(self):
        workspace = self.make_workspace()
        src = workspace / "projects"
        src.mkdir()
        _build_fixture_tree(src)

        proc = self.run_cli([str(src), "secret"], cwd=workspace)
        self.assertIn("Done: 2 riffs from 1 projects", proc.stdout)
        self.assertIn("IV sample:", proc.stdout)
        self.assertIn("not-a-riff.mp3", proc.stderr)
        self.assertIn("RiffCollection140BPM", proc.stderr)

        pack_path = workspace / DEFAULT_PACK_PATH
        copy_path = workspace / DEFAULT_DECRYPTED_PATH
        self.assertTrue(pack_path.exists())
        self.assertTrue(copy_path.exists())
        self.assertEqual(copy_path.read_bytes(), read_pack(str(pack_path), derive_key("secret")))
        with zipfile.ZipFile(str(copy_path)) as zf:
            self.assertIn(MANIFEST_NAME, zf.namelist())
            self.assertEqual(len(zf.namelist()), 3)

    def test_pack_then_unpack(self):
        workspace = self.make_workspace()
        src = workspace / "projects"
        src.mkdir()
        riffs = _build_fixture_tree(src)
        pack_path = workspace / "out" / "my.pack"

        proc = self.run_cli(
            [str(src), "secret", "--output", str(pack_path), "--decrypted-output", "", "--quiet"],
            cwd=workspace,
        )
        self.assertNotIn("IV sample", proc.stdout)
        self.assertIn("Done:", proc.stdout)
        self.assertFalse((workspace / DEFAULT_DECRYPTED_PATH).exists())

        outdir = workspace / "extracted"
        proc = self.run_cli([str(pack_path), "secret", "--outdir", str(outdir)], cwd=workspace, entry="unpack_main")
        self.assertIn("Done: extracted 2/2 riffs", proc.stdout)
        render = outdir / "RiffCollection120BPM" / "Render"
        self.assertEqual((render / "120~1~A~.mp3").read_bytes(), riffs[(120, 1, "A")])
        self.assertEqual((render / "120~2~B~1.mp3").read_bytes(), riffs[(120, 2, "B")])

    def test_unpack_wrong_password(self):
        workspace = self.make_workspace()
        src = workspace / "projects"
        src.mkdir()
        _build_fixture_tree(src)
        self.run_cli([str(src), "secret", "--quiet"], cwd=workspace)
        proc = self.run_cli([DEFAULT_PACK_PATH, "nope"], cwd=workspace, expect=2, entry="unpack_main")
        self.assertIn("Error:", proc.stderr)
        self.assertFalse((workspace / "RiffCollection120BPM").exists())

    def test_missing_directory(self):
        workspace = self.make_workspace()
        proc = self.run_cli([str(workspace / "missing"), "secret"], cwd=workspace, expect=2)
        self.assertIn("Error:", proc.stderr)
        self.assertFalse((workspace / DEFAULT_PACK_PATH).exists())

    def test_wrong_argument_count(self):
        workspace = self.make_workspace()
        self.run_cli([str(workspace)], cwd=workspace, expect=2)
        self.run_cli([], cwd=workspace, expect=2)


if __name__ == "__main__":
    unittest.main()
