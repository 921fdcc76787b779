from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path

from riffpack.discovery import parse_riff_name, riff_file_name, scan_projects
from riffpack.errors import DiscoveryError
from riffpack.models import RiffStatus


def _write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


class DiscoveryTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def test_parse_riff_name(self):
        self.assertEqual(parse_riff_name("120~1~A~"), (1, "A", RiffStatus.NONE))
        self.assertEqual(parse_riff_name("120~2~B~1"), (2, "B", RiffStatus.IN_USE))
        self.assertEqual(parse_riff_name("120~3~~2"), (3, "", RiffStatus.REJECTED))
        self.assertEqual(parse_riff_name("120~4~C~0"), (4, "C", RiffStatus.NONE))
        self.assertIsNone(parse_riff_name("120~x~A~"))
        self.assertIsNone(parse_riff_name("120~1~has space~"))
        self.assertIsNone(parse_riff_name("120~1~A"))
        with self.assertRaises(ValueError):
            parse_riff_name("120~1~A~7")

    def test_riff_file_name_inverts_parse(self):
        for status in RiffStatus:
            name = riff_file_name(128, 5, "Chorus", status)
            self.assertTrue(name.endswith(".mp3"))
            self.assertEqual(parse_riff_name(name[:-4]), (5, "Chorus", status))

    def test_scan_collects_projects_and_skips_problems(self):
        def scenario(root: Path):
            _write(root / "RiffCollection120BPM" / "Render" / "120~1~A~.mp3", b"a" * 10)
            _write(root / "RiffCollection120BPM" / "Render" / "120~2~B~1.mp3", b"b" * 20)
            _write(root / "RiffCollection120BPM" / "Render" / "bogus.mp3", b"?")
            _write(root / "RiffCollection120BPM" / "Render" / "120~3~C~9.mp3", b"?")
            _write(root / "RiffCollection120BPM" / "Render" / "notes.txt", b"ignored")
            _write(root / "RiffCollection90BPM" / "Render" / "90~1~Intro~2.mp3", b"c")
            _write(root / "RiffCollection0090BPM" / "Render" / "90~2~Dup~.mp3", b"d")
            _write(root / "RiffCollection0BPM" / "Render" / "0~1~Z~.mp3", b"z")
            (root / "RiffCollectionFastBPM").mkdir()
            (root / "RiffCollection100BPM").mkdir()
            (root / "Unrelated").mkdir()
            _write(root / "RiffCollection140BPM.mp3", b"file, not a project")

            result = scan_projects(str(root))
            by_bpm = {p.bpm: p for p in result.projects}
            self.assertEqual(set(by_bpm), {90, 120})
            self.assertEqual(result.riff_count, 3)
            riffs120 = {r.index: r for r in by_bpm[120].riffs}
            self.assertEqual(riffs120[1].note, "A")
            self.assertEqual(riffs120[1].status, RiffStatus.NONE)
            self.assertEqual(riffs120[1].data, b"a" * 10)
            self.assertEqual(riffs120[2].status, RiffStatus.IN_USE)
            self.assertEqual([r.note for r in by_bpm[90].riffs], ["Dup"])

            self.assertTrue(all(isinstance(e, DiscoveryError) for e in result.errors))
            failed = {os.path.basename(e.path) for e in result.errors}
            self.assertEqual(
                failed,
                {
                    "bogus.mp3",
                    "120~3~C~9.mp3",
                    "RiffCollection0BPM",
                    "RiffCollectionFastBPM",
                    "RiffCollection100BPM",
                    # "0090" sorts before "90" and wins the BPM
                    "RiffCollection90BPM",
                },
            )

        self.run_with_tmpdir(scenario)

    def test_scan_skips_riff_that_would_share_a_file_name(self):
        def scenario(root: Path):
            render = root / "RiffCollection120BPM" / "Render"
            _write(render / "1~1~A~.mp3", b"first")
            _write(render / "2~1~A~.mp3", b"second")
            _write(render / "3~1~A~1.mp3", b"other status")
            result = scan_projects(str(root))
            riffs = result.projects[0].riffs
            self.assertEqual([(r.index, r.note, r.status, r.data) for r in riffs], [
                (1, "A", RiffStatus.NONE, b"first"),
                (1, "A", RiffStatus.IN_USE, b"other status"),
            ])
            self.assertEqual([os.path.basename(e.path) for e in result.errors], ["2~1~A~.mp3"])

        self.run_with_tmpdir(scenario)

    def test_scan_empty_root(self):
        def scenario(root: Path):
            result = scan_projects(str(root))
            self.assertEqual(result.projects, [])
            self.assertEqual(result.errors, [])

        self.run_with_tmpdir(scenario)

    def test_missing_root(self):
        def scenario(root: Path):
            with self.assertRaises(FileNotFoundError):
                scan_projects(str(root / "missing"))

        self.run_with_tmpdir(scenario)


if __name__ == "__main__":
    unittest.main()
