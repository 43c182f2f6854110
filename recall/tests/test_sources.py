import os
import subprocess
import tempfile
import time
import unittest
from pathlib import Path
from unittest.mock import patch

from recall.search import sources
from recall.search.sources import DirectorySessionSource, OpenCodeCliSource, build_source


class DirectorySessionSourceTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.base = Path(tmpdir.name)

    def _write(self, relative: str, age_days: float = 0) -> Path:
        path = self.base / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text('{"type": "user"}', encoding="utf-8")
        mtime = time.time() - age_days * 86400
        os.utime(path, (mtime, mtime))
        return path

    def test_lists_project_transcripts_newest_first(self) -> None:
        older = self._write("-home-dev-a/older.jsonl", age_days=2)
        newer = self._write("-home-dev-b/newer.jsonl", age_days=1)
        self._write("-home-dev-a/notes.txt")
        self._write("stray.jsonl")

        self.assertEqual(DirectorySessionSource(self.base).enumerate(), [str(newer), str(older)])

    def test_days_and_limit(self) -> None:
        recent = self._write("p/recent.jsonl", age_days=1)
        self._write("p/mid.jsonl", age_days=3)
        self._write("p/ancient.jsonl", age_days=30)

        self.assertEqual(len(DirectorySessionSource(self.base, days=7).enumerate()), 2)
        self.assertEqual(len(DirectorySessionSource(self.base, days=0).enumerate()), 3)
        self.assertEqual(DirectorySessionSource(self.base, limit=1).enumerate(), [str(recent)])

    def test_missing_directory_and_file(self) -> None:
        source = DirectorySessionSource(self.base / "nope")
        self.assertEqual(source.enumerate(), [])
        with self.assertLogs("recall.sources", level="WARNING"):
            self.assertIsNone(source.fetch(str(self.base / "nope.jsonl")))

    def test_fetch_returns_bytes(self) -> None:
        path = self._write("p/one.jsonl")
        self.assertEqual(DirectorySessionSource(self.base).fetch(str(path)), b'{"type": "user"}')


class OpenCodeCliSourceTests(unittest.TestCase):
    def test_enumerate_extracts_session_ids(self) -> None:
        listing = '[{"id": "ses_A1b2"}, {"id": "ses_Z9"}]\nses_A1b2 duplicated\n'
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout=listing, stderr="")
        with patch.object(sources.subprocess, "run", return_value=completed) as run:
            ids = OpenCodeCliSource(binary="opencode", limit=5).enumerate()

        self.assertEqual(ids, ["ses_A1b2", "ses_Z9"])
        cmd = run.call_args.args[0]
        self.assertEqual(cmd[:5], ["opencode", "session", "list", "--format", "json"])
        self.assertEqual(cmd[-2:], ["--max-count", "5"])

    def test_enumerate_failure_returns_empty(self) -> None:
        with patch.object(sources.subprocess, "run", side_effect=FileNotFoundError("opencode")):
            self.assertEqual(OpenCodeCliSource().enumerate(), [])

    def test_fetch_failure_and_size_cap(self) -> None:
        timeout = subprocess.TimeoutExpired(cmd="opencode export", timeout=1)
        with patch.object(sources.subprocess, "run", side_effect=timeout):
            self.assertIsNone(OpenCodeCliSource().fetch("ses_1"))

        big = subprocess.CompletedProcess(args=[], returncode=0, stdout=b"x" * 11, stderr=b"")
        with patch.object(sources.subprocess, "run", return_value=big):
            self.assertIsNone(OpenCodeCliSource(max_bytes=10).fetch("ses_1"))
            self.assertEqual(OpenCodeCliSource(max_bytes=20).fetch("ses_1"), b"x" * 11)


class BuildSourceTests(unittest.TestCase):
    def test_known_and_unknown_kinds(self) -> None:
        self.assertIsInstance(build_source("claude-code", base_dir=Path("/tmp")), DirectorySessionSource)
        self.assertIsInstance(build_source("opencode"), OpenCodeCliSource)
        with self.assertRaises(ValueError):
            build_source("cursor")


if __name__ == "__main__":
    unittest.main()
