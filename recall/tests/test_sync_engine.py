import json
import threading
import unittest
from datetime import datetime, timezone

import aiosqlite

from recall.db.sqlite_migrations import run_migrations
from recall.db.sync_engine import SyncEngine, transcript_hash
from recall.models import SyncOptions
from recall.search.sources import StaticSessionSource

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _transcript(text: str, timestamp: str = "2026-02-28T10:00:00Z", session_id: str = "sess-1") -> str:
    events = [
        {
            "type": "user",
            "timestamp": timestamp,
            "sessionId": session_id,
            "cwd": "/repo",
            "gitBranch": "feature/x",
            "message": {"role": "user", "content": text},
        },
        {
            "type": "assistant",
            "timestamp": timestamp,
            "message": {
                "role": "assistant",
                "model": "claude-sonnet",
                "usage": {"input_tokens": 4, "output_tokens": 6},
                "content": [{"type": "tool_use", "name": "Edit", "input": {"file_path": "/repo/a.py"}}],
            },
        },
    ]
    return "\n".join(json.dumps(event) for event in events)


class _FailingSource(StaticSessionSource):
    def fetch(self, session_ref):
        if session_ref == "boom":
            raise RuntimeError("disk error")
        return super().fetch(session_ref)


class _ThreadRecordingSource(StaticSessionSource):
    def __init__(self, blobs):
        super().__init__(blobs)
        self.threads = set()

    def enumerate(self):
        self.threads.add(threading.get_ident())
        return super().enumerate()

    def fetch(self, session_ref):
        self.threads.add(threading.get_ident())
        return super().fetch(session_ref)


class SyncEngineTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await aiosqlite.connect(":memory:")
        self.db.row_factory = aiosqlite.Row
        await run_migrations(self.db)
        self.engine = SyncEngine(self.db)

    async def asyncTearDown(self) -> None:
        await self.db.close()

    async def test_creates_then_skips_unchanged_sessions(self) -> None:
        source = StaticSessionSource({"a": _transcript("hello")})

        first = await self.engine.sync(source, now=NOW)
        second = await self.engine.sync(source, now=NOW)

        self.assertEqual((first.created, first.updated, first.skipped, first.errors), (1, 0, 0, 0))
        self.assertEqual((second.created, second.updated, second.skipped), (0, 0, 1))

        stored = await self.engine.session_repo.get_by_id("sess-1")
        assert stored is not None
        self.assertEqual(stored["userMessages"], ["hello"])
        self.assertEqual(stored["toolsUsed"], ["Edit"])
        self.assertEqual(stored["filesFromToolCalls"], ["/repo/a.py"])
        self.assertEqual(stored["modelTokens"]["claude-sonnet"]["output"], 6)
        self.assertEqual(stored["gitBranch"], "feature/x")
        self.assertEqual(stored["transcriptHash"], transcript_hash(_transcript("hello")))
        self.assertEqual(stored["endedAt"], "2026-02-28T10:00:00.000Z")

    async def test_changed_or_forced_sessions_are_updated(self) -> None:
        await self.engine.sync(StaticSessionSource({"a": _transcript("hello")}), now=NOW)

        changed = await self.engine.sync(StaticSessionSource({"a": _transcript("hello again")}), now=NOW)
        forced = await self.engine.sync(
            StaticSessionSource({"a": _transcript("hello again")}), SyncOptions(force=True), now=NOW
        )

        self.assertEqual(changed.updated, 1)
        self.assertEqual(forced.updated, 1)
        stored = await self.engine.session_repo.get_by_id("sess-1")
        assert stored is not None
        self.assertEqual(stored["userMessages"], ["hello again"])

    async def test_errors_and_empty_sessions_do_not_abort(self) -> None:
        source = _FailingSource(
            {
                "boom": "",
                "gone": None,
                "empty": "",
                "ok": _transcript("survivor", session_id="sess-ok"),
            }
        )

        with self.assertLogs("recall.sync", level="WARNING"):
            stats = await self.engine.sync(source, now=NOW)

        self.assertEqual((stats.created, stats.skipped, stats.errors), (1, 1, 2))
        self.assertIsNotNone(await self.engine.session_repo.get_by_id("sess-ok"))

    async def test_days_and_limit(self) -> None:
        source = StaticSessionSource(
            {
                "new": _transcript("new", timestamp="2026-02-28T00:00:00Z", session_id="new"),
                "old": _transcript("old", timestamp="2026-01-01T00:00:00Z", session_id="old"),
            }
        )

        stats = await self.engine.sync(source, SyncOptions(days=7), now=NOW)
        self.assertEqual((stats.created, stats.skipped), (1, 1))

        limited = await self.engine.sync(source, SyncOptions(limit=1, force=True), now=NOW)
        self.assertEqual(limited.created + limited.updated + limited.skipped, 1)

    async def test_source_io_runs_off_the_event_loop(self) -> None:
        source = _ThreadRecordingSource({"a": _transcript("hello")})

        stats = await self.engine.sync(source, now=NOW)

        self.assertEqual(stats.created, 1)
        self.assertTrue(source.threads)
        self.assertNotIn(threading.get_ident(), source.threads)

    async def test_zero_days_means_no_cutoff(self) -> None:
        source = StaticSessionSource({"old": _transcript("old", timestamp="2026-01-01T00:00:00Z", session_id="old")})

        stats = await self.engine.sync(source, SyncOptions(days=0), now=NOW)

        self.assertEqual(stats.created, 1)

    async def test_list_recent_orders_by_end_time(self) -> None:
        source = StaticSessionSource(
            {
                "early": _transcript("early", timestamp="2026-02-01T00:00:00Z", session_id="early"),
                "late": _transcript("late", timestamp="2026-02-20T00:00:00Z", session_id="late"),
            }
        )
        await self.engine.sync(source, now=NOW)

        recent = await self.engine.session_repo.list_recent(10)
        self.assertEqual([row["id"] for row in recent], ["late", "early"])


if __name__ == "__main__":
    unittest.main()
