import unittest
from datetime import datetime, timedelta, timezone

from recall.models import ParsedSession, SearchOptions
from recall.search.filters import matches_filters

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _session(ended_days_ago: float = 1, tools=("Read", "MultiEdit"), files=("src/App.tsx", "/repo/api/server.py")) -> ParsedSession:
    ended = NOW - timedelta(days=ended_days_ago)
    return ParsedSession(
        id="s-1",
        startedAt=ended - timedelta(hours=1),
        endedAt=ended,
        userMessages=["hello"],
        toolsUsed=list(tools),
        filesFromToolCalls=list(files),
        messageCount=2,
    )


class FilterTests(unittest.TestCase):
    def test_no_options_accepts_everything(self) -> None:
        self.assertTrue(matches_filters(_session(ended_days_ago=400), SearchOptions(), NOW))

    def test_days_window_excludes_older_sessions(self) -> None:
        options = SearchOptions(days=7)
        self.assertTrue(matches_filters(_session(ended_days_ago=3), options, NOW))
        self.assertFalse(matches_filters(_session(ended_days_ago=10), options, NOW))

    def test_zero_days_is_no_window(self) -> None:
        self.assertTrue(matches_filters(_session(ended_days_ago=400), SearchOptions(days=0), NOW))

    def test_since_until_window_is_inclusive(self) -> None:
        session = _session(ended_days_ago=5)
        ended = session.endedAt
        self.assertTrue(matches_filters(session, SearchOptions(since=ended, until=ended), NOW))
        self.assertFalse(matches_filters(session, SearchOptions(since=ended + timedelta(seconds=1)), NOW))
        self.assertFalse(matches_filters(session, SearchOptions(until=ended - timedelta(seconds=1)), NOW))

    def test_days_and_since_both_apply(self) -> None:
        session = _session(ended_days_ago=5)
        options = SearchOptions(days=3, since=NOW - timedelta(days=30))
        self.assertFalse(matches_filters(session, options, NOW))
        options = SearchOptions(days=30, since=NOW - timedelta(days=3))
        self.assertFalse(matches_filters(session, options, NOW))
        options = SearchOptions(days=30, since=NOW - timedelta(days=10))
        self.assertTrue(matches_filters(session, options, NOW))

    def test_naive_bounds_are_treated_as_utc(self) -> None:
        session = _session(ended_days_ago=1)
        naive_since = (session.endedAt - timedelta(minutes=1)).replace(tzinfo=None)
        self.assertTrue(matches_filters(session, SearchOptions(since=naive_since), NOW))

    def test_tool_filter_uses_case_insensitive_substrings(self) -> None:
        session = _session()
        self.assertTrue(matches_filters(session, SearchOptions(tools=["edit"]), NOW))
        self.assertTrue(matches_filters(session, SearchOptions(tools=["Bash", "READ"]), NOW))
        self.assertFalse(matches_filters(session, SearchOptions(tools=["Bash"]), NOW))

    def test_file_pattern_filter(self) -> None:
        session = _session()
        self.assertTrue(matches_filters(session, SearchOptions(filePattern="app.tsx"), NOW))
        self.assertTrue(matches_filters(session, SearchOptions(filePattern="API/"), NOW))
        self.assertFalse(matches_filters(session, SearchOptions(filePattern="components/"), NOW))

    def test_all_rules_must_pass(self) -> None:
        session = _session(ended_days_ago=2)
        options = SearchOptions(days=7, tools=["edit"], filePattern="missing")
        self.assertFalse(matches_filters(session, options, NOW))


if __name__ == "__main__":
    unittest.main()
