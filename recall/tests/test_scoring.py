import unittest
from datetime import datetime, timezone

from recall.models import ParsedSession
from recall.search.scoring import explain_relevance, query_terms, score_relevance

_TS = datetime(2026, 2, 1, tzinfo=timezone.utc)


def _session(**fields) -> ParsedSession:
    base = {
        "id": "s-1",
        "startedAt": _TS,
        "endedAt": _TS,
        "userMessages": ["placeholder"],
        "messageCount": 1,
    }
    base.update(fields)
    return ParsedSession(**base)


class ScoringTests(unittest.TestCase):
    def test_empty_query_scores_one(self) -> None:
        session = _session()
        self.assertEqual(score_relevance(session, None), 1)
        self.assertEqual(score_relevance(session, ""), 1)
        self.assertEqual(score_relevance(session, "   "), 1)

    def test_message_and_file_matches(self) -> None:
        session = _session(
            userMessages=["Let's build septa tracker", "ship it"],
            filesFromToolCalls=["src/septa.ts"],
            toolsUsed=["Write"],
        )
        self.assertEqual(score_relevance(session, "septa"), 13)

    def test_title_only_match(self) -> None:
        session = _session(title="Septa App", userMessages=["fix the bug"])
        self.assertEqual(score_relevance(session, "septa"), 15)
        self.assertEqual(score_relevance(session, "fix"), 10)
        self.assertEqual(score_relevance(session, "nothing"), 0)

    def test_field_weights(self) -> None:
        session = _session(
            title="Router rewrite",
            userMessages=["rewrite the router", "router again", "unrelated"],
            cwd="/home/dev/router-app",
            toolsUsed=["RouterTool", "Bash"],
            filesFromToolCalls=["src/router.ts", "src/router.test.ts", "README.md/x"],
        )
        score, matched_on = explain_relevance(session, "ROUTER")
        self.assertEqual(score, 15 + 2 * 10 + 5 + 3 + 2 * 3)
        self.assertEqual(matched_on, ["title", "userMessages", "cwd", "toolsUsed", "filesFromToolCalls"])

    def test_multiple_terms_accumulate(self) -> None:
        session = _session(userMessages=["septa trains are late"])
        self.assertEqual(score_relevance(session, "septa trains"), 20)
        self.assertEqual(score_relevance(session, "septa  bus"), 10)

    def test_repeated_occurrence_in_one_message_counts_once(self) -> None:
        once = _session(userMessages=["septa"])
        twice = _session(userMessages=["septa septa septa"])
        self.assertEqual(score_relevance(once, "septa"), score_relevance(twice, "septa"))

    def test_additional_occurrence_never_lowers_score(self) -> None:
        base = _session(userMessages=["one", "two"])
        more = _session(userMessages=["one", "two septa"])
        self.assertGreaterEqual(score_relevance(more, "septa"), score_relevance(base, "septa"))

    def test_query_terms_are_lowercased_and_unique(self) -> None:
        self.assertEqual(query_terms("  Septa\tBUS septa \n"), ["septa", "bus"])
        self.assertEqual(query_terms(None), [])


if __name__ == "__main__":
    unittest.main()
