"""Unit tests for candidate ordering."""

from carrymatch.matching.compatibility import (
    EXACT,
    FLEXIBLE_BOTH,
    FLEXIBLE_DATE,
    FLEXIBLE_LOCATION,
    CompatibilityCandidate,
)
from carrymatch.matching.ranking import pick_best, rank


def candidate(match_type, diff=0, label=None):
    return CompatibilityCandidate(trip=label, shipment=None, match_type=match_type, date_difference_days=diff)


class TestRank:

    def test_exact_first_then_date_difference(self):
        ranked = rank([
            candidate(FLEXIBLE_DATE, 2),
            candidate(EXACT),
            candidate(FLEXIBLE_BOTH, 1),
        ])
        assert [(c.match_type, c.date_difference_days) for c in ranked] == [
            (EXACT, 0),
            (FLEXIBLE_BOTH, 1),
            (FLEXIBLE_DATE, 2),
        ]

    def test_ties_keep_discovery_order(self):
        first = candidate(FLEXIBLE_LOCATION, 0, "first")
        second = candidate(FLEXIBLE_DATE, 0, "second")
        third = candidate(EXACT, 0, "third")
        fourth = candidate(EXACT, 0, "fourth")
        assert [c.trip for c in rank([first, second, third, fourth])] == ["third", "fourth", "first", "second"]

    def test_empty(self):
        assert rank([]) == []


class TestPickBest:

    def test_exact_wins(self):
        best = pick_best([candidate(FLEXIBLE_DATE, 0, "a"), candidate(EXACT, 0, "b"), candidate(EXACT, 0, "c")])
        assert best.trip == "b"

    def test_first_found_without_exact(self):
        best = pick_best([candidate(FLEXIBLE_BOTH, 3, "a"), candidate(FLEXIBLE_DATE, 1, "b")])
        assert best.trip == "a"

    def test_nothing_to_pick(self):
        assert pick_best([]) is None
        assert pick_best([None]) is None
