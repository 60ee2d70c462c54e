from __future__ import annotations

from typing import Iterable

from .compatibility import CompatibilityCandidate


def rank_key(candidate: CompatibilityCandidate) -> tuple[int, int]:
    return (0 if candidate.is_exact else 1, candidate.date_difference_days)


def rank(candidates: Iterable[CompatibilityCandidate]) -> list[CompatibilityCandidate]:
    """Exact matches first, then by date difference; ties keep discovery order."""
    return sorted(candidates, key=rank_key)


def pick_best(candidates: Iterable[CompatibilityCandidate]) -> CompatibilityCandidate | None:
    # First exact candidate wins, otherwise the first one found
    best = None
    for candidate in candidates:
        if candidate is None:
            continue
        if best is None or (candidate.is_exact and not best.is_exact):
            best = candidate
    return best
