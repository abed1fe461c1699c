"""Bounded, score-ordered retention of high-scoring candidates."""

import threading
from typing import List

from loguru import logger

from .models import Candidate


DEFAULT_CAPACITY = 100


class CandidateStore:
    """
    Keeps the top-N candidates, sorted descending by total score.

    Writes build a new list and swap it in under a lock, so readers only
    ever see a fully sorted, truncated snapshot. Sorting is stable: among
    equal scores, earlier insertions rank first.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._candidates: List[Candidate] = []
        self._ids = frozenset()
        self._lock = threading.Lock()

    def add(self, candidate: Candidate) -> bool:
        """
        Insert a candidate, evicting the lowest scores beyond capacity.

        Returns:
            True if the candidate is retained after truncation
        """
        with self._lock:
            if candidate.id in self._ids:
                raise ValueError(f"Candidate {candidate.id} already stored")

            ranked = sorted(
                self._candidates + [candidate],
                key=lambda c: c.score,
                reverse=True
            )
            evicted = ranked[self.capacity:]
            ranked = ranked[:self.capacity]

            self._candidates = ranked
            self._ids = frozenset(c.id for c in ranked)

        if evicted:
            logger.debug(f"Evicted {len(evicted)} candidate(s) below score {ranked[-1].score}")
        return candidate.id in self._ids

    def list(self) -> List[Candidate]:
        """Snapshot of the store, highest score first."""
        return list(self._candidates)

    def clear(self) -> None:
        with self._lock:
            self._candidates = []
            self._ids = frozenset()
        logger.info("Candidate store cleared")

    def __len__(self) -> int:
        return len(self._candidates)

    def __contains__(self, candidate_id: str) -> bool:
        return candidate_id in self._ids
