"""Data models for the QIG search daemon."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional, Tuple

import ulid


PHRASE_WORD_COUNT = 12


@dataclass(frozen=True)
class Phrase:
    """A validated passphrase of exactly twelve words.

    ``text`` is the trimmed phrase as supplied and is what gets derived;
    ``words`` holds the lower-cased tokens used for scoring.
    """
    text: str
    words: Tuple[str, ...]

    @property
    def normalized(self) -> str:
        return " ".join(self.words)

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class QIGScore:
    """Three-factor heuristic score, every field in [0, 100]."""
    context_score: float
    elegance_score: float
    typing_score: float
    total_score: float

    def to_dict(self) -> Dict[str, float]:
        return {
            'contextScore': self.context_score,
            'eleganceScore': self.elegance_score,
            'typingScore': self.typing_score,
            'totalScore': self.total_score,
        }


@dataclass(frozen=True)
class Candidate:
    """A high-scoring phrase retained by the candidate store."""
    phrase: str
    address: str
    qig_score: QIGScore
    id: str = field(default_factory=lambda: str(ulid.ULID()))
    tested_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def score(self) -> float:
        return self.qig_score.total_score

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'phrase': self.phrase,
            'address': self.address,
            'score': self.score,
            'qigScore': self.qig_score.to_dict(),
            'testedAt': self.tested_at.isoformat() + 'Z',
        }


@dataclass(frozen=True)
class TargetAddress:
    """An address derived phrases are compared against."""
    address: str
    label: Optional[str] = None
    id: str = field(default_factory=lambda: str(ulid.ULID()))
    added_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'address': self.address,
            'addedAt': self.added_at.isoformat() + 'Z',
        }
        if self.label is not None:
            data['label'] = self.label
        return data


@dataclass(frozen=True)
class SearchStats:
    """Point-in-time snapshot of a search session."""
    tested: int = 0
    rate: float = 0.0
    high_phi_count: int = 0
    runtime: str = "00:00:00"
    is_searching: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tested': self.tested,
            'rate': self.rate,
            'highPhiCount': self.high_phi_count,
            'runtime': self.runtime,
            'isSearching': self.is_searching,
        }
