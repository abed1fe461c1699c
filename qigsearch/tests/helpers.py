"""Stub collaborators shared by the QIG search tests."""

import hashlib
import threading

from qigsearch.daemon.error_handling import DerivationError
from qigsearch.daemon.models import Phrase, QIGScore


MATCH_ADDRESS = "1MatchMatchMatchMatchMatchMatch"
OTHER_ADDRESS = "1OtherOtherOtherOtherOtherOther"


def make_phrase(i: int) -> str:
    """A distinct twelve-word phrase."""
    return " ".join([f"word{i}"] + [f"filler{j}" for j in range(11)])


class StubDeriver:
    """Deterministic deriver that counts calls and can match or fail on demand."""

    def __init__(self, matches=None, failures=(), on_derive=None):
        self.matches = dict(matches or {})
        self.failures = set(failures)
        self.on_derive = on_derive
        self.calls = []
        self._lock = threading.Lock()

    def derive(self, phrase):
        text = phrase.text if isinstance(phrase, Phrase) else phrase
        with self._lock:
            self.calls.append(text)
            count = len(self.calls)
        if self.on_derive is not None:
            self.on_derive(count)
        if text in self.failures:
            raise DerivationError(f"cannot derive {text[:10]}")
        if text in self.matches:
            return self.matches[text]
        return "1" + hashlib.sha256(text.encode()).hexdigest()[:33]

    def self_test(self):
        return {'success': True, 'testAddress': 'stub'}


class StubScorer:
    """Returns a fixed total per phrase text, 10.0 otherwise."""

    def __init__(self, totals=None):
        self.totals = dict(totals or {})

    def score(self, phrase):
        text = phrase.text if isinstance(phrase, Phrase) else phrase
        total = self.totals.get(text, 10.0)
        return QIGScore(context_score=total, elegance_score=total, typing_score=total, total_score=total)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now
