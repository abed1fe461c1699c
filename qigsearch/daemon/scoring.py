"""Heuristic QIG scoring of passphrases.

Three independent factors, each clamped to [0, 100]:
- context: vocabulary typical of the 2009 cryptocurrency era
- elegance: aesthetic/philosophical vocabulary and well-formed structure
- typing: how comfortable the phrase is to type on a QWERTY keyboard

The total is a fixed 0.4 / 0.3 / 0.3 weighting of the three.
"""

import math
import re
from typing import List, Optional, Union

from .keywords import KeywordSets
from .models import Phrase, QIGScore


CONTEXT_WEIGHT = 0.4
ELEGANCE_WEIGHT = 0.3
TYPING_WEIGHT = 0.3

_LETTERS_AND_SPACES = re.compile(r"[a-z\s]+", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def round2(value: float) -> float:
    """Round half away from zero to two decimal places."""
    return math.copysign(math.floor(abs(value) * 100 + 0.5) / 100, value)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class HeuristicScorer:
    """Pure, deterministic scorer. Holds nothing but its keyword sets."""

    def __init__(self, keywords: Optional[KeywordSets] = None):
        self.keywords = keywords or KeywordSets()

    def score(self, phrase: Union[Phrase, str]) -> QIGScore:
        """
        Score a phrase.

        Args:
            phrase: Validated phrase or raw phrase text

        Returns:
            QIGScore with every field rounded to two decimals
        """
        if isinstance(phrase, Phrase):
            words = list(phrase.words)
            text = phrase.normalized
        else:
            text = phrase.strip().lower()
            words = text.split()

        context = round2(self.context_score(words))
        elegance = round2(self.elegance_score(words, text))
        typing = round2(self.typing_score(text))
        total = round2(
            context * CONTEXT_WEIGHT +
            elegance * ELEGANCE_WEIGHT +
            typing * TYPING_WEIGHT
        )

        return QIGScore(
            context_score=context,
            elegance_score=elegance,
            typing_score=typing,
            total_score=total,
        )

    def context_score(self, words: List[str]) -> float:
        """+10 per era keyword, +15 for a date token, +10 for a crypto operation."""
        kw = self.keywords
        score = 10.0 * sum(1 for w in words if w in kw.context)

        if any(token in w for w in words for token in kw.era_tokens):
            score += 15
        if any(op in w for w in words for op in kw.crypto_operations):
            score += 10

        return min(100.0, score)

    def elegance_score(self, words: List[str], text: str) -> float:
        kw = self.keywords
        score = 50.0

        matches = 0
        for word in words:
            if word in kw.aesthetic:
                matches += 1
            if word in kw.philosophy:
                matches += 1
        score += matches * 8

        if words:
            avg_length = sum(len(w) for w in words) / len(words)
            if 5 <= avg_length <= 8:
                score += 10
            elif avg_length < 3 or avg_length > 12:
                score -= 10

        if _LETTERS_AND_SPACES.fullmatch(text):
            score += 10

        # Duplicate words
        if len(set(words)) != len(words):
            score -= 20

        return _clamp(score)

    def typing_score(self, text: str) -> float:
        kw = self.keywords
        score = 50.0
        compact = _WHITESPACE.sub("", text.lower())
        length = len(compact)

        bigrams = [compact[i:i + 2] for i in range(length - 1)]
        if bigrams:
            easy = sum(1 for b in bigrams if b in kw.easy_bigrams)
            score += (easy / len(bigrams)) * 30
            score -= 5 * sum(1 for b in bigrams if b in kw.hard_bigrams)

        if length:
            home = sum(1 for c in compact if c in kw.home_row)
            score += (home / length) * 20

        if 40 <= length <= 80:
            score += 10
        elif length > 120:
            score -= 15

        return _clamp(score)
