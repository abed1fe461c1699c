"""Structural validation of passphrases."""

from typing import Iterable, List, Tuple, Union

from loguru import logger

from .error_handling import WordCountError, EmptyBatchError, BatchValidationError
from .models import Phrase, PHRASE_WORD_COUNT


class PhraseValidator:
    """Enforces the fixed word count on single phrases and batches."""

    def __init__(self, word_count: int = PHRASE_WORD_COUNT):
        self.word_count = word_count

    def validate_single(self, text: str) -> Phrase:
        """Return a Phrase or raise WordCountError."""
        trimmed = text.strip()
        tokens = trimmed.split()
        if len(tokens) != self.word_count:
            raise WordCountError(expected=self.word_count, actual=len(tokens))
        return Phrase(text=trimmed, words=tuple(t.lower() for t in tokens))

    def validate_batch(
        self, texts: Iterable[str]
    ) -> List[Tuple[int, str, Union[Phrase, WordCountError]]]:
        """
        Validate every non-blank entry independently.

        Returns (index, text, Phrase | WordCountError) tuples in input order.
        Blank entries are skipped but keep their position in the numbering.
        Raises EmptyBatchError when no entry is non-blank.
        """
        results = []
        for index, text in enumerate(texts):
            if not text or not text.strip():
                continue
            try:
                results.append((index, text, self.validate_single(text)))
            except WordCountError as e:
                results.append((index, text, e))

        if not results:
            raise EmptyBatchError()
        return results

    def require_valid_batch(self, texts: Iterable[str]) -> List[Phrase]:
        """Validate a whole batch and reject it if any phrase is malformed."""
        results = self.validate_batch(texts)
        failures = [
            (index, outcome) for index, _, outcome in results
            if isinstance(outcome, WordCountError)
        ]
        if failures:
            logger.warning(f"Rejected batch: {len(failures)} of {len(results)} phrases malformed")
            raise BatchValidationError(failures)
        return [outcome for _, _, outcome in results]
