"""Tests for the heuristic scorer and keyword sets."""

import random

import pytest
from mnemonic import Mnemonic

from qigsearch.daemon.keywords import KeywordSets
from qigsearch.daemon.models import Phrase
from qigsearch.daemon.phrases import KNOWN_PHRASES
from qigsearch.daemon.scoring import HeuristicScorer, round2
from qigsearch.daemon.validator import PhraseValidator


FRUIT = "apple grape lemon mango melon peach berry olive onion basil thyme cumin"
CRYPTO = ("bitcoin satoshi nakamoto proof work chain "
          "block peer cash electronic transaction digital")


@pytest.fixture
def scorer():
    return HeuristicScorer()


def test_round2_half_away_from_zero():
    assert round2(0.125) == 0.13
    assert round2(-0.125) == -0.13
    assert round2(42.0) == 42.0


def sweep_phrases():
    """Curated phrases, edge cases and a seeded sample of BIP-39 phrases."""
    rng = random.Random(2009)
    wordlist = Mnemonic("english").wordlist
    generated = [" ".join(rng.choice(wordlist) for _ in range(12)) for _ in range(300)]
    edge = [FRUIT, CRYPTO, "zx qz pq iu nm vb zx qz pq iu nm vb", "a " * 11 + "a"]
    return KNOWN_PHRASES + edge + generated


SWEEP = sweep_phrases()


def test_scores_are_deterministic_and_bounded(scorer):
    for text in SWEEP:
        first = scorer.score(text)
        assert first == scorer.score(text), text
        for value in first.to_dict().values():
            assert 0 <= value <= 100, text


def test_total_uses_rounded_components(scorer):
    for text in SWEEP:
        score = scorer.score(text)
        expected = round2(
            score.context_score * 0.4 +
            score.elegance_score * 0.3 +
            score.typing_score * 0.3
        )
        assert score.total_score == expected, text


def test_accepts_validated_phrase(scorer):
    validator = PhraseValidator()
    for text in (FRUIT.upper(), FRUIT.replace(" ", "   \t"), *KNOWN_PHRASES):
        phrase = validator.validate_single(text)
        assert isinstance(phrase, Phrase)
        assert scorer.score(phrase) == scorer.score(text)


class TestContextScore:

    def test_caps_at_100(self, scorer):
        assert scorer.score(CRYPTO).context_score == 100.0

    def test_no_keywords(self, scorer):
        assert scorer.score(FRUIT).context_score == 0.0

    def test_era_token_matches_inside_word(self, scorer):
        words = FRUIT.split()
        words[0] = "january2009"
        assert scorer.context_score(words) == 15.0

    def test_crypto_operation_bonus(self, scorer):
        # "signature" is both an era keyword and a crypto operation
        words = FRUIT.split()
        words[0] = "signature"
        assert scorer.context_score(words) == 20.0


class TestEleganceScore:

    def test_structure_bonuses(self, scorer):
        # average length 5 and letters only
        assert scorer.score(FRUIT).elegance_score == 70.0

    def test_repeated_word_penalty(self, scorer):
        repeated = FRUIT.replace("cumin", "apple")
        assert scorer.score(repeated).elegance_score == 50.0

    def test_aesthetic_and_philosophy_matches(self, scorer):
        words = FRUIT.split()
        words[0], words[1] = "elegant", "wisdom"
        text = " ".join(words)
        assert scorer.elegance_score(words, text) == 86.0

    def test_non_letters_lose_bonus(self, scorer):
        text = FRUIT.replace("apple", "app1e")
        assert scorer.score(text).elegance_score == 60.0


class TestTypingScore:

    def test_hard_bigrams_penalised(self, scorer):
        # bigrams qz, zq, qz: no easy ones, two hard ones, no home row keys
        assert scorer.typing_score("qzqz") == 40.0

    def test_clamped_at_zero(self, scorer):
        assert scorer.typing_score("zx" * 40) == 0.0

    def test_empty_text(self, scorer):
        assert scorer.typing_score("") == 50.0


class TestKeywordSets:

    def test_substituted_sets_change_scores(self):
        scorer = HeuristicScorer(KeywordSets.from_mapping({'context': ["apple", "grape"]}))
        assert scorer.score(FRUIT).context_score == 20.0

    def test_unknown_category_rejected(self):
        with pytest.raises(ValueError):
            KeywordSets.from_mapping({'colours': ["red"]})

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "keywords.yaml"
        path.write_text("home_row: qwerty\nera_tokens: [\"1999\"]\n")

        keywords = KeywordSets.load(path)

        assert keywords.home_row == frozenset("qwerty")
        assert keywords.era_tokens == ("1999",)
        assert keywords.context == KeywordSets().context
