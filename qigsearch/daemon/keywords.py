"""Keyword sets consumed by the heuristic scorer.

The sets are static configuration: a mapping from category name to a set of
words, loaded once and handed to the scorer. A YAML file with the same
category keys can replace any of them.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

import yaml
from loguru import logger


CONTEXT_2009 = (
    "bitcoin", "satoshi", "nakamoto", "proof", "work", "chain", "block", "peer",
    "cash", "electronic", "transaction", "digital", "crypto", "hash", "mining",
    "double", "spending", "trust", "decentralized", "network", "node", "consensus",
    "chancellor", "brink", "bailout", "banks", "crisis", "currency", "money",
    "freedom", "privacy", "cypherpunk", "encryption", "signature", "key", "address",
    "genesis", "timestamp", "merkle", "difficulty", "reward", "halving", "wallet",
)

AESTHETIC = (
    "simple", "elegant", "beautiful", "clean", "minimalist", "design", "think",
    "different", "sophistication", "ultimate", "clarity", "focus", "intuitive",
    "seamless", "refined", "crafted", "artisan", "quality", "excellence", "innovation",
)

PHILOSOPHY = (
    "philosophy", "principle", "truth", "wisdom", "knowledge", "enlightenment",
    "consciousness", "awareness", "reality", "existence", "meaning", "purpose",
    "vision", "ideal", "values", "ethics", "virtue", "integrity", "honor",
)

ERA_TOKENS = ("2008", "2009", "january", "february")

CRYPTO_OPERATIONS = ("encrypt", "decrypt", "signature")

EASY_BIGRAMS = (
    "th", "he", "in", "er", "an", "re", "nd", "at", "on", "nt",
    "ha", "es", "st", "en", "ed", "to", "it", "ou", "ea", "hi",
)

HARD_BIGRAMS = ("zx", "qz", "pq", "iu", "nm", "vb")

HOME_ROW = "asdfghjkl"


@dataclass(frozen=True)
class KeywordSets:
    """Immutable bundle of every word list the scorer reads."""
    context: FrozenSet[str] = frozenset(CONTEXT_2009)
    aesthetic: FrozenSet[str] = frozenset(AESTHETIC)
    philosophy: FrozenSet[str] = frozenset(PHILOSOPHY)
    era_tokens: Tuple[str, ...] = ERA_TOKENS
    crypto_operations: Tuple[str, ...] = CRYPTO_OPERATIONS
    easy_bigrams: FrozenSet[str] = frozenset(EASY_BIGRAMS)
    hard_bigrams: FrozenSet[str] = frozenset(HARD_BIGRAMS)
    home_row: FrozenSet[str] = frozenset(HOME_ROW)

    @classmethod
    def from_mapping(cls, data: Dict[str, Iterable[str]]) -> "KeywordSets":
        """Build keyword sets, overriding defaults with the given categories."""
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown keyword categories: {sorted(unknown)}")

        overrides = {}
        for name, words in data.items():
            if name == 'home_row' and isinstance(words, str):
                words = list(words)
            words = [str(w).lower() for w in words]
            if name in ('era_tokens', 'crypto_operations'):
                overrides[name] = tuple(words)
            else:
                overrides[name] = frozenset(words)
        return cls(**overrides)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "KeywordSets":
        """Load keyword sets from YAML, or the built-in defaults."""
        if path is None:
            return cls()

        logger.info(f"Loading keyword sets from: {path}")
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        return cls.from_mapping(data)
