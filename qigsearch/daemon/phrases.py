"""Phrase sources: the curated known-phrase list and random BIP-39 phrases."""

import secrets
from typing import List, Optional, Sequence

from mnemonic import Mnemonic

from .models import PHRASE_WORD_COUNT


# Curated 12-word phrases built from 2009-era vocabulary
KNOWN_PHRASES = [
    "chancellor on brink of second bailout for banks in the times today",
    "bitcoin a peer to peer electronic cash system by satoshi nakamoto whitepaper",
    "proof of work chain is the solution to the double spending problem",
    "the times january third two thousand nine chancellor on brink bailout banks",
    "genesis block timestamp merkle root hash difficulty reward wallet key address node",
    "digital signatures provide part of the solution but the main benefits lost",
    "no trust is required in a decentralized peer to peer cash network",
    "cypherpunk freedom privacy encryption money currency without banks crisis bailout chain proof",
    "nodes vote with their cpu power expressing their acceptance of valid blocks",
    "satoshi nakamoto genesis block mined on january third two thousand nine bitcoin",
    "simple elegant design think different clarity focus quality truth wisdom vision purpose",
    "the root problem with conventional currency is all the trust that's required",
    "electronic cash transaction signature hash chain block proof work node network peer",
    "lost coins only make everyone else's coins worth slightly more thanks everyone",
    "it might make sense just to get some in case it catches",
    "privacy can still be maintained by keeping the public keys anonymous forever",
]


class PhraseGenerator:
    """Random 12-word phrases drawn uniformly from the BIP-39 English wordlist."""

    def __init__(self,
                 wordlist: Optional[Sequence[str]] = None,
                 word_count: int = PHRASE_WORD_COUNT):
        self.wordlist = list(wordlist) if wordlist is not None else Mnemonic("english").wordlist
        self.word_count = word_count

    def generate(self) -> str:
        return " ".join(secrets.choice(self.wordlist) for _ in range(self.word_count))

    def generate_many(self, count: int) -> List[str]:
        if not 1 <= count <= 100:
            raise ValueError("count must be between 1 and 100")
        return [self.generate() for _ in range(count)]
