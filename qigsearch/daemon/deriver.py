"""Brain-wallet address derivation.

The search core only needs something with ``derive(phrase) -> str`` and
``self_test() -> dict``. BrainWalletDeriver is the production implementation:

    private key = SHA256(phrase text)
    public key  = secp256k1 point (uncompressed by default)
    address     = Base58Check(0x00 || RIPEMD160(SHA256(public key)))
"""

import hashlib
from typing import Any, Dict, Protocol, Union

import base58
from Crypto.Hash import RIPEMD160
from ecdsa import SECP256k1, SigningKey
from loguru import logger

from .error_handling import DerivationError
from .models import Phrase


P2PKH_VERSION = b'\x00'

# Well-known brain wallet used to verify the crypto stack
SELF_TEST_PHRASE = "correct horse battery staple"
SELF_TEST_ADDRESS = "1JwSSubhmg6iPtRjtyqhUYYH7bZg3Lfy1T"


class AddressDeriver(Protocol):
    """Deterministic phrase -> address function with an environment self-test."""

    def derive(self, phrase: Union[Phrase, str]) -> str:
        ...

    def self_test(self) -> Dict[str, Any]:
        ...


def hash160(data: bytes) -> bytes:
    return RIPEMD160.new(hashlib.sha256(data).digest()).digest()


def base58check(payload: bytes) -> str:
    checksum = hashlib.sha256(hashlib.sha256(payload).digest()).digest()[:4]
    return base58.b58encode(payload + checksum).decode()


class BrainWalletDeriver:
    """Derives legacy P2PKH addresses from passphrases."""

    def __init__(self, compressed: bool = False):
        self.compressed = compressed

    def private_key(self, text: str) -> bytes:
        secret = hashlib.sha256(text.encode('utf-8')).digest()
        value = int.from_bytes(secret, 'big')
        if not 0 < value < SECP256k1.order:
            raise DerivationError("Phrase hashes outside the secp256k1 key range")
        return secret

    def public_key(self, secret: bytes) -> bytes:
        verifying_key = SigningKey.from_string(secret, curve=SECP256k1).get_verifying_key()
        if self.compressed:
            return verifying_key.to_string("compressed")
        return verifying_key.to_string("uncompressed")

    def derive(self, phrase: Union[Phrase, str]) -> str:
        text = phrase.text if isinstance(phrase, Phrase) else phrase
        try:
            public_key = self.public_key(self.private_key(text))
            return base58check(P2PKH_VERSION + hash160(public_key))
        except DerivationError:
            raise
        except Exception as e:
            raise DerivationError(f"Address derivation failed: {e}") from e

    def self_test(self) -> Dict[str, Any]:
        """Derive a known brain wallet and compare against its published address."""
        try:
            address = BrainWalletDeriver(compressed=False).derive(SELF_TEST_PHRASE)
        except DerivationError as e:
            logger.error(f"Crypto self-test failed: {e}")
            return {'success': False, 'error': str(e)}

        if address != SELF_TEST_ADDRESS:
            logger.error(f"Crypto self-test mismatch: got {address}, expected {SELF_TEST_ADDRESS}")
            return {
                'success': False,
                'testAddress': address,
                'error': f"Expected {SELF_TEST_ADDRESS}, derived {address}",
            }

        return {'success': True, 'testAddress': address}
