"""Tests for brain-wallet address derivation."""

import pytest

from qigsearch.daemon.deriver import (
    SELF_TEST_ADDRESS, SELF_TEST_PHRASE, BrainWalletDeriver, base58check, hash160
)
from qigsearch.daemon.models import Phrase


def test_known_vector():
    assert BrainWalletDeriver().derive(SELF_TEST_PHRASE) == SELF_TEST_ADDRESS


def test_self_test_passes():
    result = BrainWalletDeriver().self_test()
    assert result == {'success': True, 'testAddress': SELF_TEST_ADDRESS}


def test_deterministic():
    deriver = BrainWalletDeriver()
    text = "chancellor on brink of second bailout for banks in the times today"
    assert deriver.derive(text) == deriver.derive(text)


def test_uses_phrase_text_with_case_preserved():
    deriver = BrainWalletDeriver()
    upper = Phrase(text=SELF_TEST_PHRASE.upper(), words=tuple(SELF_TEST_PHRASE.split()))

    assert deriver.derive(upper) == deriver.derive(SELF_TEST_PHRASE.upper())
    assert deriver.derive(upper) != SELF_TEST_ADDRESS


def test_compressed_differs():
    compressed = BrainWalletDeriver(compressed=True).derive(SELF_TEST_PHRASE)
    assert compressed != SELF_TEST_ADDRESS
    assert compressed.startswith("1")
    # Self-test always checks the uncompressed vector
    assert BrainWalletDeriver(compressed=True).self_test()['success'] is True


@pytest.mark.parametrize("payload", [b"", b"\x00" * 21])
def test_base58check_shape(payload):
    encoded = base58check(payload)
    assert isinstance(encoded, str)
    assert encoded


def test_hash160_length():
    assert len(hash160(b"public key")) == 20
