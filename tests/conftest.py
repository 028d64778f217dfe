import pytest

from threshold_paillier import RandomState, deal_shares, generate_keypair, threshold_decrypt

TEST_BITS = 128

@pytest.fixture
def rng():
    return RandomState.deterministic(1234)

@pytest.fixture(scope='session')
def keys_3_of_5():
    """(pk, sk) with bits=128, w=3, l=5. The private key is left alive; do not deal from it."""
    rng = RandomState.deterministic(42)
    return generate_keypair(rng, TEST_BITS, 3, 5)

@pytest.fixture(scope='session')
def dealt_3_of_5():
    """(pk, authorities, rng) after the dealer has destroyed the private key"""
    rng = RandomState.deterministic(7)
    pk, sk = generate_keypair(rng, TEST_BITS, 3, 5)
    authorities = deal_shares(sk, rng)
    return pk, authorities, rng

@pytest.fixture(scope='session')
def dealt_4_of_7():
    rng = RandomState.deterministic(99)
    pk, sk = generate_keypair(rng, TEST_BITS, 4, 7)
    authorities = deal_shares(sk, rng)
    return pk, authorities, rng

@pytest.fixture
def decrypt(dealt_3_of_5):
    """Decrypts with the first w authorities"""
    pk, authorities, _ = dealt_3_of_5

    def _decrypt(c):
        return threshold_decrypt(pk, authorities[:pk.w], c)
    return _decrypt
