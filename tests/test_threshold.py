import itertools
import random

import pytest
from gmpy2 import mpz, fac # type: ignore

from threshold_paillier import RandomState
from threshold_paillier.errors import CombineError, InternalError, NonInvertibleShare
from threshold_paillier.paillier import PublicKey, encrypt, generate_keypair
from threshold_paillier.threshold import (
    AuthorityShare,
    deal_shares,
    evaluate,
    init_polynomial,
    lagrange_coefficient,
    participating_shares,
    set_share,
    share_combine,
    share_decrypt,
    threshold_decrypt,
)
from conftest import TEST_BITS

class FailingRandom:
    def urandomm(self, n):
        raise RuntimeError('random source died')

    def urandomb(self, bits):
        raise RuntimeError('random source died')

def partial_shares(pk, authorities, c):
    """Dense vector of partial decryptions, 0-indexed by authority"""
    return [share_decrypt(pk, au, c) for au in authorities]

def test_polynomial(rng):
    pk, sk = generate_keypair(rng, TEST_BITS, 3, 5)
    poly = init_polynomial(sk, rng)
    assert len(poly) == 3
    assert poly.coeff[0] == sk.d
    assert all(0 <= a < sk.nm for a in poly.coeff)
    for x in range(sk.l):
        expected = sum(a * (x + 1) ** k for k, a in enumerate(poly.coeff)) % sk.nm
        assert evaluate(sk, poly, x) == expected

def test_evaluate_rejects_out_of_range_index(rng):
    _, sk = generate_keypair(rng, TEST_BITS, 3, 5)
    poly = init_polynomial(sk, rng)
    # x = -1 would evaluate at 0, which is d
    for x in [-1, -2, sk.l, sk.l + 1]:
        with pytest.raises(InternalError):
            evaluate(sk, poly, x)
    evaluate(sk, poly, 0)
    evaluate(sk, poly, sk.l - 1)

def test_polynomial_zeroize(rng):
    _, sk = generate_keypair(rng, TEST_BITS, 3, 5)
    with init_polynomial(sk, rng) as poly:
        evaluate(sk, poly, 0)
    assert poly.destroyed
    assert poly.coeff == [0, 0, 0]
    with pytest.raises(InternalError):
        evaluate(sk, poly, 0)

def test_polynomial_needs_live_key(rng):
    _, sk = generate_keypair(rng, TEST_BITS, 3, 5)
    poly = init_polynomial(sk, rng)
    sk.zeroize()
    with pytest.raises(InternalError):
        init_polynomial(sk, rng)
    with pytest.raises(InternalError):
        evaluate(sk, poly, 0)

def test_set_share():
    au = AuthorityShare()
    assert not au.is_set
    set_share(au, 1234, 0)
    assert au.is_set
    assert au.i == 1
    assert au.si == 1234
    with pytest.raises(InternalError):
        set_share(au, 999, 1)
    assert au.si == 1234 and au.i == 1
    au.zeroize()
    assert au.si == 0

def test_set_share_rejects_negative_index():
    au = AuthorityShare()
    with pytest.raises(InternalError):
        set_share(au, 1234, -1)
    assert not au.is_set
    assert au.i == 0
    # The object stays usable
    set_share(au, 1234, 0)
    assert au.i == 1 and au.si == 1234

def test_share_decrypt_unset(dealt_3_of_5):
    pk, _, _ = dealt_3_of_5
    with pytest.raises(InternalError):
        share_decrypt(pk, AuthorityShare(), 5)

def test_share_decrypt_value(dealt_3_of_5):
    pk, authorities, rng = dealt_3_of_5
    c = encrypt(pk, rng, 42)
    au = authorities[2]
    assert share_decrypt(pk, au, c) == pow(c, 2 * pk.delta * au.si, pk.n2)

def test_deal_shares_destroys_private_key(rng):
    pk, sk = generate_keypair(rng, TEST_BITS, 3, 5)
    authorities = deal_shares(sk, rng)
    assert sk.destroyed and sk.d == 0
    assert [au.i for au in authorities] == [1, 2, 3, 4, 5]
    assert len({au.si for au in authorities}) == 5

def test_deal_shares_zeroizes_on_error(rng):
    _, sk = generate_keypair(rng, TEST_BITS, 3, 5)
    with pytest.raises(RuntimeError):
        deal_shares(sk, FailingRandom())
    assert sk.destroyed and sk.d == 0

def test_lagrange_coefficient_single():
    delta = fac(5)
    assert lagrange_coefficient(delta, 1, [1]) == (delta, False)

def test_lagrange_coefficient_interpolates():
    # sum_i lambda_i * f(i) = delta * f(0) over the integers
    l = 7
    delta = fac(l)
    coeffs = [random.randrange(1, 10 ** 6) for _ in range(4)]

    def f(x):
        return sum(a * x ** k for k, a in enumerate(coeffs))
    for quorum in itertools.combinations(range(1, l + 1), 4):
        total = 0
        for i in quorum:
            lam, negative = lagrange_coefficient(delta, i, quorum)
            total += (-lam if negative else lam) * f(i)
        assert total == delta * f(0), f'quorum {quorum}'

def test_participating_shares(dealt_3_of_5):
    pk, _, _ = dealt_3_of_5
    assert participating_shares(pk, [0, 5, 0, 7, 0]) == {2: 5, 4: 7}
    assert participating_shares(pk, {2: 5, 4: 7, 5: 0}) == {2: 5, 4: 7}
    with pytest.raises(InternalError):
        participating_shares(pk, [1, 2, 3])
    with pytest.raises(InternalError):
        participating_shares(pk, {0: 5})
    with pytest.raises(InternalError):
        participating_shares(pk, {6: 5})

def test_combine_dense_and_sparse(dealt_3_of_5):
    pk, authorities, rng = dealt_3_of_5
    c = encrypt(pk, rng, 42)
    dense = partial_shares(pk, authorities, c)
    dense[1] = 0
    dense[3] = 0
    sparse = {1: dense[0], 3: dense[2], 5: dense[4]}
    assert share_combine(pk, dense) == 42
    assert share_combine(pk, sparse) == 42
    # Enumeration order does not matter
    assert share_combine(pk, dict(reversed(list(sparse.items())))) == 42

def test_combine_skips_absent_shares(dealt_3_of_5):
    pk, authorities, rng = dealt_3_of_5
    c = encrypt(pk, rng, 9)
    shares = partial_shares(pk, authorities, c)
    for absent in itertools.combinations(range(5), 2):
        dense = [0 if i in absent else s for i, s in enumerate(shares)]
        assert share_combine(pk, dense) == 9, f'absent {absent}'

def test_combine_nothing(dealt_3_of_5):
    pk, _, _ = dealt_3_of_5
    with pytest.raises(CombineError):
        share_combine(pk, [0] * 5)
    with pytest.raises(CombineError):
        share_combine(pk, {})

def test_combine_non_invertible_share(dealt_3_of_5):
    pk, authorities, rng = dealt_3_of_5
    c = encrypt(pk, rng, 1)
    # lambda_2 over {1, 2} is negative, and n has no inverse mod n^2
    shares = {1: share_decrypt(pk, authorities[0], c), 2: pk.n}
    with pytest.raises(NonInvertibleShare):
        share_combine(pk, shares)

def test_combine_delta_not_invertible():
    # Corrupted key: gcd(n, 4 * delta^2) != 1
    pk = PublicKey(n=mpz(15), n2=mpz(225), g=mpz(16), delta=fac(5), w=1, l=5)
    with pytest.raises(CombineError):
        share_combine(pk, {1: 1})

def test_combine_below_threshold(dealt_3_of_5):
    pk, authorities, rng = dealt_3_of_5
    m = 42
    c = encrypt(pk, rng, m)
    shares = partial_shares(pk, authorities, c)
    for quorum in itertools.combinations(range(5), 2):
        try:
            result = share_combine(pk, {i + 1: shares[i] for i in quorum})
        except InternalError:
            continue
        assert result != m

def test_threshold_decrypt_rejects_duplicates(dealt_3_of_5):
    pk, authorities, rng = dealt_3_of_5
    c = encrypt(pk, rng, 42)
    with pytest.raises(InternalError):
        threshold_decrypt(pk, [authorities[0], authorities[1], authorities[0]], c)

def test_duplicate_index_shares_are_not_a_quorum(dealt_3_of_5):
    # Two authorities claiming the same index do not add up to w distinct shares
    pk, authorities, rng = dealt_3_of_5
    c = encrypt(pk, rng, 42)
    copy = AuthorityShare()
    set_share(copy, authorities[0].si, 0)
    quorum = [authorities[0], copy, authorities[1]]
    assert len({au.i for au in quorum}) < pk.w
    with pytest.raises(InternalError):
        threshold_decrypt(pk, quorum, c)

def test_independent_authority_states():
    # Each authority may hold its own random state
    rng = RandomState.deterministic(3)
    pk, sk = generate_keypair(rng, TEST_BITS, 2, 3)
    authorities = deal_shares(sk, rng)
    c = encrypt(pk, RandomState.deterministic(4), 17)
    assert threshold_decrypt(pk, authorities[1:], c) == 17
