# Threshold decryption layer: the dealer splits d with a Shamir polynomial over Z_{nm},
# each authority raises a ciphertext to 2 * delta * s_i, and any w partial shares are combined
# by Lagrange interpolation in the exponent.
# Damgard-Jurik, Section 5: https://brics.dk/RS/00/45/BRICS-RS-00-45.pdf
import logging
from collections.abc import Mapping

from gmpy2 import mpz, invert, powmod # type: ignore

from .common import dlog_s
from .errors import CombineError, InternalError, NonInvertibleShare
from .paillier import PrivateKey, PublicKey

logger = logging.getLogger(__name__)

class Polynomial:
    """Dealer-side polynomial a_0 + a_1 x + ... + a_{w-1} x^{w-1} over Z_{nm}, with a_0 = d"""

    def __init__(self, coeff: list):
        self.coeff = coeff
        self.destroyed = False

    def zeroize(self):
        self.coeff = [mpz(0) for _ in self.coeff]
        self.destroyed = True

    def __len__(self):
        return len(self.coeff)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.zeroize()
        return False

def init_polynomial(sk: PrivateKey, rng) -> Polynomial:
    sk.check_alive()
    coeff = [sk.d]
    for _ in range(1, sk.w):
        coeff.append(rng.urandomm(sk.nm))
    return Polynomial(coeff)

def evaluate(sk: PrivateKey, poly: Polynomial, x: int):
    """Value of the polynomial at x + 1 (x is the 0-based authority index; 0 itself would reveal d)"""
    sk.check_alive()
    if poly.destroyed:
        raise InternalError('Polynomial used after it was destroyed')
    if not 0 <= x < sk.l:
        raise InternalError(f'Authority index {x} outside 0..{sk.l - 1}')
    point = x + 1
    result = mpz(0)
    for a in reversed(poly.coeff): # Horner
        result = (result * point + a) % sk.nm
    return result

class AuthorityShare:
    """
    Long-lived secret of one decryption authority: the 1-based index i and s_i = f(i).
    A share is set exactly once; rekeying needs a new object.
    """

    def __init__(self):
        self.i = 0
        self.si = None

    @property
    def is_set(self) -> bool:
        return self.si is not None

    def zeroize(self):
        if self.si is not None:
            self.si = mpz(0)

    def __repr__(self):
        return f'AuthorityShare(i={self.i}, set={self.is_set})'

def set_share(au: AuthorityShare, s, i: int):
    """Store s as the share of the authority at 0-based position i"""
    if au.is_set:
        raise InternalError(f'Authority share {au.i} is already set')
    if i < 0:
        raise InternalError(f'Negative authority index {i}')
    au.si = mpz(s)
    au.i = i + 1

def share_decrypt(pk: PublicKey, au: AuthorityShare, c):
    """Partial decryption c^(2 * delta * s_i) mod n^2"""
    if not au.is_set:
        raise InternalError('Partial decryption with an unset authority share')
    return powmod(c, 2 * pk.delta * au.si, pk.n2)

def participating_shares(pk: PublicKey, shares) -> dict:
    """
    Normalizes the share input of share_combine into {1-based index: share}, dropping absent (zero) shares.

    shares is either a mapping from 1-based index to partial share, or a dense sequence of length l
    indexed by 0-based authority where 0 marks an absent authority.
    """
    if isinstance(shares, Mapping):
        items = list(shares.items())
        for idx, _ in items:
            if not 1 <= idx <= pk.l:
                raise InternalError(f'Authority index {idx} outside 1..{pk.l}')
    else:
        shares = list(shares)
        if len(shares) != pk.l:
            raise InternalError(f'Expected {pk.l} shares, got {len(shares)}')
        items = [(i + 1, s) for i, s in enumerate(shares)]
    return {idx: mpz(s) for idx, s in items if s != 0}

def lagrange_coefficient(delta, i: int, indices) -> tuple:
    """
    Returns (|lambda_i|, negative) with lambda_i = delta * prod_{j != i} j / (j - i) over the 1-based indices.

    Computed as a running product; every division is exact because prod |j - i| divides (l - 1)!, which divides delta.
    """
    lam = mpz(delta)
    negative = False
    for j in indices:
        if j == i:
            continue
        v = j - i
        lam //= abs(v)
        if v < 0:
            negative = not negative
        lam *= j
    return lam, negative

def share_combine(pk: PublicKey, shares):
    """
    Recovers the plaintext from partial decryptions of at least w distinct authorities.

    Raises NonInvertibleShare or CombineError on failure; nothing is returned in that case.
    """
    parts = participating_shares(pk, shares)
    if not parts:
        raise CombineError('No shares to combine')
    logger.debug('Combining shares of authorities %s (threshold %d)', sorted(parts), pk.w)

    result = mpz(1)
    for i, share in parts.items():
        lam, negative = lagrange_coefficient(pk.delta, i, parts)
        t = powmod(share, 2 * lam, pk.n2)
        if negative:
            try:
                t = invert(t, pk.n2)
            except ZeroDivisionError as e:
                raise NonInvertibleShare(f'Share of authority {i} is not invertible mod n^2') from e
        result = (result * t) % pk.n2

    # result = c^(4 * delta^2 * d) = 1 + 4 * delta^2 * m * n mod n^2
    result = dlog_s(pk.n, result)
    try:
        inv = invert(4 * pk.delta * pk.delta, pk.n)
    except ZeroDivisionError as e:
        raise CombineError('4 * delta^2 is not invertible mod n') from e
    return (result * inv) % pk.n

def deal_shares(sk: PrivateKey, rng) -> list:
    """
    Trusted dealer: returns the l authority shares and destroys the private key.

    The polynomial and the private key are zeroized on every exit path.
    """
    with sk:
        with init_polynomial(sk, rng) as poly:
            authorities = []
            for i in range(sk.l):
                au = AuthorityShare()
                set_share(au, evaluate(sk, poly, i), i)
                authorities.append(au)
    logger.debug('Dealt %d authority shares, private key destroyed', len(authorities))
    return authorities

def threshold_decrypt(pk: PublicKey, authorities, c):
    """Every given authority decrypts its part of c, then the parts are combined"""
    parts = {}
    for au in authorities:
        if au.i in parts:
            raise InternalError(f'Duplicate authority index {au.i}')
        parts[au.i] = share_decrypt(pk, au, c)
    return share_combine(pk, parts)
