# Threshold Paillier: key generation and the homomorphic operations.
# Damgard-Jurik threshold construction with s = 1, https://brics.dk/RS/00/45/BRICS-RS-00-45.pdf
# n = pq with p = 2p' + 1, q = 2q' + 1 safe primes, g = n + 1.
import dataclasses
import logging

from gmpy2 import mpz, fac, gcd, invert, powmod # type: ignore

from .common import MILLER_RABIN_REPS, crt2, random_in_z_n_star, random_safe_prime, zeroize
from .errors import AllocError, InternalError, InvalidThreshold, KeygenError

logger = logging.getLogger(__name__)

DEFAULT_KEY_BITS = 2048
MIN_KEY_BITS = 16
KEYGEN_MAX_RESAMPLES = 64 # Resamples when p = q or gcd(n, p'q') != 1

@dataclasses.dataclass(frozen=True)
class PublicKey:
    n: mpz
    n2: mpz
    g: mpz
    delta: mpz # l!
    w: int
    l: int

class PrivateKey:
    """
    Dealer-side secret. Lives between keygen and share distribution only.

    Use as a context manager (or call zeroize()) so the secret values are wiped on every exit path.
    """

    def __init__(self, n, n2, nm, d, w: int, l: int):
        self.n = n
        self.n2 = n2
        self.nm = nm # n * p' * q'
        self.d = d # d = 1 mod n, d = 0 mod p'q'
        self.w = w
        self.l = l
        # Per-authority verification values; reserved, never computed here
        self.v = mpz(0)
        self.vi = [mpz(0) for _ in range(l)]
        self.destroyed = False

    def zeroize(self):
        zeroize(self, 'n', 'n2', 'nm', 'd', 'v')
        self.vi = [mpz(0) for _ in self.vi]
        self.destroyed = True

    def check_alive(self):
        if self.destroyed:
            raise InternalError('Private key used after it was destroyed')

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.zeroize()
        return False

    def __repr__(self):
        state = 'destroyed' if self.destroyed else 'live'
        return f'PrivateKey(w={self.w}, l={self.l}, {state})'

def check_threshold(w: int, l: int, strict: bool = False):
    if l < 1 or w < 1 or w > l:
        raise InvalidThreshold(f'Need 1 <= w <= l, got w={w}, l={l}')
    # The paper asks for l/2 <= w <= l
    if strict and 2 * w < l:
        raise InvalidThreshold(f'Need l/2 <= w, got w={w}, l={l}')

def generate_keypair(rng, bits: int = DEFAULT_KEY_BITS, w: int = 1, l: int = 1,
                     max_candidates: int | None = None, strict_threshold: bool = False,
                     reps: int = MILLER_RABIN_REPS):
    """
    Trusted dealer key generation. Returns (pk, sk) where n has two distinct safe prime factors of
    ceil(bits / 2) bits each.

    max_candidates bounds the safe prime search (per prime); KeygenError when exhausted.
    reps is the Miller-Rabin iteration count for each prime.
    """
    check_threshold(w, l, strict_threshold)
    if bits < MIN_KEY_BITS:
        raise KeygenError(f'Key size of {bits} bits is below the minimum of {MIN_KEY_BITS}')
    prime_bits = 1 + (bits - 1) // 2
    logger.debug('Generating key pair: bits=%d, w=%d, l=%d', bits, w, l)

    try:
        for _ in range(KEYGEN_MAX_RESAMPLES):
            p, p1 = random_safe_prime(rng, prime_bits, max_candidates, reps)
            q, q1 = random_safe_prime(rng, prime_bits, max_candidates, reps)
            n = p * q
            m = p1 * q1
            # gcd(n, p'q') = 1 always holds unless the primes are tiny
            if p != q and gcd(n, m) == 1:
                break
            logger.warning('Safe primes collided or gcd(n, p\'q\') != 1, resampling')
        else:
            raise KeygenError(f'Could not find two suitable safe primes in {KEYGEN_MAX_RESAMPLES} tries')

        n2 = n * n
        d = crt2(1, n, 0, m)
        pk = PublicKey(n=n, n2=n2, g=n + 1, delta=fac(l), w=w, l=l)
        sk = PrivateKey(n, n2, n * m, d, w, l)
    except MemoryError as e:
        raise AllocError('Out of memory during key generation') from e
    logger.debug('Key generation complete: n has %d bits', n.bit_length())
    return pk, sk

def g_pow(pk: PublicKey, m):
    # g = n + 1, so g^m = 1 + mn mod n^2 (binomial expansion, no exponentiation needed)
    return (1 + (mpz(m) % pk.n) * pk.n) % pk.n2

def encrypt_r(pk: PublicKey, r, m):
    """c = g^m * r^n mod n^2 with caller supplied r in Z_n*"""
    if not (0 < r < pk.n) or gcd(r, pk.n) != 1:
        raise InternalError('r is not in Z_n*')
    return (g_pow(pk, m) * powmod(r, pk.n, pk.n2)) % pk.n2

def encrypt(pk: PublicKey, rng, m):
    r = random_in_z_n_star(rng, pk.n)
    return encrypt_r(pk, r, m)

def reencrypt(pk: PublicKey, rng, c):
    """Multiply by a fresh n-th power: same plaintext, new randomness"""
    r = random_in_z_n_star(rng, pk.n)
    return (mpz(c) * powmod(r, pk.n, pk.n2)) % pk.n2

def ep_add(pk: PublicKey, c, m):
    """Enc(x) -> Enc(x + m)"""
    return (mpz(c) * g_pow(pk, m)) % pk.n2

def ee_add(pk: PublicKey, c1, c2):
    """Enc(x), Enc(y) -> Enc(x + y)"""
    return (mpz(c1) * c2) % pk.n2

def ep_mul(pk: PublicKey, c, k):
    """Enc(x) -> Enc(k * x), computed as c^k mod n^2 (c^-1 for negative k)"""
    k = mpz(k)
    if k < 0:
        try:
            c = invert(c, pk.n2)
        except ZeroDivisionError as e:
            raise InternalError('Ciphertext is not invertible mod n^2') from e
        k = -k
    return powmod(c, k, pk.n2)
