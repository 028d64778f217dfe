# Bignum helpers shared by keygen, encryption and the threshold layer.
# All arithmetic is delegated to GMP through gmpy2.
import logging
import os

from gmpy2 import mpz, gcd, invert, is_prime, next_prime # type: ignore

from .errors import EntropyError, InternalError, KeygenError

logger = logging.getLogger(__name__)

MILLER_RABIN_REPS = 25
SMALL_PRIMES_BOUND = 2000 # Trial divisors used to screen safe prime candidates before Miller-Rabin
SAFE_PRIME_CANDIDATES_PER_BIT2 = 4 # Default budget is 4 * bits^2 candidates
Z_N_STAR_MAX_ATTEMPTS = 1000

def list_primes_under(n: int):
    """List all odd primes under n using gmpy2"""
    primes = []
    nxt_prime = mpz(3)
    while nxt_prime < n:
        primes.append(nxt_prime)
        nxt_prime = next_prime(nxt_prime)
    return primes

SMALL_PRIMES = list_primes_under(SMALL_PRIMES_BOUND)

def passes_trial_division(q) -> bool:
    """False if q or 2q + 1 has a small odd factor (other than itself)"""
    p = 2 * q + 1
    for d in SMALL_PRIMES:
        r = q % d
        if r == 0 and q != d:
            return False
        # 2q + 1 = 0 mod d  <=>  2r + 1 = 0 mod d
        if (2 * r + 1) % d == 0 and p != d:
            return False
    return True

def is_2q_1_safe_prime(q, reps: int = MILLER_RABIN_REPS) -> bool:
    # q and 2q + 1 both prime, cheapest test first
    return is_prime(q, reps) and is_prime(2 * q + 1, reps)

def random_safe_prime(rng, bits: int, max_candidates: int | None = None, reps: int = MILLER_RABIN_REPS):
    """
    Returns (p, p') where p has exactly `bits` bits, p = 2p' + 1 and both are prime.

    A random starting point p' of bits - 1 bits is drawn from rng and walked upwards
    over odd values; a new starting point is drawn whenever the walk leaves the bit range.
    Raises KeygenError once max_candidates values have been examined. reps is the Miller-Rabin iteration count.
    """
    if bits < 3:
        raise KeygenError(f'Safe primes need at least 3 bits, got {bits}')
    if max_candidates is None:
        max_candidates = SAFE_PRIME_CANDIDATES_PER_BIT2 * bits * bits
    low = mpz(1) << (bits - 2)
    high = mpz(1) << (bits - 1)
    examined = 0
    while examined < max_candidates:
        q = rng.urandomb(bits - 2) | low
        if q % 2 == 0:
            q += 1
        while q < high and examined < max_candidates:
            examined += 1
            if passes_trial_division(q) and is_2q_1_safe_prime(q, reps):
                logger.debug('Found %d-bit safe prime after %d candidates', bits, examined)
                return 2 * q + 1, q
            q += 2
    raise KeygenError(f'No {bits}-bit safe prime found within {max_candidates} candidates')

def random_in_z_n_star(rng, n, max_attempts: int = Z_N_STAR_MAX_ATTEMPTS):
    """Uniform sample from {x : 1 <= x < n, gcd(x, n) = 1} by rejection"""
    for _ in range(max_attempts):
        r = rng.urandomm(n)
        if r != 0 and gcd(r, n) == 1:
            return r
    raise InternalError(f'No element of Z_n* found in {max_attempts} attempts; is n corrupted?')

def crt2(a1, m1, a2, m2):
    """Returns the x in [0, m1 * m2) with x = a1 mod m1 and x = a2 mod m2"""
    if gcd(m1, m2) != 1:
        raise InternalError('CRT moduli are not coprime')
    # x = a1 + m1 * ((a2 - a1) / m1 mod m2)
    t = ((a2 - a1) * invert(m1, m2)) % m2
    return (mpz(a1) + m1 * t) % (m1 * m2)

def seed_from_entropy(bits: int):
    """Reads `bits` bits from the operating system entropy source"""
    nbytes = (bits + 7) // 8
    try:
        buf = os.urandom(nbytes)
    except (OSError, NotImplementedError) as e:
        raise EntropyError(f'Could not read {bits} bits of entropy') from e
    if len(buf) != nbytes:
        raise EntropyError(f'Short entropy read: wanted {nbytes} bytes, got {len(buf)}')
    return mpz(int.from_bytes(buf, byteorder='big')) & ((mpz(1) << bits) - 1)

def zeroize(obj, *names: str):
    """Overwrite the named bignum attributes of obj with 0"""
    for name in names:
        setattr(obj, name, mpz(0))

# Paillier decoder L(u) = (u - 1) / n. This is dlog w.r.t. (1 + n) in Z_{n^2}, i.e. Damgard-Jurik with s = 1
# https://brics.dk/RS/00/45/BRICS-RS-00-45.pdf
def dlog_s(n, u):
    t, rem = divmod(mpz(u) - 1, n)
    if rem != 0:
        raise InternalError('L(u) is undefined: u is not in 1 + nZ')
    return t % n
