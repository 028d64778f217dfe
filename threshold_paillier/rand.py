# Random state used by every probabilistic operation (keygen, encryption, polynomial sampling).
# This is a wrapper around a gmpy2 random_state (GMP's default PRNG). The PRNG itself is not
# cryptographically secure; the seed comes from the operating system entropy source and the
# state can be reseeded at any time.
import logging

import gmpy2 # type: ignore

from .common import seed_from_entropy
from .errors import EntropyError, InternalError

logger = logging.getLogger(__name__)

HCS_RAND_SEED_BITS = 256

class RandomState:
    """
    Owns a seeded PRNG. Not thread safe: a RandomState must be used by one caller at a time.

    reseed_interval: if set, the state reseeds itself from OS entropy after that many draws.
    """

    def __init__(self, reseed_interval: int | None = None):
        self._state = gmpy2.random_state(seed_from_entropy(HCS_RAND_SEED_BITS))
        self.reseed_interval = reseed_interval
        self._draws = 0

    @classmethod
    def deterministic(cls, seed: int, reseed_interval: int | None = None) -> 'RandomState':
        """Testing only: a state seeded from a small integer. Refused when running with python -O."""
        if not __debug__:
            raise InternalError('Deterministic random state is not available in optimized runs')
        rs = cls.__new__(cls)
        rs._state = gmpy2.random_state(seed)
        rs.reseed_interval = reseed_interval
        rs._draws = 0
        return rs

    def reseed(self) -> bool:
        """Draw fresh entropy and reseed. On failure the current PRNG is kept and False is returned."""
        self._check()
        try:
            seed = seed_from_entropy(HCS_RAND_SEED_BITS)
        except EntropyError:
            logger.warning('Reseed failed, keeping the existing random state', exc_info=True)
            return False
        self._state = gmpy2.random_state(seed)
        self._draws = 0
        logger.debug('Random state reseeded')
        return True

    def free(self):
        self._state = None

    @property
    def freed(self) -> bool:
        return self._state is None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.free()
        return False

    def _check(self):
        if self._state is None:
            raise InternalError('Random state used after free()')

    def _tick(self):
        self._draws += 1
        if self.reseed_interval is not None and self._draws >= self.reseed_interval:
            self.reseed()

    def urandomb(self, bits: int):
        """Uniform in [0, 2^bits)"""
        self._check()
        self._tick()
        return gmpy2.mpz_urandomb(self._state, bits)

    def urandomm(self, n):
        """Uniform in [0, n)"""
        self._check()
        self._tick()
        return gmpy2.mpz_random(self._state, n)
