# Exceptions raised by the threshold Paillier library.
# Every error derives from PaillierError so callers can catch the whole family at once.


class PaillierError(Exception):
    """Base class for all threshold Paillier errors."""


class AllocError(PaillierError, MemoryError):
    """Out of memory while constructing a key, polynomial or share."""


class EntropyError(PaillierError):
    """The operating system entropy source failed or returned too few bytes."""


class InvalidThreshold(PaillierError, ValueError):
    """w = 0, w > l or l = 0."""


class KeygenError(PaillierError):
    """Safe-prime search exhausted its budget, or the key size is unusable."""


class NonInvertibleShare(PaillierError):
    """A partial decryption share has no inverse mod n^2 during combination."""


class CombineError(PaillierError):
    """4 * delta^2 has no inverse mod n, or there is nothing to combine."""


class InternalError(PaillierError):
    """A precondition was violated (destroyed key, bad index, freed random state, ...)."""
