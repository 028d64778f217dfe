# Threshold Paillier cryptosystem (Damgard-Jurik with s = 1) with a trusted dealer.
from .errors import (
    AllocError,
    CombineError,
    EntropyError,
    InternalError,
    InvalidThreshold,
    KeygenError,
    NonInvertibleShare,
    PaillierError,
)
from .rand import HCS_RAND_SEED_BITS, RandomState
from .paillier import (
    PrivateKey,
    PublicKey,
    ee_add,
    encrypt,
    encrypt_r,
    ep_add,
    ep_mul,
    generate_keypair,
    reencrypt,
)
from .threshold import (
    AuthorityShare,
    Polynomial,
    deal_shares,
    evaluate,
    init_polynomial,
    set_share,
    share_combine,
    share_decrypt,
    threshold_decrypt,
)

__version__ = '0.1.0'
