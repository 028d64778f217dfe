# Measure the runtime of keygen, encryption, partial decryption and share combination,
# then chart combine time against quorum size.
# Usage: python threshold_runtime.py [bits] [repetitions]

import itertools
import json
import os
import sys
import time

import tqdm
from matplotlib import pyplot as plt

from threshold_paillier import (
    RandomState,
    deal_shares,
    encrypt,
    generate_keypair,
    share_combine,
    share_decrypt,
)

os.chdir(os.path.dirname(os.path.abspath(__file__)))

# (w, l) pairs to measure
THRESHOLDS = [(2, 3), (3, 5), (4, 7), (5, 9), (6, 11)]

def display_time(time_in_seconds: float):
    """
    Display the time in seconds in a human-readable format
    """
    if time_in_seconds < 1e-6:
        return f'{time_in_seconds * 1e9:.3f} ns'
    elif time_in_seconds < 1e-3:
        return f'{time_in_seconds * 1e6:.3f} us'
    elif time_in_seconds < 1:
        return f'{time_in_seconds * 1e3:.3f} ms'
    else:
        return f'{time_in_seconds:.3f} s'

def timed(fn, *args):
    start = time.perf_counter()
    result = fn(*args)
    return result, time.perf_counter() - start

def measure(rng, bits: int, w: int, l: int, repetitions: int):
    """Returns mean times (seconds) of each procedure for one (bits, w, l)"""
    (pk, sk), keygen_time = timed(generate_keypair, rng, bits, w, l)
    authorities, deal_time = timed(deal_shares, sk, rng)
    stats = {'keygen': keygen_time, 'deal': deal_time, 'encrypt': 0.0, 'share_decrypt': 0.0, 'combine': 0.0}
    quorums = list(itertools.combinations(authorities, w))
    for rep in range(repetitions):
        m = rng.urandomm(pk.n)
        c, t = timed(encrypt, pk, rng, m)
        stats['encrypt'] += t
        quorum = quorums[rep % len(quorums)]
        parts = {}
        for au in quorum:
            parts[au.i], t = timed(share_decrypt, pk, au, c)
            stats['share_decrypt'] += t / len(quorum)
        result, t = timed(share_combine, pk, parts)
        stats['combine'] += t
        assert result == m, f'{result} != {m}'
    for name in ['encrypt', 'share_decrypt', 'combine']:
        stats[name] /= repetitions
    return stats

def visualize(bits: int, results):
    print('Procedure'.ljust(20) + ''.join(f'w={w}, l={l}'.ljust(16) for w, l in THRESHOLDS))
    for name in ['keygen', 'deal', 'encrypt', 'share_decrypt', 'combine']:
        print(name.ljust(20) + ''.join(display_time(results[(w, l)][name]).ljust(16) for w, l in THRESHOLDS))

    plt.figure(figsize=(10, 6))
    quorum_sizes = [w for w, _ in THRESHOLDS]
    plt.plot(quorum_sizes, [results[t]['combine'] * 1e3 for t in THRESHOLDS], marker='o', label='combine')
    plt.plot(quorum_sizes, [results[t]['share_decrypt'] * 1e3 for t in THRESHOLDS], marker='s', linestyle='dashed', label='share_decrypt (per authority)')
    plt.xlabel('w (quorum size)')
    plt.ylabel('Time (ms)')
    plt.title(f'Threshold Paillier runtime, {bits}-bit n')
    plt.legend()
    plt.grid(True)
    plt.savefig(f'threshold_runtime_{bits}.png')

if __name__ == "__main__":
    bits = int(sys.argv[1]) if len(sys.argv) > 1 else 1024
    repetitions = int(sys.argv[2]) if len(sys.argv) > 2 else 20
    rng = RandomState()
    results = {}
    for w, l in tqdm.tqdm(THRESHOLDS):
        results[(w, l)] = measure(rng, bits, w, l, repetitions)
    with open(f'threshold_runtime_{bits}.json', 'w') as f:
        json.dump({f'{w}/{l}': stats for (w, l), stats in results.items()}, f, indent=2)
    visualize(bits, results)
