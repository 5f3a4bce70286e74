"""
Test composite generation.

Produces primes and semiprimes with known structure for exercising the
factorization engines:
- balanced composites (two random primes of the same size)
- strong composites (safe prime times a non-twin safe prime)
- twin prime composites (p * (p + 2)), easy for Fermat
- close prime composites (p * next prime after p), easy for Fermat
- p-1 composites (one factor with B-smooth p - 1), easy for Pollard p-1

Every generator takes an explicit random.Random so runs are reproducible.
"""
import random
from functools import lru_cache

from square_residues import ceil_sqrt

# Deterministic Miller-Rabin bases: exact for every n < 3.3 * 10^24
_MR_BASES: tuple[int, ...] = (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41)

# Extra random rounds for n beyond the deterministic range
_MR_EXTRA_ROUNDS = 16

_SMALL_PRIMES: tuple[int, ...] = (
    2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47, 53, 59, 61, 67, 71, 73, 79, 83, 89, 97,
)


def clear_caches():
    """Clear memoized primality results."""
    is_prime.cache_clear()


# Miller–Rabin primality test (memoized)
@lru_cache(maxsize=1024)
def is_prime(n: int) -> bool:
    if n < 2:
        return False
    for p in _SMALL_PRIMES:
        if n == p:
            return True
        if n % p == 0:
            return False

    # write n-1 as d * 2^s
    d: int = n - 1
    s: int = 0
    while (d & 1) == 0:
        d >>= 1
        s += 1

    def check(a: int) -> bool:
        x: int = pow(a, d, n)
        if x == 1 or x == n - 1:
            return True
        for _ in range(s - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                return True
        return False

    bases = list(_MR_BASES)
    if n.bit_length() > 81:
        # Seeded from n itself so the answer is stable across calls
        rng = random.Random(n)
        bases.extend(rng.randrange(2, n - 1) for _ in range(_MR_EXTRA_ROUNDS))

    return all(check(a) for a in bases)


def generate_prime(bits: int, rng: random.Random) -> int:
    """Random prime with exactly `bits` bits."""
    if bits < 2:
        raise ValueError(f"bits must be at least 2, got {bits}")
    while True:
        # top bit set for the size, low bit set for oddness
        candidate = rng.getrandbits(bits) | (1 << (bits - 1)) | 1
        if is_prime(candidate):
            return candidate


def generate_safe_prime(bits: int, rng: random.Random) -> int:
    """Prime p such that (p - 1) / 2 is also prime."""
    while True:
        p = generate_prime(bits, rng)
        if p > 5 and is_prime((p - 1) // 2):
            return p


def generate_twin_primes(bits: int, rng: random.Random) -> tuple[int, int]:
    """Pair (p, p + 2) of primes."""
    while True:
        p = generate_prime(bits, rng)
        if is_prime(p + 2):
            return p, p + 2


def generate_close_prime(base: int) -> int:
    """Smallest prime greater than base."""
    candidate = base + 1 if base % 2 == 0 else base + 2
    while not is_prime(candidate):
        candidate += 2
    return candidate


def generate_balanced_composite(bits: int, rng: random.Random) -> tuple[int, int, int]:
    """(n, p, q) with p, q random primes of `bits` bits."""
    p = generate_prime(bits, rng)
    q = generate_prime(bits, rng)
    return p * q, min(p, q), max(p, q)


def generate_strong_composite(bits: int, rng: random.Random) -> tuple[int, int, int]:
    """(n, p, q) with p, q distinct safe primes that are not twins."""
    p = generate_safe_prime(bits, rng)
    while True:
        q = generate_safe_prime(bits, rng)
        if abs(p - q) > 2:
            return p * q, min(p, q), max(p, q)


def generate_twin_prime_composite(bits: int, rng: random.Random) -> tuple[int, int, int]:
    p, q = generate_twin_primes(bits, rng)
    return p * q, p, q


def generate_close_composite(bits: int, rng: random.Random) -> tuple[int, int, int]:
    """(n, p, q) with q the next prime after p."""
    p = generate_prime(bits, rng)
    q = generate_close_prime(p)
    return p * q, p, q


def generate_p_minus_one_composite(bits: int, rng: random.Random, smoothness: int = 97) -> tuple[int, int, int]:
    """
    (n, p, q) where p - 1 is `smoothness`-smooth and q is a safe prime.

    p is built as 2 * (product of random primes <= smoothness) + 1, so p - 1 is
    smooth by construction. q - 1 = 2r with r prime, so q never collapses
    before the exponent reaches r. For bits >= 16, pollards_p_minus_1 with
    bound=p_minus_one_bound(bits, smoothness) isolates p.
    """
    primes = [p for p in _SMALL_PRIMES if p <= smoothness]
    if not primes:
        raise ValueError(f"smoothness must be at least 2, got {smoothness}")

    while True:
        m = 2
        while m.bit_length() < bits - 1:
            m *= rng.choice(primes)
        p = m + 1
        if p.bit_length() == bits and is_prime(p):
            break

    q = generate_safe_prime(bits, rng)
    return p * q, min(p, q), max(p, q)


def p_minus_one_bound(bits: int, smoothness: int = 97) -> int:
    """
    A bound B with (p - 1) | B! for every p built by generate_p_minus_one_composite.

    Each prime r <= smoothness divides p - 1 fewer than `bits` times, and
    B! contains r at least B / r >= bits times.
    """
    return smoothness * bits


def fermat_steps(p: int, q: int) -> int:
    """Number of Fermat steps needed for p * q: (p + q) / 2 - ceil(sqrt(p * q))."""
    return (p + q) // 2 - ceil_sqrt(p * q)
