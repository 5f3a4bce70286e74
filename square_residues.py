"""
Exact integer square roots and perfect-square filtering.

This module contains the square-root helpers used by Fermat's method. Roots
are always computed with exact integer arithmetic; NumPy is only used to
reject non-squares early through quadratic-residue tables.

OPTIMIZATION TARGETS:
1. Scalar test: 4 table lookups reject ~99% of non-squares before isqrt
2. Block filter: vectorized residue test over a run of consecutive candidates
"""

import math
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

import numpy as np

# Moduli with a small fraction of quadratic residues (12/64, 16/63, 21/65, 6/11)
RESIDUE_MODULI: Tuple[int, ...] = (64, 63, 65, 11)


# ============================================================================
# PART 1: RESIDUE TABLES
# ============================================================================

@lru_cache(maxsize=1)
def residue_tables() -> Dict[int, np.ndarray]:
    """
    Build boolean quadratic-residue tables for every modulus in RESIDUE_MODULI.

    table[m][r] is True iff r is a square modulo m.
    """
    tables: Dict[int, np.ndarray] = {}
    for m in RESIDUE_MODULI:
        table = np.zeros(m, dtype=bool)
        roots = np.arange(m, dtype=np.int64)
        table[(roots * roots) % m] = True
        tables[m] = table
    return tables


def _passes_residue_filter(x: int) -> bool:
    for m, table in residue_tables().items():
        if not table[x % m]:
            return False
    return True


# ============================================================================
# PART 2: SCALAR SQUARE ROOTS
# ============================================================================

def integer_sqrt(x: int) -> Tuple[int, bool]:
    """
    Floor square root of a non-negative integer and whether it is exact.

    Args:
        x: Non-negative integer of any size

    Returns:
        (floor(sqrt(x)), root * root == x)
    """
    root = math.isqrt(x)
    return root, root * root == x


def exact_sqrt(x: int) -> Optional[int]:
    """Return sqrt(x) if x is a perfect square, else None."""
    if not _passes_residue_filter(x):
        return None
    root, exact = integer_sqrt(x)
    return root if exact else None


def is_square(x: int) -> bool:
    """Check whether x is a perfect square."""
    return exact_sqrt(x) is not None


def ceil_sqrt(x: int) -> int:
    """Smallest integer a with a * a >= x."""
    root, exact = integer_sqrt(x)
    return root if exact else root + 1


# ============================================================================
# PART 3: BLOCK FILTER (NumPy Vectorization)
# ============================================================================

def square_candidates(a0: int, count: int, n: int) -> np.ndarray:
    """
    Offsets k in [0, count) for which (a0 + k)^2 - n may be a perfect square.

    Only the residues of a0 and n are needed, so arbitrarily large values are
    reduced once and the rest of the work stays in int64.

    Args:
        a0: First candidate value
        count: Number of consecutive candidates
        n: Number being factored

    Returns:
        Sorted int64 array of offsets passing every residue table
    """
    if count <= 0:
        return np.empty(0, dtype=np.int64)

    offsets: np.ndarray = np.arange(count, dtype=np.int64)
    mask: np.ndarray = np.ones(count, dtype=bool)

    for m, table in residue_tables().items():
        a_mod = (a0 % m + offsets) % m
        mask &= table[(a_mod * a_mod - n % m) % m]

    return np.flatnonzero(mask)


__all__: List[str] = [
    'RESIDUE_MODULI',
    'residue_tables',
    'integer_sqrt',
    'exact_sqrt',
    'is_square',
    'ceil_sqrt',
    'square_candidates',
]
