"""
Integer factorization using Fermat's method, Pollard's Rho and Pollard's p-1.

Every engine takes a single integer n > 1 and returns a SearchOutcome: either
a factor pair (p, q) with p * q == n, or a not-found result carrying the
reason the search stopped. Failing to find a factor is never an exception;
only malformed input raises InvalidInput.

ALGORITHMS:
1. Fermat: walks a = ceil(sqrt(n)), ceil(sqrt(n)) + 1, ... until a^2 - n is
   a perfect square. Fast when the two factors are close together.
   - Candidates are filtered in blocks with NumPy residue tables
2. Pollard Rho: Floyd cycle detection over f(v) = v^2 + 1 mod n, seed 2.
   - Deterministic, so repeated calls agree
3. Pollard p-1: a = 2^(e!) mod n for e = 2..B. Succeeds when p - 1 is
   B-smooth for some prime factor p.

BUDGETS:
- Rho and p-1 accept max_iterations and timeout (seconds); running out is
  reported as Reason.BUDGET, distinct from an exhausted search space.
- Both have a default iteration cap, so a call without a budget still
  returns on prime or adversarial n.
- The parallel variant of Fermat lives in parallel_fermat.py.
"""
import enum
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from square_residues import ceil_sqrt, exact_sqrt, square_candidates

logger = logging.getLogger(__name__)

# Fermat candidates examined between two stop/deadline checks
FERMAT_BLOCK_SIZE = 1024

# Rho has no natural bound; cap it so prime or unlucky inputs terminate
DEFAULT_RHO_MAX_ITERATIONS = 10_000_000

# The default p-1 bound 2^bitlength(n) is out of reach for large n; cap it too
DEFAULT_P_MINUS_1_MAX_ITERATIONS = 100_000

# Rho and p-1 look at the clock once every this many iterations
_DEADLINE_CHECK_INTERVAL = 256


class InvalidInput(ValueError):
    """Raised when n, bound, worker_count or a budget is malformed."""


class Reason(enum.Enum):
    """Why a search ended without a factor pair."""
    PRIME = "prime"            # complete search, no non-trivial factorization exists
    EXHAUSTED = "exhausted"    # search space or bound used up
    CYCLE = "cycle"            # gcd collapsed to n
    BUDGET = "budget"          # iteration cap or deadline reached
    CANCELLED = "cancelled"    # stopped by a cancellation signal


@dataclass(frozen=True)
class FactorPair:
    p: int
    q: int

    @classmethod
    def of(cls, a: int, b: int) -> "FactorPair":
        """Build a pair ordered so that p <= q."""
        return cls(a, b) if a <= b else cls(b, a)

    @property
    def product(self) -> int:
        return self.p * self.q

    def __iter__(self):
        yield self.p
        yield self.q


@dataclass(frozen=True)
class SearchOutcome:
    """
    Terminal result of one engine call.

    Exactly one of pair / reason is set. iterations counts the main-loop
    steps the engine performed (candidates for Fermat, map steps for Rho,
    exponents for p-1).
    """
    pair: FactorPair | None = None
    reason: Reason | None = None
    iterations: int = 0

    @classmethod
    def found(cls, pair: FactorPair, iterations: int = 0) -> "SearchOutcome":
        return cls(pair=pair, iterations=iterations)

    @classmethod
    def not_found(cls, reason: Reason, iterations: int = 0) -> "SearchOutcome":
        return cls(reason=reason, iterations=iterations)

    @property
    def is_found(self) -> bool:
        return self.pair is not None

    @property
    def out_of_budget(self) -> bool:
        return self.reason is Reason.BUDGET


# ============================================================================
# INPUT VALIDATION
# ============================================================================

def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_n(n: int) -> None:
    if not _is_int(n):
        raise InvalidInput(f"n must be an integer, got {type(n).__name__}")
    if n <= 1:
        raise InvalidInput(f"n must be greater than 1, got {n}")


def _validate_budget(max_iterations: int | None, timeout: float | None) -> None:
    if max_iterations is not None and (not _is_int(max_iterations) or max_iterations < 1):
        raise InvalidInput(f"max_iterations must be a positive integer, got {max_iterations!r}")
    if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0):
        raise InvalidInput(f"timeout must be a positive number of seconds, got {timeout!r}")


def _deadline(timeout: float | None) -> float | None:
    return None if timeout is None else time.monotonic() + timeout


def even_outcome(n: int) -> SearchOutcome:
    """Outcome for even n, which Fermat's method cannot handle when n = 2 mod 4."""
    if n == 2:
        return SearchOutcome.not_found(Reason.PRIME)
    return SearchOutcome.found(FactorPair.of(2, n // 2))


# ============================================================================
# FERMAT
# ============================================================================

def fermat_limit(n: int) -> int:
    """Largest a worth testing: a = (n + 1) / 2 gives the trivial pair 1 * n."""
    return (n + 1) // 2


def scan_fermat_range(
    n: int,
    lo: int,
    hi: int,
    should_stop: Callable[[], bool] | None = None,
    max_iterations: int | None = None,
    deadline: float | None = None,
    progress: Callable[[int], None] | None = None,
) -> SearchOutcome:
    """
    Run Fermat's search for a in [lo, hi].

    Candidates are processed FERMAT_BLOCK_SIZE at a time; should_stop and the
    deadline are polled once per block, so a stop request is honoured after
    at most one further block.

    Args:
        n: Odd number to factor
        lo, hi: Closed range of a values, lo >= ceil(sqrt(n))
        should_stop: Cancellation check, returns True to abandon the scan
        max_iterations: Maximum number of a values to examine
        deadline: time.monotonic() value after which the scan gives up
        progress: Called with the running iteration count after each block

    Returns:
        Found(a - b, a + b) for the smallest a in range where a^2 - n = b^2,
        NotFound(PRIME) if that smallest a yields the trivial pair 1 * n,
        otherwise NotFound(EXHAUSTED / CANCELLED / BUDGET)
    """
    a = lo
    iterations = 0

    while a <= hi:
        if should_stop is not None and should_stop():
            return SearchOutcome.not_found(Reason.CANCELLED, iterations)
        if deadline is not None and time.monotonic() >= deadline:
            return SearchOutcome.not_found(Reason.BUDGET, iterations)

        count = min(FERMAT_BLOCK_SIZE, hi - a + 1)
        if max_iterations is not None:
            if iterations >= max_iterations:
                return SearchOutcome.not_found(Reason.BUDGET, iterations)
            count = min(count, max_iterations - iterations)

        for offset in square_candidates(a, count, n):
            x = a + int(offset)
            b = exact_sqrt(x * x - n)
            if b is None:
                continue
            steps = iterations + int(offset) + 1
            if x - b == 1:
                return SearchOutcome.not_found(Reason.PRIME, steps)
            return SearchOutcome.found(FactorPair.of(x - b, x + b), steps)

        a += count
        iterations += count
        if progress is not None:
            progress(iterations)

    return SearchOutcome.not_found(Reason.EXHAUSTED, iterations)


def fermat_factor(n: int, max_iterations: int | None = None, timeout: float | None = None) -> SearchOutcome:
    """
    Fermat's difference of squares factorization.

    Args:
        n: Integer > 1
        max_iterations: Optional cap on the number of a values tested
        timeout: Optional wall-clock budget in seconds

    Returns:
        Found pair, NotFound(PRIME) for prime n, or NotFound(BUDGET)
    """
    validate_n(n)
    _validate_budget(max_iterations, timeout)
    if (n & 1) == 0:
        return even_outcome(n)

    start = ceil_sqrt(n)
    outcome = scan_fermat_range(
        n, start, fermat_limit(n),
        max_iterations=max_iterations,
        deadline=_deadline(timeout),
    )
    logger.debug(f"fermat({n}): {outcome}")
    return outcome


# ============================================================================
# POLLARD RHO
# ============================================================================

def _rho_step(v: int, n: int) -> int:
    return (v * v + 1) % n


def pollards_rho(
    n: int,
    max_iterations: int | None = DEFAULT_RHO_MAX_ITERATIONS,
    timeout: float | None = None,
) -> SearchOutcome:
    """
    Pollard's Rho with Floyd cycle detection, seed 2 and f(v) = v^2 + 1.

    Args:
        n: Integer > 1
        max_iterations: Cap on tortoise steps (None for no cap)
        timeout: Optional wall-clock budget in seconds

    Returns:
        Found(d, n // d), NotFound(CYCLE) when gcd reached n (retry with a
        different seed or polynomial), or NotFound(BUDGET)
    """
    validate_n(n)
    _validate_budget(max_iterations, timeout)
    deadline = _deadline(timeout)

    x: int = 2
    y: int = 2
    d: int = 1
    iterations: int = 0

    while d == 1:
        if max_iterations is not None and iterations >= max_iterations:
            logger.debug(f"pollards_rho({n}): iteration cap {max_iterations} reached")
            return SearchOutcome.not_found(Reason.BUDGET, iterations)
        if deadline is not None and iterations % _DEADLINE_CHECK_INTERVAL == 0 and time.monotonic() >= deadline:
            logger.debug(f"pollards_rho({n}): deadline reached after {iterations} iterations")
            return SearchOutcome.not_found(Reason.BUDGET, iterations)

        x = _rho_step(x, n)
        y = _rho_step(_rho_step(y, n), n)
        d = math.gcd(abs(x - y), n)
        iterations += 1

    if d == n:
        return SearchOutcome.not_found(Reason.CYCLE, iterations)
    return SearchOutcome.found(FactorPair.of(d, n // d), iterations)


# ============================================================================
# POLLARD P-1
# ============================================================================

def default_bound(n: int) -> int:
    """2^bitlength(n): a weak default, not a guarantee of success."""
    return 1 << n.bit_length()


def pollards_p_minus_1(
    n: int,
    bound: int | None = None,
    max_iterations: int | None = DEFAULT_P_MINUS_1_MAX_ITERATIONS,
    timeout: float | None = None,
) -> SearchOutcome:
    """
    Pollard's p-1 method.

    Args:
        n: Integer > 1
        bound: Smoothness bound B > 1 (default_bound(n) when None)
        max_iterations: Cap on exponents tried (None for no cap)
        timeout: Optional wall-clock budget in seconds

    Returns:
        Found(d, n // d) for the first exponent where 1 < gcd(a - 1, n) < n,
        NotFound(EXHAUSTED) once e passes the bound, NotFound(CYCLE) when a
        reaches 1 (every later gcd is n), or NotFound(BUDGET)
    """
    validate_n(n)
    if bound is None:
        bound = default_bound(n)
    elif not _is_int(bound) or bound <= 1:
        raise InvalidInput(f"bound must be an integer greater than 1, got {bound!r}")
    _validate_budget(max_iterations, timeout)
    deadline = _deadline(timeout)

    a: int = 2
    e: int = 2
    iterations: int = 0

    while e <= bound:
        if max_iterations is not None and iterations >= max_iterations:
            return SearchOutcome.not_found(Reason.BUDGET, iterations)
        if deadline is not None and iterations % _DEADLINE_CHECK_INTERVAL == 0 and time.monotonic() >= deadline:
            return SearchOutcome.not_found(Reason.BUDGET, iterations)

        a = pow(a, e, n)
        iterations += 1
        d = math.gcd(a - 1, n)
        if 1 < d < n:
            logger.debug(f"pollards_p_minus_1({n}): factor {d} at e={e}")
            return SearchOutcome.found(FactorPair.of(d, n // d), iterations)
        if a == 1:
            return SearchOutcome.not_found(Reason.CYCLE, iterations)
        e += 1

    return SearchOutcome.not_found(Reason.EXHAUSTED, iterations)


# Example usage
if __name__ == "__main__":
    n = 1000003 * 1000033  # close primes
    print("fermat       :", fermat_factor(n))
    print("pollard rho  :", pollards_rho(n))
    print("pollard p-1  :", pollards_p_minus_1(n, bound=10000))
