"""
Benchmark suite for the factorization engines.

Benchmarks:
1. Square Testing: residue-filtered is_square vs plain isqrt
2. Fermat: close, twin and balanced composites
3. Parallel Fermat: speedup over the sequential scan by worker count
4. Pollard Rho: balanced semiprimes
5. Pollard p-1: smooth composites and too-small bounds
"""

import math
import random
import statistics
import sys
import time
from typing import Callable, List

import numpy as np

from factorization import fermat_factor, pollards_p_minus_1, pollards_rho
from generation import (
    fermat_steps,
    generate_balanced_composite,
    generate_close_composite,
    generate_p_minus_one_composite,
    generate_twin_prime_composite,
    p_minus_one_bound,
)
from parallel_fermat import parallel_fermat_factor
from square_residues import is_square


# ============================================================================
# BENCHMARK UTILITIES
# ============================================================================

class BenchmarkResult:
    """Store benchmark results with statistics."""

    def __init__(self, name: str, times: List[float]):
        self.name = name
        self.times = sorted(times)

        self.min = min(times)
        self.max = max(times)
        self.mean = statistics.mean(times)
        self.median = statistics.median(times)
        self.stdev = statistics.stdev(times) if len(times) > 1 else 0

    def __str__(self):
        return (f"{self.name:44} | "
                f"Mean: {self.mean*1000:9.3f}ms | "
                f"Median: {self.median*1000:9.3f}ms | "
                f"StdDev: {self.stdev*1000:8.3f}ms | "
                f"Min: {self.min*1000:9.3f}ms")


def benchmark(func: Callable, *args, iterations: int = 5, **kwargs) -> BenchmarkResult:
    """
    Benchmark a function and return statistics.

    Args:
        func: Function to benchmark
        *args: Positional arguments to function
        iterations: Number of timed runs
        **kwargs: Keyword arguments to function

    Returns:
        BenchmarkResult with timing statistics
    """
    times = []

    # Warm up
    func(*args, **kwargs)

    for _ in range(iterations):
        start = time.perf_counter()
        func(*args, **kwargs)
        times.append(time.perf_counter() - start)

    return BenchmarkResult(func.__name__, times)


def _header(title: str):
    print("\n" + "="*100)
    print(title)
    print("="*100)


# ============================================================================
# 1. SQUARE TESTING BENCHMARKS
# ============================================================================

def _isqrt_only(values: np.ndarray) -> List[bool]:
    return [math.isqrt(int(x)) ** 2 == int(x) for x in values]


def _filtered(values: np.ndarray) -> List[bool]:
    return [is_square(int(x)) for x in values]


def benchmark_square_testing():
    """Residue filter against a bare integer square root."""
    _header("SQUARE TESTING BENCHMARKS")

    rng = np.random.default_rng(0)
    values = rng.integers(1 << 40, 1 << 62, size=20000, dtype=np.int64)

    plain = benchmark(_isqrt_only, values, iterations=5)
    plain.name = "math.isqrt only (20K values)"
    print(plain)

    filtered = benchmark(_filtered, values, iterations=5)
    filtered.name = "residue filter + isqrt (20K values)"
    print(filtered)


# ============================================================================
# 2. FERMAT BENCHMARKS
# ============================================================================

def benchmark_fermat():
    """Sequential Fermat on composites of different shapes."""
    _header("FERMAT BENCHMARKS")

    rng = random.Random(1)
    test_cases = [
        (generate_close_composite(64, rng), "Close primes, 64-bit factors"),
        (generate_twin_prime_composite(64, rng), "Twin primes, 64-bit factors"),
        (generate_balanced_composite(20, rng), "Balanced, 20-bit factors"),
        (generate_balanced_composite(24, rng), "Balanced, 24-bit factors"),
    ]

    for (n, p, q), description in test_cases:
        result = benchmark(fermat_factor, n, iterations=3)
        result.name = description
        print(result)
        print(f"  → {fermat_steps(p, q)} steps")


# ============================================================================
# 3. PARALLEL FERMAT BENCHMARKS
# ============================================================================

def benchmark_parallel_fermat():
    """Parallel Fermat by worker count on the same composite."""
    _header("PARALLEL FERMAT BENCHMARKS")

    rng = random.Random(2)
    n, p, q = generate_balanced_composite(26, rng)
    print(f"n = {n} ({fermat_steps(p, q)} sequential steps)")

    sequential = benchmark(fermat_factor, n, iterations=1)
    sequential.name = "Sequential"
    print(sequential)

    for workers in (1, 2, 4, 8):
        result = benchmark(parallel_fermat_factor, n, workers, iterations=1)
        result.name = f"Parallel, {workers} workers"
        print(result)


# ============================================================================
# 4. POLLARD RHO BENCHMARKS
# ============================================================================

def benchmark_pollard_rho():
    """Benchmark Pollard Rho algorithm."""
    _header("POLLARD RHO BENCHMARKS")

    rng = random.Random(3)
    test_cases = [
        ((8051, 83, 97), "Small semiprime (83 * 97)"),
        ((10403, 101, 103), "Medium semiprime (101 * 103)"),
        (generate_balanced_composite(32, rng), "Balanced, 32-bit factors"),
        (generate_balanced_composite(40, rng), "Balanced, 40-bit factors"),
    ]

    for (n, p, q), description in test_cases:
        outcome = pollards_rho(n)
        result = benchmark(pollards_rho, n, iterations=3)
        result.name = description
        print(result)
        print(f"  → {outcome.reason.value if outcome.reason else 'found'} after {outcome.iterations} iterations")


# ============================================================================
# 5. POLLARD P-1 BENCHMARKS
# ============================================================================

def benchmark_p_minus_1():
    """Benchmark Pollard p-1 with adequate and inadequate bounds."""
    _header("POLLARD P-1 BENCHMARKS")

    rng = random.Random(4)
    for bits in (32, 64):
        n, p, q = generate_p_minus_one_composite(bits, rng)
        bound = p_minus_one_bound(bits)

        result = benchmark(pollards_p_minus_1, n, bound, iterations=3)
        result.name = f"Smooth p-1, {bits}-bit factors, B={bound}"
        print(result)

        result = benchmark(pollards_p_minus_1, n, 10, iterations=3)
        result.name = f"Smooth p-1, {bits}-bit factors, B=10"
        print(result)
        print(f"  → B=10: {pollards_p_minus_1(n, 10).reason}")


# ============================================================================
# MAIN BENCHMARK SUITE
# ============================================================================

def run_all_benchmarks():
    """Run all benchmarks."""
    print("\n")
    print("╔" + "="*98 + "╗")
    print("║" + " "*25 + "FACTORIZATION ENGINE BENCHMARK SUITE" + " "*37 + "║")
    print("╚" + "="*98 + "╝")

    try:
        benchmark_square_testing()
        benchmark_fermat()
        benchmark_parallel_fermat()
        benchmark_pollard_rho()
        benchmark_p_minus_1()

        print("\n" + "="*100)
        print("BENCHMARK COMPLETE")
        print("="*100 + "\n")

    except KeyboardInterrupt:
        print("\nBenchmark interrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    run_all_benchmarks()
