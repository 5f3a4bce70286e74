import unittest
import random
import time

from factorization import (
    DEFAULT_P_MINUS_1_MAX_ITERATIONS,
    FERMAT_BLOCK_SIZE,
    FactorPair,
    InvalidInput,
    Reason,
    SearchOutcome,
    default_bound,
    fermat_factor,
    fermat_limit,
    pollards_p_minus_1,
    pollards_rho,
    scan_fermat_range,
)
from generation import (
    generate_balanced_composite,
    generate_close_composite,
    generate_p_minus_one_composite,
    generate_safe_prime,
    generate_twin_prime_composite,
    p_minus_one_bound,
)
from square_residues import ceil_sqrt

MERSENNE_61 = (1 << 61) - 1  # prime


class TestFactorPair(unittest.TestCase):
    """Test the result types"""

    def test_pair_is_ordered(self):
        self.assertEqual(FactorPair.of(13, 11), FactorPair(11, 13))
        self.assertEqual(FactorPair.of(11, 13), FactorPair(11, 13))

    def test_pair_unpacks(self):
        p, q = FactorPair.of(97, 83)
        self.assertEqual((p, q), (83, 97))
        self.assertEqual(FactorPair(83, 97).product, 8051)

    def test_outcome_flags(self):
        found = SearchOutcome.found(FactorPair(3, 5), iterations=1)
        self.assertTrue(found.is_found)
        self.assertIsNone(found.reason)

        budget = SearchOutcome.not_found(Reason.BUDGET, iterations=10)
        self.assertFalse(budget.is_found)
        self.assertTrue(budget.out_of_budget)
        self.assertFalse(SearchOutcome.not_found(Reason.PRIME).out_of_budget)


class TestInputValidation(unittest.TestCase):
    """Malformed input fails before any search starts"""

    def test_bad_n(self):
        for engine in (fermat_factor, pollards_rho, pollards_p_minus_1):
            for n in (1, 0, -15, 2.0, True, "143", None):
                with self.assertRaises(InvalidInput, msg=f"{engine.__name__}({n!r})"):
                    engine(n)

    def test_invalid_input_is_value_error(self):
        with self.assertRaises(ValueError):
            fermat_factor(1)

    def test_bad_bound(self):
        for bound in (1, 0, -7, 10.0, False):
            with self.assertRaises(InvalidInput):
                pollards_p_minus_1(8051, bound)

    def test_bad_budget(self):
        with self.assertRaises(InvalidInput):
            fermat_factor(143, max_iterations=0)
        with self.assertRaises(InvalidInput):
            pollards_rho(143, timeout=0)
        with self.assertRaises(InvalidInput):
            pollards_p_minus_1(143, 10, timeout=-1.0)


class TestFermat(unittest.TestCase):
    """Test sequential Fermat factorization"""

    def test_143(self):
        outcome = fermat_factor(143)
        self.assertTrue(outcome.is_found)
        self.assertEqual(outcome.pair, FactorPair(11, 13))

    def test_semiprimes(self):
        test_cases = [
            (15, (3, 5)),
            (5959, (59, 101)),
            (10403, (101, 103)),
            (1000003 * 1000033, (1000003, 1000033)),
        ]
        for n, expected in test_cases:
            self.assertEqual(tuple(fermat_factor(n).pair), expected, f"fermat({n})")

    def test_closest_pair_for_many_factors(self):
        # 105 = 3 * 5 * 7: a = 11 gives 121 - 105 = 16
        self.assertEqual(fermat_factor(105).pair, FactorPair(7, 15))

    def test_perfect_square(self):
        self.assertEqual(fermat_factor(9).pair, FactorPair(3, 3))
        n = 1000003 * 1000003
        outcome = fermat_factor(n)
        self.assertEqual(outcome.pair, FactorPair(1000003, 1000003))
        self.assertEqual(outcome.iterations, 1)

    def test_prime_reported_as_prime(self):
        for n in (3, 5, 7, 97, 104729):
            outcome = fermat_factor(n)
            self.assertFalse(outcome.is_found, f"{n} is prime")
            self.assertEqual(outcome.reason, Reason.PRIME)

    def test_prime_search_stops_at_limit(self):
        n = 104729
        outcome = fermat_factor(n)
        self.assertEqual(outcome.iterations, fermat_limit(n) - ceil_sqrt(n) + 1)

    def test_even_numbers(self):
        self.assertEqual(fermat_factor(4).pair, FactorPair(2, 2))
        self.assertEqual(fermat_factor(10).pair, FactorPair(2, 5))
        self.assertEqual(fermat_factor(2 * 1000003).pair, FactorPair(2, 1000003))
        self.assertEqual(fermat_factor(2).reason, Reason.PRIME)

    def test_iteration_budget(self):
        # factors far apart: the square is ~10^9 steps away
        n = 65537 * 2147483647
        outcome = fermat_factor(n, max_iterations=1000)
        self.assertEqual(outcome.reason, Reason.BUDGET)
        self.assertEqual(outcome.iterations, 1000)

    def test_timeout(self):
        start = time.time()
        outcome = fermat_factor(MERSENNE_61, timeout=0.05)
        elapsed = time.time() - start

        self.assertTrue(outcome.out_of_budget)
        self.assertLess(elapsed, 5.0)

    def test_big_integers(self):
        p = 2**89 - 1   # Mersenne prime
        q = p + 2 * 11  # any nearby odd cofactor works for Fermat
        outcome = fermat_factor(p * q)
        self.assertEqual(outcome.pair, FactorPair(p, q))


class TestFermatRangeScan(unittest.TestCase):
    """Test the range scan shared with the parallel workers"""

    def test_stop_polled_once_per_block(self):
        calls = []

        def should_stop():
            calls.append(1)
            return len(calls) > 2

        n = MERSENNE_61
        start = ceil_sqrt(n)
        outcome = scan_fermat_range(n, start, fermat_limit(n), should_stop=should_stop)

        self.assertEqual(outcome.reason, Reason.CANCELLED)
        self.assertEqual(outcome.iterations, 2 * FERMAT_BLOCK_SIZE)

    def test_range_without_solution(self):
        # a = 12 is the only useful value for 143
        outcome = scan_fermat_range(143, 13, 40)
        self.assertEqual(outcome.reason, Reason.EXHAUSTED)
        self.assertEqual(outcome.iterations, 28)

    def test_empty_range(self):
        outcome = scan_fermat_range(143, 50, 40)
        self.assertEqual(outcome.reason, Reason.EXHAUSTED)
        self.assertEqual(outcome.iterations, 0)

    def test_hit_in_later_block(self):
        p, q = 1000003, 1000003 + 2 * 10**5
        n = p * q
        outcome = scan_fermat_range(n, ceil_sqrt(n), fermat_limit(n))
        self.assertEqual(outcome.pair, FactorPair(p, q))
        self.assertEqual(outcome.iterations, (p + q) // 2 - ceil_sqrt(n) + 1)
        self.assertGreater(outcome.iterations, FERMAT_BLOCK_SIZE)


class TestPollardRho(unittest.TestCase):
    """Test Pollard's Rho algorithm"""

    def test_8051(self):
        outcome = pollards_rho(8051)
        self.assertTrue(outcome.is_found)
        self.assertEqual(outcome.pair, FactorPair(83, 97))

    def test_even_number(self):
        outcome = pollards_rho(10)
        self.assertEqual(outcome.pair, FactorPair(2, 5))

    def test_prime_collapses(self):
        for n in (97, 104729, 1000003):
            outcome = pollards_rho(n)
            self.assertFalse(outcome.is_found, f"{n} is prime")
            self.assertEqual(outcome.reason, Reason.CYCLE)

    def test_iteration_cap(self):
        outcome = pollards_rho(104729, max_iterations=5)
        self.assertEqual(outcome.reason, Reason.BUDGET)
        self.assertEqual(outcome.iterations, 5)

    def test_timeout(self):
        start = time.time()
        outcome = pollards_rho(MERSENNE_61, max_iterations=None, timeout=0.05)
        elapsed = time.time() - start

        self.assertTrue(outcome.out_of_budget)
        self.assertLess(elapsed, 5.0)

    def test_found_pairs_are_factorizations(self):
        rng = random.Random(7)
        found = 0
        for _ in range(10):
            n, p, q = generate_balanced_composite(20, rng)
            outcome = pollards_rho(n)
            if outcome.is_found:
                found += 1
                self.assertEqual(outcome.pair.product, n)
                self.assertEqual(tuple(outcome.pair), (p, q))
            else:
                self.assertEqual(outcome.reason, Reason.CYCLE)
        self.assertGreater(found, 5)


class TestPollardPMinusOne(unittest.TestCase):
    """Test Pollard's p-1 algorithm"""

    # ord(2) mod 65537 is 32, ord(2) mod 2^31 - 1 is 31
    N = 65537 * 2147483647

    def test_smooth_factor_found(self):
        outcome = pollards_p_minus_1(self.N, 30)
        self.assertEqual(outcome.pair, FactorPair(65537, 2147483647))
        # 32 divides 8! but not 7!
        self.assertEqual(outcome.iterations, 7)

    def test_bound_too_small(self):
        outcome = pollards_p_minus_1(self.N, 7)
        self.assertFalse(outcome.is_found)
        self.assertEqual(outcome.reason, Reason.EXHAUSTED)
        self.assertEqual(outcome.iterations, 6)

    def test_default_bound(self):
        self.assertEqual(default_bound(143), 256)
        self.assertEqual(pollards_p_minus_1(self.N).pair, FactorPair(65537, 2147483647))

    def test_both_factors_collapse(self):
        # ord(2) mod 5 is 4 and mod 17 is 8: both divide 4!
        outcome = pollards_p_minus_1(85, 100)
        self.assertEqual(outcome.reason, Reason.CYCLE)
        self.assertEqual(outcome.iterations, 3)

    def test_iteration_cap(self):
        outcome = pollards_p_minus_1(self.N, 30, max_iterations=3)
        self.assertEqual(outcome.reason, Reason.BUDGET)

    def test_default_cap_on_prime(self):
        # ord(2) mod a safe prime 2q + 1 needs e >= q, far past the default cap
        p = generate_safe_prime(64, random.Random(1))
        outcome = pollards_p_minus_1(p)
        self.assertEqual(outcome.reason, Reason.BUDGET)
        self.assertTrue(outcome.out_of_budget)
        self.assertEqual(outcome.iterations, DEFAULT_P_MINUS_1_MAX_ITERATIONS)

    def test_generated_composites(self):
        rng = random.Random(2024)
        for _ in range(5):
            n, p, q = generate_p_minus_one_composite(32, rng)
            outcome = pollards_p_minus_1(n, p_minus_one_bound(32))
            self.assertTrue(outcome.is_found, f"p-1 should split {n}")
            self.assertEqual(outcome.pair.product, n)


class TestGeneratedComposites(unittest.TestCase):
    """Engines on structured composites"""

    def test_fermat_close_and_twin(self):
        rng = random.Random(42)
        for generate in (generate_close_composite, generate_twin_prime_composite):
            for _ in range(5):
                n, p, q = generate(40, rng)
                self.assertEqual(fermat_factor(n).pair, FactorPair(p, q))

    def test_fermat_balanced(self):
        rng = random.Random(43)
        for _ in range(5):
            n, p, q = generate_balanced_composite(16, rng)
            outcome = fermat_factor(n)
            if p == q:
                self.assertEqual(outcome.pair, FactorPair(p, p))
            else:
                self.assertEqual(outcome.pair, FactorPair(p, q))


class TestIdempotence(unittest.TestCase):
    """Same input, same outcome"""

    def test_repeated_calls(self):
        n = 65537 * 2147483647
        self.assertEqual(fermat_factor(143), fermat_factor(143))
        self.assertEqual(pollards_rho(8051), pollards_rho(8051))
        self.assertEqual(pollards_rho(104729), pollards_rho(104729))
        self.assertEqual(pollards_p_minus_1(n, 30), pollards_p_minus_1(n, 30))
        self.assertEqual(pollards_p_minus_1(n, 7), pollards_p_minus_1(n, 7))


if __name__ == '__main__':
    unittest.main(verbosity=2)
