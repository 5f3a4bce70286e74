"""
Parallel Fermat factorization.

The candidate interval [ceil(sqrt(n)), n] is split into contiguous ranges and
each range is scanned by a worker process. A factor pair from range k is
accepted only once every range below k has reported, so the answer is the
one the sequential scan gives. A shared stop index tells the ranges above
the current best hit to stop, and the coordinator drains and joins the pool
before it returns, so no worker outlives the call.

Cancellation is cooperative: workers compare their index with the stop index
once per scan block (FERMAT_BLOCK_SIZE candidates). That bounds the extra
work done after a range is stopped, whether by a lower hit, a timeout or the
caller.
"""
import logging
import multiprocessing
import time
from dataclasses import dataclass
from multiprocessing import Pool, cpu_count

from factorization import (
    InvalidInput,
    Reason,
    SearchOutcome,
    _is_int,
    _validate_budget,
    even_outcome,
    fermat_limit,
    scan_fermat_range,
    validate_n,
)
from square_residues import ceil_sqrt

logger = logging.getLogger(__name__)

# Seconds between checks of the caller's cancel event and the deadline
DEFAULT_POLL_INTERVAL = 0.05

# Shared with pool workers (set by _init_worker in each process): ranges with
# an index above _stop_above stop; _progress holds iterations per range
_stop_above = None
_progress = None


@dataclass(frozen=True)
class SearchRange:
    """Closed interval [start, end] of a values assigned to one worker."""
    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start + 1

    def __contains__(self, a: int) -> bool:
        return self.start <= a <= self.end


@dataclass(frozen=True)
class WorkerReport:
    index: int
    search_range: SearchRange
    outcome: SearchOutcome


def partition_search_space(n: int, worker_count: int) -> list[SearchRange]:
    """
    Split [ceil(sqrt(n)), n] into contiguous ranges of near-equal size.

    Every value belongs to exactly one range; the last range absorbs the
    remainder. When the interval holds fewer values than worker_count, one
    range per value is returned.
    """
    validate_n(n)
    _validate_worker_count(worker_count)

    start = ceil_sqrt(n)
    total = n - start + 1
    count = min(worker_count, total)
    step = total // count

    ranges: list[SearchRange] = []
    lo = start
    for i in range(count):
        hi = n if i == count - 1 else lo + step - 1
        ranges.append(SearchRange(lo, hi))
        lo = hi + 1
    return ranges


def _validate_worker_count(worker_count: int) -> None:
    if not _is_int(worker_count) or worker_count < 1:
        raise InvalidInput(f"worker_count must be a positive integer, got {worker_count!r}")


# ============================================================================
# WORKER SIDE
# ============================================================================

def _init_worker(stop_above, progress) -> None:
    """Pool initializer: keep the shared stop index and progress counters."""
    global _stop_above, _progress
    _stop_above = stop_above
    _progress = progress


def _fermat_range_worker(task: tuple[int, int, SearchRange]) -> WorkerReport:
    """Scan one range, giving up as soon as its index is above the stop index."""
    index, n, search_range = task

    def should_stop() -> bool:
        return index > _stop_above.value

    def record(iterations: int) -> None:
        _progress[index] = iterations

    hi = min(search_range.end, fermat_limit(n))
    outcome = scan_fermat_range(n, search_range.start, hi, should_stop=should_stop, progress=record)
    return WorkerReport(index, search_range, outcome)


# ============================================================================
# COORDINATOR
# ============================================================================

class ParallelFermatSearch:
    """
    One parallel Fermat run over n.

    Args:
        n: Integer > 1
        worker_count: Number of ranges (defaults to cpu_count()); the process
                      pool is capped at cpu_count()
        timeout: Optional wall-clock budget in seconds
        cancel_event: Optional object with is_set(); setting it cancels the run
        poll_interval: Seconds between cancel/deadline checks, > 0

    After run(), reports holds one WorkerReport per range that was dispatched,
    and progress_at_stop maps the index of every range that was told to stop
    to the iterations it had published at that moment.
    """

    def __init__(
        self,
        n: int,
        worker_count: int | None = None,
        timeout: float | None = None,
        cancel_event=None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        validate_n(n)
        if worker_count is None:
            worker_count = cpu_count()
        _validate_worker_count(worker_count)
        _validate_budget(None, timeout)
        if isinstance(poll_interval, bool) or not isinstance(poll_interval, (int, float)) or poll_interval <= 0:
            raise InvalidInput(f"poll_interval must be a positive number of seconds, got {poll_interval!r}")

        self.n = n
        self.worker_count = worker_count
        self.timeout = timeout
        self.cancel_event = cancel_event
        self.poll_interval = poll_interval
        self.reports: list[WorkerReport] = []
        self.progress_at_stop: dict[int, int] = {}

    def ranges(self) -> list[SearchRange]:
        return partition_search_space(self.n, self.worker_count)

    def _stop_ranges_above(self, index: int, stop_above, progress) -> None:
        """Stop every range above index (-1 stops them all)."""
        with stop_above.get_lock():
            previous = stop_above.value
            if index >= previous:
                return
            stop_above.value = index
        snapshot = progress[:]
        for i in range(index + 1, min(previous + 1, len(snapshot))):
            self.progress_at_stop[i] = snapshot[i]

    def run(self) -> SearchOutcome:
        n = self.n
        self.reports = []
        self.progress_at_stop = {}
        if (n & 1) == 0:
            return even_outcome(n)

        ranges = self.ranges()
        tasks = [(i, n, r) for i, r in enumerate(ranges)]
        processes = min(len(tasks), cpu_count())
        deadline = None if self.timeout is None else time.monotonic() + self.timeout

        logger.debug(f"parallel_fermat({n}): {len(tasks)} ranges on {processes} processes")

        stop_above = multiprocessing.Value("q", len(tasks))
        progress = multiprocessing.Array("q", len(tasks))
        pool = Pool(processes, initializer=_init_worker, initargs=(stop_above, progress))

        # Lowest-indexed Found so far; it wins once every range below it reported
        best: WorkerReport | None = None
        resolved = False
        interrupted: Reason | None = None
        reported = [False] * len(tasks)
        frontier = 0  # every range below frontier has reported

        try:
            pending = pool.imap_unordered(_fermat_range_worker, tasks)
            remaining = len(tasks)

            while remaining:
                if interrupted is None and not resolved:
                    if self.cancel_event is not None and self.cancel_event.is_set():
                        interrupted = Reason.CANCELLED
                    elif deadline is not None and time.monotonic() >= deadline:
                        interrupted = Reason.BUDGET
                    if interrupted is not None:
                        logger.info(f"parallel_fermat({n}): {interrupted.value}, signaling workers to stop")
                        self._stop_ranges_above(-1, stop_above, progress)

                try:
                    report = pending.next(timeout=self.poll_interval)
                except multiprocessing.TimeoutError:
                    continue

                remaining -= 1
                self.reports.append(report)
                reported[report.index] = True
                while frontier < len(reported) and reported[frontier]:
                    frontier += 1

                if resolved or interrupted is not None:
                    if report.outcome.is_found:
                        logger.debug(f"Worker {report.index} result discarded, already resolved")
                    continue

                if report.outcome.is_found:
                    if best is None or report.index < best.index:
                        best = report
                        self._stop_ranges_above(best.index, stop_above, progress)
                    else:
                        logger.debug(f"Worker {report.index} result discarded, worker {best.index} is lower")

                if best is not None and frontier >= best.index:
                    resolved = True
                    logger.info(f"Worker {best.index} found factors {tuple(best.outcome.pair)}")
        finally:
            self._stop_ranges_above(-1, stop_above, progress)
            pool.close()
            pool.join()

        iterations = sum(r.outcome.iterations for r in self.reports)

        if resolved:
            return SearchOutcome.found(best.outcome.pair, iterations)
        if interrupted is not None:
            return SearchOutcome.not_found(interrupted, iterations)
        # Every range ran to completion: no non-trivial a exists
        return SearchOutcome.not_found(Reason.PRIME, iterations)


def parallel_fermat_factor(
    n: int,
    worker_count: int | None = None,
    timeout: float | None = None,
    cancel_event=None,
) -> SearchOutcome:
    """
    Fermat's method over worker_count disjoint ranges in parallel.

    The ranges split [ceil(sqrt(n)), n], but no a above (n + 1) / 2 can give a
    factorization, so every range past that point finishes at once with
    EXHAUSTED. About half of the workers therefore do no work: worker_count=2
    is effectively sequential, and worker_count should be about twice the
    number of cores you want busy.

    Args:
        n: Integer > 1
        worker_count: Number of ranges / workers (default cpu_count())
        timeout: Optional wall-clock budget in seconds
        cancel_event: Optional object with is_set() to cancel from another thread

    Returns:
        The same Found outcome as fermat_factor(n) (the lowest range holding a
        factor pair wins), NotFound(PRIME) when all ranges finish empty,
        NotFound(BUDGET) on timeout or NotFound(CANCELLED) on caller
        cancellation
    """
    return ParallelFermatSearch(n, worker_count, timeout=timeout, cancel_event=cancel_event).run()


# Example usage
if __name__ == "__main__":
    n = 1000003 * 1000033
    print("Factors of", n, ":", parallel_fermat_factor(n))
