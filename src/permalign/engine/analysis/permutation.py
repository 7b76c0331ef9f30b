import asyncio
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import AbstractContextManager
from typing import Any, Callable, Sequence, Union

import numpy as np

from permalign.engine.analysis.aligners import DEFAULT_MAX_THREADS
from permalign.engine.analysis.gotoh import AffineGapAligner, ScoringFunction
from permalign.engine.exceptions.alignment import EstimationTimeoutException, InvalidArgumentException
from permalign.engine.structures.alignment import AlignmentMode, FullAlignmentResult, GapPenalty, SignificanceResult

logger = logging.getLogger(__name__)

SequenceFactory = Callable[[list], Sequence]

def join_symbols(symbols: list) -> str:
    return "".join(symbols)

def permute_symbols(symbols: Sequence, random_generator: np.random.Generator) -> list:
    permuted = list(symbols)
    # numpy's Generator.shuffle is an in-place Fisher-Yates shuffle.
    random_generator.shuffle(permuted)
    return permuted

def empirical_pvalue(rank: int, trials: int) -> float:
    return 1.0 - rank / (trials + 1.0)

def _validate_trials(trials: Any):
    if isinstance(trials, bool) or not isinstance(trials, int) or trials < 1:
        raise InvalidArgumentException("trials", trials, "an integer of at least 1")

class PermutationSignificanceTester(AbstractContextManager):
    """
    Estimates how unusual an observed alignment score is by re-scoring the
    first sequence against random permutations of the second.

    The p-value is ``1 - rank / (trials + 1)`` where rank counts the trials the
    observed score strictly beats. It is never 0, and slightly conservative.
    Low complexity sequences (e.g. "TTTTTTT") permute into themselves, so the
    observed score rarely beats a trial and the p-value stays near 1 whatever
    the true structure is.

    Every trial draws from its own generator spawned off a single
    ``numpy.random.SeedSequence``, so with a fixed seed the p-value is the same
    for any number of worker threads.
    """

    def __enter__(self):
        self._thread_pool = ThreadPoolExecutor(self._max_threads, thread_name_prefix="permutation-trial")
        return self

    def __init__(self, aligner: AffineGapAligner, sequence_factory: SequenceFactory = join_symbols, max_threads: int = DEFAULT_MAX_THREADS, seed: Union[int, None] = None):
        if not isinstance(aligner, AffineGapAligner):
            raise InvalidArgumentException("aligner", aligner, "an AffineGapAligner")
        if sequence_factory is None or not callable(sequence_factory):
            raise InvalidArgumentException("sequence_factory", sequence_factory, "a callable creating a sequence from a list of symbols")
        if isinstance(max_threads, bool) or not isinstance(max_threads, int) or max_threads < 1:
            raise InvalidArgumentException("max_threads", max_threads, "an integer of at least 1")
        self._aligner = aligner
        self._sequence_factory = sequence_factory
        self._max_threads = max_threads
        self._seed = seed
        self._thread_pool: Union[ThreadPoolExecutor, None] = None

    @property
    def aligner(self) -> AffineGapAligner:
        return self._aligner

    def _run_trials(self, observed_score: int, sequence_a: Sequence, symbols: Sequence[str], trial_seeds: Sequence[np.random.SeedSequence], abort: threading.Event) -> int:
        rank = 0
        for trial_seed in trial_seeds:
            if abort.is_set():
                break
            permuted = self._sequence_factory(permute_symbols(symbols, np.random.default_rng(trial_seed)))
            if observed_score > self._aligner.score(sequence_a, permuted):
                rank += 1
        return rank

    def _submit_trials(self, thread_pool: ThreadPoolExecutor, trials: int, observed: FullAlignmentResult, raw_a: Sequence, raw_b: Sequence, abort: threading.Event) -> list[Future]:
        _validate_trials(trials)
        if observed is None:
            raise InvalidArgumentException("observed", observed, "a full alignment result")
        if raw_a is None or raw_b is None:
            raise InvalidArgumentException("sequence", None, "a sequence of symbols")
        symbols = list(raw_b)
        trial_seeds = np.random.SeedSequence(self._seed).spawn(trials)
        chunk_count = min(trials, self._max_threads * 4)
        chunks = [trial_seeds[start::chunk_count] for start in range(chunk_count)]
        logger.debug("Submitting %d permutation trials in %d chunks (seed=%s)", trials, chunk_count, self._seed)
        return [thread_pool.submit(self._run_trials, observed.score, raw_a, symbols, chunk, abort) for chunk in chunks]

    def _significance(self, trials: int, observed: FullAlignmentResult, rank: int) -> SignificanceResult:
        pvalue = empirical_pvalue(rank, trials)
        logger.debug("Observed score %d beat %d of %d permutations (p=%f)", observed.score, rank, trials, pvalue)
        return SignificanceResult(
            original_score=observed.score,
            similarity=observed.similarity,
            pvalue=pvalue,
            trials=trials,
            alignment=observed if isinstance(observed, FullAlignmentResult) else None
        )

    def _collect(self, futures: list[Future], abort: threading.Event, trials: int, timeout: Union[float, None]) -> int:
        rank = 0
        completed = 0
        try:
            for future in as_completed(futures, timeout=timeout):
                rank += future.result()
                completed += 1
        except FutureTimeoutError:
            raise EstimationTimeoutException(timeout, completed, len(futures)) from None
        finally:
            if completed < len(futures):
                abort.set()
                for future in futures:
                    future.cancel()
        return rank

    def estimate(self, trials: int, observed: FullAlignmentResult, raw_a: Sequence, raw_b: Sequence, timeout: Union[float, None] = None) -> SignificanceResult:
        abort = threading.Event()
        if self._thread_pool is not None:
            futures = self._submit_trials(self._thread_pool, trials, observed, raw_a, raw_b, abort)
            return self._significance(trials, observed, self._collect(futures, abort, trials, timeout))
        with ThreadPoolExecutor(self._max_threads, thread_name_prefix="permutation-trial") as thread_pool:
            futures = self._submit_trials(thread_pool, trials, observed, raw_a, raw_b, abort)
            return self._significance(trials, observed, self._collect(futures, abort, trials, timeout))

    async def estimate_async(self, trials: int, observed: FullAlignmentResult, raw_a: Sequence, raw_b: Sequence, timeout: Union[float, None] = None) -> SignificanceResult:
        abort = threading.Event()
        thread_pool = self._thread_pool
        owns_thread_pool = thread_pool is None
        if thread_pool is None:
            thread_pool = ThreadPoolExecutor(self._max_threads, thread_name_prefix="permutation-trial")
        try:
            futures = self._submit_trials(thread_pool, trials, observed, raw_a, raw_b, abort)
            try:
                ranks = await asyncio.wait_for(asyncio.gather(*(asyncio.wrap_future(future) for future in futures)), timeout)
            except asyncio.TimeoutError:
                completed = sum(1 for future in futures if future.done() and not future.cancelled())
                raise EstimationTimeoutException(timeout, completed, len(futures)) from None
            finally:
                if not all(future.done() for future in futures):
                    abort.set()
                    for future in futures:
                        future.cancel()
            return self._significance(trials, observed, sum(ranks))
        finally:
            if owns_thread_pool:
                thread_pool.shutdown(wait=False, cancel_futures=True)

    def __exit__(self, exc_type, exc_value, traceback):
        self.shutdown()

    def shutdown(self):
        if self._thread_pool is not None:
            self._thread_pool.shutdown(wait=True, cancel_futures=True)
            self._thread_pool = None

def estimate_significance(trials: int, observed: FullAlignmentResult, raw_a: Sequence, raw_b: Sequence, scoring_function: ScoringFunction, gap_penalty: Union[GapPenalty, tuple[int, int]], mode: Union[AlignmentMode, str] = AlignmentMode.GLOBAL, sequence_factory: SequenceFactory = join_symbols, max_threads: int = DEFAULT_MAX_THREADS, seed: Union[int, None] = None, timeout: Union[float, None] = None) -> SignificanceResult:
    _validate_trials(trials)
    aligner = AffineGapAligner(gap_penalty, scoring_function, mode)
    with PermutationSignificanceTester(aligner, sequence_factory, max_threads, seed) as tester:
        return tester.estimate(trials, observed, raw_a, raw_b, timeout)

async def estimate_significance_async(trials: int, observed: FullAlignmentResult, raw_a: Sequence, raw_b: Sequence, scoring_function: ScoringFunction, gap_penalty: Union[GapPenalty, tuple[int, int]], mode: Union[AlignmentMode, str] = AlignmentMode.GLOBAL, sequence_factory: SequenceFactory = join_symbols, max_threads: int = DEFAULT_MAX_THREADS, seed: Union[int, None] = None, timeout: Union[float, None] = None) -> SignificanceResult:
    _validate_trials(trials)
    aligner = AffineGapAligner(gap_penalty, scoring_function, mode)
    with PermutationSignificanceTester(aligner, sequence_factory, max_threads, seed) as tester:
        return await tester.estimate_async(trials, observed, raw_a, raw_b, timeout)
