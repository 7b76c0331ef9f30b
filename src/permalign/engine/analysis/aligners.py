import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import AbstractContextManager
from queue import Queue
from typing import Any, Sequence, Union
from Bio.Align import PairwiseAligner

from permalign.engine.analysis.gotoh import as_gap_penalty
from permalign.engine.analysis.scoring import SubstitutionScoring
from permalign.engine.exceptions.alignment import ArithmeticOverflowException, InvalidArgumentException
from permalign.engine.structures.alignment import AlignmentMode, FullAlignmentResult, GapPenalty

logger = logging.getLogger(__name__)

DEFAULT_MAX_THREADS = 4

def _as_text(sequence: Sequence) -> str:
    if isinstance(sequence, str):
        return sequence
    return "".join(sequence)

def build_biopython_aligner(gap_penalty: GapPenalty, scoring: SubstitutionScoring, mode: AlignmentMode) -> PairwiseAligner:
    aligner = PairwiseAligner()
    aligner.mode = mode.value
    aligner.substitution_matrix = scoring.matrix
    # Biopython charges the open score on the first gap position and the
    # extension score on every later one.
    aligner.open_gap_score = -(gap_penalty.open + gap_penalty.extension)
    aligner.extend_gap_score = -gap_penalty.extension
    return aligner

class BiopythonFullAligner:
    def __init__(self, gap_penalty: Union[GapPenalty, tuple[int, int]], scoring: SubstitutionScoring, mode: Union[AlignmentMode, str] = AlignmentMode.GLOBAL):
        if not isinstance(scoring, SubstitutionScoring):
            raise InvalidArgumentException("scoring", scoring, "a SubstitutionScoring backed by a substitution matrix")
        self._gap_penalty = as_gap_penalty(gap_penalty)
        self._scoring = scoring
        self._mode = AlignmentMode.of(mode)
        self._aligner = build_biopython_aligner(self._gap_penalty, scoring, self._mode)
        logger.debug("Configured Biopython %s aligner with %s and %r", self._mode.value, self._gap_penalty, scoring)

    def align(self, sequence_a: Sequence, sequence_b: Sequence) -> FullAlignmentResult:
        if sequence_a is None or sequence_b is None:
            raise InvalidArgumentException("sequence", None, "a sequence of symbols")
        alignments = self._aligner.align(_as_text(sequence_a), _as_text(sequence_b))
        top_alignment = alignments[0]
        top_alignment_score = float(top_alignment.score) # type: ignore
        if not top_alignment_score.is_integer():
            raise ArithmeticOverflowException("Integer conversion", top_alignment_score, 0)
        top_alignment_counts = top_alignment.counts()
        aligned_columns = top_alignment_counts.identities + top_alignment_counts.mismatches
        similarity = top_alignment_counts.identities / aligned_columns if aligned_columns > 0 else 0.0
        return FullAlignmentResult(
            score=int(top_alignment_score),
            similarity=similarity,
            aligned_a=str(top_alignment[0]),
            aligned_b=str(top_alignment[1]),
            original_a=sequence_a,
            original_b=sequence_b
        )

class AsyncFullAlignmentEngine(AbstractContextManager):
    """
    Runs full alignments on a thread pool and yields them in completion order
    with ``async for alignment, associated_data in engine``. Iteration ends once
    every submitted alignment has been handed back.
    """

    def __enter__(self):
        self._thread_pool = ThreadPoolExecutor(self._max_threads, thread_name_prefix="async-full-alignment")
        return self

    def __init__(self, aligner: BiopythonFullAligner, max_threads: int = DEFAULT_MAX_THREADS):
        if isinstance(max_threads, bool) or not isinstance(max_threads, int) or max_threads < 1:
            raise InvalidArgumentException("max_threads", max_threads, "an integer of at least 1")
        self._aligner = aligner
        self._max_threads = max_threads
        self._thread_pool: Union[ThreadPoolExecutor, None] = None
        # Submitted but not yet taken off the completion queue.
        self._outstanding = 0
        self._completed: Queue[Future] = Queue()

    def align(self, sequence_a: Sequence, sequence_b: Sequence, **associated_data):
        if self._thread_pool is None:
            raise InvalidArgumentException("engine", self, "an engine entered as a context manager")
        work = self._thread_pool.submit(self._align_with_data, sequence_a, sequence_b, associated_data)
        self._outstanding += 1
        work.add_done_callback(self._completed.put)

    def _align_with_data(self, sequence_a: Sequence, sequence_b: Sequence, associated_data: dict[str, Any]) -> tuple[FullAlignmentResult, dict[str, Any]]:
        return self._aligner.align(sequence_a, sequence_b), associated_data

    async def next_completed(self) -> Union[tuple[FullAlignmentResult, dict[str, Any]], None]:
        if self._outstanding == 0:
            return None
        completed = await asyncio.to_thread(self._completed.get)
        self._outstanding -= 1
        return await asyncio.wrap_future(completed)

    def __aiter__(self):
        return self

    async def __anext__(self):
        result = await self.next_completed()
        if result is None:
            raise StopAsyncIteration
        return result

    def __exit__(self, exc_type, exc_value, traceback):
        self.shutdown()

    def shutdown(self):
        if self._thread_pool is not None:
            self._thread_pool.shutdown(wait=True, cancel_futures=True)
            self._thread_pool = None
