from typing import Hashable, Mapping, Sequence, Union

from permalign.engine.analysis.aligners import DEFAULT_MAX_THREADS, AsyncFullAlignmentEngine, BiopythonFullAligner
from permalign.engine.analysis.gotoh import AffineGapAligner, as_gap_penalty
from permalign.engine.analysis.permutation import PermutationSignificanceTester, SequenceFactory, join_symbols
from permalign.engine.analysis.scoring import SubstitutionScoring
from permalign.engine.exceptions.alignment import InvalidArgumentException
from permalign.engine.structures.alignment import AlignmentMode, FullAlignmentResult, GapPenalty, SignificanceResult

DEFAULT_GAP_PENALTY = GapPenalty(open=11, extension=1)

def _require_alignment(alignment: FullAlignmentResult):
    if alignment is None:
        raise InvalidArgumentException("alignment", alignment, "a full alignment result")

class SignificanceAligner:
    """
    Global or local alignment of a sequence pair with a permutation p-value.

    Example:
        aligner = SignificanceAligner.with_default_options(AlignmentMode.GLOBAL)
        significance = aligner.align_and_calculate_pvalue(200, sequence_a, sequence_b)
    """

    def __init__(self, gap_penalty: Union[GapPenalty, tuple[int, int]], scoring: SubstitutionScoring, mode: Union[AlignmentMode, str] = AlignmentMode.GLOBAL, sequence_factory: SequenceFactory = join_symbols, max_threads: int = DEFAULT_MAX_THREADS, seed: Union[int, None] = None):
        self._gap_penalty = as_gap_penalty(gap_penalty)
        self._mode = AlignmentMode.of(mode)
        self._scoring = scoring
        self._full_aligner = BiopythonFullAligner(self._gap_penalty, scoring, self._mode)
        self._fast_aligner = AffineGapAligner(self._gap_penalty, scoring, self._mode)
        self._tester = PermutationSignificanceTester(self._fast_aligner, sequence_factory, max_threads, seed)
        self._max_threads = max_threads

    @classmethod
    def with_default_options(cls, mode: Union[AlignmentMode, str] = AlignmentMode.GLOBAL, seed: Union[int, None] = None) -> "SignificanceAligner":
        return cls(DEFAULT_GAP_PENALTY, SubstitutionScoring.load(), mode, seed=seed)

    @property
    def mode(self) -> AlignmentMode:
        return self._mode

    @property
    def gap_penalty(self) -> GapPenalty:
        return self._gap_penalty

    def align(self, sequence_a: Sequence, sequence_b: Sequence) -> FullAlignmentResult:
        return self._full_aligner.align(sequence_a, sequence_b)

    async def align_all(self, sequence_pairs: Mapping[Hashable, tuple[Sequence, Sequence]]) -> dict[Hashable, FullAlignmentResult]:
        alignments = dict()
        with AsyncFullAlignmentEngine(self._full_aligner, self._max_threads) as engine:
            for pair_name, (sequence_a, sequence_b) in sequence_pairs.items():
                engine.align(sequence_a, sequence_b, pair_name=pair_name)
            async for alignment, associated_data in engine:
                alignments[associated_data["pair_name"]] = alignment
        return alignments

    def align_fast(self, sequence_a: Sequence, sequence_b: Sequence) -> int:
        return self._fast_aligner.score(sequence_a, sequence_b)

    def calculate_pvalue_by_permutation(self, trials: int, alignment: FullAlignmentResult, timeout: Union[float, None] = None) -> SignificanceResult:
        # Permutes the second sequence; see PermutationSignificanceTester for the caveats.
        _require_alignment(alignment)
        return self._tester.estimate(trials, alignment, alignment.original_a, alignment.original_b, timeout)

    async def calculate_pvalue_by_permutation_async(self, trials: int, alignment: FullAlignmentResult, timeout: Union[float, None] = None) -> SignificanceResult:
        _require_alignment(alignment)
        return await self._tester.estimate_async(trials, alignment, alignment.original_a, alignment.original_b, timeout)

    def align_and_calculate_pvalue(self, trials: int, sequence_a: Sequence, sequence_b: Sequence, timeout: Union[float, None] = None) -> SignificanceResult:
        return self.calculate_pvalue_by_permutation(trials, self.align(sequence_a, sequence_b), timeout)

    async def align_and_calculate_pvalue_async(self, trials: int, sequence_a: Sequence, sequence_b: Sequence, timeout: Union[float, None] = None) -> SignificanceResult:
        return await self.calculate_pvalue_by_permutation_async(trials, self.align(sequence_a, sequence_b), timeout)
