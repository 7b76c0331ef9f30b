from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from permalign.engine.exceptions.alignment import InvalidGapPenaltyException, UnsupportedModeException

GAP_SYMBOL = "-"

class AlignmentMode(Enum):
    GLOBAL = "global"
    LOCAL = "local"

    @classmethod
    def of(cls, mode: Union["AlignmentMode", str]) -> "AlignmentMode":
        if isinstance(mode, AlignmentMode):
            return mode
        try:
            return cls(str(mode).lower())
        except ValueError:
            raise UnsupportedModeException(mode) from None

@dataclass(frozen=True)
class GapPenalty:
    open: int
    extension: int

    def __post_init__(self):
        for penalty in (self.open, self.extension):
            if isinstance(penalty, bool) or not isinstance(penalty, int) or penalty < 0:
                raise InvalidGapPenaltyException(self.open, self.extension)

    def cost(self, length: int) -> int:
        # Unchecked; the aligner performs its own range checks.
        return self.open + length * self.extension

def _count_gap_symbols(aligned: str) -> int:
    return aligned.count(GAP_SYMBOL)

def _count_gap_opens(aligned: str) -> int:
    opens = 0
    in_gap = False
    for symbol in aligned:
        is_gap = symbol == GAP_SYMBOL
        if is_gap and not in_gap:
            opens += 1
        in_gap = is_gap
    return opens

@dataclass(frozen=True)
class FullAlignmentResult:
    score: int
    similarity: float
    aligned_a: str
    aligned_b: str
    original_a: Any = field(compare=False)
    original_b: Any = field(compare=False)

    @property
    def n_matches(self) -> int:
        return sum(1 for a, b in zip(self.aligned_a, self.aligned_b) if a == b and a != GAP_SYMBOL)

    @property
    def n_insertions_in_a(self) -> int:
        return _count_gap_symbols(self.aligned_a)

    @property
    def n_insertions_in_b(self) -> int:
        return _count_gap_symbols(self.aligned_b)

    @property
    def n_insertion_opens_in_a(self) -> int:
        return _count_gap_opens(self.aligned_a)

    @property
    def n_insertion_opens_in_b(self) -> int:
        return _count_gap_opens(self.aligned_b)

    @property
    def fraction_identical_of_aligned(self) -> float:
        aligned_columns = [(a, b) for a, b in zip(self.aligned_a, self.aligned_b) if a != GAP_SYMBOL and b != GAP_SYMBOL]
        if len(aligned_columns) == 0:
            return 0.0
        return sum(1 for a, b in aligned_columns if a == b) / len(aligned_columns)

    def __str__(self) -> str:
        return "\n".join([
            f"score={self.score}",
            f"nMatches={self.n_matches}",
            f"nInsertions={self.n_insertions_in_a}",
            f"nDeletions={self.n_insertions_in_b}",
            f"nInsertionOpens={self.n_insertion_opens_in_a}",
            f"nDeletionOpens={self.n_insertion_opens_in_b}",
            f"similarity={self.similarity:.6f}",
            self.aligned_a,
            self.aligned_b
        ])

@dataclass(frozen=True)
class SignificanceResult:
    original_score: int
    similarity: float
    pvalue: float
    trials: int = 0
    alignment: Union[FullAlignmentResult, None] = field(default=None, compare=False)

    def __str__(self) -> str:
        if self.alignment is None:
            return f"score={self.original_score}\nsimilarity={self.similarity:.6f}\npvalue={self.pvalue}"
        return f"{self.alignment}\npvalue={self.pvalue}"
