import logging
from typing import Any, Callable, Sequence, Union

from permalign.engine.exceptions.alignment import ArithmeticOverflowException, InvalidArgumentException
from permalign.engine.structures.alignment import AlignmentMode, GapPenalty

logger = logging.getLogger(__name__)

# Scores are kept within a signed 32-bit integer.
SCORE_MIN = -(2 ** 31)
SCORE_MAX = 2 ** 31 - 1

ScoringFunction = Callable[[Any, Any], int]

def checked_add(left: int, right: int) -> int:
    total = left + right
    if total < SCORE_MIN or total > SCORE_MAX:
        raise ArithmeticOverflowException("Addition", left, right)
    return total

def checked_multiply(left: int, right: int) -> int:
    product = left * right
    if product < SCORE_MIN or product > SCORE_MAX:
        raise ArithmeticOverflowException("Multiplication", left, right)
    return product

def as_gap_penalty(gap_penalty: Union[GapPenalty, tuple[int, int]]) -> GapPenalty:
    if isinstance(gap_penalty, GapPenalty):
        return gap_penalty
    if isinstance(gap_penalty, tuple) and len(gap_penalty) == 2:
        return GapPenalty(*gap_penalty)
    raise InvalidArgumentException("gap_penalty", gap_penalty, "a GapPenalty or an (open, extension) pair")

class AffineGapAligner:
    """
    Score-only affine gap aligner (Gotoh) running in linear space.

    A gap of length L scores -(open + L * extension). Three states are tracked
    per cell: M ends in a match or mismatch, X ends in a gap consuming a symbol
    of the first sequence and Y ends in a gap consuming a symbol of the second.
    Only the previous and the current row of each state are held in memory, and
    the rows always run over the shorter of the two sequences.
    """

    def __init__(self, gap_penalty: Union[GapPenalty, tuple[int, int]], scoring_function: ScoringFunction, mode: Union[AlignmentMode, str] = AlignmentMode.GLOBAL):
        if scoring_function is None or not callable(scoring_function):
            raise InvalidArgumentException("scoring_function", scoring_function, "a callable taking two symbols")
        self._gap_penalty = as_gap_penalty(gap_penalty)
        self._scoring_function = scoring_function
        self._mode = AlignmentMode.of(mode)
        # Internally the penalties are carried as (non-positive) score contributions.
        self._gap_open = -self._gap_penalty.open
        self._gap_extension = -self._gap_penalty.extension

    @property
    def gap_penalty(self) -> GapPenalty:
        return self._gap_penalty

    @property
    def mode(self) -> AlignmentMode:
        return self._mode

    def _leading_gap(self, length: int) -> int:
        return checked_add(self._gap_open, checked_multiply(length, self._gap_extension))

    def _crossing(self, leading_gap: int) -> int:
        # Opening the other gap state from a leading gap; never beats a real path.
        return checked_add(leading_gap, self._gap_open)

    def score(self, sequence_a: Sequence, sequence_b: Sequence) -> int:
        if sequence_a is None or sequence_b is None:
            raise InvalidArgumentException("sequence", None, "a sequence of symbols")
        local = self._mode is AlignmentMode.LOCAL
        rows, columns = len(sequence_a), len(sequence_b)
        if rows == 0 or columns == 0:
            if local or rows + columns == 0:
                return 0
            return self._leading_gap(rows + columns)

        scoring_function = self._scoring_function
        if columns > rows:
            sequence_a, sequence_b = sequence_b, sequence_a
            rows, columns = columns, rows
            original_scoring_function = scoring_function
            scoring_function = lambda a, b: original_scoring_function(b, a)

        gap_open = self._gap_open
        gap_extension = self._gap_extension

        above_m = [0] * (columns + 1)
        above_x = [0] * (columns + 1)
        above_y = [0] * (columns + 1)
        current_m = [0] * (columns + 1)
        current_x = [0] * (columns + 1)
        current_y = [0] * (columns + 1)

        # Boundary M cells hold the best score of the cell (the leading gap in
        # global mode), so opening a gap from them costs the same as from the
        # gap state itself.
        above_x[0] = above_y[0] = self._crossing(0)
        for column in range(1, columns + 1):
            leading_gap = self._leading_gap(column)
            above_y[column] = leading_gap
            above_x[column] = self._crossing(leading_gap)
            above_m[column] = 0 if local else leading_gap

        if local:
            best = 0
        for row in range(1, rows + 1):
            symbol_a = sequence_a[row - 1]
            leading_gap = self._leading_gap(row)
            current_x[0] = leading_gap
            current_y[0] = self._crossing(leading_gap)
            current_m[0] = 0 if local else leading_gap
            left_m, left_x, left_y = current_m[0], current_x[0], current_y[0]

            for column in range(1, columns + 1):
                match = scoring_function(symbol_a, sequence_b[column - 1])
                cell_m = checked_add(match, max(above_m[column - 1], above_x[column - 1], above_y[column - 1]))
                if local and cell_m < 0:
                    cell_m = 0
                cell_x = checked_add(gap_extension, max(
                    checked_add(gap_open, above_m[column]),
                    checked_add(gap_open, above_y[column]),
                    above_x[column]
                ))
                cell_y = checked_add(gap_extension, max(
                    checked_add(gap_open, left_m),
                    checked_add(gap_open, left_x),
                    left_y
                ))
                current_m[column] = left_m = cell_m
                current_x[column] = left_x = cell_x
                current_y[column] = left_y = cell_y
                if local:
                    best = max(best, cell_m, cell_x, cell_y)

            above_m, current_m = current_m, above_m
            above_x, current_x = current_x, above_x
            above_y, current_y = current_y, above_y

        if local:
            return best
        return max(above_m[columns], above_x[columns], above_y[columns])

    def __call__(self, sequence_a: Sequence, sequence_b: Sequence) -> int:
        return self.score(sequence_a, sequence_b)

def align(sequence_a: Sequence, sequence_b: Sequence, scoring_function: ScoringFunction, gap_penalty: Union[GapPenalty, tuple[int, int]], mode: Union[AlignmentMode, str] = AlignmentMode.GLOBAL) -> int:
    return AffineGapAligner(gap_penalty, scoring_function, mode).score(sequence_a, sequence_b)
