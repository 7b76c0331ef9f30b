import logging
from typing import Any

import numpy as np
from Bio.Align import substitution_matrices

from permalign.engine.exceptions.alignment import InvalidConfigurationException, UnknownSymbolException

logger = logging.getLogger(__name__)

DEFAULT_SUBSTITUTION_MATRIX = "NUC.4.4"

class SubstitutionScoring:
    """
    Integer scoring function over pairs of alphabet symbols, backed by a
    Biopython substitution matrix.

    Instances are immutable after construction and safe to share between
    threads; lookups never mutate state.
    """

    def __init__(self, matrix: substitution_matrices.Array):
        alphabet = matrix.alphabet
        if alphabet is None or len(alphabet) == 0:
            raise InvalidConfigurationException("the substitution matrix has an empty alphabet.")
        if matrix.ndim != 2:
            raise InvalidConfigurationException(f"expected a two dimensional substitution matrix, got {matrix.ndim} dimensions.")
        self._matrix = matrix
        self._alphabet = "".join(alphabet)
        self._scores: dict[tuple[Any, Any], int] = dict()
        for row_index, row_symbol in enumerate(alphabet):
            for column_index, column_symbol in enumerate(alphabet):
                value = float(matrix[row_index, column_index])
                if not value.is_integer():
                    raise InvalidConfigurationException(f"substitution score for ({row_symbol}, {column_symbol}) is not an integer ({value}).")
                self._scores[(row_symbol, column_symbol)] = int(value)

    @classmethod
    def load(cls, name: str = DEFAULT_SUBSTITUTION_MATRIX) -> "SubstitutionScoring":
        try:
            matrix = substitution_matrices.load(name)
        except FileNotFoundError:
            raise InvalidConfigurationException(f"unknown substitution matrix \"{name}\".") from None
        logger.debug("Loaded substitution matrix %s with alphabet %s", name, matrix.alphabet)
        return cls(matrix)

    @classmethod
    def from_match_mismatch(cls, alphabet: str, match: int, mismatch: int) -> "SubstitutionScoring":
        if len(alphabet) == 0:
            raise InvalidConfigurationException("the scoring alphabet is empty.")
        if len(set(alphabet)) != len(alphabet):
            raise InvalidConfigurationException(f"the scoring alphabet \"{alphabet}\" repeats symbols.")
        data = np.full((len(alphabet), len(alphabet)), mismatch, dtype=float)
        np.fill_diagonal(data, match)
        return cls(substitution_matrices.Array(alphabet=alphabet, data=data))

    @property
    def alphabet(self) -> str:
        return self._alphabet

    @property
    def matrix(self) -> substitution_matrices.Array:
        return self._matrix

    def __call__(self, a, b) -> int:
        try:
            return self._scores[(a, b)]
        except KeyError:
            missing = b if (a, a) in self._scores else a
            raise UnknownSymbolException(missing, self._alphabet) from None

    def __repr__(self) -> str:
        return f"SubstitutionScoring(alphabet={self._alphabet!r})"
