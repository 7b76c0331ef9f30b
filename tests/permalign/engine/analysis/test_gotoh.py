import pytest

from permalign.engine.analysis import gotoh
from permalign.engine.analysis.gotoh import SCORE_MAX, SCORE_MIN, AffineGapAligner, checked_add, checked_multiply
from permalign.engine.analysis.scoring import SubstitutionScoring
from permalign.engine.exceptions.alignment import ArithmeticOverflowException, InvalidArgumentException, InvalidConfigurationException, UnsupportedModeException
from permalign.engine.structures.alignment import AlignmentMode, GapPenalty

MATCH = 2
GAP_OPEN = 5
GAP_EXTENSION = 3 # with MATCH, all coprime

@pytest.fixture
def scoring():
    return SubstitutionScoring.from_match_mismatch("ACGTN", MATCH, -MATCH)

@pytest.fixture
def gap_penalty():
    return GapPenalty(GAP_OPEN, GAP_EXTENSION)

@pytest.fixture
def global_aligner(gap_penalty, scoring):
    return AffineGapAligner(gap_penalty, scoring, AlignmentMode.GLOBAL)

@pytest.fixture
def local_aligner(gap_penalty, scoring):
    return AffineGapAligner(gap_penalty, scoring, AlignmentMode.LOCAL)

def gap_cost(length: int):
    return GAP_OPEN + length * GAP_EXTENSION

@pytest.mark.parametrize("sequence", ["ACTAACCGAGATTTTACCCCACGGTATTTTTT", "ACCNGGT", "A"])
def test_identical_sequences_score_match_times_length(global_aligner: AffineGapAligner, sequence: str):
    assert global_aligner.score(sequence, sequence) == MATCH * len(sequence)

def test_mismatches_are_scored(global_aligner: AffineGapAligner):
    assert global_aligner.score("ACTACT", "ACGACG") == MATCH * len("ACAC") - 2 * MATCH

def test_single_insertion_matches_expected_score(global_aligner: AffineGapAligner):
    assert global_aligner.score("ACTACTACTACTACT", "ACTACTGACTACTACT") == 22

@pytest.mark.parametrize("sequence_a,sequence_b,shared,gap_length", [
    ("ACTACTACTACTACT", "ACTACTGACTACTACT", 15, 1),
    ("ACTACTGACTACTACT", "ACTACTACTACTACT", 15, 1),
    ("ACTACTACTACTACT", "ACTACTGGGACTACTACT", 15, 3),
    ("ACTACTGGGACTACTACT", "ACTACTACTACTACT", 15, 3),
    ("ACTACTACTACTACT", "ACTACTACTACTACTGGGGGGGGG", 15, 9),
    ("ACTACTACTACTACTGGGGGGGGG", "ACTACTACTACTACT", 15, 9),
])
def test_single_gap_is_charged_open_plus_extensions_in_both_directions(global_aligner: AffineGapAligner, sequence_a: str, sequence_b: str, shared: int, gap_length: int):
    assert global_aligner.score(sequence_a, sequence_b) == MATCH * shared - gap_cost(gap_length)

def test_swapped_rows_keep_scoring_order():
    def asymmetric(a, b):
        if (a, b) == ("A", "C"):
            return 3
        if (a, b) == ("C", "A"):
            return -5
        return MATCH if a == b else -MATCH
    aligner = AffineGapAligner(GapPenalty(0, 1), asymmetric, AlignmentMode.GLOBAL)
    assert aligner.score("A", "CC") == 2
    assert aligner.score("CC", "A") == -3
    local_aligner = AffineGapAligner(GapPenalty(0, 1), asymmetric, AlignmentMode.LOCAL)
    assert local_aligner.score("A", "CC") == 3
    assert local_aligner.score("CC", "A") == 0

def test_local_trailing_overhang_is_free(local_aligner: AffineGapAligner):
    assert local_aligner.score("ACTACTACTACTACTGGGGGGGGG", "ACTACTACTACTACT") == MATCH * 15

def test_local_leading_overhang_is_free(local_aligner: AffineGapAligner):
    assert local_aligner.score("GGGGGGGGGACTACTACTACTACT", "ACTACTACTACTACT") == MATCH * 15

def test_local_finds_best_region(local_aligner: AffineGapAligner):
    sequence_a = "ACTACTACTACTACTACT"
    sequence_b = "GGGGACTACTGGGGGGGGGGGGGGGGGGGGGG"
    assert local_aligner.score(sequence_a, sequence_b) == MATCH * len("ACTACT")

def test_local_with_insertion(local_aligner: AffineGapAligner):
    sequence_a = "CCCCACTACTACTACTACTACTACTACTACTACT"
    sequence_b = "GGGGACTACTACTGGACTACTACTGGGGGGGGGGGGGGGGGGGGGG"
    assert local_aligner.score(sequence_a, sequence_b) == MATCH * 9 - gap_cost(2) + MATCH * 9

def test_local_common_substring_in_noise_scores_as_substring(local_aligner: AffineGapAligner):
    core = "ACTTACATCAACCAT"
    embedded = local_aligner.score("GGGGGGG" + core + "GGGG", "NNN" + core + "NNNNNNNNN")
    assert embedded == local_aligner.score(core, core)
    assert embedded == MATCH * len(core)

@pytest.mark.parametrize("sequence_a,sequence_b", [
    ("AAAA", "CCCC"),
    ("A", "G"),
    ("ACGT", "TGCA"),
])
def test_local_score_is_never_negative(local_aligner: AffineGapAligner, sequence_a: str, sequence_b: str):
    assert local_aligner.score(sequence_a, sequence_b) >= 0

@pytest.mark.parametrize("sequence_a,sequence_b,expected", [
    ("", "ACG", -gap_cost(3)),
    ("ACG", "", -gap_cost(3)),
    ("", "", 0),
])
def test_empty_sequence_global_is_all_gap(global_aligner: AffineGapAligner, sequence_a: str, sequence_b: str, expected: int):
    assert global_aligner.score(sequence_a, sequence_b) == expected

@pytest.mark.parametrize("sequence_a,sequence_b", [("", "ACG"), ("ACG", ""), ("", "")])
def test_empty_sequence_local_is_zero(local_aligner: AffineGapAligner, sequence_a: str, sequence_b: str):
    assert local_aligner.score(sequence_a, sequence_b) == 0

def test_large_gap_penalty_overflows(scoring):
    aligner = AffineGapAligner(GapPenalty(0, 2 ** 30), scoring, AlignmentMode.GLOBAL)
    with pytest.raises(ArithmeticOverflowException):
        aligner.score("ACGTACGT", "ACGTACGT")

def test_empty_sequence_gap_overflows(scoring):
    aligner = AffineGapAligner(GapPenalty(2 ** 31, 1), scoring, AlignmentMode.GLOBAL)
    with pytest.raises(ArithmeticOverflowException):
        aligner.score("", "A")

def test_large_match_scores_overflow():
    aligner = AffineGapAligner(GapPenalty(0, 0), SubstitutionScoring.from_match_mismatch("AC", 2 ** 30, 0), AlignmentMode.GLOBAL)
    with pytest.raises(ArithmeticOverflowException):
        aligner.score("AAAA", "AAAA")

@pytest.mark.parametrize("gap_penalty_pair", [(800_000_000, 0), (1_000_000_000, 1)])
@pytest.mark.parametrize("mode", [AlignmentMode.GLOBAL, AlignmentMode.LOCAL])
def test_large_open_penalty_stays_in_range(scoring, gap_penalty_pair, mode):
    aligner = AffineGapAligner(gap_penalty_pair, scoring, mode)
    assert aligner.score("A", "A") == MATCH
    assert aligner.score("C", "A") == (-MATCH if mode is AlignmentMode.GLOBAL else 0)

def test_checked_arithmetic_bounds():
    assert checked_add(SCORE_MAX, 0) == SCORE_MAX
    assert checked_multiply(-1, 2 ** 31) == SCORE_MIN
    with pytest.raises(ArithmeticOverflowException):
        checked_add(SCORE_MAX, 1)
    with pytest.raises(ArithmeticOverflowException):
        checked_add(SCORE_MIN, -1)
    with pytest.raises(ArithmeticOverflowException):
        checked_multiply(2 ** 16, 2 ** 16)

def test_negative_gap_penalty_is_rejected(scoring):
    with pytest.raises(InvalidConfigurationException):
        AffineGapAligner((-1, 3), scoring)
    with pytest.raises(InvalidConfigurationException):
        AffineGapAligner((5, -3), scoring)

def test_unknown_mode_is_rejected(gap_penalty, scoring):
    with pytest.raises(UnsupportedModeException):
        AffineGapAligner(gap_penalty, scoring, "semiglobal")

def test_mode_names_are_accepted(gap_penalty, scoring):
    assert AffineGapAligner(gap_penalty, scoring, "local").mode is AlignmentMode.LOCAL

def test_missing_inputs_are_rejected(global_aligner: AffineGapAligner, gap_penalty):
    with pytest.raises(InvalidArgumentException):
        global_aligner.score(None, "ACGT") # type: ignore
    with pytest.raises(InvalidArgumentException):
        AffineGapAligner(gap_penalty, None) # type: ignore
    with pytest.raises(InvalidArgumentException):
        AffineGapAligner([5, 3], lambda a, b: 0) # type: ignore

def test_unknown_symbol_is_a_configuration_error(global_aligner: AffineGapAligner):
    with pytest.raises(InvalidConfigurationException):
        global_aligner.score("ACGU", "ACGU")

def test_module_align_matches_aligner(scoring, gap_penalty):
    assert gotoh.align("ACTACTACTACTACT", "ACTACTGACTACTACT", scoring, gap_penalty, AlignmentMode.GLOBAL) == 22
    assert gotoh.align("ACTACTACTACTACT", "ACTACTGACTACTACT", scoring, (GAP_OPEN, GAP_EXTENSION), "local") == 22

def test_repeated_calls_are_deterministic(global_aligner: AffineGapAligner):
    scores = {global_aligner.score("CGTATATATCGCGCGCGCGATATATATATCTTCTCTAAAAAAA", "GGTATATATATCGCGCGCACGATTATATATCTCTCTCTAAAAAAA") for _ in range(3)}
    assert len(scores) == 1
