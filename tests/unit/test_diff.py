"""
Unit tests for the letter-level spelling diff.

Run: pytest tests/unit/test_diff.py -v
"""

import pytest

from speller.core.diff import DiffSummary, compute_diff, describe_errors
from speller.core.models import DiffOpType


class TestComputeDiff:
    """Test compute_diff classification."""

    def test_identical_words_are_all_matches(self):
        diff = compute_diff("friend", "friend")
        assert diff.summary.total == 0
        assert all(op.type == DiffOpType.MATCH for op in diff.ops)
        assert len(diff.ops) == 6

    def test_transposed_ie_is_one_transposition(self):
        """'freind' for 'friend' is a single swap of i and e."""
        diff = compute_diff("friend", "freind")

        assert diff.summary.transpositions == 1
        assert diff.summary.substitutions == 0
        assert diff.summary.omissions == 0
        assert diff.summary.additions == 0

        [swap] = diff.error_ops
        assert swap.type == DiffOpType.TRANSPOSITION
        assert swap.correct_char == "ie"
        assert swap.user_char == "ei"
        assert swap.correct_index == 2

    def test_missing_letter_is_omission(self):
        diff = compute_diff("their", "ther")
        assert diff.summary.omissions == 1
        assert diff.summary.total == 1
        [missing] = diff.error_ops
        assert missing.correct_char == "i"
        assert missing.user_char is None

    def test_extra_letter_is_addition(self):
        diff = compute_diff("cat", "catt")
        assert diff.summary.additions == 1
        assert diff.summary.total == 1
        [extra] = diff.error_ops
        assert extra.user_char == "t"
        assert extra.correct_char is None

    def test_wrong_letter_is_substitution(self):
        diff = compute_diff("cat", "cot")
        assert diff.summary.substitutions == 1
        [wrong] = diff.error_ops
        assert (wrong.correct_char, wrong.user_char, wrong.correct_index) == ("a", "o", 1)

    def test_comparison_ignores_case_but_keeps_it_in_ops(self):
        diff = compute_diff("Friend", "FRIEND")
        assert diff.summary.total == 0
        assert diff.correct_side() == "Friend"
        assert diff.user_side() == "FRIEND"

    def test_characters_that_lengthen_when_lowered(self):
        """'İ' lowers to two code points; alignment stays one op per typed character."""
        diff = compute_diff("istanbul", "İstanbul")
        assert diff.summary.substitutions == 1
        assert diff.summary.total == 1
        assert diff.error_ops[0].user_char == "İ"

    def test_empty_attempt_is_all_omissions(self):
        diff = compute_diff("abc", "")
        assert diff.summary.omissions == 3
        assert diff.user_side() == ""

    def test_empty_target_is_all_additions(self):
        diff = compute_diff("", "ab")
        assert diff.summary.additions == 2
        assert diff.correct_side() == ""

    @pytest.mark.parametrize(
        "correct,attempt",
        [
            ("friend", "freind"),
            ("necessary", "neccesary"),
            ("rhythm", "rythm"),
            ("accommodate", "acomodate"),
            ("their", "thier"),
            ("separate", "seperete"),
            ("cat", "dog"),
            ("queue", "qeueu"),
            ("", ""),
            ("istanbul", "İstanbul"),
            ("straße", "STRASSE"),
        ],
    )
    def test_ops_reconstruct_both_strings(self, correct, attempt):
        """Concatenating each side of the ops gives back the original strings."""
        diff = compute_diff(correct, attempt)
        assert diff.correct_side() == correct
        assert diff.user_side() == attempt

    def test_summary_counts_match_error_ops(self):
        diff = compute_diff("separate", "seperete")
        assert diff.summary.total == len(diff.error_ops)

    def test_to_dict_is_plain_data(self):
        data = compute_diff("cat", "cot").to_dict()
        assert data["summary"]["substitutions"] == 1
        assert data["ops"][1]["type"] == "substitution"


class TestDescribeErrors:
    """Test describe_errors wording."""

    def test_no_errors_is_empty(self):
        assert describe_errors(DiffSummary()) == ""

    def test_single_kind(self):
        assert describe_errors(DiffSummary(omissions=1)) == "missing letter"
        assert describe_errors(DiffSummary(additions=2)) == "2 extra letters"

    def test_mixed_kinds_in_fixed_order(self):
        summary = DiffSummary(transpositions=1, substitutions=2, omissions=1)
        assert describe_errors(summary) == "swapped letters, 2 wrong letters and missing letter"

    def test_from_real_diff(self):
        assert describe_errors(compute_diff("friend", "freind").summary) == "swapped letters"
