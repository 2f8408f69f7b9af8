"""
Unit tests for the pattern library, error-aware matcher and lesson generator.

Run: pytest tests/unit/test_lessons.py -v
"""

from speller.core.diff import compute_diff
from speller.core.models import DiffOpType
from speller.lessons.generator import (
    ERROR_FRAMING,
    GENERAL_EXPLANATION,
    GENERAL_PATTERN_ID,
    MissedWord,
    generate_lesson,
)
from speller.lessons.matcher import error_positions, find_best_pattern
from speller.lessons.patterns import PATTERNS, detect_pattern, get_pattern


class TestPatternLibrary:
    """Test the pattern catalog and detectors."""

    def test_catalog_ids_are_unique(self):
        ids = [p.id for p in PATTERNS]
        assert len(ids) == len(set(ids))
        assert len(PATTERNS) >= 20

    def test_catalog_starts_with_core_rules(self):
        assert [p.id for p in PATTERNS[:5]] == ["silent-e", "tion-sion", "double-consonant", "ck-ending", "ee-ea"]

    def test_get_pattern(self):
        assert get_pattern("ph").answer == "ph"
        assert get_pattern("nope") is None

    def test_silent_e_covers_vowel_consonant_e(self):
        assert get_pattern("silent-e").regions("cape") == [(1, 4)]
        assert get_pattern("silent-e").regions("free") == []

    def test_le_ending_region_is_the_le(self):
        assert get_pattern("le-ending").regions("little") == [(4, 6)]

    def test_suffix_detectors_need_a_base_word(self):
        assert not get_pattern("ed-ending").matches("red")
        assert get_pattern("ed-ending").regions("jumped") == [(4, 6)]

    def test_detectors_are_case_insensitive(self):
        assert get_pattern("ph").matches("PHONE")

    def test_detect_pattern_uses_catalog_order(self):
        assert detect_pattern("night").id == "igh"
        assert detect_pattern("kitten").id == "double-consonant"
        assert detect_pattern("cat") is None

    def test_to_dict(self):
        data = get_pattern("tch").to_dict()
        assert data["id"] == "tch"
        assert isinstance(data["contrast"], list)


class TestErrorAwareMatcher:
    """Test find_best_pattern."""

    def test_transposition_inside_ie(self):
        match = find_best_pattern("friend", "freind")
        assert match.pattern_id == "ie-ei"
        assert match.dominant_op_type == DiffOpType.TRANSPOSITION
        assert match.overlap_score == 2

    def test_errors_in_ph(self):
        match = find_best_pattern("phone", "fone")
        assert match.pattern_id == "ph"
        assert match.overlap_score == 2

    def test_no_overlap_falls_back_to_first_matching_pattern(self):
        """'jadge' misses the u, which no rule on 'judge' covers."""
        match = find_best_pattern("judge", "jadge")
        assert match.pattern_id == "silent-e"
        assert match.overlap_score == 0
        assert match.dominant_op_type is None

    def test_word_with_no_patterns(self):
        assert find_best_pattern("cat", "kat") is None

    def test_additions_are_pinned_to_the_next_letter(self):
        diff = compute_diff("cat", "caat")
        positions = error_positions(diff, 3)
        assert positions == [(1, DiffOpType.ADDITION)] or positions == [(2, DiffOpType.ADDITION)]

    def test_trailing_addition_is_clamped(self):
        diff = compute_diff("cat", "cats")
        assert error_positions(diff, 3) == [(2, DiffOpType.ADDITION)]


class TestLessonGenerator:
    """Test generate_lesson."""

    def test_nothing_missed(self):
        assert generate_lesson([]) is None

    def test_lesson_framed_by_error_type(self):
        lesson = generate_lesson([MissedWord("friend", "freind")])
        assert lesson.pattern == "ie-ei"
        assert lesson.explanation.startswith(ERROR_FRAMING[DiffOpType.TRANSPOSITION])
        assert lesson.question == get_pattern("ie-ei").question
        assert lesson.answer == "i"

    def test_strongest_overlap_wins_across_words(self):
        lesson = generate_lesson([MissedWord("cat", "kat"), MissedWord("friend", "freind")])
        assert lesson.pattern == "ie-ei"

    def test_falls_back_to_first_word_simple_pattern(self):
        lesson = generate_lesson([MissedWord("judge", "jadge")])
        assert lesson.pattern == "silent-e"
        assert lesson.explanation == get_pattern("silent-e").explanation

    def test_blank_attempts_are_ignored(self):
        lesson = generate_lesson([MissedWord("friend", "  ")])
        assert lesson.pattern == detect_pattern("friend").id

    def test_general_lesson(self):
        lesson = generate_lesson([MissedWord("cat", "kat")])
        assert lesson.pattern == GENERAL_PATTERN_ID
        assert lesson.explanation == GENERAL_EXPLANATION
        assert lesson.contrast == []
