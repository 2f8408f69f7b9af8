"""
Unit tests for learner statistics and curated-list word hygiene.

Run: pytest tests/unit/test_stats_and_wordlist.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from speller.core.models import AttemptRecord
from speller.core.stats import build_word_mistake_stats, compute_current_streak, compute_unique_words
from speller.core.wordlist import extract_candidates_from_text, is_valid_word_length, normalize_word

START = datetime(2024, 3, 1, tzinfo=timezone.utc)


def _attempts(*entries):
    """entries: (word, typed, correct) in chronological order."""
    return [
        AttemptRecord(
            id=f"a{i}",
            session_id="s1",
            learner_id="l1",
            word_id=f"w-{word}",
            word_presented=word,
            user_spelling=typed,
            correct=correct,
            created_at=START + timedelta(minutes=i),
        )
        for i, (word, typed, correct) in enumerate(entries)
    ]


class TestCurrentStreak:
    def test_empty(self):
        streak = compute_current_streak([])
        assert streak.count == 0

    def test_correct_streak(self):
        attempts = _attempts(("cat", "kat", False), ("dog", "dog", True), ("sun", "sun", True))
        streak = compute_current_streak(attempts)
        assert (streak.count, streak.correct) == (2, True)

    def test_order_comes_from_timestamps(self):
        attempts = _attempts(("cat", "cat", True), ("dog", "dgo", False), ("sun", "sn", False))
        streak = compute_current_streak(list(reversed(attempts)))
        assert (streak.count, streak.correct) == (2, False)


class TestMistakeStats:
    def test_unique_words(self):
        attempts = _attempts(("cat", "cat", True), ("cat", "kat", False), ("dog", "dog", True))
        assert compute_unique_words(attempts) == 2

    def test_only_missed_words_most_missed_first(self):
        attempts = _attempts(
            ("their", "thier", False),
            ("their", "thier", False),
            ("their", "ther", False),
            ("their", "their", True),
            ("friend", "freind", False),
            ("cat", "cat", True),
        )
        stats = build_word_mistake_stats(attempts)
        assert [s.word for s in stats] == ["their", "friend"]

        their = stats[0]
        assert (their.attempts, their.misses) == (4, 3)
        assert their.accuracy == pytest.approx(0.25)
        assert their.misspellings == [("thier", 2), ("ther", 1)]
        assert their.last_missed_at == START + timedelta(minutes=2)

    def test_ties_sorted_by_word(self):
        stats = build_word_mistake_stats(_attempts(("zebra", "zebar", False), ("apple", "aple", False)))
        assert [s.word for s in stats] == ["apple", "zebra"]

    def test_blank_attempts_are_not_misspellings(self):
        [stats] = build_word_mistake_stats(_attempts(("cat", "  ", False)))
        assert stats.misses == 1
        assert stats.misspellings == []


class TestWordHygiene:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Hello", "hello"),
            ("  world!  ", "world"),
            ("don't", "don't"),
            ("well-known", "well-known"),
            ("--dash--", "dash"),
            ("123", ""),
            ("", ""),
        ],
    )
    def test_normalize_word(self, raw, expected):
        assert normalize_word(raw) == expected

    def test_length_bounds(self):
        assert not is_valid_word_length("an")
        assert is_valid_word_length("cat")
        assert is_valid_word_length("a" * 14)
        assert not is_valid_word_length("a" * 15)

    def test_extract_candidates(self):
        text = "The Friend and the friend were at the station; an ox saw THEIR beautiful garden."
        assert extract_candidates_from_text(text) == ["friend", "station", "saw", "their", "beautiful", "garden"]

    def test_extract_from_nothing(self):
        assert extract_candidates_from_text("") == []
