"""
Unit tests for cold-start tier adjustment and the confidence ladder.

Run: pytest tests/unit/test_level_adjuster.py -v
"""

import pytest

from speller.adaptive.level_adjuster import (
    adjust_tier_after_cold_start,
    adjust_tier_after_mini_set,
    apply_confidence_ladder,
    confidence_delta,
)
from speller.core.models import Attempt, MiniSetResult


def _attempts(outcomes, response_ms=1000):
    return [
        Attempt(word_id=f"w{i}", word_presented="word", user_spelling="word", correct=ok, response_ms=response_ms)
        for i, ok in enumerate(outcomes)
    ]


def _results(correct_count, size=5):
    return [MiniSetResult(word_id=f"w{i}", correct=i < correct_count) for i in range(size)]


class TestColdStart:
    """Test adjust_tier_after_cold_start."""

    def test_needs_minimum_attempts(self, settings):
        assert adjust_tier_after_cold_start(_attempts([True] * 4), 3, settings=settings) == 3

    def test_fast_and_accurate_raises(self, settings):
        assert adjust_tier_after_cold_start(_attempts([True] * 10), 3, settings=settings) == 4

    def test_slow_but_accurate_holds(self, settings):
        assert adjust_tier_after_cold_start(_attempts([True] * 10, response_ms=6000), 3, settings=settings) == 3

    def test_raise_is_capped(self, settings):
        assert adjust_tier_after_cold_start(_attempts([True] * 10), 5, max_tier=5, settings=settings) == 5

    def test_low_accuracy_lowers(self, settings):
        outcomes = [True] * 4 + [False] * 6
        assert adjust_tier_after_cold_start(_attempts(outcomes), 3, settings=settings) == 2

    def test_lower_is_floored(self, settings):
        assert adjust_tier_after_cold_start(_attempts([False] * 6), 1, settings=settings) == 1

    def test_middling_accuracy_holds(self, settings):
        outcomes = [True] * 6 + [False] * 4
        assert adjust_tier_after_cold_start(_attempts(outcomes), 3, settings=settings) == 3

    def test_uses_most_recent_window(self, settings):
        outcomes = [False] * 10 + [True] * 10
        assert adjust_tier_after_cold_start(_attempts(outcomes), 3, settings=settings) == 4


class TestConfidenceLadder:
    """Test confidence_delta and apply_confidence_ladder."""

    @pytest.mark.parametrize("correct,delta", [(5, 1), (4, 1), (3, 0), (2, -1), (0, -1)])
    def test_confidence_delta(self, correct, delta):
        assert confidence_delta(_results(correct)) == delta

    def test_adjust_after_mini_set(self):
        assert adjust_tier_after_mini_set(3, 2) == 4
        assert adjust_tier_after_mini_set(3, -2) == 2
        assert adjust_tier_after_mini_set(3, 1) == 3
        assert adjust_tier_after_mini_set(7, 3) == 7
        assert adjust_tier_after_mini_set(1, -3) == 1

    def test_accumulates_below_threshold(self, settings):
        step = apply_confidence_ladder(_results(5), 3, 0, settings=settings)
        assert step.confidence_score == 1
        assert step.tier == 3
        assert not step.fired

    def test_fires_and_resets(self, settings):
        step = apply_confidence_ladder(_results(5), 3, 1, settings=settings)
        assert step.fired
        assert step.tier == 4
        assert step.confidence_score == 0

    def test_fires_downward(self, settings):
        step = apply_confidence_ladder(_results(1), 3, -1, settings=settings)
        assert step.fired
        assert step.tier == 2
        assert step.to_dict() == {"confidence_score": 0, "tier": 2, "fired": True}
