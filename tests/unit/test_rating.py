"""
Unit tests for the ELO rating model and tier tables.

Run: pytest tests/unit/test_rating.py -v
"""

import pytest

from speller.core.rating import (
    expected_score,
    mid_rank_percentile,
    percentile_to_tier,
    rating_to_percentile_approx,
    tier_to_base_rating,
    tier_to_percentile_midpoint,
    update_ratings,
)


class TestUpdateRatings:
    """Test update_ratings."""

    def test_even_match_correct(self):
        """1500 vs 1500, correct: expected 0.5, delta 16."""
        update = update_ratings(1500, 1500, True)
        assert update.expected == pytest.approx(0.5)
        assert update.delta == 16
        assert update.new_learner_rating == 1516
        assert update.new_word_rating == 1484

    def test_even_match_missed(self):
        update = update_ratings(1500, 1500, False)
        assert update.delta == -16
        assert update.new_learner_rating == 1484
        assert update.new_word_rating == 1516

    def test_beating_an_easier_word_earns_less(self):
        easy = update_ratings(1500, 1300, True)
        hard = update_ratings(1500, 1700, True)
        assert 0 < easy.delta < hard.delta

    def test_custom_k_factor(self):
        assert update_ratings(1500, 1500, True, k_factor=64).delta == 32

    @pytest.mark.parametrize("learner", [900, 1400, 1500, 1777, 2300])
    @pytest.mark.parametrize("word", [1000, 1450, 1500, 2100])
    @pytest.mark.parametrize("success", [True, False])
    def test_zero_sum(self, learner, word, success):
        update = update_ratings(learner, word, success)
        assert update.new_learner_rating - learner == -(update.new_word_rating - word)

    def test_expected_scores_are_complementary(self):
        assert expected_score(1600, 1400) + expected_score(1400, 1600) == pytest.approx(1.0)


class TestTiers:
    """Test tier banding helpers."""

    @pytest.mark.parametrize(
        "percentile,tier",
        [(0.0, 1), (0.10, 1), (0.11, 2), (0.25, 2), (0.30, 3), (0.5, 4), (0.8, 5), (0.9, 6), (0.99, 7), (1.0, 7)],
    )
    def test_percentile_to_tier(self, percentile, tier):
        assert percentile_to_tier(percentile) == tier

    def test_percentile_to_tier_clamps_and_caps(self):
        assert percentile_to_tier(-0.5) == 1
        assert percentile_to_tier(1.5) == 7
        assert percentile_to_tier(0.99, max_tier=5) == 5

    def test_tier_base_ratings(self):
        assert [tier_to_base_rating(t) for t in range(1, 8)] == [1100, 1250, 1400, 1550, 1700, 1850, 2000]
        assert tier_to_base_rating(99) == 1500

    def test_percentile_midpoints(self):
        assert tier_to_percentile_midpoint(1) == 5
        # Half-way band midpoints round up
        assert tier_to_percentile_midpoint(2) == 18
        assert tier_to_percentile_midpoint(3) == 35
        assert tier_to_percentile_midpoint(7) == 97
        assert tier_to_percentile_midpoint(0) == 50

    def test_rating_to_percentile_approx(self):
        assert rating_to_percentile_approx(1100) == 0
        assert rating_to_percentile_approx(1550) == 50
        assert rating_to_percentile_approx(1250) == 17
        assert rating_to_percentile_approx(1400) == 33
        assert rating_to_percentile_approx(2000) == 100
        assert rating_to_percentile_approx(800) == 0
        assert rating_to_percentile_approx(2400) == 100


class TestMidRankPercentile:
    def test_ties_count_half(self):
        assert mid_rank_percentile(1500, [1400, 1500, 1600]) == pytest.approx(0.5)

    def test_single_learner_is_median(self):
        assert mid_rank_percentile(1500, [1500]) == pytest.approx(0.5)

    def test_top_of_the_pool(self):
        assert mid_rank_percentile(1700, [1400, 1500, 1700]) == pytest.approx(2.5 / 3)

    def test_empty_pool(self):
        assert mid_rank_percentile(1500, []) == 0.0
