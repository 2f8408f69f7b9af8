"""
ELO rating model.

Learners and words are rated on the same logistic scale. Every scored
attempt is a match between the learner and the word:
- expected = 1 / (1 + 10 ** ((opponent - self) / 400))
- delta = round(K * (actual - expected))
- learner moves by +delta, word by -delta (zero-sum)

Also holds the tier banding tables used to turn a rating percentile into a
coarse difficulty tier and to seed unrated learners and words.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

DEFAULT_K_FACTOR = 32
DEFAULT_RATING = 1500

# (tier, upper percentile bound), ascending
TIER_PERCENTILE_BANDS: tuple[tuple[int, float], ...] = (
    (1, 0.10),
    (2, 0.25),
    (3, 0.45),
    (4, 0.65),
    (5, 0.80),
    (6, 0.93),
    (7, 1.00),
)

TIER_BASE_RATINGS: dict[int, int] = {
    1: 1100,
    2: 1250,
    3: 1400,
    4: 1550,
    5: 1700,
    6: 1850,
    7: 2000,
}

MIN_TIER_RATING = TIER_BASE_RATINGS[1]
MAX_TIER_RATING = TIER_BASE_RATINGS[7]


@dataclass(frozen=True)
class RatingUpdate:
    """Result of scoring one attempt."""
    new_learner_rating: int
    new_word_rating: int
    delta: int
    expected: float

    def to_dict(self) -> dict:
        return {
            "new_learner_rating": self.new_learner_rating,
            "new_word_rating": self.new_word_rating,
            "delta": self.delta,
            "expected": round(self.expected, 4),
        }


def expected_score(self_rating: float, opponent_rating: float) -> float:
    """Probability that `self` beats `opponent` under the logistic model."""
    return 1 / (1 + 10 ** ((opponent_rating - self_rating) / 400))


def update_ratings(
    learner_rating: int,
    word_rating: int,
    success: bool,
    k_factor: int = DEFAULT_K_FACTOR,
) -> RatingUpdate:
    """
    Update learner and word ratings after one attempt.

    Args:
        learner_rating: Learner rating before the attempt
        word_rating: Word rating before the attempt
        success: Whether the learner spelled the word correctly
        k_factor: Maximum rating movement per attempt

    Returns:
        RatingUpdate with both new ratings and the learner's delta
    """
    expected = expected_score(learner_rating, word_rating)
    actual = 1.0 if success else 0.0
    # half-up rounding, not round()'s half-to-even
    delta = math.floor(k_factor * (actual - expected) + 0.5)
    return RatingUpdate(
        new_learner_rating=learner_rating + delta,
        new_word_rating=word_rating - delta,
        delta=delta,
        expected=expected,
    )


def percentile_to_tier(percentile: float, max_tier: int | None = None) -> int:
    """Map a rating percentile in [0, 1] to a tier, optionally capped."""
    p = min(max(percentile, 0.0), 1.0)
    tier = TIER_PERCENTILE_BANDS[-1][0]
    for band_tier, upper in TIER_PERCENTILE_BANDS:
        if p <= upper:
            tier = band_tier
            break
    if max_tier is not None:
        tier = min(tier, max_tier)
    return tier


def tier_to_base_rating(tier: int) -> int:
    """Default rating for a learner or word with no history at `tier`."""
    return TIER_BASE_RATINGS.get(tier, DEFAULT_RATING)


def tier_to_percentile_midpoint(tier: int) -> int:
    """Midpoint of a tier's percentile band on a 0-100 scale, rounded half-up (50 if unknown)."""
    lower = 0.0
    for band_tier, upper in TIER_PERCENTILE_BANDS:
        if band_tier == tier:
            return math.floor(round((lower + upper) * 50, 9) + 0.5)
        lower = upper
    return 50


def rating_to_percentile_approx(rating: float) -> int:
    """Rough whole-number 0-100 percentile, linear between the tier-1 and tier-7 base ratings."""
    span = MAX_TIER_RATING - MIN_TIER_RATING
    scaled = round((rating - MIN_TIER_RATING) / span * 100, 9)
    return math.floor(min(max(scaled, 0.0), 100.0) + 0.5)


def mid_rank_percentile(rating: float, ratings: Sequence[float]) -> float:
    """Share of `ratings` below `rating`, counting ties as half; 0.0 when empty."""
    if not ratings:
        return 0.0
    below = sum(1 for r in ratings if r < rating)
    equal = sum(1 for r in ratings if r == rating)
    return (below + 0.5 * equal) / len(ratings)
