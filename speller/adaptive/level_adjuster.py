"""
Level Adjuster.

Two independent tier policies:
- Cold start: accuracy and median latency over the first attempts
- Confidence ladder: per-mini-set confidence accumulated across a session

The authoritative tier is recomputed from the learner's live rating
percentile by the session runner; the ladder is tracked alongside it as an
auxiliary signal and reported, never applied.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from statistics import median

from speller.config import Settings, get_settings
from speller.core.models import Attempt, MiniSetResult


@dataclass(frozen=True)
class LadderStep:
    """Outcome of feeding one mini-set into the confidence ladder."""
    confidence_score: int  # accumulator after this step (reset when the ladder fires)
    tier: int              # ladder-suggested tier
    fired: bool

    def to_dict(self) -> dict:
        return {"confidence_score": self.confidence_score, "tier": self.tier, "fired": self.fired}


def adjust_tier_after_cold_start(
    attempts: Sequence[Attempt],
    current_tier: int,
    max_tier: int = 7,
    settings: Settings | None = None,
) -> int:
    """
    Cold-start tier adjustment.

    Looks at up to `cold_start_window` most recent attempts and needs at
    least `cold_start_min_attempts` of them.
    """
    settings = settings or get_settings()
    if len(attempts) < settings.cold_start_min_attempts:
        return current_tier

    window = list(attempts)[-settings.cold_start_window:]
    accuracy = sum(1 for a in window if a.correct) / len(window)
    median_ms = median(a.response_ms for a in window)

    if accuracy >= settings.cold_start_raise_accuracy and median_ms < settings.cold_start_latency_ms:
        return min(current_tier + 1, max_tier)
    if accuracy <= settings.cold_start_lower_accuracy:
        return max(current_tier - 1, 1)
    return current_tier


def confidence_delta(results: Sequence[MiniSetResult]) -> int:
    """+1 for four or more correct, -1 for two or fewer, else 0."""
    correct = sum(1 for r in results if r.correct)
    if correct >= 4:
        return 1
    if correct <= 2:
        return -1
    return 0


def adjust_tier_after_mini_set(
    current_tier: int,
    confidence_score: int,
    max_tier: int = 7,
    threshold: int = 2,
) -> int:
    if confidence_score >= threshold:
        return min(current_tier + 1, max_tier)
    if confidence_score <= -threshold:
        return max(current_tier - 1, 1)
    return current_tier


def apply_confidence_ladder(
    results: Sequence[MiniSetResult],
    current_tier: int,
    confidence_score: int,
    max_tier: int = 7,
    settings: Settings | None = None,
) -> LadderStep:
    """Accumulate one mini-set's confidence and move the ladder if it crosses the threshold."""
    settings = settings or get_settings()
    score = confidence_score + confidence_delta(results)
    tier = adjust_tier_after_mini_set(current_tier, score, max_tier, settings.confidence_threshold)
    fired = abs(score) >= settings.confidence_threshold
    return LadderStep(confidence_score=0 if fired else score, tier=tier, fired=fired)
