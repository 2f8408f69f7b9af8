"""
Adaptive difficulty.

Components:
- WordSelector: rating-band word selection with recency, mastery and curated-list rules
- level_adjuster: cold-start tier adjustment and the per-mini-set confidence ladder
"""
from speller.adaptive.level_adjuster import (
    LadderStep,
    adjust_tier_after_cold_start,
    adjust_tier_after_mini_set,
    apply_confidence_ladder,
    confidence_delta,
)
from speller.adaptive.word_selector import WordSelector, should_offer_easier_words

__all__ = [
    "LadderStep",
    "adjust_tier_after_cold_start",
    "adjust_tier_after_mini_set",
    "apply_confidence_ladder",
    "confidence_delta",
    "WordSelector",
    "should_offer_easier_words",
]
