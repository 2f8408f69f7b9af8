"""
Error-Aware Pattern Matcher.

Picks the pattern that best explains the specific mistake in a missed word:
1. Diff the target word against the attempt
2. Collect the target-word index of every non-match op
3. Score each pattern by how many error indices fall inside its regions
4. Highest score wins, catalog order breaks ties

When no pattern overlaps any error, the first pattern that matches the word
at all is returned with an overlap score of 0.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from loguru import logger

from speller.core.diff import DiffOp, DiffResult, compute_diff
from speller.core.models import DiffOpType
from speller.lessons.patterns import PATTERNS, Pattern, Region


@dataclass(frozen=True)
class PatternMatch:
    """Best pattern for one missed word."""
    pattern: Pattern
    dominant_op_type: DiffOpType | None
    overlap_score: int

    @property
    def pattern_id(self) -> str:
        return self.pattern.id

    def to_dict(self) -> dict:
        return {
            "pattern_id": self.pattern.id,
            "dominant_op_type": self.dominant_op_type.value if self.dominant_op_type else None,
            "overlap_score": self.overlap_score,
        }


def error_positions(diff: DiffResult, word_length: int) -> list[tuple[int, DiffOpType]]:
    """
    Target-word index of every error op.

    Additions have no target character; they are pinned to the index of the
    next target letter (clamped to the last letter).
    """
    positions: list[tuple[int, DiffOpType]] = []
    next_index = 0
    for op in diff.ops:
        if op.type == DiffOpType.MATCH:
            next_index = op.correct_index + 1
            continue
        positions.extend((index, op.type) for index in _op_indices(op, next_index, word_length))
        if op.type == DiffOpType.TRANSPOSITION:
            next_index = op.correct_index + 2
        elif op.type != DiffOpType.ADDITION:
            next_index = op.correct_index + 1
    return positions


def _op_indices(op: DiffOp, next_index: int, word_length: int) -> list[int]:
    if op.type == DiffOpType.TRANSPOSITION:
        return [op.correct_index, op.correct_index + 1]
    if op.type == DiffOpType.ADDITION:
        if word_length == 0:
            return []
        return [min(next_index, word_length - 1)]
    return [op.correct_index]


def _in_regions(index: int, regions: list[Region]) -> bool:
    return any(start <= index < end for start, end in regions)


def find_best_pattern(word: str, attempt: str) -> PatternMatch | None:
    """
    Find the catalog pattern that best explains `attempt` as a misspelling of `word`.

    Args:
        word: Target spelling
        attempt: What the learner typed

    Returns:
        PatternMatch, or None when no pattern applies to the word at all
    """
    lower = word.lower()
    diff = compute_diff(word, attempt)
    positions = error_positions(diff, len(lower))

    best: PatternMatch | None = None
    first_matching: Pattern | None = None

    for pattern in PATTERNS:
        regions = pattern.regions(lower)
        if not regions:
            continue
        if first_matching is None:
            first_matching = pattern

        hits = Counter()
        for index, op_type in positions:
            if _in_regions(index, regions):
                hits[op_type] += 1
        score = sum(hits.values())
        if score == 0:
            continue
        if best is None or score > best.overlap_score:
            # Counter.most_common keeps insertion order on ties
            dominant = hits.most_common(1)[0][0]
            best = PatternMatch(pattern=pattern, dominant_op_type=dominant, overlap_score=score)

    if best is not None:
        logger.debug(
            f"Pattern match for '{word}' vs '{attempt}': {best.pattern_id} "
            f"({best.dominant_op_type.value}, overlap={best.overlap_score})"
        )
        return best

    if first_matching is not None:
        return PatternMatch(pattern=first_matching, dominant_op_type=None, overlap_score=0)
    return None
