"""
Lesson Generator.

Turns the words missed in a mini-set into a single coaching lesson, built
around the pattern that best explains the learner's actual mistakes.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from loguru import logger

from speller.core.models import DiffOpType
from speller.lessons.matcher import PatternMatch, find_best_pattern
from speller.lessons.patterns import Pattern, detect_pattern

GENERAL_PATTERN_ID = "general"
GENERAL_EXPLANATION = "Keep practicing these tricky words!"

ERROR_FRAMING: dict[DiffOpType, str] = {
    DiffOpType.OMISSION: "You left out a letter in this part of the word.",
    DiffOpType.SUBSTITUTION: "You used a different letter in this part of the word.",
    DiffOpType.TRANSPOSITION: "You swapped two letters in this part of the word.",
    DiffOpType.ADDITION: "You added an extra letter in this part of the word.",
}


@dataclass(frozen=True)
class MissedWord:
    """A word missed in a mini-set and the text the learner typed for it."""
    word: str
    user_spelling: str = ""

    def to_dict(self) -> dict:
        return {"word": self.word, "user_spelling": self.user_spelling}


@dataclass
class Lesson:
    pattern: str
    explanation: str
    contrast: list[str] = field(default_factory=list)
    question: str = ""
    answer: str = ""

    def to_dict(self) -> dict:
        return {
            "pattern": self.pattern,
            "explanation": self.explanation,
            "contrast": list(self.contrast),
            "question": self.question,
            "answer": self.answer,
        }


def _lesson_from_pattern(pattern: Pattern, framing_op: DiffOpType | None = None) -> Lesson:
    explanation = pattern.explanation
    if framing_op is not None and framing_op in ERROR_FRAMING:
        explanation = f"{ERROR_FRAMING[framing_op]} {explanation}"
    return Lesson(
        pattern=pattern.id,
        explanation=explanation,
        contrast=list(pattern.contrast),
        question=pattern.question,
        answer=pattern.answer,
    )


def generate_lesson(missed_words: Iterable[MissedWord]) -> Lesson | None:
    """
    Build one lesson for a set of missed words.

    The match with the highest error overlap across all missed words wins
    (first word wins ties). Without any positive overlap, the first missed
    word's simple pattern is used, then a generic lesson.

    Returns:
        Lesson, or None when nothing was missed
    """
    missed = list(missed_words)
    if not missed:
        return None

    best: PatternMatch | None = None
    for item in missed:
        if not item.user_spelling.strip():
            continue
        match = find_best_pattern(item.word, item.user_spelling.strip())
        if match is None or match.overlap_score <= 0:
            continue
        if best is None or match.overlap_score > best.overlap_score:
            best = match

    if best is not None:
        logger.debug(f"Lesson pattern {best.pattern_id} chosen from error overlap")
        return _lesson_from_pattern(best.pattern, best.dominant_op_type)

    pattern = detect_pattern(missed[0].word)
    if pattern is not None:
        return _lesson_from_pattern(pattern)

    return Lesson(pattern=GENERAL_PATTERN_ID, explanation=GENERAL_EXPLANATION)
