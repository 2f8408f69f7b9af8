"""
Core data types for the speller engine.

Pydantic models shared by every layer:
- Word bank entries and learner rows
- Attempts and their rating bookkeeping
- Mini-set results and summaries
- The immutable SessionSnapshot owned by the session runner
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from speller.core.rating import tier_to_base_rating


class SessionState(str, Enum):
    """Lifecycle states of a practice session."""
    IDLE = "IDLE"
    IN_MINISET = "IN_MINISET"
    BREAK = "BREAK"
    COMPLETE = "COMPLETE"


class SessionAction(str, Enum):
    """Actions accepted by the session state machine."""
    START = "START"
    SUBMIT_WORD = "SUBMIT_WORD"
    REACH_BREAK = "REACH_BREAK"
    CONTINUE = "CONTINUE"
    FINISH = "FINISH"


class MiniSetAction(str, Enum):
    """What the learner chose to do at a break."""
    CONTINUE = "CONTINUE"
    CHALLENGE_JUMP = "CHALLENGE_JUMP"
    PRACTICE_MISSED = "PRACTICE_MISSED"


class NextStep(str, Enum):
    """What the caller should show after a submission."""
    NEXT_WORD = "NEXT_WORD"
    BREAK = "BREAK"
    RETRY = "RETRY"


class PromptMode(str, Enum):
    AUDIO = "audio"
    NO_AUDIO = "no-audio"


class DiffOpType(str, Enum):
    """Classification of one aligned position between target and attempt."""
    MATCH = "match"
    SUBSTITUTION = "substitution"
    OMISSION = "omission"        # letter in the target, missing from the attempt
    ADDITION = "addition"        # letter in the attempt, absent from the target
    TRANSPOSITION = "transposition"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ========================================
# Word bank & learners
# ========================================


class Word(_Frozen):
    """A word bank entry."""

    id: str
    text: str
    tier: int = Field(default=3, ge=1, description="Authored difficulty tier")
    rating: int | None = Field(default=None, description="Live difficulty rating")
    pattern: str | None = None
    definition: str | None = None
    example_sentence: str | None = None
    is_active: bool = True

    @property
    def effective_rating(self) -> int:
        """Live rating, or the tier's base rating for an unrated word."""
        if self.rating is not None:
            return self.rating
        return tier_to_base_rating(self.tier)


class LearnerRecord(_Frozen):
    id: str
    name: str
    tier: int = 3
    rating: int | None = None
    total_attempts: int = 0
    successful_attempts: int = 0
    created_at: datetime | None = None

    @property
    def effective_rating(self) -> int:
        if self.rating is not None:
            return self.rating
        return tier_to_base_rating(self.tier)


class MasteryRecord(_Frozen):
    """Saturating per-(learner, word) counter."""

    learner_id: str
    word_id: str
    score: int = 0
    last_seen_at: datetime | None = None


# ========================================
# Attempts
# ========================================


class Attempt(_Frozen):
    """One scored submission, as logged in a session."""

    word_id: str
    word_presented: str
    user_spelling: str
    correct: bool
    response_ms: int = 0
    replay_count: int = 0
    edit_count: int | None = None
    prompt_mode: PromptMode | None = None


class AttemptRecord(Attempt):
    """A persisted attempt row."""

    id: str
    session_id: str
    learner_id: str
    created_at: datetime


class RatingDeltaMeta(_Frozen):
    """Ratings on both sides of an attempt, before and after the update."""

    learner_before: int
    learner_after: int
    word_before: int
    word_after: int


# ========================================
# Mini-sets
# ========================================


class MiniSetResult(_Frozen):
    """
    Outcome of one word within the current mini-set.

    `correct` is AND-combined over every submission of the word in the set,
    so a miss followed by a fix still reads as missed.
    """

    word_id: str
    correct: bool
    missed_text: str | None = None


class MiniSetSummary(_Frozen):
    """Persisted record of a closed mini-set."""

    index: int
    tier_effective: int
    correct_count: int
    results: tuple[MiniSetResult, ...] = ()
    lesson: dict[str, Any] | None = None


# ========================================
# Sessions
# ========================================


class SessionStats(_Frozen):
    tier_end: int
    mini_sets_completed: int
    attempts_total: int
    correct_total: int


class SessionRecord(_Frozen):
    """A stored practice session row."""

    id: str
    learner_id: str
    tier_start: int
    current_tier: int | None = None
    current_word_ids: tuple[str, ...] = ()
    current_word_index: int = 0
    attempts_total: int = 0
    correct_total: int = 0
    mini_sets_completed: int = 0
    tier_end: int | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @property
    def is_ended(self) -> bool:
        return self.ended_at is not None


class SessionSnapshot(_Frozen):
    """
    Complete serializable state of one running session.

    Reducers return a new snapshot; `model_dump(mode="json")` and
    `model_validate` round-trip it losslessly.
    """

    session_id: str = ""
    learner_id: str = ""
    tier: int = 3
    rating: int = 1500
    learner_total_attempts: int = 0
    learner_successful_attempts: int = 0
    current_word_ids: tuple[str, ...] = ()
    word_index: int = 0
    state: SessionState = SessionState.IDLE
    attempts: tuple[Attempt, ...] = ()
    mini_set_results: tuple[MiniSetResult, ...] = ()
    confidence_score: int = 0
    mini_sets_completed: int = 0
    assessment_mode: bool = False
    max_tier: int = 7
    prompt_mode: PromptMode | None = None

    @property
    def current_word_id(self) -> str | None:
        if self.state != SessionState.IN_MINISET:
            return None
        if 0 <= self.word_index < len(self.current_word_ids):
            return self.current_word_ids[self.word_index]
        return None
