"""
Session Runner.

Drives one practice session:
- start: pick the first mini-set and open the session
- submit_word: score an attempt (or show a diagnostic retry) and advance
- complete_mini_set: close a break and choose the next words
- finish: close the session and report totals

All session state lives in an immutable SessionSnapshot replaced through the
pure reducers in `speller.session.reducers`. Persistence goes through the
injected `Stores`; the runner does no locking and assumes exclusive
ownership of its session for the duration of each call.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from speller.adaptive.level_adjuster import apply_confidence_ladder
from speller.adaptive.word_selector import WordSelector, unique_words
from speller.config import Settings, get_settings
from speller.core.diff import DiffResult, compute_diff, describe_errors
from speller.core.errors import NoCandidatesError, WordNotFoundError
from speller.core.models import (
    Attempt,
    AttemptRecord,
    LearnerRecord,
    MiniSetAction,
    MiniSetSummary,
    NextStep,
    PromptMode,
    RatingDeltaMeta,
    SessionRecord,
    SessionSnapshot,
    SessionState,
    SessionStats,
    Word,
)
from speller.core.rating import percentile_to_tier, tier_to_base_rating, update_ratings
from speller.db.stores import Stores
from speller.lessons.generator import Lesson, MissedWord, generate_lesson
from speller.session import reducers
from speller.session.state_machine import SessionStateMachine


# ========================================
# Results
# ========================================


@dataclass
class BreakSummary:
    correct: list[str] = field(default_factory=list)
    missed: list[MissedWord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "correct": list(self.correct),
            "missed": [m.to_dict() for m in self.missed],
        }


@dataclass
class StartResult:
    session_id: str
    current_word: Word | None
    word_index: int
    tier: int

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "current_word": self.current_word.model_dump() if self.current_word else None,
            "word_index": self.word_index,
            "tier": self.tier,
        }


@dataclass
class SubmitResult:
    """Outcome of one submission, scored or diagnostic."""
    correct: bool
    correct_spelling: str
    next_step: NextStep
    advance: bool
    attempts_total: int
    error_details: DiffResult | None = None
    next_word: Word | None = None
    attempt_id: str | None = None
    break_summary: BreakSummary | None = None
    lesson: Lesson | None = None
    transitioned: bool = True

    @property
    def error_description(self) -> str:
        return describe_errors(self.error_details.summary) if self.error_details else ""

    def to_dict(self) -> dict:
        return {
            "correct": self.correct,
            "correct_spelling": self.correct_spelling,
            "next_step": self.next_step.value,
            "advance": self.advance,
            "attempts_total": self.attempts_total,
            "error_details": self.error_details.to_dict() if self.error_details else None,
            "error_description": self.error_description,
            "next_word": self.next_word.model_dump() if self.next_word else None,
            "attempt_id": self.attempt_id,
            "break_summary": self.break_summary.to_dict() if self.break_summary else None,
            "lesson": self.lesson.to_dict() if self.lesson else None,
            "transitioned": self.transitioned,
        }


@dataclass
class CompletionResult:
    """Outcome of leaving a break."""
    break_summary: BreakSummary
    lesson: Lesson | None
    next_tier: int
    next_words: list[Word]
    attempts_total: int
    confidence_score: int = 0
    ladder_tier: int | None = None
    transitioned: bool = True

    def to_dict(self) -> dict:
        return {
            "break_summary": self.break_summary.to_dict(),
            "lesson": self.lesson.to_dict() if self.lesson else None,
            "next_tier": self.next_tier,
            "next_words": [w.model_dump() for w in self.next_words],
            "attempts_total": self.attempts_total,
            "confidence_score": self.confidence_score,
            "ladder_tier": self.ladder_tier,
            "transitioned": self.transitioned,
        }


@dataclass
class FinishResult:
    attempts_total: int
    correct_total: int
    mini_sets_completed: int
    tier_end: int
    assessment_suggested_tier: int | None = None
    assessment_max_tier: int | None = None
    transitioned: bool = True

    def to_dict(self) -> dict:
        return {
            "attempts_total": self.attempts_total,
            "correct_total": self.correct_total,
            "mini_sets_completed": self.mini_sets_completed,
            "tier_end": self.tier_end,
            "assessment_suggested_tier": self.assessment_suggested_tier,
            "assessment_max_tier": self.assessment_max_tier,
            "transitioned": self.transitioned,
        }


# ========================================
# Runner
# ========================================


class SessionRunner:
    """Orchestrates one practice session over injected stores."""

    def __init__(
        self,
        stores: Stores,
        settings: Settings | None = None,
        selector: WordSelector | None = None,
        rng: random.Random | None = None,
    ):
        self._stores = stores
        self._settings = settings or get_settings()
        self._selector = selector or WordSelector(
            stores.words,
            stores.attempts,
            stores.mastery,
            stores.custom_lists,
            settings=self._settings,
            rng=rng,
        )
        self._size = self._settings.mini_set_size
        self._snapshot = SessionSnapshot(
            rating=self._settings.default_rating, max_tier=self._settings.max_tier
        )
        self._machine = SessionStateMachine(mini_set_size=self._size)

    # ----------------------------------------
    # State
    # ----------------------------------------

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    @property
    def state(self) -> SessionState:
        return self._machine.state

    @property
    def current_word_id(self) -> str | None:
        return self._snapshot.current_word_id

    def get_state(self) -> dict[str, Any]:
        """Serializable copy of the full snapshot."""
        return self._snapshot.model_dump(mode="json")

    def load_state(self, state: SessionSnapshot | dict[str, Any]) -> None:
        """Replace the snapshot and resynchronize the state machine."""
        snapshot = state if isinstance(state, SessionSnapshot) else SessionSnapshot.model_validate(state)
        self._set(snapshot)

    def resume_from_session(
        self,
        session: SessionRecord,
        attempts: Sequence[AttemptRecord],
        learner: LearnerRecord | None = None,
        *,
        assessment_mode: bool = False,
        max_tier: int | None = None,
    ) -> SessionSnapshot:
        """Rebuild the snapshot from a stored session row and its attempt log."""
        snapshot = reducers.rebuild_snapshot(
            session,
            attempts,
            learner,
            assessment_mode=assessment_mode,
            max_tier=max_tier or self._settings.max_tier,
            mini_set_size=self._size,
        )
        self._set(snapshot)
        logger.info(
            f"Resumed session {session.id} in {snapshot.state.value} "
            f"({len(snapshot.attempts)} attempts)"
        )
        return snapshot

    def _set(self, snapshot: SessionSnapshot) -> None:
        self._snapshot = snapshot
        self._machine.sync(snapshot.state, snapshot.word_index)

    def _require_word(self, word_id: str) -> Word:
        word = self._stores.words.get_word(word_id)
        if word is None:
            raise WordNotFoundError(word_id)
        return word

    # ----------------------------------------
    # Start
    # ----------------------------------------

    def start(
        self,
        learner_id: str,
        tier: int,
        preset_words: Sequence[Word] | None = None,
        *,
        assessment_mode: bool = False,
        max_tier: int | None = None,
        start_rating: int | None = None,
        total_attempts: int = 0,
        successful_attempts: int = 0,
        prompt_mode: PromptMode | None = None,
    ) -> StartResult:
        """
        Open a new session.

        Args:
            learner_id: Learner practising
            tier: Learner's current tier (capped at max_tier)
            preset_words: Explicit first mini-set; otherwise the selector picks one
            assessment_mode: Measure the tier without applying it to the learner
            max_tier: Highest tier reachable this session
            start_rating: Learner's rating; defaults to the tier's base rating
            total_attempts: Learner's lifetime attempt counter
            successful_attempts: Learner's lifetime success counter
            prompt_mode: How words are presented

        Raises:
            NoCandidatesError: No words could be found for the first mini-set
        """
        max_tier = max_tier or self._settings.max_tier
        start_tier = max(1, min(tier, max_tier))
        rating = start_rating if start_rating is not None else tier_to_base_rating(start_tier)

        if preset_words:
            words = unique_words(preset_words)
        else:
            words = self._selector.select_mini_set(rating, learner_id, [])
            if len(words) < self._size:
                raise NoCandidatesError(
                    f"Only {len(words)} words available for learner {learner_id} at rating {rating}"
                )
        if not words:
            raise NoCandidatesError(f"No words available for learner {learner_id}")

        word_ids = [w.id for w in words]
        session = self._stores.sessions.create_session(learner_id, start_tier, word_ids)

        snapshot, _ = reducers.apply_start(
            session.id,
            learner_id,
            start_tier,
            rating,
            word_ids,
            total_attempts=total_attempts,
            successful_attempts=successful_attempts,
            assessment_mode=assessment_mode,
            max_tier=max_tier,
            prompt_mode=prompt_mode,
            mini_set_size=self._size,
        )
        self._set(snapshot)
        logger.info(
            f"Started session {session.id} for {learner_id} at tier {start_tier} "
            f"(rating {rating}, {len(word_ids)} words{', assessment' if assessment_mode else ''})"
        )
        return StartResult(session_id=session.id, current_word=words[0], word_index=0, tier=start_tier)

    # ----------------------------------------
    # Submit
    # ----------------------------------------

    def submit_word(
        self,
        word_id: str,
        user_spelling: str,
        response_ms: int,
        replay_count: int = 0,
        edit_count: int | None = None,
        advance: bool = True,
    ) -> SubmitResult:
        """
        Check one spelling.

        With advance=False the attempt is diagnostic: it only feeds the
        mini-set result (so a later fix still counts as a miss) and never
        touches ratings, mastery, persistence or the state machine.
        Outside a running mini-set the submission is ignored and reported
        with transitioned=False.

        Raises:
            WordNotFoundError: `word_id` is not in the word bank
        """
        word = self._require_word(word_id)
        typed = user_spelling.strip()
        correct = word.text.strip().lower() == typed.lower()

        if self._snapshot.state != SessionState.IN_MINISET:
            logger.warning(f"submit_word({word_id}) ignored in state {self._snapshot.state.value}")
            return SubmitResult(
                correct=correct,
                correct_spelling=word.text,
                next_step=NextStep.BREAK,
                advance=False,
                attempts_total=len(self._snapshot.attempts),
                transitioned=False,
            )

        error_details = None if correct else compute_diff(word.text, typed)

        if not advance:
            self._set(reducers.apply_diagnostic(self._snapshot, word_id, correct, typed))
            logger.debug(f"Diagnostic retry on '{word.text}': {'correct' if correct else typed!r}")
            return SubmitResult(
                correct=correct,
                correct_spelling=word.text,
                next_step=NextStep.RETRY,
                advance=False,
                attempts_total=len(self._snapshot.attempts),
                error_details=error_details,
                next_word=word,
            )

        snap = self._snapshot
        word_before = word.effective_rating
        update = update_ratings(snap.rating, word_before, correct, self._settings.k_factor)
        attempt = Attempt(
            word_id=word_id,
            word_presented=word.text,
            user_spelling=user_spelling,
            correct=correct,
            response_ms=response_ms,
            replay_count=replay_count,
            edit_count=edit_count,
            prompt_mode=snap.prompt_mode,
        )
        meta = RatingDeltaMeta(
            learner_before=snap.rating,
            learner_after=update.new_learner_rating,
            word_before=word_before,
            word_after=update.new_word_rating,
        )

        attempt_id = self._stores.attempts.record_attempt(snap.session_id, snap.learner_id, attempt, meta)
        self._stores.mastery.bump_mastery(snap.learner_id, word_id, correct)
        self._stores.words.update_word_rating(word_id, update.new_word_rating)

        last_word = reducers.is_last_word(snap)
        snap, _ = reducers.apply_submit(snap, attempt, update.new_learner_rating, self._size)
        self._set(snap)
        self._stores.learners.update_learner_rating(
            snap.learner_id,
            snap.rating,
            snap.learner_total_attempts,
            snap.learner_successful_attempts,
        )
        logger.debug(
            f"Scored '{word.text}' ({'correct' if correct else 'missed'}): "
            f"learner {meta.learner_before}->{meta.learner_after}, "
            f"word {meta.word_before}->{meta.word_after}"
        )

        if not last_word:
            next_word = self._stores.words.get_word(snap.current_word_ids[snap.word_index])
            self._stores.sessions.update_session_progress(
                snap.session_id, snap.current_word_ids, snap.word_index
            )
            return SubmitResult(
                correct=correct,
                correct_spelling=word.text,
                next_step=NextStep.NEXT_WORD,
                advance=True,
                attempts_total=len(snap.attempts),
                error_details=error_details,
                next_word=next_word,
                attempt_id=attempt_id,
            )

        summary = self._build_break_summary()
        lesson = generate_lesson(summary.missed)
        logger.info(
            f"Mini-set done in session {snap.session_id}: "
            f"{len(summary.correct)} correct, {len(summary.missed)} missed"
        )
        return SubmitResult(
            correct=correct,
            correct_spelling=word.text,
            next_step=NextStep.BREAK,
            advance=True,
            attempts_total=len(snap.attempts),
            error_details=error_details,
            attempt_id=attempt_id,
            break_summary=summary,
            lesson=lesson,
        )

    def _build_break_summary(self) -> BreakSummary:
        summary = BreakSummary()
        for result in self._snapshot.mini_set_results:
            word = self._stores.words.get_word(result.word_id)
            if word is None:
                continue
            if result.correct:
                summary.correct.append(word.text)
                continue
            typed = result.missed_text
            if typed is None:
                typed = next(
                    (
                        a.user_spelling
                        for a in reversed(self._snapshot.attempts)
                        if a.word_id == result.word_id and not a.correct
                    ),
                    "",
                )
            summary.missed.append(MissedWord(word=word.text, user_spelling=typed))
        return summary

    # ----------------------------------------
    # Break
    # ----------------------------------------

    def complete_mini_set(self, action: MiniSetAction) -> CompletionResult:
        """
        Leave a break and load the next mini-set.

        CONTINUE and CHALLENGE_JUMP refresh the tier from the learner's
        rating percentile; PRACTICE_MISSED holds it steady and cycles the
        missed words. An action whose words run out falls back to the
        regular selector.

        Raises:
            NoCandidatesError: No words are left for another mini-set
        """
        snap = self._snapshot
        summary = self._build_break_summary()
        lesson = generate_lesson(summary.missed)

        if snap.state != SessionState.BREAK:
            logger.warning(f"complete_mini_set({action.value}) ignored in state {snap.state.value}")
            return CompletionResult(
                break_summary=summary,
                lesson=lesson,
                next_tier=snap.tier,
                next_words=[],
                attempts_total=len(snap.attempts),
                confidence_score=snap.confidence_score,
                transitioned=False,
            )

        session_word_ids = self._stores.attempts.list_distinct_word_ids_for_session(snap.session_id)
        exclude = list(dict.fromkeys([*snap.current_word_ids, *session_word_ids]))
        next_words = self._next_words(action, exclude)
        if not next_words:
            raise NoCandidatesError(f"No words left for session {snap.session_id}")

        ladder = apply_confidence_ladder(
            snap.mini_set_results, snap.tier, snap.confidence_score, snap.max_tier, self._settings
        )
        if ladder.fired:
            logger.info(f"Confidence ladder suggests tier {ladder.tier} for {snap.learner_id}")

        tier = snap.tier
        if action != MiniSetAction.PRACTICE_MISSED:
            tier = self._refresh_tier()
        snap = self._snapshot

        self._stores.attempts.record_mini_set_summary(
            snap.session_id,
            MiniSetSummary(
                index=snap.mini_sets_completed,
                tier_effective=snap.tier,
                correct_count=sum(1 for r in snap.mini_set_results if r.correct),
                results=snap.mini_set_results,
                lesson=lesson.to_dict() if lesson else None,
            ),
        )

        snap, _ = reducers.apply_complete_mini_set(
            snap, [w.id for w in next_words], ladder.confidence_score, self._size
        )
        self._set(snap)
        self._stores.sessions.update_session_progress(
            snap.session_id, snap.current_word_ids, 0, tier
        )
        logger.info(
            f"Session {snap.session_id}: {action.value} -> {len(next_words)} words at tier {tier}"
        )
        return CompletionResult(
            break_summary=summary,
            lesson=lesson,
            next_tier=tier,
            next_words=next_words,
            attempts_total=len(snap.attempts),
            confidence_score=snap.confidence_score,
            ladder_tier=ladder.tier if ladder.fired else None,
        )

    def _next_words(self, action: MiniSetAction, exclude: list[str]) -> list[Word]:
        snap = self._snapshot
        words: list[Word] = []

        if action == MiniSetAction.PRACTICE_MISSED:
            missed_ids = [r.word_id for r in snap.mini_set_results if not r.correct]
            if missed_ids:
                cycle = [missed_ids[i % len(missed_ids)] for i in range(self._size)]
                words = [w for w in (self._stores.words.get_word(i) for i in cycle) if w is not None]
        elif action == MiniSetAction.CHALLENGE_JUMP:
            words = self._selector.select_challenge_words(snap.rating, snap.learner_id, exclude)

        if not words:
            if action != MiniSetAction.CONTINUE:
                logger.warning(f"{action.value} produced no words; using the regular selection")
            words = self._selector.select_mini_set(snap.rating, snap.learner_id, exclude)
        return words

    def _refresh_tier(self) -> int:
        snap = self._snapshot
        percentile = self._stores.learners.get_learner_percentile_rank(snap.learner_id)
        tier = percentile_to_tier(percentile, snap.max_tier)
        if tier != snap.tier:
            if not snap.assessment_mode:
                self._stores.learners.update_learner_tier(snap.learner_id, tier)
            logger.info(
                f"Tier {snap.tier} -> {tier} for {snap.learner_id} "
                f"(percentile {percentile:.2f}{', not applied' if snap.assessment_mode else ''})"
            )
            self._set(reducers.apply_tier(snap, tier))
        return tier

    # ----------------------------------------
    # Finish
    # ----------------------------------------

    def finish(self) -> FinishResult:
        """Close the session, recompute the tier and report totals."""
        snap = self._snapshot
        attempts_total = len(snap.attempts)
        correct_total = sum(1 for a in snap.attempts if a.correct)
        mini_sets = snap.mini_sets_completed + (1 if snap.state == SessionState.BREAK else 0)

        if snap.state in (SessionState.IDLE, SessionState.COMPLETE):
            logger.warning(f"finish() ignored in state {snap.state.value}")
            return FinishResult(
                attempts_total=attempts_total,
                correct_total=correct_total,
                mini_sets_completed=mini_sets,
                tier_end=snap.tier,
                transitioned=False,
            )

        tier_end = self._refresh_tier()
        self._stores.sessions.end_session(
            snap.session_id,
            SessionStats(
                tier_end=tier_end,
                mini_sets_completed=mini_sets,
                attempts_total=attempts_total,
                correct_total=correct_total,
            ),
        )
        snap, transitioned = reducers.apply_finish(self._snapshot, self._size)
        self._set(snap)
        logger.info(
            f"Finished session {snap.session_id}: {correct_total}/{attempts_total} correct, "
            f"tier {tier_end}"
        )
        return FinishResult(
            attempts_total=attempts_total,
            correct_total=correct_total,
            mini_sets_completed=mini_sets,
            tier_end=tier_end,
            assessment_suggested_tier=tier_end if snap.assessment_mode else None,
            assessment_max_tier=snap.max_tier if snap.assessment_mode else None,
            transitioned=transitioned,
        )

