"""
Pure snapshot reducers.

Every change to a running session goes through one of these functions. Each
takes a SessionSnapshot and returns a new one (plus, where the state machine
is involved, whether the transition applied). Nothing here performs I/O.
"""

from __future__ import annotations

from collections.abc import Sequence

from speller.core.models import (
    Attempt,
    LearnerRecord,
    MiniSetResult,
    PromptMode,
    SessionAction,
    SessionRecord,
    SessionSnapshot,
    SessionState,
)
from speller.core.rating import tier_to_base_rating
from speller.session.state_machine import DEFAULT_MINI_SET_SIZE, next_state


def _transition(
    snapshot: SessionSnapshot, action: SessionAction, mini_set_size: int
) -> tuple[SessionSnapshot, bool]:
    state, index, transitioned = next_state(snapshot.state, snapshot.word_index, action, mini_set_size)
    if not transitioned:
        return snapshot, False
    return snapshot.model_copy(update={"state": state, "word_index": index}), True


def upsert_result(
    results: Sequence[MiniSetResult],
    word_id: str,
    correct: bool,
    user_spelling: str | None = None,
) -> tuple[MiniSetResult, ...]:
    """AND-combine a word's outcome into the mini-set results."""
    missed_text = None if correct else (user_spelling or "")
    updated: list[MiniSetResult] = []
    found = False
    for result in results:
        if result.word_id == word_id:
            found = True
            result = MiniSetResult(
                word_id=word_id,
                correct=result.correct and correct,
                missed_text=missed_text if missed_text is not None else result.missed_text,
            )
        updated.append(result)
    if not found:
        updated.append(MiniSetResult(word_id=word_id, correct=correct, missed_text=missed_text))
    return tuple(updated)


def apply_start(
    session_id: str,
    learner_id: str,
    tier: int,
    rating: int,
    word_ids: Sequence[str],
    *,
    total_attempts: int = 0,
    successful_attempts: int = 0,
    assessment_mode: bool = False,
    max_tier: int = 7,
    prompt_mode: PromptMode | None = None,
    mini_set_size: int = DEFAULT_MINI_SET_SIZE,
) -> tuple[SessionSnapshot, bool]:
    snapshot = SessionSnapshot(
        session_id=session_id,
        learner_id=learner_id,
        tier=tier,
        rating=rating,
        learner_total_attempts=total_attempts,
        learner_successful_attempts=successful_attempts,
        current_word_ids=tuple(word_ids),
        word_index=0,
        state=SessionState.IDLE,
        assessment_mode=assessment_mode,
        max_tier=max_tier,
        prompt_mode=prompt_mode,
    )
    return _transition(snapshot, SessionAction.START, mini_set_size)


def apply_diagnostic(
    snapshot: SessionSnapshot, word_id: str, correct: bool, user_spelling: str
) -> SessionSnapshot:
    """Fold an unscored retry into the mini-set results only."""
    results = upsert_result(snapshot.mini_set_results, word_id, correct, user_spelling)
    return snapshot.model_copy(update={"mini_set_results": results})


def apply_submit(
    snapshot: SessionSnapshot,
    attempt: Attempt,
    new_rating: int,
    mini_set_size: int = DEFAULT_MINI_SET_SIZE,
) -> tuple[SessionSnapshot, bool]:
    """
    Record a scored attempt and advance the state machine.

    The last word of the set forces BREAK without moving the word index.
    Outside a mini-set nothing is recorded.
    """
    if snapshot.state != SessionState.IN_MINISET:
        return snapshot, False
    updated = snapshot.model_copy(
        update={
            "attempts": snapshot.attempts + (attempt,),
            "mini_set_results": upsert_result(
                snapshot.mini_set_results, attempt.word_id, attempt.correct, attempt.user_spelling
            ),
            "rating": new_rating,
            "learner_total_attempts": snapshot.learner_total_attempts + 1,
            "learner_successful_attempts": snapshot.learner_successful_attempts
            + (1 if attempt.correct else 0),
        }
    )
    if is_last_word(snapshot):
        return _transition(updated, SessionAction.REACH_BREAK, mini_set_size)
    return _transition(updated, SessionAction.SUBMIT_WORD, mini_set_size)


def is_last_word(snapshot: SessionSnapshot) -> bool:
    return snapshot.word_index + 1 >= len(snapshot.current_word_ids)


def apply_tier(snapshot: SessionSnapshot, tier: int) -> SessionSnapshot:
    if tier == snapshot.tier:
        return snapshot
    return snapshot.model_copy(update={"tier": tier})


def apply_complete_mini_set(
    snapshot: SessionSnapshot,
    next_word_ids: Sequence[str],
    confidence_score: int,
    mini_set_size: int = DEFAULT_MINI_SET_SIZE,
) -> tuple[SessionSnapshot, bool]:
    """Close the mini-set and continue with `next_word_ids`."""
    transitioned_snapshot, transitioned = _transition(snapshot, SessionAction.CONTINUE, mini_set_size)
    if not transitioned:
        return snapshot, False
    return (
        transitioned_snapshot.model_copy(
            update={
                "current_word_ids": tuple(next_word_ids),
                "word_index": 0,
                "mini_set_results": (),
                "confidence_score": confidence_score,
                "mini_sets_completed": snapshot.mini_sets_completed + 1,
            }
        ),
        True,
    )


def apply_finish(
    snapshot: SessionSnapshot, mini_set_size: int = DEFAULT_MINI_SET_SIZE
) -> tuple[SessionSnapshot, bool]:
    """Move to COMPLETE, closing an open mini-set first.

    A set waiting at its break counts as completed; a partly answered one does not.
    """
    completed = snapshot.mini_sets_completed + (1 if snapshot.state == SessionState.BREAK else 0)
    if snapshot.state == SessionState.IN_MINISET:
        snapshot, _ = _transition(snapshot, SessionAction.REACH_BREAK, mini_set_size)
    finished, moved = _transition(snapshot, SessionAction.FINISH, mini_set_size)
    if moved:
        finished = finished.model_copy(update={"mini_sets_completed": completed})
    return finished, moved


def rebuild_snapshot(
    session: SessionRecord,
    attempts: Sequence[Attempt],
    learner: LearnerRecord | None = None,
    *,
    assessment_mode: bool = False,
    max_tier: int = 7,
    mini_set_size: int = DEFAULT_MINI_SET_SIZE,
) -> SessionSnapshot:
    """
    Reconstruct a snapshot from a stored session row and its attempt log.

    A break is pending when the attempt total is a positive multiple of the
    mini-set size that has not yet been closed by a mini-set summary. The
    open mini-set's results are rebuilt from the tail of the attempt log.
    """
    tier = session.current_tier or session.tier_start
    rating = learner.rating if learner and learner.rating is not None else tier_to_base_rating(tier)
    log = tuple(Attempt.model_validate(a.model_dump(include=set(Attempt.model_fields))) for a in attempts)

    total = session.attempts_total
    break_pending = (
        total > 0
        and total % mini_set_size == 0
        and total != session.mini_sets_completed * mini_set_size
    )
    open_count = mini_set_size if break_pending else session.current_word_index
    tail = log[-open_count:] if open_count > 0 else ()

    results: tuple[MiniSetResult, ...] = ()
    for attempt in tail:
        results = upsert_result(results, attempt.word_id, attempt.correct, attempt.user_spelling)

    if session.is_ended:
        state = SessionState.COMPLETE
    elif break_pending:
        state = SessionState.BREAK
    else:
        state = SessionState.IN_MINISET

    return SessionSnapshot(
        session_id=session.id,
        learner_id=session.learner_id,
        tier=tier,
        rating=rating,
        learner_total_attempts=learner.total_attempts if learner else 0,
        learner_successful_attempts=learner.successful_attempts if learner else 0,
        current_word_ids=session.current_word_ids,
        word_index=session.current_word_index,
        state=state,
        attempts=log,
        mini_set_results=results,
        confidence_score=0,
        mini_sets_completed=session.mini_sets_completed,
        assessment_mode=assessment_mode,
        max_tier=max_tier,
    )
