"""
Practice Service.

Request-layer wrapper around `SessionRunner`. Each call builds a fresh
runner and:
1. Takes the session lease (SessionBusyError when another caller holds it)
2. Loads the checkpointed snapshot, or rebuilds it from the session row and attempt log
3. Checks the submitted word is the current prompt
4. Runs the runner operation
5. Checkpoints the snapshot (dropped once the session is COMPLETE)
6. Releases the lease
"""

from __future__ import annotations

import random
from collections.abc import Generator, Sequence
from contextlib import contextmanager
from typing import Any

from loguru import logger

from speller.config import Settings, get_settings
from speller.core.errors import (
    InvalidSubmissionError,
    LearnerNotFoundError,
    SessionBusyError,
    SessionNotFoundError,
    WordNotFoundError,
)
from speller.core.models import MiniSetAction, PromptMode, SessionState, Word
from speller.db.stores import Stores
from speller.session.runner import (
    CompletionResult,
    FinishResult,
    SessionRunner,
    StartResult,
    SubmitResult,
)


class PracticeService:
    """Stateless facade: every call loads, acts on, and checkpoints one session."""

    def __init__(
        self,
        stores: Stores,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ):
        self._stores = stores
        self._settings = settings or get_settings()
        self._rng = rng

    def _runner(self) -> SessionRunner:
        return SessionRunner(self._stores, settings=self._settings, rng=self._rng)

    def _max_tier(self) -> int:
        return max(1, min(self._settings.max_tier, self._stores.words.get_max_word_tier()))

    # ========================================
    # Start
    # ========================================

    def _preset_words(self, word_ids: Sequence[str]) -> list[Word]:
        size = self._settings.mini_set_size
        if not 1 <= len(word_ids) <= size:
            raise InvalidSubmissionError(f"Expected 1-{size} word ids, got {len(word_ids)}")
        if len(set(word_ids)) != len(word_ids):
            raise InvalidSubmissionError("Preset word ids must be unique")

        found = {w.id: w for w in self._stores.words.get_words_by_ids(word_ids)}
        for word_id in word_ids:
            if word_id not in found:
                raise WordNotFoundError(word_id)
        return [found[word_id] for word_id in word_ids]

    def start(
        self,
        learner_id: str,
        word_ids: Sequence[str] | None = None,
        assessment: bool = False,
        prompt_mode: PromptMode | None = None,
    ) -> StartResult:
        """
        Open a session for a learner at their stored tier and rating.

        Raises:
            LearnerNotFoundError: Unknown learner
            InvalidSubmissionError: Malformed preset word list
            WordNotFoundError: A preset word id is not in the word store
            NoCandidatesError: No first mini-set could be selected
        """
        learner = self._stores.learners.get_learner(learner_id)
        if learner is None:
            raise LearnerNotFoundError(learner_id)

        preset = self._preset_words(word_ids) if word_ids else None
        runner = self._runner()
        result = runner.start(
            learner_id,
            learner.tier,
            preset,
            assessment_mode=assessment,
            max_tier=self._max_tier(),
            start_rating=learner.rating,
            total_attempts=learner.total_attempts,
            successful_attempts=learner.successful_attempts,
            prompt_mode=prompt_mode,
        )
        self._checkpoint(runner)
        return result

    # ========================================
    # Session actions
    # ========================================

    @contextmanager
    def _session(self, session_id: str) -> Generator[SessionRunner, None, None]:
        token = self._stores.locks.acquire_lock(session_id, self._settings.session_lock_ttl_ms)
        if token is None:
            raise SessionBusyError(session_id)
        try:
            runner = self._load(session_id)
            yield runner
            self._checkpoint(runner)
        finally:
            self._stores.locks.release_lock(session_id, token)

    def _load(self, session_id: str) -> SessionRunner:
        runner = self._runner()
        snapshot = self._stores.snapshots.load_snapshot(session_id)
        if snapshot is not None:
            runner.load_state(snapshot)
            return runner

        session = self._stores.sessions.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        logger.info(f"No checkpoint for session {session_id}; rebuilding from attempt history")
        runner.resume_from_session(
            session,
            self._stores.attempts.list_attempts_for_session(session_id),
            self._stores.learners.get_learner(session.learner_id),
            max_tier=self._max_tier(),
        )
        return runner

    def _checkpoint(self, runner: SessionRunner) -> None:
        snapshot = runner.snapshot
        if snapshot.state == SessionState.COMPLETE:
            self._stores.snapshots.delete_snapshot(snapshot.session_id)
        else:
            self._stores.snapshots.save_snapshot(snapshot)

    def submit(
        self,
        session_id: str,
        word_id: str,
        user_spelling: str,
        response_ms: int = 0,
        replay_count: int = 0,
        edit_count: int | None = None,
        advance: bool = True,
    ) -> SubmitResult:
        """
        Score (or, with advance=False, diagnose) a spelling of the current word.

        Raises:
            SessionBusyError: Another caller holds the session lease
            SessionNotFoundError: Unknown session
            InvalidSubmissionError: `word_id` is not the word being prompted
        """
        with self._session(session_id) as runner:
            if runner.current_word_id != word_id:
                raise InvalidSubmissionError(
                    f"Word {word_id} is not the current prompt of session {session_id} "
                    f"(state {runner.state.value})"
                )
            return runner.submit_word(
                word_id,
                user_spelling,
                response_ms,
                replay_count=replay_count,
                edit_count=edit_count,
                advance=advance,
            )

    def complete_mini_set(
        self, session_id: str, action: MiniSetAction = MiniSetAction.CONTINUE
    ) -> CompletionResult:
        with self._session(session_id) as runner:
            return runner.complete_mini_set(action)

    def finish(self, session_id: str) -> FinishResult:
        with self._session(session_id) as runner:
            return runner.finish()

    def get_state(self, session_id: str) -> dict[str, Any]:
        """Current snapshot of a session, rebuilt from history when no checkpoint exists."""
        return self._load(session_id).get_state()
