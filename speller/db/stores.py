"""
Persistence collaborator contracts.

The engine never talks to a database directly; it is handed these stores at
construction. `speller.db.memory` and `speller.db.sql_store` implement every
protocol in a single class each, so `Stores.single(backend)` wires one
backend into every slot.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from speller.core.models import (
    Attempt,
    AttemptRecord,
    LearnerRecord,
    MasteryRecord,
    MiniSetSummary,
    RatingDeltaMeta,
    SessionRecord,
    SessionSnapshot,
    SessionStats,
    Word,
)


class WordStore(Protocol):
    """Word bank access."""

    def query_words_by_rating_band(
        self, center_rating: int, tolerance: int, exclude_ids: Sequence[str], limit: int
    ) -> list[Word]:
        """Active words rated within center +/- tolerance (lower bound floored at 0)."""
        ...

    def list_active_words(self, limit: int) -> list[Word]:
        ...

    def query_easier_words(
        self, target_rating: int, count: int, exclude_ids: Sequence[str]
    ) -> list[Word]:
        """Active words rated below the target, hardest first."""
        ...

    def get_word(self, word_id: str) -> Word | None:
        ...

    def get_words_by_ids(self, word_ids: Sequence[str]) -> list[Word]:
        """Active words among `word_ids`; unknown ids are skipped."""
        ...

    def update_word_rating(self, word_id: str, rating: int) -> None:
        ...

    def get_max_word_tier(self) -> int:
        """Highest tier in the active bank (7 when empty)."""
        ...


class LearnerStore(Protocol):
    def get_learner(self, learner_id: str) -> LearnerRecord | None:
        ...

    def get_learner_percentile_rank(self, learner_id: str) -> float:
        """Learner's rating percentile among all learners, in [0, 1]."""
        ...

    def update_learner_rating(
        self, learner_id: str, rating: int, total_attempts: int, successful_attempts: int
    ) -> None:
        ...

    def update_learner_tier(self, learner_id: str, tier: int) -> None:
        ...


class AttemptStore(Protocol):
    def record_attempt(
        self, session_id: str, learner_id: str, attempt: Attempt, meta: RatingDeltaMeta
    ) -> str:
        """Persist a scored attempt and return its id."""
        ...

    def record_mini_set_summary(self, session_id: str, summary: MiniSetSummary) -> None:
        ...

    def list_attempts_for_session(self, session_id: str) -> list[AttemptRecord]:
        """Attempts in submission order."""
        ...

    def list_distinct_word_ids_for_session(self, session_id: str) -> list[str]:
        ...

    def list_recent_attempts(self, learner_id: str, limit: int) -> list[AttemptRecord]:
        """Most recent attempts for a learner, newest first."""
        ...

    def list_attempts_for_learner(self, learner_id: str) -> list[AttemptRecord]:
        ...


class SessionStore(Protocol):
    def create_session(
        self, learner_id: str, start_tier: int, word_ids: Sequence[str]
    ) -> SessionRecord:
        ...

    def get_session(self, session_id: str) -> SessionRecord | None:
        ...

    def update_session_progress(
        self,
        session_id: str,
        word_ids: Sequence[str],
        word_index: int,
        tier: int | None = None,
    ) -> None:
        ...

    def end_session(self, session_id: str, stats: SessionStats) -> None:
        ...


class MasteryStore(Protocol):
    def bump_mastery(self, learner_id: str, word_id: str, correct: bool) -> None:
        """Move the saturating counter one step up or down."""
        ...

    def get_mastery_for_learner(self, learner_id: str) -> dict[str, MasteryRecord]:
        """Mastery rows keyed by word id."""
        ...


class CustomListStore(Protocol):
    def get_enabled_list_words_for_learner(self, learner_id: str) -> list[Word]:
        """Words from every enabled curated list assigned to the learner."""
        ...


class SessionLockStore(Protocol):
    def acquire_lock(self, session_id: str, ttl_ms: int) -> str | None:
        """Take the session lease; returns a token, or None if it is held."""
        ...

    def release_lock(self, session_id: str, token: str) -> None:
        """Release the lease if `token` still owns it."""
        ...


class SnapshotStore(Protocol):
    def load_snapshot(self, session_id: str) -> SessionSnapshot | None:
        ...

    def save_snapshot(self, snapshot: SessionSnapshot) -> None:
        ...

    def delete_snapshot(self, session_id: str) -> None:
        ...


@dataclass
class Stores:
    """Every collaborator the engine needs, injected as one bundle."""
    words: WordStore
    learners: LearnerStore
    attempts: AttemptStore
    sessions: SessionStore
    mastery: MasteryStore
    custom_lists: CustomListStore
    locks: SessionLockStore
    snapshots: SnapshotStore

    @classmethod
    def single(cls, backend) -> Stores:
        """Use one backend object for every store."""
        return cls(
            words=backend,
            learners=backend,
            attempts=backend,
            sessions=backend,
            mastery=backend,
            custom_lists=backend,
            locks=backend,
            snapshots=backend,
        )
