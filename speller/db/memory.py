"""
In-memory implementation of every store protocol.

Used by the test suite and for throwaway sessions. Behaviour mirrors the
SQLAlchemy store: curated-list items that are not in the word bank resolve
to tier-3 words rated 1500, session counters are maintained by
`record_attempt` / `record_mini_set_summary`, and snapshots are kept as JSON
dumps so a load always returns a fresh copy.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from speller.config import Settings, get_settings
from speller.core.errors import LearnerNotFoundError, SessionNotFoundError
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
from speller.core.rating import DEFAULT_RATING, mid_rank_percentile

CUSTOM_WORD_TIER = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class _ListItem:
    id: str
    list_id: str
    text: str
    rating: int = DEFAULT_RATING
    is_active: bool = True


@dataclass
class _CustomList:
    id: str
    name: str


class MemoryStore:
    """Dictionary-backed store for words, learners, sessions and everything else."""

    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        settings: Settings | None = None,
    ):
        self._clock = clock or _utcnow
        self._mastery_max = (settings or get_settings()).mastery_max_score
        self._words: dict[str, Word] = {}
        self._learners: dict[str, LearnerRecord] = {}
        self._sessions: dict[str, SessionRecord] = {}
        self._attempts: list[AttemptRecord] = []
        self._rating_meta: dict[str, RatingDeltaMeta] = {}
        self._summaries: dict[str, list[MiniSetSummary]] = {}
        self._mastery: dict[tuple[str, str], MasteryRecord] = {}
        self._lists: dict[str, _CustomList] = {}
        self._items: dict[str, _ListItem] = {}
        self._assignments: dict[tuple[str, str], bool] = {}
        self._locks: dict[str, tuple[str, datetime]] = {}
        self._snapshots: dict[str, dict[str, Any]] = {}

    # ========================================
    # Seeding
    # ========================================

    def add_word(
        self,
        text: str,
        tier: int = 3,
        rating: int | None = None,
        word_id: str | None = None,
        **extra: Any,
    ) -> Word:
        word = Word(id=word_id or _new_id(), text=text, tier=tier, rating=rating, **extra)
        self._words[word.id] = word
        return word

    def add_learner(
        self,
        name: str,
        tier: int = 3,
        rating: int | None = None,
        learner_id: str | None = None,
    ) -> LearnerRecord:
        learner = LearnerRecord(
            id=learner_id or _new_id(),
            name=name,
            tier=tier,
            rating=rating,
            created_at=self._clock(),
        )
        self._learners[learner.id] = learner
        return learner

    def create_custom_list(
        self,
        name: str,
        learner_id: str,
        words: Iterable[str],
        enabled: bool = True,
    ) -> str:
        self._require_learner(learner_id)
        custom_list = _CustomList(id=_new_id(), name=name)
        self._lists[custom_list.id] = custom_list
        for text in dict.fromkeys(words):
            item = _ListItem(id=_new_id(), list_id=custom_list.id, text=text)
            self._items[item.id] = item
        self._assignments[(learner_id, custom_list.id)] = enabled
        return custom_list.id

    def set_list_enabled(self, learner_id: str, list_id: str, enabled: bool) -> None:
        self._assignments[(learner_id, list_id)] = enabled

    def list_learners(self) -> list[LearnerRecord]:
        return list(self._learners.values())

    def list_mini_set_summaries(self, session_id: str) -> list[MiniSetSummary]:
        return list(self._summaries.get(session_id, []))

    def get_rating_meta(self, attempt_id: str) -> RatingDeltaMeta | None:
        return self._rating_meta.get(attempt_id)

    # ========================================
    # WordStore
    # ========================================

    def _active_bank(self) -> list[Word]:
        return [w for w in self._words.values() if w.is_active]

    def query_words_by_rating_band(
        self, center_rating: int, tolerance: int, exclude_ids: Sequence[str], limit: int
    ) -> list[Word]:
        low, high = max(0, center_rating - tolerance), center_rating + tolerance
        excluded = set(exclude_ids)
        matches = [
            w for w in self._active_bank()
            if low <= w.effective_rating <= high and w.id not in excluded
        ]
        return matches[:limit]

    def list_active_words(self, limit: int) -> list[Word]:
        return self._active_bank()[:limit]

    def query_easier_words(
        self, target_rating: int, count: int, exclude_ids: Sequence[str]
    ) -> list[Word]:
        excluded = set(exclude_ids)
        easier = [
            w for w in self._active_bank()
            if w.effective_rating < target_rating and w.id not in excluded
        ]
        easier.sort(key=lambda w: w.effective_rating, reverse=True)
        return easier[:count]

    def get_word(self, word_id: str) -> Word | None:
        word = self._words.get(word_id)
        if word is not None:
            return word
        item = self._items.get(word_id)
        return self._item_word(item) if item else None

    def get_words_by_ids(self, word_ids: Sequence[str]) -> list[Word]:
        words = [self.get_word(word_id) for word_id in word_ids]
        return [w for w in words if w is not None and w.is_active]

    def update_word_rating(self, word_id: str, rating: int) -> None:
        if word_id in self._words:
            self._words[word_id] = self._words[word_id].model_copy(update={"rating": rating})
        elif word_id in self._items:
            self._items[word_id].rating = rating

    def get_max_word_tier(self) -> int:
        tiers = [w.tier for w in self._active_bank()]
        return max(tiers) if tiers else 7

    def find_word_by_text(self, text: str) -> Word | None:
        lowered = text.strip().lower()
        for word in self._active_bank():
            if word.text.lower() == lowered:
                return word
        return None

    # ========================================
    # LearnerStore
    # ========================================

    def get_learner(self, learner_id: str) -> LearnerRecord | None:
        return self._learners.get(learner_id)

    def _require_learner(self, learner_id: str) -> LearnerRecord:
        learner = self._learners.get(learner_id)
        if learner is None:
            raise LearnerNotFoundError(learner_id)
        return learner

    def get_learner_percentile_rank(self, learner_id: str) -> float:
        learner = self._require_learner(learner_id)
        ratings = [other.effective_rating for other in self._learners.values()]
        return mid_rank_percentile(learner.effective_rating, ratings)

    def update_learner_rating(
        self, learner_id: str, rating: int, total_attempts: int, successful_attempts: int
    ) -> None:
        learner = self._require_learner(learner_id)
        self._learners[learner_id] = learner.model_copy(
            update={
                "rating": rating,
                "total_attempts": total_attempts,
                "successful_attempts": successful_attempts,
            }
        )

    def update_learner_tier(self, learner_id: str, tier: int) -> None:
        learner = self._require_learner(learner_id)
        self._learners[learner_id] = learner.model_copy(update={"tier": tier})

    # ========================================
    # AttemptStore
    # ========================================

    def record_attempt(
        self, session_id: str, learner_id: str, attempt: Attempt, meta: RatingDeltaMeta
    ) -> str:
        record = AttemptRecord(
            **attempt.model_dump(),
            id=_new_id(),
            session_id=session_id,
            learner_id=learner_id,
            created_at=self._clock(),
        )
        self._attempts.append(record)
        self._rating_meta[record.id] = meta

        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions[session_id] = session.model_copy(
                update={
                    "attempts_total": session.attempts_total + 1,
                    "correct_total": session.correct_total + (1 if attempt.correct else 0),
                }
            )
        return record.id

    def record_mini_set_summary(self, session_id: str, summary: MiniSetSummary) -> None:
        self._summaries.setdefault(session_id, []).append(summary)
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions[session_id] = session.model_copy(
                update={"mini_sets_completed": summary.index + 1}
            )

    def list_attempts_for_session(self, session_id: str) -> list[AttemptRecord]:
        return [a for a in self._attempts if a.session_id == session_id]

    def list_distinct_word_ids_for_session(self, session_id: str) -> list[str]:
        return list(dict.fromkeys(a.word_id for a in self._attempts if a.session_id == session_id))

    def list_recent_attempts(self, learner_id: str, limit: int) -> list[AttemptRecord]:
        mine = [a for a in self._attempts if a.learner_id == learner_id]
        return list(reversed(mine))[:limit]

    def list_attempts_for_learner(self, learner_id: str) -> list[AttemptRecord]:
        return [a for a in self._attempts if a.learner_id == learner_id]

    # ========================================
    # SessionStore
    # ========================================

    def create_session(
        self, learner_id: str, start_tier: int, word_ids: Sequence[str]
    ) -> SessionRecord:
        session = SessionRecord(
            id=_new_id(),
            learner_id=learner_id,
            tier_start=start_tier,
            current_tier=start_tier,
            current_word_ids=tuple(word_ids),
            started_at=self._clock(),
        )
        self._sessions[session.id] = session
        return session

    def get_session(self, session_id: str) -> SessionRecord | None:
        return self._sessions.get(session_id)

    def _require_session(self, session_id: str) -> SessionRecord:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def update_session_progress(
        self,
        session_id: str,
        word_ids: Sequence[str],
        word_index: int,
        tier: int | None = None,
    ) -> None:
        session = self._require_session(session_id)
        update: dict[str, Any] = {"current_word_ids": tuple(word_ids), "current_word_index": word_index}
        if tier is not None:
            update["current_tier"] = tier
        self._sessions[session_id] = session.model_copy(update=update)

    def end_session(self, session_id: str, stats: SessionStats) -> None:
        session = self._require_session(session_id)
        self._sessions[session_id] = session.model_copy(
            update={
                "tier_end": stats.tier_end,
                "mini_sets_completed": stats.mini_sets_completed,
                "attempts_total": stats.attempts_total,
                "correct_total": stats.correct_total,
                "ended_at": self._clock(),
            }
        )

    # ========================================
    # MasteryStore
    # ========================================

    def bump_mastery(self, learner_id: str, word_id: str, correct: bool) -> None:
        key = (learner_id, word_id)
        existing = self._mastery.get(key)
        if existing is None:
            score = 1 if correct else 0
        else:
            score = existing.score + (1 if correct else -1)
        self._mastery[key] = MasteryRecord(
            learner_id=learner_id,
            word_id=word_id,
            score=max(0, min(self._mastery_max, score)),
            last_seen_at=self._clock(),
        )

    def get_mastery_for_learner(self, learner_id: str) -> dict[str, MasteryRecord]:
        return {word_id: record for (lid, word_id), record in self._mastery.items() if lid == learner_id}

    # ========================================
    # CustomListStore
    # ========================================

    def _item_word(self, item: _ListItem) -> Word:
        bank = self.find_word_by_text(item.text)
        if bank is not None:
            return bank
        return Word(
            id=item.id,
            text=item.text,
            tier=CUSTOM_WORD_TIER,
            rating=item.rating,
            is_active=item.is_active,
        )

    def get_enabled_list_words_for_learner(self, learner_id: str) -> list[Word]:
        list_ids = {lid for (learner, lid), enabled in self._assignments.items() if learner == learner_id and enabled}
        return [
            self._item_word(item)
            for item in self._items.values()
            if item.list_id in list_ids and item.is_active
        ]

    # ========================================
    # SessionLockStore
    # ========================================

    def acquire_lock(self, session_id: str, ttl_ms: int) -> str | None:
        now = self._clock()
        held = self._locks.get(session_id)
        if held is not None and held[1] >= now:
            return None
        token = _new_id()
        self._locks[session_id] = (token, now + timedelta(milliseconds=ttl_ms))
        return token

    def release_lock(self, session_id: str, token: str) -> None:
        held = self._locks.get(session_id)
        if held is not None and held[0] == token:
            del self._locks[session_id]

    # ========================================
    # SnapshotStore
    # ========================================

    def load_snapshot(self, session_id: str) -> SessionSnapshot | None:
        data = self._snapshots.get(session_id)
        return SessionSnapshot.model_validate(data) if data is not None else None

    def save_snapshot(self, snapshot: SessionSnapshot) -> None:
        self._snapshots[snapshot.session_id] = snapshot.model_dump(mode="json")

    def delete_snapshot(self, session_id: str) -> None:
        self._snapshots.pop(session_id, None)
