"""
SQLAlchemy implementation of every store protocol.

One `SqlStore` serves all collaborator contracts over a single database.
Each public method runs in its own transaction via `session_scope`; rows are
converted to the pydantic models in `speller.core.models` before they leave
this module.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from loguru import logger
from sqlalchemy import Engine, case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from speller.config import Settings, get_settings
from speller.core.errors import LearnerNotFoundError, SessionNotFoundError
from speller.core.models import (
    Attempt,
    AttemptRecord,
    LearnerRecord,
    MasteryRecord,
    MiniSetResult,
    MiniSetSummary,
    PromptMode,
    RatingDeltaMeta,
    SessionRecord,
    SessionSnapshot,
    SessionStats,
    Word,
)
from speller.core.rating import DEFAULT_RATING, TIER_BASE_RATINGS, mid_rank_percentile
from speller.db.database import make_session_factory, session_scope
from speller.db.models import (
    AttemptRow,
    CustomListItemRow,
    CustomListRow,
    LearnerRow,
    ListAssignmentRow,
    MasteryRow,
    MiniSetSummaryRow,
    PracticeSessionRow,
    SessionLockRow,
    SessionSnapshotRow,
    WordRow,
)

CUSTOM_WORD_TIER = 3

_effective_rating = func.coalesce(
    WordRow.rating,
    case(TIER_BASE_RATINGS, value=WordRow.tier, else_=DEFAULT_RATING),
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


# ========================================
# Row conversion
# ========================================


def _word(row: WordRow) -> Word:
    return Word(
        id=row.id,
        text=row.text,
        tier=row.tier,
        rating=row.rating,
        pattern=row.pattern,
        definition=row.definition,
        example_sentence=row.example_sentence,
        is_active=row.is_active,
    )


def _learner(row: LearnerRow) -> LearnerRecord:
    return LearnerRecord(
        id=row.id,
        name=row.name,
        tier=row.tier,
        rating=row.rating,
        total_attempts=row.total_attempts,
        successful_attempts=row.successful_attempts,
        created_at=row.created_at,
    )


def _session(row: PracticeSessionRow) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        learner_id=row.learner_id,
        tier_start=row.tier_start,
        current_tier=row.current_tier,
        current_word_ids=tuple(row.current_word_ids or ()),
        current_word_index=row.current_word_index,
        attempts_total=row.attempts_total,
        correct_total=row.correct_total,
        mini_sets_completed=row.mini_sets_completed,
        tier_end=row.tier_end,
        started_at=row.started_at,
        ended_at=row.ended_at,
    )


def _attempt(row: AttemptRow) -> AttemptRecord:
    return AttemptRecord(
        id=row.id,
        session_id=row.session_id,
        learner_id=row.learner_id,
        word_id=row.word_id,
        word_presented=row.word_presented,
        user_spelling=row.user_spelling,
        correct=row.correct,
        response_ms=row.response_ms,
        replay_count=row.replay_count,
        edit_count=row.edit_count,
        prompt_mode=PromptMode(row.prompt_mode) if row.prompt_mode else None,
        created_at=row.created_at,
    )


class SqlStore:
    """Relational store backed by SQLAlchemy (SQLite or PostgreSQL)."""

    def __init__(
        self,
        engine: Engine,
        clock: Callable[[], datetime] | None = None,
        settings: Settings | None = None,
    ):
        self._engine = engine
        self._factory = make_session_factory(engine)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._mastery_max = (settings or get_settings()).mastery_max_score

    def _now(self) -> datetime:
        return _naive_utc(self._clock())

    def _scope(self):
        return session_scope(self._factory)

    # ========================================
    # Seeding & admin
    # ========================================

    def add_word(
        self,
        text: str,
        tier: int = 3,
        rating: int | None = None,
        word_id: str | None = None,
        **extra: Any,
    ) -> Word:
        with self._scope() as session:
            row = WordRow(
                id=word_id or _new_id(),
                text=text,
                tier=tier,
                rating=rating,
                is_active=extra.pop("is_active", True),
                created_at=self._now(),
                **extra,
            )
            session.add(row)
            session.flush()
            return _word(row)

    def add_learner(
        self,
        name: str,
        tier: int = 3,
        rating: int | None = None,
        learner_id: str | None = None,
    ) -> LearnerRecord:
        with self._scope() as session:
            row = LearnerRow(
                id=learner_id or _new_id(),
                name=name,
                tier=tier,
                rating=rating,
                total_attempts=0,
                successful_attempts=0,
                created_at=self._now(),
            )
            session.add(row)
            session.flush()
            return _learner(row)

    def list_learners(self) -> list[LearnerRecord]:
        with self._scope() as session:
            rows = session.scalars(select(LearnerRow).order_by(LearnerRow.created_at)).all()
            return [_learner(row) for row in rows]

    def find_word_by_text(self, text: str) -> Word | None:
        with self._scope() as session:
            row = self._bank_word_by_text(session, text)
            return _word(row) if row else None

    def create_custom_list(
        self,
        name: str,
        learner_id: str,
        words: Iterable[str],
        enabled: bool = True,
    ) -> str:
        with self._scope() as session:
            if session.get(LearnerRow, learner_id) is None:
                raise LearnerNotFoundError(learner_id)
            custom_list = CustomListRow(id=_new_id(), name=name, created_at=self._now())
            for text in dict.fromkeys(words):
                custom_list.items.append(CustomListItemRow(id=_new_id(), word_text=text))
            session.add(custom_list)
            session.add(ListAssignmentRow(learner_id=learner_id, list_id=custom_list.id, is_enabled=enabled))
            logger.info(f"Created curated list '{name}' ({len(custom_list.items)} words) for {learner_id}")
            return custom_list.id

    def set_list_enabled(self, learner_id: str, list_id: str, enabled: bool) -> None:
        with self._scope() as session:
            session.merge(ListAssignmentRow(learner_id=learner_id, list_id=list_id, is_enabled=enabled))

    def list_mini_set_summaries(self, session_id: str) -> list[MiniSetSummary]:
        with self._scope() as session:
            rows = session.scalars(
                select(MiniSetSummaryRow)
                .where(MiniSetSummaryRow.session_id == session_id)
                .order_by(MiniSetSummaryRow.set_index)
            ).all()
            return [
                MiniSetSummary(
                    index=row.set_index,
                    tier_effective=row.tier_effective,
                    correct_count=row.correct_count,
                    results=tuple(MiniSetResult.model_validate(r) for r in row.results_json or ()),
                    lesson=row.lesson_json,
                )
                for row in rows
            ]

    def get_rating_meta(self, attempt_id: str) -> RatingDeltaMeta | None:
        with self._scope() as session:
            row = session.get(AttemptRow, attempt_id)
            if row is None or row.learner_rating_before is None:
                return None
            return RatingDeltaMeta(
                learner_before=row.learner_rating_before,
                learner_after=row.learner_rating_after,
                word_before=row.word_rating_before,
                word_after=row.word_rating_after,
            )

    # ========================================
    # WordStore
    # ========================================

    def _active_words(self):
        return select(WordRow).where(WordRow.is_active.is_(True))

    def query_words_by_rating_band(
        self, center_rating: int, tolerance: int, exclude_ids: Sequence[str], limit: int
    ) -> list[Word]:
        stmt = self._active_words().where(
            _effective_rating >= max(0, center_rating - tolerance),
            _effective_rating <= center_rating + tolerance,
        )
        if exclude_ids:
            stmt = stmt.where(WordRow.id.not_in(list(exclude_ids)))
        with self._scope() as session:
            rows = session.scalars(stmt.order_by(WordRow.created_at, WordRow.id).limit(limit)).all()
            return [_word(row) for row in rows]

    def list_active_words(self, limit: int) -> list[Word]:
        with self._scope() as session:
            rows = session.scalars(
                self._active_words().order_by(WordRow.created_at, WordRow.id).limit(limit)
            ).all()
            return [_word(row) for row in rows]

    def query_easier_words(
        self, target_rating: int, count: int, exclude_ids: Sequence[str]
    ) -> list[Word]:
        stmt = self._active_words().where(_effective_rating < target_rating)
        if exclude_ids:
            stmt = stmt.where(WordRow.id.not_in(list(exclude_ids)))
        with self._scope() as session:
            rows = session.scalars(stmt.order_by(_effective_rating.desc()).limit(count)).all()
            return [_word(row) for row in rows]

    def _bank_word_by_text(self, session: Session, text: str) -> WordRow | None:
        return session.scalars(
            self._active_words().where(func.lower(WordRow.text) == text.strip().lower()).limit(1)
        ).first()

    def _item_word(self, session: Session, item: CustomListItemRow) -> Word:
        bank = self._bank_word_by_text(session, item.word_text)
        if bank is not None:
            return _word(bank)
        return Word(
            id=item.id,
            text=item.word_text,
            tier=CUSTOM_WORD_TIER,
            rating=item.rating,
            is_active=item.is_active,
        )

    def _get_word(self, session: Session, word_id: str) -> Word | None:
        row = session.get(WordRow, word_id)
        if row is not None:
            return _word(row)
        item = session.get(CustomListItemRow, word_id)
        return self._item_word(session, item) if item else None

    def get_word(self, word_id: str) -> Word | None:
        with self._scope() as session:
            return self._get_word(session, word_id)

    def get_words_by_ids(self, word_ids: Sequence[str]) -> list[Word]:
        with self._scope() as session:
            words = [self._get_word(session, word_id) for word_id in word_ids]
            return [w for w in words if w is not None and w.is_active]

    def update_word_rating(self, word_id: str, rating: int) -> None:
        with self._scope() as session:
            row = session.get(WordRow, word_id)
            if row is not None:
                row.rating = rating
                return
            item = session.get(CustomListItemRow, word_id)
            if item is not None:
                item.rating = rating

    def get_max_word_tier(self) -> int:
        with self._scope() as session:
            tier = session.scalar(select(func.max(WordRow.tier)).where(WordRow.is_active.is_(True)))
            return tier if tier and tier > 0 else 7

    # ========================================
    # LearnerStore
    # ========================================

    def get_learner(self, learner_id: str) -> LearnerRecord | None:
        with self._scope() as session:
            row = session.get(LearnerRow, learner_id)
            return _learner(row) if row else None

    def _require_learner(self, session: Session, learner_id: str) -> LearnerRow:
        row = session.get(LearnerRow, learner_id)
        if row is None:
            raise LearnerNotFoundError(learner_id)
        return row

    def get_learner_percentile_rank(self, learner_id: str) -> float:
        with self._scope() as session:
            learner = _learner(self._require_learner(session, learner_id))
            ratings = [_learner(row).effective_rating for row in session.scalars(select(LearnerRow))]
            return mid_rank_percentile(learner.effective_rating, ratings)

    def update_learner_rating(
        self, learner_id: str, rating: int, total_attempts: int, successful_attempts: int
    ) -> None:
        with self._scope() as session:
            row = self._require_learner(session, learner_id)
            row.rating = rating
            row.total_attempts = total_attempts
            row.successful_attempts = successful_attempts

    def update_learner_tier(self, learner_id: str, tier: int) -> None:
        with self._scope() as session:
            self._require_learner(session, learner_id).tier = tier

    # ========================================
    # AttemptStore
    # ========================================

    def record_attempt(
        self, session_id: str, learner_id: str, attempt: Attempt, meta: RatingDeltaMeta
    ) -> str:
        with self._scope() as session:
            seq = (session.scalar(select(func.max(AttemptRow.seq))) or 0) + 1
            row = AttemptRow(
                id=_new_id(),
                session_id=session_id,
                learner_id=learner_id,
                word_id=attempt.word_id,
                word_presented=attempt.word_presented,
                user_spelling=attempt.user_spelling,
                correct=attempt.correct,
                response_ms=attempt.response_ms,
                replay_count=attempt.replay_count,
                edit_count=attempt.edit_count,
                prompt_mode=attempt.prompt_mode.value if attempt.prompt_mode else None,
                learner_rating_before=meta.learner_before,
                learner_rating_after=meta.learner_after,
                word_rating_before=meta.word_before,
                word_rating_after=meta.word_after,
                seq=seq,
                created_at=self._now(),
            )
            session.add(row)

            practice = session.get(PracticeSessionRow, session_id)
            if practice is not None:
                practice.attempts_total += 1
                practice.correct_total += 1 if attempt.correct else 0
            return row.id

    def record_mini_set_summary(self, session_id: str, summary: MiniSetSummary) -> None:
        with self._scope() as session:
            session.add(
                MiniSetSummaryRow(
                    session_id=session_id,
                    set_index=summary.index,
                    tier_effective=summary.tier_effective,
                    correct_count=summary.correct_count,
                    results_json=[r.model_dump(mode="json") for r in summary.results],
                    lesson_json=summary.lesson,
                    created_at=self._now(),
                )
            )
            practice = session.get(PracticeSessionRow, session_id)
            if practice is not None:
                practice.mini_sets_completed = summary.index + 1

    def _attempts(self, *conditions, newest_first: bool = False, limit: int | None = None) -> list[AttemptRecord]:
        order = AttemptRow.seq.desc() if newest_first else AttemptRow.seq
        stmt = select(AttemptRow).where(*conditions).order_by(order)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._scope() as session:
            return [_attempt(row) for row in session.scalars(stmt)]

    def list_attempts_for_session(self, session_id: str) -> list[AttemptRecord]:
        return self._attempts(AttemptRow.session_id == session_id)

    def list_distinct_word_ids_for_session(self, session_id: str) -> list[str]:
        return list(dict.fromkeys(a.word_id for a in self.list_attempts_for_session(session_id)))

    def list_recent_attempts(self, learner_id: str, limit: int) -> list[AttemptRecord]:
        return self._attempts(AttemptRow.learner_id == learner_id, newest_first=True, limit=limit)

    def list_attempts_for_learner(self, learner_id: str) -> list[AttemptRecord]:
        return self._attempts(AttemptRow.learner_id == learner_id)

    # ========================================
    # SessionStore
    # ========================================

    def create_session(
        self, learner_id: str, start_tier: int, word_ids: Sequence[str]
    ) -> SessionRecord:
        with self._scope() as session:
            row = PracticeSessionRow(
                id=_new_id(),
                learner_id=learner_id,
                tier_start=start_tier,
                current_tier=start_tier,
                current_word_ids=list(word_ids),
                current_word_index=0,
                attempts_total=0,
                correct_total=0,
                mini_sets_completed=0,
                started_at=self._now(),
            )
            session.add(row)
            session.flush()
            return _session(row)

    def get_session(self, session_id: str) -> SessionRecord | None:
        with self._scope() as session:
            row = session.get(PracticeSessionRow, session_id)
            return _session(row) if row else None

    def _require_session(self, session: Session, session_id: str) -> PracticeSessionRow:
        row = session.get(PracticeSessionRow, session_id)
        if row is None:
            raise SessionNotFoundError(session_id)
        return row

    def update_session_progress(
        self,
        session_id: str,
        word_ids: Sequence[str],
        word_index: int,
        tier: int | None = None,
    ) -> None:
        with self._scope() as session:
            row = self._require_session(session, session_id)
            row.current_word_ids = list(word_ids)
            row.current_word_index = word_index
            if tier is not None:
                row.current_tier = tier

    def end_session(self, session_id: str, stats: SessionStats) -> None:
        with self._scope() as session:
            row = self._require_session(session, session_id)
            row.tier_end = stats.tier_end
            row.mini_sets_completed = stats.mini_sets_completed
            row.attempts_total = stats.attempts_total
            row.correct_total = stats.correct_total
            row.ended_at = self._now()

    # ========================================
    # MasteryStore
    # ========================================

    def bump_mastery(self, learner_id: str, word_id: str, correct: bool) -> None:
        with self._scope() as session:
            row = session.get(MasteryRow, (learner_id, word_id))
            if row is None:
                session.add(
                    MasteryRow(
                        learner_id=learner_id,
                        word_id=word_id,
                        score=1 if correct else 0,
                        last_seen_at=self._now(),
                    )
                )
                return
            row.score = max(0, min(self._mastery_max, row.score + (1 if correct else -1)))
            row.last_seen_at = self._now()

    def get_mastery_for_learner(self, learner_id: str) -> dict[str, MasteryRecord]:
        with self._scope() as session:
            rows = session.scalars(select(MasteryRow).where(MasteryRow.learner_id == learner_id))
            return {
                row.word_id: MasteryRecord(
                    learner_id=row.learner_id,
                    word_id=row.word_id,
                    score=row.score,
                    last_seen_at=row.last_seen_at,
                )
                for row in rows
            }

    # ========================================
    # CustomListStore
    # ========================================

    def get_enabled_list_words_for_learner(self, learner_id: str) -> list[Word]:
        with self._scope() as session:
            list_ids = session.scalars(
                select(ListAssignmentRow.list_id).where(
                    ListAssignmentRow.learner_id == learner_id,
                    ListAssignmentRow.is_enabled.is_(True),
                )
            ).all()
            if not list_ids:
                return []
            items = session.scalars(
                select(CustomListItemRow).where(
                    CustomListItemRow.list_id.in_(list_ids),
                    CustomListItemRow.is_active.is_(True),
                )
            ).all()
            return [self._item_word(session, item) for item in items]

    # ========================================
    # SessionLockStore
    # ========================================

    def acquire_lock(self, session_id: str, ttl_ms: int) -> str | None:
        token = _new_id()
        now = self._now()
        expires_at = now + timedelta(milliseconds=ttl_ms)

        try:
            with self._scope() as session:
                session.add(
                    SessionLockRow(
                        session_id=session_id,
                        lock_token=token,
                        locked_at=now,
                        expires_at=expires_at,
                    )
                )
            return token
        except IntegrityError:
            logger.debug(f"Lease on {session_id} exists; trying to take over an expired one")

        with self._scope() as session:
            result = session.execute(
                update(SessionLockRow)
                .where(SessionLockRow.session_id == session_id, SessionLockRow.expires_at < now)
                .values(lock_token=token, locked_at=now, expires_at=expires_at)
            )
            return token if result.rowcount else None

    def release_lock(self, session_id: str, token: str) -> None:
        with self._scope() as session:
            row = session.get(SessionLockRow, session_id)
            if row is not None and row.lock_token == token:
                session.delete(row)

    # ========================================
    # SnapshotStore
    # ========================================

    def load_snapshot(self, session_id: str) -> SessionSnapshot | None:
        with self._scope() as session:
            row = session.get(SessionSnapshotRow, session_id)
            return SessionSnapshot.model_validate(row.state_json) if row else None

    def save_snapshot(self, snapshot: SessionSnapshot) -> None:
        with self._scope() as session:
            session.merge(
                SessionSnapshotRow(
                    session_id=snapshot.session_id,
                    state_json=snapshot.model_dump(mode="json"),
                    updated_at=self._now(),
                )
            )

    def delete_snapshot(self, session_id: str) -> None:
        with self._scope() as session:
            row = session.get(SessionSnapshotRow, session_id)
            if row is not None:
                session.delete(row)
