"""
Speller Database Models.

SQLAlchemy 2 declarative tables for:
- Word bank and learners
- Practice sessions, attempts and mini-set summaries
- Mastery counters
- Curated lists and their learner assignments
- Session leases and runner snapshots

Column types are kept portable so the same schema runs on SQLite and
PostgreSQL. Timestamps are stored as naive UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

ID_LENGTH = 36


def utcnow() -> datetime:
    """Current UTC time without tzinfo, as stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class WordRow(Base):
    """A word bank entry with its live rating."""

    __tablename__ = "words"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    text: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    tier: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    rating: Mapped[int | None] = mapped_column(Integer)
    pattern: Mapped[str | None] = mapped_column(Text)
    definition: Mapped[str | None] = mapped_column(Text)
    example_sentence: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (Index("idx_words_active_rating", "is_active", "rating"),)

    def __repr__(self) -> str:
        return f"<WordRow {self.text!r} tier={self.tier} rating={self.rating}>"


class LearnerRow(Base):
    __tablename__ = "learners"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    tier: Mapped[int] = mapped_column(Integer, default=3)
    rating: Mapped[int | None] = mapped_column(Integer)
    total_attempts: Mapped[int] = mapped_column(Integer, default=0)
    successful_attempts: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    sessions: Mapped[list[PracticeSessionRow]] = relationship(back_populates="learner")

    def __repr__(self) -> str:
        return f"<LearnerRow {self.name!r} tier={self.tier} rating={self.rating}>"


class PracticeSessionRow(Base):
    """One practice session and its running counters."""

    __tablename__ = "practice_sessions"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    learner_id: Mapped[str] = mapped_column(
        ForeignKey("learners.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tier_start: Mapped[int] = mapped_column(Integer, nullable=False)
    current_tier: Mapped[int | None] = mapped_column(Integer)
    current_word_ids: Mapped[list[str]] = mapped_column(JSON, default=list)
    current_word_index: Mapped[int] = mapped_column(Integer, default=0)
    attempts_total: Mapped[int] = mapped_column(Integer, default=0)
    correct_total: Mapped[int] = mapped_column(Integer, default=0)
    mini_sets_completed: Mapped[int] = mapped_column(Integer, default=0)
    tier_end: Mapped[int | None] = mapped_column(Integer)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime)

    learner: Mapped[LearnerRow] = relationship(back_populates="sessions")

    def __repr__(self) -> str:
        return f"<PracticeSessionRow {self.id} attempts={self.attempts_total}>"


class AttemptRow(Base):
    """A scored attempt with the ratings on both sides before and after."""

    __tablename__ = "attempts"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("practice_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    learner_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    word_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    word_presented: Mapped[str] = mapped_column(Text, nullable=False)
    user_spelling: Mapped[str] = mapped_column(Text, nullable=False)
    correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    response_ms: Mapped[int] = mapped_column(Integer, default=0)
    replay_count: Mapped[int] = mapped_column(Integer, default=0)
    edit_count: Mapped[int | None] = mapped_column(Integer)
    prompt_mode: Mapped[str | None] = mapped_column(String(16))

    learner_rating_before: Mapped[int | None] = mapped_column(Integer)
    learner_rating_after: Mapped[int | None] = mapped_column(Integer)
    word_rating_before: Mapped[int | None] = mapped_column(Integer)
    word_rating_after: Mapped[int | None] = mapped_column(Integer)

    # monotonically increasing insert order; timestamps can tie
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (Index("idx_attempts_learner_seq", "learner_id", "seq"),)


class MiniSetSummaryRow(Base):
    __tablename__ = "mini_set_summaries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("practice_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    set_index: Mapped[int] = mapped_column(Integer, nullable=False)
    tier_effective: Mapped[int] = mapped_column(Integer, nullable=False)
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False)
    results_json: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    lesson_json: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class MasteryRow(Base):
    """Saturating 0..max mastery counter per learner per word."""

    __tablename__ = "mastery"

    learner_id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    word_id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    score: Mapped[int] = mapped_column(Integer, default=0)
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime)


class CustomListRow(Base):
    __tablename__ = "custom_lists"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    items: Mapped[list[CustomListItemRow]] = relationship(
        back_populates="custom_list", cascade="all, delete-orphan"
    )


class CustomListItemRow(Base):
    """A curated word; resolves to the bank entry with the same text when there is one."""

    __tablename__ = "custom_list_items"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    list_id: Mapped[str] = mapped_column(
        ForeignKey("custom_lists.id", ondelete="CASCADE"), nullable=False, index=True
    )
    word_text: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[int] = mapped_column(Integer, default=1500)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    custom_list: Mapped[CustomListRow] = relationship(back_populates="items")

    __table_args__ = (UniqueConstraint("list_id", "word_text", name="uq_list_word"),)


class ListAssignmentRow(Base):
    __tablename__ = "list_assignments"

    learner_id: Mapped[str] = mapped_column(
        ForeignKey("learners.id", ondelete="CASCADE"), primary_key=True
    )
    list_id: Mapped[str] = mapped_column(
        ForeignKey("custom_lists.id", ondelete="CASCADE"), primary_key=True
    )
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)


class SessionLockRow(Base):
    """Per-session lease; one row per locked session."""

    __tablename__ = "session_locks"

    session_id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    lock_token: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    locked_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class SessionSnapshotRow(Base):
    __tablename__ = "session_snapshots"

    session_id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    state_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
