"""
Learner progress statistics computed from attempt history.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from speller.core.models import AttemptRecord


@dataclass
class CurrentStreak:
    """Run of identical outcomes ending at the latest attempt."""
    count: int = 0
    correct: bool = True

    def to_dict(self) -> dict:
        return {"count": self.count, "correct": self.correct}


@dataclass
class WordMistakeStats:
    """How often, and how, a single word was misspelled."""
    word: str
    attempts: int = 0
    misses: int = 0
    misspellings: list[tuple[str, int]] = field(default_factory=list)
    last_missed_at: datetime | None = None

    @property
    def accuracy(self) -> float:
        if self.attempts == 0:
            return 0.0
        return (self.attempts - self.misses) / self.attempts

    def to_dict(self) -> dict:
        return {
            "word": self.word,
            "attempts": self.attempts,
            "misses": self.misses,
            "accuracy": round(self.accuracy, 3),
            "misspellings": [{"text": text, "count": count} for text, count in self.misspellings],
            "last_missed_at": self.last_missed_at.isoformat() if self.last_missed_at else None,
        }


def compute_current_streak(attempts: Iterable[AttemptRecord]) -> CurrentStreak:
    ordered = sorted(attempts, key=lambda a: a.created_at)
    if not ordered:
        return CurrentStreak()

    latest = ordered[-1].correct
    count = 0
    for attempt in reversed(ordered):
        if attempt.correct != latest:
            break
        count += 1
    return CurrentStreak(count=count, correct=latest)


def compute_unique_words(attempts: Iterable[AttemptRecord]) -> int:
    return len({a.word_presented for a in attempts})


def build_word_mistake_stats(attempts: Iterable[AttemptRecord]) -> list[WordMistakeStats]:
    """
    Group attempts by word and tally misspellings.

    Only words with at least one miss are returned, most-missed first.
    Misspellings within a word are ordered by count (desc) then text (asc);
    blank attempts are not counted as misspellings.
    """
    totals: Counter[str] = Counter()
    misses: Counter[str] = Counter()
    spellings: dict[str, Counter[str]] = defaultdict(Counter)
    last_missed: dict[str, datetime] = {}

    for attempt in attempts:
        word = attempt.word_presented
        totals[word] += 1
        if attempt.correct:
            continue
        misses[word] += 1
        text = attempt.user_spelling.strip()
        if text:
            spellings[word][text] += 1
        if word not in last_missed or attempt.created_at > last_missed[word]:
            last_missed[word] = attempt.created_at

    stats = [
        WordMistakeStats(
            word=word,
            attempts=totals[word],
            misses=missed,
            misspellings=sorted(spellings[word].items(), key=lambda kv: (-kv[1], kv[0])),
            last_missed_at=last_missed.get(word),
        )
        for word, missed in misses.items()
    ]
    stats.sort(key=lambda s: (-s.misses, s.word))
    return stats
