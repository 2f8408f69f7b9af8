"""
Word Selector.

Composes each mini-set:
1. Band search: expanding rating windows around the target rating
2. Recency filter: hold back recently attempted words unless they were missed
3. Mastery soft-bias: recently mastered words go to the back of the queue
4. Curated-list blending: learner-specific words take most of the slots

Also provides the challenge-jump variant and the easier-word retry set.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from loguru import logger

from speller.config import Settings, get_settings
from speller.core.models import Attempt, AttemptRecord, Word
from speller.core.rating import MIN_TIER_RATING
from speller.db.stores import AttemptStore, CustomListStore, MasteryStore, WordStore


def unique_words(words: Sequence[Word]) -> list[Word]:
    seen: set[str] = set()
    unique: list[Word] = []
    for word in words:
        if word.id not in seen:
            seen.add(word.id)
            unique.append(word)
    return unique


class WordSelector:
    """
    Select practice words for a learner.

    Recency and mastery rules are applied the same way for the regular and
    challenge paths: recently seen (but not missed) words stay out until they
    fall outside the cooldown, and mastered words are only deprioritized.
    """

    def __init__(
        self,
        words: WordStore,
        attempts: AttemptStore,
        mastery: MasteryStore,
        custom_lists: CustomListStore,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ):
        self._words = words
        self._attempts = attempts
        self._mastery = mastery
        self._custom_lists = custom_lists
        self._settings = settings or get_settings()
        self._rng = rng or random.Random()

    @property
    def size(self) -> int:
        return self._settings.mini_set_size

    # ========================================
    # Public API
    # ========================================

    def select_mini_set(
        self,
        target_rating: int,
        learner_id: str,
        exclude_word_ids: Sequence[str] = (),
    ) -> list[Word]:
        """
        Select the next mini-set.

        Args:
            target_rating: Learner's current rating
            learner_id: Learner to select for
            exclude_word_ids: Words already used in this session

        Returns:
            Up to `mini_set_size` distinct words (fewer only when the pool is exhausted)
        """
        exclude = list(dict.fromkeys(exclude_word_ids))
        recent = self._attempts.list_recent_attempts(
            learner_id, self._settings.recent_attempt_cooldown
        )
        custom = self._custom_candidates(learner_id, exclude, recent)
        custom_ids = [w.id for w in custom]

        if len(custom) >= self.size:
            bank_slots = max(0, min(self._settings.custom_list_bank_slots, self.size))
            chosen = custom[: self.size - bank_slots]
            if bank_slots:
                bank = self._select_from_bank(target_rating, learner_id, exclude + custom_ids, recent)
                chosen.extend(bank[:bank_slots])
            # a short bank is backfilled from the remaining curated words
            chosen = unique_words(chosen + custom)[: self.size]
            logger.debug(f"Mini-set for {learner_id}: {len(chosen)} words, curated-list led")
            return chosen

        bank = self._select_from_bank(target_rating, learner_id, exclude + custom_ids, recent)
        chosen = unique_words(custom + bank)[: self.size]
        logger.debug(
            f"Mini-set for {learner_id}: {len(custom)} curated + {len(chosen) - len(custom)} bank words"
        )
        return chosen

    def select_challenge_words(
        self,
        target_rating: int,
        learner_id: str,
        exclude_word_ids: Sequence[str] = (),
    ) -> list[Word]:
        """Bank words centred above the learner's rating; empty at the practical ceiling."""
        if target_rating >= self._settings.max_practical_rating:
            logger.info(f"Learner {learner_id} is at the rating ceiling; no challenge words")
            return []

        center = min(
            target_rating + self._settings.challenge_rating_boost,
            self._settings.challenge_rating_cap,
        )
        recent = self._attempts.list_recent_attempts(
            learner_id, self._settings.recent_attempt_cooldown
        )
        return self._select_from_bank(center, learner_id, list(exclude_word_ids), recent)

    def select_easier_words(
        self,
        target_rating: int,
        recent_miss_ids: Sequence[str],
        exclude_word_ids: Sequence[str] = (),
        count: int = 2,
    ) -> list[Word]:
        """
        Easier retry words after a run of misses.

        Returns up to `count` words rated just below the target, with the
        first recently missed word moved to the front when it is among them.
        """
        if len(recent_miss_ids) < 2 or target_rating <= MIN_TIER_RATING:
            return []

        easier = self._words.query_easier_words(target_rating, count, list(exclude_word_ids))
        retry = [w for w in easier if w.id == recent_miss_ids[0]]
        return unique_words(retry + easier[:count])

    # ========================================
    # Word bank
    # ========================================

    def _band_search(self, center: int, exclude: list[str]) -> list[Word]:
        limit = self._settings.mini_set_query_limit
        pool: list[Word] = []
        for tolerance in self._settings.band_tolerances:
            pool = self._words.query_words_by_rating_band(center, tolerance, exclude, limit)
            if len(pool) >= self.size:
                break

        if not pool:
            logger.warning(f"No words within any rating band of {center}; using the whole bank")
            pool = self._words.list_active_words(limit)
        return pool

    def _select_from_bank(
        self,
        center: int,
        learner_id: str,
        exclude: list[str],
        recent: Sequence[AttemptRecord],
    ) -> list[Word]:
        pool = self._band_search(center, exclude)
        if not pool:
            return []

        candidates = self._apply_recency(pool, recent)
        mastery = self._mastery.get_mastery_for_learner(learner_id)
        selected = self._mastery_ordered(candidates, mastery, self._settings.recent_seen_window_days)

        if len(selected) < self.size:
            ids = {w.id for w in selected}
            remaining = [w for w in pool if w.id not in ids]
            self._rng.shuffle(remaining)
            selected.extend(remaining[: self.size - len(selected)])
        return selected[: self.size]

    def _apply_recency(self, pool: list[Word], recent: Sequence[Attempt]) -> list[Word]:
        seen = {a.word_id for a in recent}
        missed = {a.word_id for a in recent if not a.correct}
        if not seen:
            return pool

        eligible = [w for w in pool if w.id not in seen or w.id in missed]
        if len(eligible) < self.size:
            logger.debug("Recency filter left too few words; ignoring it for this set")
            return pool
        return eligible

    def _mastery_ordered(self, candidates: list[Word], mastery: dict, window_days: int) -> list[Word]:
        cutoff = datetime.now(timezone.utc) - timedelta(days=window_days)
        preferred: list[Word] = []
        other: list[Word] = []

        for word in candidates:
            record = mastery.get(word.id)
            high = record is not None and record.score >= self._settings.mastery_high_score
            recently_seen = (
                record is not None
                and record.last_seen_at is not None
                and _aware(record.last_seen_at) > cutoff
            )
            if high and recently_seen:
                other.append(word)
            else:
                preferred.append(word)

        self._rng.shuffle(preferred)
        self._rng.shuffle(other)
        return (preferred + other)[: self.size]

    # ========================================
    # Curated lists
    # ========================================

    def _custom_candidates(
        self, learner_id: str, exclude: list[str], recent: Sequence[Attempt]
    ) -> list[Word]:
        excluded = set(exclude)
        words = [
            w for w in unique_words(self._custom_lists.get_enabled_list_words_for_learner(learner_id))
            if w.id not in excluded and w.is_active
        ]
        self._rng.shuffle(words)
        missed = {a.word_id for a in recent if not a.correct}
        # recently missed curated words come first; sort is stable
        words.sort(key=lambda w: w.id not in missed)
        return words


def should_offer_easier_words(recent_attempts: Sequence[Attempt]) -> bool:
    """True when at least two of the last three attempts were misses."""
    if len(recent_attempts) < 3:
        return False
    return sum(1 for a in recent_attempts[-3:] if not a.correct) >= 2


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)
