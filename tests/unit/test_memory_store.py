"""
Unit tests for the in-memory store.

Run: pytest tests/unit/test_memory_store.py -v
"""

import pytest

from speller.core.errors import LearnerNotFoundError, SessionNotFoundError
from speller.core.models import (
    Attempt,
    MiniSetSummary,
    RatingDeltaMeta,
    SessionSnapshot,
    SessionState,
    SessionStats,
)

META = RatingDeltaMeta(learner_before=1500, learner_after=1516, word_before=1400, word_after=1384)


def _attempt(word_id="w-their", correct=True):
    return Attempt(word_id=word_id, word_presented="their", user_spelling="their", correct=correct)


class TestSessionLock:
    """Test the session lease."""

    def test_second_caller_is_refused(self, store):
        assert store.acquire_lock("s1", 30000) is not None
        assert store.acquire_lock("s1", 30000) is None

    def test_release_frees_the_lease(self, store):
        token = store.acquire_lock("s1", 30000)
        store.release_lock("s1", token)
        assert store.acquire_lock("s1", 30000) is not None

    def test_release_with_wrong_token_is_ignored(self, store):
        store.acquire_lock("s1", 30000)
        store.release_lock("s1", "not-the-token")
        assert store.acquire_lock("s1", 30000) is None

    def test_expired_lease_can_be_taken_over(self, store, clock):
        first = store.acquire_lock("s1", 30000)
        clock.advance(seconds=31)
        second = store.acquire_lock("s1", 30000)
        assert second is not None and second != first

    def test_locks_are_per_session(self, store):
        store.acquire_lock("s1", 30000)
        assert store.acquire_lock("s2", 30000) is not None


class TestMastery:
    def test_first_result_seeds_the_counter(self, store, learner):
        store.bump_mastery(learner.id, "w-their", True)
        store.bump_mastery(learner.id, "w-friend", False)
        mastery = store.get_mastery_for_learner(learner.id)
        assert mastery["w-their"].score == 1
        assert mastery["w-friend"].score == 0

    def test_counter_saturates(self, store, learner, settings):
        for _ in range(10):
            store.bump_mastery(learner.id, "w-their", True)
        assert store.get_mastery_for_learner(learner.id)["w-their"].score == settings.mastery_max_score
        for _ in range(10):
            store.bump_mastery(learner.id, "w-their", False)
        assert store.get_mastery_for_learner(learner.id)["w-their"].score == 0


class TestLearners:
    def test_percentile_rank(self, store, learner):
        store.add_learner("Bo", rating=1400)
        store.add_learner("Cy", rating=1600)
        assert store.get_learner_percentile_rank(learner.id) == pytest.approx(0.5)

    def test_unrated_learner_uses_tier_rating(self, store):
        unrated = store.add_learner("Di", tier=7)
        assert store.get_learner(unrated.id).effective_rating == 2000

    def test_unknown_learner(self, store):
        with pytest.raises(LearnerNotFoundError):
            store.get_learner_percentile_rank("nobody")
        with pytest.raises(LearnerNotFoundError):
            store.update_learner_tier("nobody", 3)

    def test_update_rating_and_tier(self, store, learner):
        store.update_learner_rating(learner.id, 1530, 4, 3)
        store.update_learner_tier(learner.id, 5)
        updated = store.get_learner(learner.id)
        assert (updated.rating, updated.total_attempts, updated.successful_attempts, updated.tier) == (1530, 4, 3, 5)


class TestSessionsAndAttempts:
    def test_record_attempt_maintains_session_counters(self, store, learner):
        session = store.create_session(learner.id, 3, ["w-their", "w-friend"])
        attempt_id = store.record_attempt(session.id, learner.id, _attempt(), META)
        store.record_attempt(session.id, learner.id, _attempt("w-friend", correct=False), META)

        stored = store.get_session(session.id)
        assert (stored.attempts_total, stored.correct_total) == (2, 1)
        assert store.get_rating_meta(attempt_id) == META
        assert store.list_distinct_word_ids_for_session(session.id) == ["w-their", "w-friend"]

    def test_recent_attempts_newest_first(self, store, learner):
        session = store.create_session(learner.id, 3, ["w-their"])
        for word_id in ["w-their", "w-friend", "w-people"]:
            store.record_attempt(session.id, learner.id, _attempt(word_id), META)
        recent = store.list_recent_attempts(learner.id, 2)
        assert [a.word_id for a in recent] == ["w-people", "w-friend"]

    def test_mini_set_summary_counts_sets(self, store, learner):
        session = store.create_session(learner.id, 3, ["w-their"])
        store.record_mini_set_summary(session.id, MiniSetSummary(index=1, tier_effective=3, correct_count=4))
        assert store.get_session(session.id).mini_sets_completed == 2

    def test_end_session(self, store, learner):
        session = store.create_session(learner.id, 3, ["w-their"])
        store.end_session(session.id, SessionStats(tier_end=4, mini_sets_completed=1, attempts_total=5, correct_total=4))
        stored = store.get_session(session.id)
        assert stored.is_ended
        assert stored.tier_end == 4

    def test_unknown_session(self, store):
        with pytest.raises(SessionNotFoundError):
            store.update_session_progress("nope", [], 0)


class TestWordsAndLists:
    def test_band_query(self, store):
        words = store.query_words_by_rating_band(1400, 50, ["w-their"], 50)
        assert len(words) == 7
        assert all(w.tier == 3 for w in words)

    def test_inactive_words_are_skipped(self, store):
        store.add_word("retired", tier=3, word_id="w-retired", is_active=False)
        assert "w-retired" not in {w.id for w in store.list_active_words(50)}
        assert store.get_words_by_ids(["w-retired", "w-their"])[0].id == "w-their"

    def test_update_word_rating(self, store):
        store.update_word_rating("w-their", 1333)
        assert store.get_word("w-their").effective_rating == 1333

    def test_curated_item_rating_updates(self, store, learner):
        store.create_custom_list("homework", learner.id, ["apple"])
        [apple] = store.get_enabled_list_words_for_learner(learner.id)
        store.update_word_rating(apple.id, 1480)
        assert store.get_word(apple.id).rating == 1480

    def test_list_toggle(self, store, learner):
        list_id = store.create_custom_list("homework", learner.id, ["apple", "apple", "pear"])
        assert len(store.get_enabled_list_words_for_learner(learner.id)) == 2
        store.set_list_enabled(learner.id, list_id, False)
        assert store.get_enabled_list_words_for_learner(learner.id) == []

    def test_list_for_unknown_learner(self, store):
        with pytest.raises(LearnerNotFoundError):
            store.create_custom_list("homework", "nobody", ["apple"])

    def test_max_word_tier(self, store):
        assert store.get_max_word_tier() == 4


class TestSnapshots:
    def test_round_trip_returns_a_copy(self, store):
        snapshot = SessionSnapshot(session_id="s1", learner_id="l1", state=SessionState.BREAK, current_word_ids=("a",))
        store.save_snapshot(snapshot)
        loaded = store.load_snapshot("s1")
        assert loaded == snapshot
        assert loaded is not snapshot

    def test_delete(self, store):
        store.save_snapshot(SessionSnapshot(session_id="s1"))
        store.delete_snapshot("s1")
        store.delete_snapshot("s1")
        assert store.load_snapshot("s1") is None
